"""Tests for AppService against an in-memory store."""

import pytest

from aichat_cleanup.events import DeleteProgress, SnapshotInvalidated
from aichat_cleanup.orchestrator import DeleteState, Summary
from aichat_cleanup.service import AppService
from aichat_cleanup.store import StoreError
from helpers import FakeStore


@pytest.fixture
def service(fake_store):
    svc = AppService(fake_store)
    svc.load_data()
    return svc


def _progress_labels(service):
    labels = []
    service.events.subscribe(lambda e: labels.append(e.current_label) if isinstance(e, DeleteProgress) else None)
    return labels


class TestLoading:
    def test_load_data(self, service, fake_store):
        assert service.app_version == "9.9.9"
        assert service.stale is False
        assert service.error is None
        assert [p.path for p in service.snapshot.projects] == ["/work/alpha", "/work/beta", "/work/gamma"]
        assert fake_store.snapshot_loads == 1

    def test_load_failure_is_recorded(self, fake_store, monkeypatch):
        def broken():
            raise StoreError("permission denied")

        monkeypatch.setattr(fake_store, "get_snapshot", broken)
        service = AppService(fake_store)
        with pytest.raises(StoreError):
            service.load_data()
        assert service.error == "permission denied"
        assert service.snapshot is None
        assert service.refresh() is False

    def test_snapshot_invalidated_marks_stale(self, service):
        service.events.emit(SnapshotInvalidated(reason="test"))
        assert service.stale is True

    def test_project_page_sorting(self, service):
        page = service.project_page("lines_added")
        assert page.item_ids == ["/work/alpha", "/work/beta", "/work/gamma"]
        assert service.project_page("name").item_ids == ["/work/alpha", "/work/beta", "/work/gamma"]
        assert service.project_page("chat_count").item_ids[0] == "/work/alpha"

    def test_project_sort_change_clears_selection(self, service):
        service.project_page("lines_added")
        service.project_selection.toggle("/work/beta")
        service.project_page("lines_added", page=1)
        assert "/work/beta" in service.project_selection
        service.project_page("files_changed")
        assert len(service.project_selection) == 0

    def test_workspaces_and_labels(self, service):
        assert [w.id for w in service.workspaces()] == ["ws-one-0001", "ws-two-0002"]
        assert service.workspace_label("ws-one-0001") == "alpha"
        assert service.workspace_label("ws-two-0002") == "ws-two-0"
        assert service.workspace_label("missing") is None
        assert service.project_label("/work/beta") == "beta"
        assert service.project_label("/elsewhere/delta") == "delta"

    def test_project_view_is_cached(self, service):
        view = service.project_view("/work/alpha")
        assert service.project_view("/work/alpha") is view
        assert view.render().item_ids == ["a1"]
        assert view.update_criteria(hide_zero_change=False).total_filtered == 2

    def test_unknown_project_view_raises(self, service):
        with pytest.raises(KeyError):
            service.project_view("/nope")
        with pytest.raises(KeyError):
            service.list_view("nothing")
        assert service._views == {}

    def test_list_views_by_context(self, service):
        assert service.list_view("projects") is service.project_list
        assert service.list_view("workspaces") is service.workspace_list
        assert service.list_view("project:/work/beta") is service.project_view("/work/beta")
        assert service.list_view("workspace:ws-two-0002").page.total_filtered == 1

    @pytest.mark.asyncio
    async def test_views_of_removed_projects_are_dropped(self, service):
        beta = service.project_view("/work/beta")
        beta.toggle("b1")
        alpha = service.project_view("/work/alpha")

        await service.delete_projects(["/work/beta"])

        assert "project:/work/beta" not in service._views
        assert len(beta.selection) == 0
        assert service.project_view("/work/alpha") is alpha
        with pytest.raises(KeyError):
            service.project_view("/work/beta")


class TestBatchDeletes:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_batch(self, service, fake_store):
        fake_store.failing.add("/work/beta")
        labels = _progress_labels(service)
        service.project_selection.select_all(["/work/alpha", "/work/beta", "/work/gamma"])

        summary = await service.delete_projects(["/work/alpha", "/work/beta", "/work/gamma"])

        assert summary == Summary(succeeded=2, failed=1)
        assert labels == ["alpha", "beta", "gamma"]
        assert [c[1] for c in fake_store.calls] == ["/work/alpha", "/work/beta", "/work/gamma"]
        assert len(service.project_selection) == 0
        assert [p.path for p in service.snapshot.projects] == ["/work/beta"]
        assert len(service.trash_items) == 3
        assert service.orchestrator.state is DeleteState.IDLE
        assert service.stale is False

    @pytest.mark.asyncio
    async def test_delete_selected_projects_in_list_order(self, service, fake_store):
        service.project_page("lines_added")
        service.project_selection.toggle("/work/gamma")
        service.project_selection.toggle("/work/alpha")

        summary = await service.delete_selected_projects()

        assert summary.succeeded == 2
        assert [c[1] for c in fake_store.calls] == ["/work/alpha", "/work/gamma"]

    @pytest.mark.asyncio
    async def test_delete_workspaces(self, service, fake_store):
        labels = _progress_labels(service)

        summary = await service.delete_workspaces(["ws-one-0001", "ws-two-0002", "deadbeefcafe"])

        assert summary == Summary(succeeded=2, failed=1)
        assert labels == ["alpha", "ws-two-0", "deadbeef"]
        assert service.workspaces() == []
        assert {t.project_path for t in service.trash_items} == {
            "[workspace] ws-one-0001",
            "[workspace] ws-two-0002",
        }

    @pytest.mark.asyncio
    async def test_delete_selected_workspaces(self, service, fake_store):
        service.workspace_selection.toggle("ws-two-0002")
        summary = await service.delete_selected_workspaces()
        assert summary.succeeded == 1
        assert fake_store.calls == [("delete_workspace_sessions", "ws-two-0002")]
        assert len(service.workspace_selection) == 0

    @pytest.mark.asyncio
    async def test_reload_failure_after_batch_is_kept(self, service, fake_store, monkeypatch):
        def broken():
            raise StoreError("disk I/O error")

        monkeypatch.setattr(fake_store, "get_snapshot", broken)
        summary = await service.delete_projects(["/work/gamma"])
        assert summary.succeeded == 1
        assert service.error == "disk I/O error"


class TestSingleDeletes:
    @pytest.mark.asyncio
    async def test_delete_session_reloads_views(self, service, fake_store):
        view = service.project_view("/work/alpha")
        view.update_criteria(hide_zero_change=False)
        view.toggle("a1")

        summary = await service.delete_session("/work/alpha", "a1")

        assert summary == Summary(1, 0)
        assert fake_store.calls == [("delete_session", "/work/alpha", "a1")]
        assert view.render().item_ids == ["a2"]
        assert len(view.selection) == 0
        assert fake_store.snapshot_loads == 2

    @pytest.mark.asyncio
    async def test_delete_session_error_propagates(self, service, fake_store):
        fake_store.failing.add("a1")
        with pytest.raises(StoreError, match="locked"):
            await service.delete_session("/work/alpha", "a1")
        assert service.orchestrator.state is DeleteState.IDLE
        assert service.project("/work/alpha").chat_count == 2

    @pytest.mark.asyncio
    async def test_delete_sessions_is_one_store_call(self, service, fake_store):
        view = service.project_view("/work/alpha")
        view.update_criteria(hide_zero_change=False)
        view.select_all_filtered()

        await service.delete_sessions("/work/alpha", view.selected_ids())

        assert fake_store.calls == [("delete_sessions", "/work/alpha", ("a1", "a2"))]
        assert service.project("/work/alpha") is None
        assert len(view.selection) == 0

    @pytest.mark.asyncio
    async def test_delete_selected_sessions(self, service, fake_store):
        view = service.project_view("/work/alpha")
        view.update_criteria(hide_zero_change=False)
        assert await service.delete_selected_sessions("/work/alpha") == Summary(0, 0)
        assert fake_store.calls == []

        view.toggle("a2")
        summary = await service.delete_selected_sessions("/work/alpha")

        assert summary == Summary(1, 0)
        assert fake_store.calls == [("delete_sessions", "/work/alpha", ("a2",))]
        assert service.project("/work/alpha").chat_count == 1

    @pytest.mark.asyncio
    async def test_reload_failure_after_single_delete_is_kept(self, service, fake_store, monkeypatch):
        def broken():
            raise StoreError("disk I/O error")

        monkeypatch.setattr(fake_store, "get_snapshot", broken)
        summary = await service.delete_session("/work/alpha", "a1")

        assert summary == Summary(1, 0)
        assert [t.chat_id for t in fake_store.trash] == ["a1"]
        assert service.error == "disk I/O error"
        assert service.stale is True
        assert service.orchestrator.state is DeleteState.IDLE

    @pytest.mark.asyncio
    async def test_delete_project_sessions(self, service, fake_store):
        await service.delete_project_sessions("/work/beta")
        assert service.project("/work/beta") is None
        assert [t.chat_id for t in service.trash_items] == ["b1"]

    @pytest.mark.asyncio
    async def test_delete_workspace_sessions_unknown(self, service):
        with pytest.raises(StoreError):
            await service.delete_workspace_sessions("missing")


class TestTrash:
    @pytest.mark.asyncio
    async def test_purge_items(self, service):
        await service.delete_project_sessions("/work/alpha")
        newest, oldest = service.trash_items

        assert service.delete_trash_item(newest.id) is True
        assert [t.id for t in service.trash_items] == [oldest.id]
        assert service.delete_trash_item(newest.id) is False
        assert service.clear_trash() == 1
        assert service.trash_items == []
        assert service.clear_trash() == 0

    def test_load_trash_empty(self, service):
        assert service.load_trash() == []


def test_empty_store():
    service = AppService(FakeStore())
    snapshot = service.load_data()
    assert snapshot.projects == []
    assert service.project_page().total_pages == 0
    assert service.workspaces() == []
