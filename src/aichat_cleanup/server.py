"""FastAPI web server for aichat-cleanup."""

import logging
from typing import Literal

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from . import __version__
from .backends import get_default_store
from .config import get_batch_yield_delay
from .orchestrator import BatchInProgressError, Summary
from .query import ARCHIVE_STATES, MODES, PROJECT_SORT_FIELDS, SORT_FIELDS, SORT_ORDERS, Page
from .service import AppService
from .store import StoreError
from .views import SelectableList, SessionListView

logger = logging.getLogger(__name__)

app = FastAPI(title="aichat-cleanup", version=__version__)

# Service cache (populated on first request)
_service: AppService | None = None


def _get_service() -> AppService:
    """Lazily build and cache the application service."""
    global _service
    if _service is None:
        _service = AppService(get_default_store(), yield_delay=get_batch_yield_delay())
        logger.info("Using %s store", _service.store.name)
    return _service


def _snapshot_service() -> AppService:
    """The service with a loaded snapshot; storage failures become 500s."""
    service = _get_service()
    try:
        service.require_snapshot()
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return service


def _page_to_dict(page: Page) -> dict:
    return {
        "items": [item.to_dict() for item in page.items],
        "total": page.total_filtered,
        "total_pages": page.total_pages,
        "page": page.page,
    }


def _session_page(view: SessionListView, **criteria) -> dict:
    try:
        page = view.update_criteria(**criteria)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    data = _page_to_dict(page)
    data["selected"] = view.selected_ids()
    return data


def _summary_to_dict(summary: Summary) -> dict:
    return {"succeeded": summary.succeeded, "failed": summary.failed}


async def _run_delete(action) -> dict:
    """Await a delete action, mapping store failures to HTTP errors."""
    try:
        summary = await action
    except BatchInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreError as e:
        logger.error("Delete failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return _summary_to_dict(summary)


class SessionIdsBody(BaseModel):
    project_path: str
    session_ids: list[str] = Field(default_factory=list)


class PathsBody(BaseModel):
    paths: list[str] = Field(default_factory=list)


class WorkspaceIdsBody(BaseModel):
    ids: list[str] = Field(default_factory=list)


class SelectionBody(BaseModel):
    """A change to the selection of one list.

    ``context`` is "projects", "workspaces", "project:<path>" or
    "workspace:<id>". ``page`` selects the page last listed, or clears the
    selection when that page is already fully selected.
    """

    context: str
    action: Literal["toggle", "page", "all", "clear"]
    id: str | None = None


def _list_view(service: AppService, context: str) -> SelectableList:
    try:
        return service.list_view(context)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown list: {context}")


def _selection_to_dict(view: SelectableList) -> dict:
    return {"context": view.context, "selected": view.selected_ids()}


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/version")
async def get_version():
    return {"version": _get_service().store.get_app_version()}


@app.get("/api/snapshot")
async def get_snapshot():
    """Return the full analysis snapshot."""
    return _snapshot_service().snapshot.to_dict()


@app.post("/api/reload")
async def reload():
    """Rescan storage and replace the snapshot."""
    service = _get_service()
    try:
        snapshot = service.load_data()
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"projects": len(snapshot.projects), "workspaces": len(snapshot.workspaces)}


@app.get("/api/projects")
async def get_projects(
    sort: str = Query("lines_added", description="Sort: " + ", ".join(PROJECT_SORT_FIELDS)),
    page: int = Query(1, ge=1),
):
    service = _snapshot_service()
    try:
        result = service.project_page(sort, page)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    data = _page_to_dict(result)
    data["selected"] = service.project_list.selected_ids()
    return data


@app.get("/api/projects/sessions")
async def get_project_sessions(
    path: str = Query(..., description="Project path"),
    search: str = Query("", description="Search in names and subtitles"),
    mode: str = Query("all", description="Mode: " + ", ".join(MODES)),
    archive: str = Query("all", description="Archive state: " + ", ".join(ARCHIVE_STATES)),
    hide_zero: bool = Query(True, description="Hide sessions without changes"),
    sort: str = Query("files_changed", description="Sort: " + ", ".join(SORT_FIELDS)),
    order: str = Query("desc", description="Order: " + ", ".join(SORT_ORDERS)),
    page: int = Query(1, ge=1),
):
    """Filtered, sorted page of one project's sessions."""
    service = _snapshot_service()
    if service.project(path) is None:
        raise HTTPException(status_code=404, detail=f"Project not found: {path}")
    return _session_page(
        service.project_view(path),
        search_term=search, mode=mode, archive_state=archive,
        hide_zero_change=hide_zero, sort_field=sort, sort_order=order, page=page,
    )


@app.get("/api/workspaces")
async def get_workspaces():
    service = _snapshot_service()
    workspaces = service.workspaces()
    return {
        "total": len(workspaces),
        "items": [
            {**{k: v for k, v in w.to_dict().items() if k != "recent_chats"}, "label": w.label}
            for w in workspaces
        ],
        "selected": service.workspace_list.selected_ids(),
    }


@app.get("/api/selection")
async def get_selection(context: str = Query(..., description="List context")):
    return _selection_to_dict(_list_view(_snapshot_service(), context))


@app.post("/api/selection")
async def update_selection(body: SelectionBody):
    """Toggle one id, toggle the current page, select everything filtered, or clear."""
    view = _list_view(_snapshot_service(), body.context)
    if body.action == "toggle":
        if body.id is None:
            raise HTTPException(status_code=422, detail="toggle needs an id")
        try:
            view.toggle(body.id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"{body.id} is not listed in {body.context}")
    elif body.action == "page":
        view.toggle_page()
    elif body.action == "all":
        view.select_all_filtered()
    else:
        view.selection.clear()
    return _selection_to_dict(view)


@app.get("/api/workspaces/{workspace_id}/sessions")
async def get_workspace_sessions(
    workspace_id: str,
    search: str = Query(""),
    mode: str = Query("all"),
    archive: str = Query("all"),
    hide_zero: bool = Query(True),
    sort: str = Query("files_changed"),
    order: str = Query("desc"),
    page: int = Query(1, ge=1),
):
    service = _snapshot_service()
    if service.workspace(workspace_id) is None:
        raise HTTPException(status_code=404, detail=f"Workspace not found: {workspace_id}")
    return _session_page(
        service.workspace_view(workspace_id),
        search_term=search, mode=mode, archive_state=archive,
        hide_zero_change=hide_zero, sort_field=sort, sort_order=order, page=page,
    )


@app.delete("/api/projects/sessions/{session_id}")
async def delete_session(session_id: str, path: str = Query(..., description="Project path")):
    return await _run_delete(_get_service().delete_session(path, session_id))


@app.post("/api/projects/sessions/delete")
async def delete_sessions(body: SessionIdsBody):
    return await _run_delete(_get_service().delete_sessions(body.project_path, body.session_ids))


@app.post("/api/projects/sessions/delete-selected")
async def delete_selected_sessions(path: str = Query(..., description="Project path")):
    """Delete the sessions selected in one project's session list."""
    service = _snapshot_service()
    if service.project(path) is None:
        raise HTTPException(status_code=404, detail=f"Project not found: {path}")
    return await _run_delete(service.delete_selected_sessions(path))


@app.delete("/api/projects/sessions")
async def delete_project_sessions(path: str = Query(..., description="Project path")):
    return await _run_delete(_get_service().delete_project_sessions(path))


@app.post("/api/projects/delete")
async def delete_projects(body: PathsBody):
    """Delete every session of several projects, one project at a time."""
    return await _run_delete(_snapshot_service().delete_projects(body.paths))


@app.post("/api/projects/delete-selected")
async def delete_selected_projects():
    """Batch-delete the selected projects in project list order."""
    return await _run_delete(_snapshot_service().delete_selected_projects())


@app.delete("/api/workspaces/{workspace_id}/sessions")
async def delete_workspace_sessions(workspace_id: str):
    return await _run_delete(_get_service().delete_workspace_sessions(workspace_id))


@app.post("/api/workspaces/delete")
async def delete_workspaces(body: WorkspaceIdsBody):
    return await _run_delete(_snapshot_service().delete_workspaces(body.ids))


@app.post("/api/workspaces/delete-selected")
async def delete_selected_workspaces():
    return await _run_delete(_snapshot_service().delete_selected_workspaces())


@app.get("/api/progress")
async def get_progress():
    """Current delete state, with progress while a batch is running."""
    orchestrator = _get_service().orchestrator
    progress = orchestrator.progress
    return {
        "state": orchestrator.state.value,
        "stale": _get_service().stale,
        "error": _get_service().error,
        "progress": None if progress is None else {
            "current": progress.current,
            "total": progress.total,
            "current_label": progress.current_label,
        },
    }


@app.get("/api/trash")
async def get_trash():
    service = _get_service()
    try:
        items = service.load_trash()
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return [item.to_dict() for item in items]


@app.delete("/api/trash")
async def clear_trash():
    try:
        count = _get_service().clear_trash()
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"removed": count}


@app.delete("/api/trash/{trash_id}")
async def delete_trash_item(trash_id: int):
    try:
        existed = _get_service().delete_trash_item(trash_id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"removed": existed}
