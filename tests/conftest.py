"""Shared test fixtures for aichat-cleanup."""

import json

import pytest

from aichat_cleanup.backends.cursor import CursorStore
from aichat_cleanup.core import Workspace
from helpers import FakeStore, make_cursor_db, make_project, make_session, ms


@pytest.fixture
def tmp_cursor_user(tmp_path):
    """Create a synthetic Cursor User directory.

    Includes:
    - a single-folder workspace with two sessions and one non-head composer
    - a multi-root workspace with one session
    - a workspace database without any composer data (should be skipped)
    - global storage with some cursorDiskKV rows
    """
    user = tmp_path / "User"
    ws_storage = user / "workspaceStorage"

    ws_dir = ws_storage / "abc123hash"
    ws_dir.mkdir(parents=True)
    (ws_dir / "workspace.json").write_text(
        json.dumps({"folder": "file:///Users/testuser/dev/my-project"}), encoding="utf-8"
    )
    make_cursor_db(
        ws_dir / "state.vscdb",
        composers=[
            {
                "type": "head",
                "composerId": "comp-uuid-001",
                "name": "Fix auth bug",
                "createdAt": ms(2025, 1, 15, 10, 0),
                "lastUpdatedAt": ms(2025, 1, 15, 11, 0),
                "unifiedMode": "agent",
                "totalLinesAdded": 120,
                "totalLinesRemoved": 30,
                "filesChangedCount": 4,
                "contextUsagePercent": 0.42,
                "createdOnBranch": "main",
                "isArchived": False,
                "subtitle": "Edited auth.ts, token.ts",
            },
            {
                "type": "head",
                "composerId": "comp-uuid-002",
                "name": "Add dark mode",
                "createdAt": ms(2025, 1, 15, 11, 1),
                "lastUpdatedAt": ms(2025, 1, 15, 14, 0),
                "unifiedMode": "chat",
                "isArchived": True,
            },
            {
                "type": "draft",
                "composerId": "comp-uuid-003",
                "name": "Unsent draft",
            },
        ],
        kv_rows=[
            ("bubbleId:comp-uuid-001:b1", "{}"),
            ("bubbleId:comp-uuid-001:b2", "{}"),
            ("checkpointId:comp-uuid-001:c1", "{}"),
            ("bubbleId:comp-uuid-002:b1", "{}"),
        ],
    )

    multi_file = tmp_path / "Workspaces" / "1700000000000" / "workspace.json"
    multi_file.parent.mkdir(parents=True)
    multi_file.write_text(
        json.dumps({"folders": [
            {"path": "/Users/testuser/dev/api"},
            {"uri": "file:///Users/testuser/dev/web%20app"},
        ]}),
        encoding="utf-8",
    )
    multi_dir = ws_storage / "def456hash"
    multi_dir.mkdir(parents=True)
    (multi_dir / "workspace.json").write_text(
        json.dumps({"workspace": f"file://{multi_file}"}), encoding="utf-8"
    )
    make_cursor_db(
        multi_dir / "state.vscdb",
        composers=[
            {
                "type": "head",
                "composerId": "comp-uuid-101",
                "name": "Split services",
                "createdAt": ms(2025, 2, 1, 9, 0),
                "lastUpdatedAt": ms(2025, 2, 1, 9, 30),
                "unifiedMode": "agent",
                "totalLinesAdded": 10,
                "totalLinesRemoved": 2,
                "filesChangedCount": 1,
            },
        ],
    )

    empty_dir = ws_storage / "emptyhash"
    empty_dir.mkdir(parents=True)
    (empty_dir / "workspace.json").write_text('{"folder": "file:///tmp/empty"}', encoding="utf-8")
    make_cursor_db(empty_dir / "state.vscdb")

    global_dir = user / "globalStorage"
    global_dir.mkdir(parents=True)
    make_cursor_db(
        global_dir / "state.vscdb",
        kv_rows=[
            ("bubbleId:x:1", "aaaa"),
            ("bubbleId:x:2", "bb"),
            ("composerData:x", "cccccc"),
            ("checkpointId:x:1", "d"),
            ("agentKv:x", "ee"),
        ],
    )

    return user


@pytest.fixture
def cursor_store(tmp_cursor_user):
    """A CursorStore pointed at the synthetic User directory."""
    return CursorStore(user_path=tmp_cursor_user)


@pytest.fixture
def fake_store():
    """Three projects and two workspaces held in memory."""
    projects = [
        make_project("/work/alpha", [
            make_session("a1", name="Refactor parser", lines_added=50, lines_removed=5, files_changed=3),
            make_session("a2", name="Explain regex", mode="chat"),
        ]),
        make_project("/work/beta", [
            make_session("b1", name="Add cache", lines_added=8, lines_removed=1, files_changed=1),
        ]),
        make_project("/work/gamma", [
            make_session("g1", name="Bump deps", lines_added=2, lines_removed=2, files_changed=1),
        ]),
    ]
    workspaces = [
        Workspace(
            id="ws-one-0001",
            projects=["/work/alpha"],
            chat_count=1,
            recent_chats=[make_session("w1", lines_added=3, files_changed=1)],
        ),
        Workspace(
            id="ws-two-0002",
            projects=[],
            chat_count=2,
            recent_chats=[make_session("w2", lines_added=1, files_changed=1), make_session("w3")],
            is_multi_project=True,
        ),
    ]
    return FakeStore(projects, workspaces)
