"""Per-user "tasks" table stored as versioned JSON under the data root."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from app.api_activity import _append_activity_log, _build_activity_entry
from app.api_constants import TABLES_DIRNAME, TASKS_TABLE_FILENAME
from app.api_git import _commit_table_change, _ensure_git_repo, _rollback_table_change
from app.api_utils import _atomic_write
from app.errors import ApiError
from app.task_model import format_timestamp, sort_newest_first, utc_now

logger = logging.getLogger(__name__)

IMMUTABLE_COLUMNS = {"id", "user_id", "created_at"}

# One lock per user data root; held across read, write and commit.
_table_locks: dict[Path, threading.Lock] = {}
_table_locks_guard = threading.Lock()


def _table_lock(data_root: Path) -> threading.Lock:
    key = data_root.resolve()
    with _table_locks_guard:
        lock = _table_locks.get(key)
        if lock is None:
            lock = _table_locks[key] = threading.Lock()
        return lock


def _tasks_table_path(data_root: Path) -> Path:
    return data_root / TABLES_DIRNAME / TASKS_TABLE_FILENAME


def _read_table(table_path: Path) -> tuple[list[dict[str, Any]], str | None]:
    if not table_path.exists():
        return [], None
    original = table_path.read_text(encoding="utf-8")
    try:
        rows = json.loads(original) if original.strip() else []
    except json.JSONDecodeError as exc:
        raise ApiError(
            "TABLE_CORRUPT",
            "Task table is not valid JSON.",
            {"path": f"{TABLES_DIRNAME}/{TASKS_TABLE_FILENAME}", "error": str(exc)},
            status_code=500,
        ) from exc
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise ApiError(
            "TABLE_CORRUPT",
            "Task table must be a JSON array of objects.",
            {"path": f"{TABLES_DIRNAME}/{TASKS_TABLE_FILENAME}"},
            status_code=500,
        )
    return rows, original


def _serialize_rows(rows: list[dict[str, Any]]) -> str:
    return json.dumps(rows, indent=2, sort_keys=True) + "\n"


def _write_table(
    data_root: Path,
    rows: list[dict[str, Any]],
    original: str | None,
    operation: str,
    summary: str,
) -> str:
    """Write, commit and log a table mutation; roll back if the commit fails."""
    table_path = _tasks_table_path(data_root)
    table_path.parent.mkdir(parents=True, exist_ok=True)
    relative_path = table_path.relative_to(data_root)

    repo = _ensure_git_repo(data_root)
    _atomic_write(table_path, _serialize_rows(rows))
    try:
        commit_sha = _commit_table_change(repo, relative_path, operation)
    except Exception as exc:
        logger.error("commit failed for %s, rolling back: %s", operation, exc)
        _rollback_table_change(repo, table_path, relative_path, original)
        raise ApiError(
            "GIT_ERROR",
            "Git commit failed; mutation rolled back.",
            {"path": relative_path.as_posix(), "operation": operation},
            status_code=500,
        ) from exc

    entry = _build_activity_entry(operation, relative_path, summary, commit_sha)
    _append_activity_log(data_root, entry)
    logger.info("%s committed %s (%s)", operation, commit_sha[:12], summary)
    return commit_sha


def _find_index(rows: list[dict[str, Any]], task_id: str) -> int:
    for index, row in enumerate(rows):
        if row.get("id") == task_id:
            return index
    raise ApiError(
        "TASK_NOT_FOUND",
        "Task ID not found.",
        {"id": task_id},
    )


def select_tasks(data_root: Path) -> list[dict[str, Any]]:
    """All rows of the owner, newest first."""
    rows, _ = _read_table(_tasks_table_path(data_root))
    return sort_newest_first(rows)


def get_task(data_root: Path, task_id: str) -> dict[str, Any]:
    rows, _ = _read_table(_tasks_table_path(data_root))
    return rows[_find_index(rows, task_id)]


def insert_task(data_root: Path, task: dict[str, Any]) -> tuple[dict[str, Any], str]:
    with _table_lock(data_root):
        rows, original = _read_table(_tasks_table_path(data_root))
        if any(row.get("id") == task["id"] for row in rows):
            raise ApiError(
                "TASK_EXISTS",
                "Task ID already exists.",
                {"id": task["id"]},
            )
        rows.append(task)
        commit_sha = _write_table(
            data_root, rows, original, "create_task", f"create task {task['id']}"
        )
    return task, commit_sha


def _merge_changes(
    rows: list[dict[str, Any]],
    index: int,
    changes: dict[str, Any],
    now: datetime | None,
) -> dict[str, Any]:
    task = dict(rows[index])
    for key, value in changes.items():
        if key in IMMUTABLE_COLUMNS:
            continue
        task[key] = value
    task["updated_at"] = format_timestamp(now or utc_now())
    rows[index] = task
    return task


def update_task_row(
    data_root: Path,
    task_id: str,
    changes: dict[str, Any],
    operation: str = "update_task",
    now: datetime | None = None,
) -> tuple[dict[str, Any], str]:
    """Merge ``changes`` into a row and refresh its ``updated_at``."""
    with _table_lock(data_root):
        rows, original = _read_table(_tasks_table_path(data_root))
        index = _find_index(rows, task_id)
        task = _merge_changes(rows, index, changes, now)
        commit_sha = _write_table(
            data_root, rows, original, operation, f"{operation.replace('_', ' ')} {task_id}"
        )
    return task, commit_sha


def toggle_task_row(
    data_root: Path, task_id: str, now: datetime | None = None
) -> tuple[dict[str, Any], str]:
    """Invert ``completed`` of a row; the read and the write share one lock."""
    with _table_lock(data_root):
        rows, original = _read_table(_tasks_table_path(data_root))
        index = _find_index(rows, task_id)
        completed = not bool(rows[index].get("completed"))
        operation = "complete_task" if completed else "reopen_task"
        task = _merge_changes(rows, index, {"completed": completed}, now)
        commit_sha = _write_table(
            data_root, rows, original, operation, f"{operation.replace('_', ' ')} {task_id}"
        )
    return task, commit_sha


def delete_task_row(data_root: Path, task_id: str) -> str:
    with _table_lock(data_root):
        rows, original = _read_table(_tasks_table_path(data_root))
        index = _find_index(rows, task_id)
        del rows[index]
        return _write_table(
            data_root, rows, original, "delete_task", f"delete task {task_id}"
        )
