"""Task CRUD and query endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import Request

from app.api_payload import (
    _ensure_payload_dict,
    _reject_unknown_fields,
    _require_task_id,
)
from app.api_router import api_router
from app.errors import ApiError, success_response
from app.task_model import (
    CREATE_FIELDS,
    build_task,
    end_of_day_window_active,
    filter_tasks,
    parse_filters,
    task_stats as compute_task_stats,
    tasks_due_on_day,
    validate_task_updates,
)
from app.task_store import (
    delete_task_row,
    get_task as load_task,
    insert_task,
    select_tasks,
    toggle_task_row,
    update_task_row,
)
from app.user_scope import get_request_data_root, get_request_user_id


@api_router.post("/tool:list_tasks")
def list_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """List the caller's tasks, newest first, optionally filtered."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"category", "completed", "search"})

    filters = parse_filters(
        payload.get("category"), payload.get("completed"), payload.get("search")
    )
    data_root = get_request_data_root(request)
    tasks = filter_tasks(select_tasks(data_root), filters)
    return success_response({"tasks": tasks})


@api_router.post("/tool:get_task")
def get_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Fetch a single task by ID."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"id"})
    task_id = _require_task_id(payload)

    data_root = get_request_data_root(request)
    return success_response({"task": load_task(data_root, task_id)})


@api_router.post("/tool:create_task")
def create_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Create a task owned by the caller."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, CREATE_FIELDS)

    user_id = get_request_user_id(request)
    task = build_task(payload, user_id)
    data_root = get_request_data_root(request)
    task, commit_sha = insert_task(data_root, task)
    return success_response({"task": task, "commitSha": commit_sha})


@api_router.post("/tool:update_task")
def update_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Update task fields by ID."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"id", "fields"})

    if "id" not in payload or "fields" not in payload:
        raise ApiError(
            "MISSING_FIELDS",
            "id and fields are required.",
            {"fields": ["id", "fields"]},
        )
    task_id = _require_task_id(payload)
    fields = payload["fields"]
    if not isinstance(fields, dict):
        raise ApiError(
            "INVALID_TYPE",
            "fields must be an object.",
            {"fields": str(fields)},
        )

    changes = validate_task_updates(fields)
    data_root = get_request_data_root(request)
    task, commit_sha = update_task_row(data_root, task_id, changes)
    return success_response({"task": task, "commitSha": commit_sha})


@api_router.post("/tool:set_task_completion")
def set_task_completion(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Set the completion flag of a task; nothing else changes."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"id", "completed"})
    task_id = _require_task_id(payload)

    completed = payload.get("completed")
    if not isinstance(completed, bool):
        raise ApiError(
            "INVALID_TYPE",
            "completed must be a boolean.",
            {"completed": str(completed)},
        )

    data_root = get_request_data_root(request)
    operation = "complete_task" if completed else "reopen_task"
    task, commit_sha = update_task_row(
        data_root, task_id, {"completed": completed}, operation
    )
    return success_response({"task": task, "commitSha": commit_sha})


@api_router.post("/tool:toggle_task")
def toggle_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Invert the completion flag of a task."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"id"})
    task_id = _require_task_id(payload)

    data_root = get_request_data_root(request)
    task, commit_sha = toggle_task_row(data_root, task_id)
    return success_response({"task": task, "commitSha": commit_sha})


@api_router.post("/tool:delete_task")
def delete_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Delete a task by ID."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"id"})
    task_id = _require_task_id(payload)

    data_root = get_request_data_root(request)
    commit_sha = delete_task_row(data_root, task_id)
    return success_response({"id": task_id, "commitSha": commit_sha})


@api_router.post("/tool:task_stats")
def task_stats(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Return total, completed, pending and overdue counts."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, set())

    data_root = get_request_data_root(request)
    return success_response(compute_task_stats(select_tasks(data_root)))


@api_router.post("/tool:end_of_day_review")
def end_of_day_review(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """List tasks due today once the evening review window is open."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"now"})

    now = _parse_reference_time(payload.get("now"))
    active = end_of_day_window_active(now)
    tasks: list[dict[str, Any]] = []
    if active:
        data_root = get_request_data_root(request)
        tasks = tasks_due_on_day(select_tasks(data_root), now)
    return success_response({"active": active, "tasks": tasks})


def _parse_reference_time(raw_value: Any) -> datetime:
    """Parse ``now`` keeping its offset; defaults to server local time."""
    if raw_value is None:
        return datetime.now().astimezone()
    if not isinstance(raw_value, str):
        raise ApiError(
            "INVALID_DATE",
            "now must be an ISO date-time.",
            {"now": str(raw_value)},
        )
    try:
        parsed = datetime.fromisoformat(raw_value.strip())
    except ValueError:
        raise ApiError(
            "INVALID_DATE",
            "now must be an ISO date-time.",
            {"now": raw_value},
        )
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed
