"""Task records: validation, filtering and deadline helpers.

Tasks are plain dicts with the table columns as keys::

    id, user_id, title, description, category, deadline,
    completed, created_at, updated_at

Timestamps are ISO-8601 strings in UTC.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Iterable

from app.api_constants import (
    DEFAULT_CATEGORY,
    END_OF_DAY_END_HOUR,
    END_OF_DAY_START_HOUR,
    TASK_CATEGORIES,
)
from app.errors import ApiError

CREATE_FIELDS = {"title", "description", "category", "deadline"}
UPDATE_FIELDS = {"title", "description", "category", "deadline", "completed"}

_SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class TaskFilters:
    category: str | None = None
    completed: bool | None = None
    search: str | None = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any, *, field_name: str = "deadline") -> datetime:
    """Parse an ISO date or date-time into an aware UTC datetime.

    A bare date maps to midnight UTC; naive date-times are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        try:
            if len(raw) == 10:
                parsed = datetime.combine(date.fromisoformat(raw), time.min)
            else:
                parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise ApiError(
                "INVALID_DATE",
                f"{field_name} must be an ISO date or date-time.",
                {field_name: value},
            )
    else:
        raise ApiError(
            "INVALID_DATE",
            f"{field_name} must be an ISO date or date-time.",
            {field_name: str(value)},
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def task_deadline(task: dict[str, Any]) -> datetime | None:
    raw = task.get("deadline")
    if not raw:
        return None
    try:
        return parse_timestamp(raw)
    except ApiError:
        return None


def _validate_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ApiError(
            "MISSING_TITLE",
            "title must be a non-empty string.",
            {"fields": ["title"]},
        )
    return value.strip()


def _validate_description(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ApiError(
            "INVALID_TYPE",
            "description must be a string.",
            {"description": str(value)},
        )
    return value.strip() or None


def _validate_category(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in TASK_CATEGORIES:
        return value.strip().lower()
    raise ApiError(
        "INVALID_CATEGORY",
        "category must be one of the supported categories.",
        {"category": str(value), "allowed": list(TASK_CATEGORIES)},
    )


def _validate_deadline(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return format_timestamp(parse_timestamp(value))


def _validate_completed(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ApiError(
            "INVALID_TYPE",
            "completed must be a boolean.",
            {"completed": str(value)},
        )
    return value


def build_task(
    payload: dict[str, Any], user_id: str, now: datetime | None = None
) -> dict[str, Any]:
    """Build a new task row from a create payload."""
    if "title" not in payload:
        raise ApiError(
            "MISSING_TITLE",
            "title is required.",
            {"fields": ["title"]},
        )
    timestamp = format_timestamp(now or utc_now())
    category = payload.get("category")
    return {
        "id": uuid.uuid4().hex,
        "user_id": user_id,
        "title": _validate_title(payload["title"]),
        "description": _validate_description(payload.get("description")),
        "category": DEFAULT_CATEGORY if category is None else _validate_category(category),
        "deadline": _validate_deadline(payload.get("deadline")),
        "completed": False,
        "created_at": timestamp,
        "updated_at": timestamp,
    }


def validate_task_updates(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate an update payload and return normalized column values."""
    unknown_fields = sorted(set(fields) - UPDATE_FIELDS)
    if unknown_fields:
        raise ApiError(
            "UNKNOWN_FIELD",
            "Unknown fields are not allowed.",
            {"fields": unknown_fields},
        )

    changes: dict[str, Any] = {}
    if "title" in fields:
        changes["title"] = _validate_title(fields["title"])
    if "description" in fields:
        changes["description"] = _validate_description(fields["description"])
    if "category" in fields:
        changes["category"] = _validate_category(fields["category"])
    if "deadline" in fields:
        changes["deadline"] = _validate_deadline(fields["deadline"])
    if "completed" in fields:
        changes["completed"] = _validate_completed(fields["completed"])
    return changes


def parse_filters(
    category: Any = None, completed: Any = None, search: Any = None
) -> TaskFilters:
    """Normalize list filters; "all" means no constraint."""
    if category is None or category == "all":
        category_filter = None
    else:
        category_filter = _validate_category(category)

    if completed is None or completed == "all":
        completed_filter = None
    elif isinstance(completed, bool):
        completed_filter = completed
    elif completed == "completed":
        completed_filter = True
    elif completed == "pending":
        completed_filter = False
    else:
        raise ApiError(
            "INVALID_TYPE",
            "completed must be a boolean, 'all', 'pending' or 'completed'.",
            {"completed": str(completed)},
        )

    if search is not None and not isinstance(search, str):
        raise ApiError(
            "INVALID_TYPE",
            "search must be a string.",
            {"search": str(search)},
        )
    search_filter = search.strip() if search else None

    return TaskFilters(
        category=category_filter,
        completed=completed_filter,
        search=search_filter or None,
    )


def task_matches(task: dict[str, Any], filters: TaskFilters) -> bool:
    if filters.category and task.get("category") != filters.category:
        return False
    if filters.completed is not None and bool(task.get("completed")) != filters.completed:
        return False
    if filters.search:
        needle = filters.search.lower()
        title = (task.get("title") or "").lower()
        description = (task.get("description") or "").lower()
        if needle not in title and needle not in description:
            return False
    return True


def filter_tasks(
    tasks: Iterable[dict[str, Any]], filters: TaskFilters
) -> list[dict[str, Any]]:
    return [task for task in tasks if task_matches(task, filters)]


def sort_newest_first(tasks: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    # Ties keep the most recently inserted row first.
    return sorted(
        reversed(list(tasks)),
        key=lambda task: task.get("created_at") or "",
        reverse=True,
    )


def is_overdue(task: dict[str, Any], now: datetime | None = None) -> bool:
    if task.get("completed"):
        return False
    deadline = task_deadline(task)
    if deadline is None:
        return False
    return deadline < (now or utc_now())


def days_overdue(task: dict[str, Any], now: datetime | None = None) -> int | None:
    if not is_overdue(task, now):
        return None
    elapsed = (now or utc_now()) - task_deadline(task)
    return math.floor(elapsed.total_seconds() / _SECONDS_PER_DAY)


def days_until(deadline: datetime, now: datetime | None = None) -> int:
    """Whole days until a deadline, rounded up."""
    delta = deadline - (now or utc_now())
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def task_stats(
    tasks: Iterable[dict[str, Any]], now: datetime | None = None
) -> dict[str, int]:
    now = now or utc_now()
    rows = list(tasks)
    completed = sum(1 for task in rows if task.get("completed"))
    return {
        "total": len(rows),
        "completed": completed,
        "pending": len(rows) - completed,
        "overdue": sum(1 for task in rows if is_overdue(task, now)),
    }


def _as_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.astimezone()
    return value


def end_of_day_window_active(now: datetime) -> bool:
    hour = _as_local(now).hour
    return END_OF_DAY_START_HOUR <= hour < END_OF_DAY_END_HOUR


def tasks_due_on_day(
    tasks: Iterable[dict[str, Any]], now: datetime
) -> list[dict[str, Any]]:
    """Tasks whose deadline falls on the calendar day of ``now``."""
    local_now = _as_local(now)
    due: list[dict[str, Any]] = []
    for task in tasks:
        deadline = task_deadline(task)
        if deadline is None:
            continue
        if deadline.astimezone(local_now.tzinfo).date() == local_now.date():
            due.append(task)
    return due


def task_summary(task: dict[str, Any]) -> dict[str, Any]:
    return {
        "title": task.get("title"),
        "category": task.get("category"),
        "deadline": task.get("deadline"),
    }
