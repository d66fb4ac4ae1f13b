"""AI insight and category suggestion endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request

from app import upstream
from app.api_constants import (
    DASHBOARD_TASK_SAMPLE_SIZE,
    DEFAULT_CATEGORY,
    TASK_CATEGORIES,
)
from app.api_payload import (
    _ensure_payload_dict,
    _optional_string,
    _reject_unknown_fields,
    _require_task_id,
)
from app.api_router import api_router
from app.config import read_secret
from app.errors import ApiError, success_response
from app.gemini import GEMINI_SECRET_KEY, generate_text
from app.prompts import (
    build_carry_over_prompt,
    build_category_prompt,
    build_overdue_recovery_prompt,
    build_overview_prompt,
    build_task_review_prompt,
)
from app.task_model import days_overdue, task_stats, task_summary, utc_now
from app.task_store import get_task, select_tasks
from app.user_scope import get_request_data_root

logger = logging.getLogger(__name__)

TASK_INSIGHT_MODES = {"review", "carry_over"}


def _generate(request: Request, prompt: str) -> str:
    api_key = read_secret(GEMINI_SECRET_KEY)
    timeout = upstream.request_setting(request, "http_timeout_seconds")
    model = upstream.request_setting(request, "gemini_model")
    with upstream.build_http_client(timeout) as client:
        return generate_text(prompt, api_key=api_key, model=model, client=client)


def _read_count(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ApiError(
            "INVALID_TYPE",
            f"{key} must be a non-negative integer.",
            {key: str(value)},
        )
    return value


def _read_task_summaries(payload: dict[str, Any]) -> list[dict[str, Any]]:
    tasks = payload.get("tasks", [])
    if not isinstance(tasks, list) or not all(isinstance(item, dict) for item in tasks):
        raise ApiError(
            "INVALID_TYPE",
            "tasks must be a list of objects.",
            {"tasks": type(tasks).__name__},
        )
    return tasks


def normalize_category(raw_text: str | None) -> str:
    """Map model output onto a known category, defaulting to personal."""
    if not isinstance(raw_text, str):
        return DEFAULT_CATEGORY
    candidate = raw_text.strip().lower()
    if candidate in TASK_CATEGORIES:
        return candidate
    return DEFAULT_CATEGORY


@api_router.post("/tool:generate_ai_insights")
def generate_ai_insights(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Generate a productivity insight from task counts and summaries."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(
        payload, {"pendingTasks", "completedTasks", "tasks", "customPrompt"}
    )

    pending_count = _read_count(payload, "pendingTasks")
    completed_count = _read_count(payload, "completedTasks")
    tasks = _read_task_summaries(payload)
    custom_prompt = _optional_string(payload, "customPrompt")

    prompt = custom_prompt or build_overview_prompt(
        pending_count, completed_count, tasks
    )
    return success_response({"insights": _generate(request, prompt)})


@api_router.post("/tool:generate_task_category")
def generate_task_category(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Suggest one of the fixed categories for a task title."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"title", "description"})

    title = _optional_string(payload, "title")
    if not title or not title.strip():
        raise ApiError(
            "MISSING_TITLE",
            "title is required.",
            {"fields": ["title"]},
        )
    description = _optional_string(payload, "description")

    generated = _generate(request, build_category_prompt(title.strip(), description))
    category = normalize_category(generated)
    if category != generated.strip().lower():
        logger.info("unrecognized category suggestion %r, using %s", generated, category)
    return success_response({"category": category})


@api_router.post("/tool:dashboard_insights")
def dashboard_insights(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Insight for the caller's whole task list plus its counts."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, set())

    data_root = get_request_data_root(request)
    tasks = select_tasks(data_root)
    stats = task_stats(tasks)
    pending = [task for task in tasks if not task.get("completed")]
    sample = [task_summary(task) for task in pending[:DASHBOARD_TASK_SAMPLE_SIZE]]

    prompt = build_overview_prompt(stats["pending"], stats["completed"], sample)
    return success_response({"insights": _generate(request, prompt), "stats": stats})


@api_router.post("/tool:task_insights")
def task_insights(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Insight for one stored task.

    ``review`` analyses the task, or drafts a recovery plan when it is
    overdue; ``carry_over`` suggests how to finish it tomorrow.
    """
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"id", "mode"})
    task_id = _require_task_id(payload)

    mode = payload.get("mode", "review")
    if mode not in TASK_INSIGHT_MODES:
        raise ApiError(
            "INVALID_MODE",
            "mode must be 'review' or 'carry_over'.",
            {"mode": str(mode), "allowed": sorted(TASK_INSIGHT_MODES)},
        )

    data_root = get_request_data_root(request)
    task = get_task(data_root, task_id)
    overdue_days = days_overdue(task, utc_now())

    if mode == "carry_over":
        prompt = build_carry_over_prompt(task)
    elif overdue_days is not None:
        prompt = build_overdue_recovery_prompt(task, overdue_days)
    else:
        prompt = build_task_review_prompt(task)

    return success_response(
        {
            "insights": _generate(request, prompt),
            "overdue": overdue_days is not None,
            "daysOverdue": overdue_days,
        }
    )
