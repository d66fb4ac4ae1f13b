"""Prompt text for the generative-AI proxy."""

from __future__ import annotations

from typing import Any, Iterable

from app.api_constants import TASK_CATEGORIES
from app.errors import ApiError
from app.task_model import parse_timestamp


def _format_deadline(raw_deadline: Any) -> str | None:
    if not raw_deadline:
        return None
    try:
        return parse_timestamp(raw_deadline).date().isoformat()
    except ApiError:
        return str(raw_deadline)


def _format_task_line(task: dict[str, Any]) -> str:
    details = str(task.get("category") or "uncategorized")
    deadline = _format_deadline(task.get("deadline"))
    if deadline:
        details = f"{details}, due: {deadline}"
    return f"- {task.get('title', '')} ({details})"


def build_overview_prompt(
    pending_count: int, completed_count: int, tasks: Iterable[dict[str, Any]]
) -> str:
    task_list = "\n".join(_format_task_line(task) for task in tasks)
    return (
        f"Write a short, upbeat productivity insight for someone with "
        f"{pending_count} open tasks and {completed_count} finished tasks.\n\n"
        f"Open tasks:\n{task_list or 'No open tasks'}\n\n"
        "Include a one or two sentence motivation, one concrete tip that fits "
        "these tasks, and call out any deadlines that are coming up. "
        "Stay under 150 words."
    )


def build_category_prompt(title: str, description: str | None) -> str:
    lines = [
        "Pick the best category for this task from: "
        + ", ".join(TASK_CATEGORIES)
        + ".",
        "",
        f'Task: "{title}"',
    ]
    if description:
        lines.append(f'Description: "{description}"')
    lines.extend(["", "Answer with the category name only, one word."])
    return "\n".join(lines)


def build_task_review_prompt(task: dict[str, Any]) -> str:
    deadline = _format_deadline(task.get("deadline")) or "none"
    status = "completed" if task.get("completed") else "pending"
    return (
        "Review this task and give focused advice.\n"
        f"Title: {task.get('title', '')}\n"
        f"Description: {task.get('description') or 'none'}\n"
        f"Category: {task.get('category')}\n"
        f"Deadline: {deadline}\n"
        f"Status: {status}\n\n"
        "Cover how urgent it is given the deadline and category, how to get it "
        "done efficiently, what might get in the way, and how to schedule it. "
        "Stay under 100 words."
    )


def build_overdue_recovery_prompt(task: dict[str, Any], days_overdue: int) -> str:
    deadline = _format_deadline(task.get("deadline")) or "unknown"
    return (
        f'The task "{task.get("title", "")}" is {days_overdue} day(s) past its '
        f"deadline of {deadline}.\n"
        f"Category: {task.get('category')}\n"
        f"Description: {task.get('description') or 'none'}\n\n"
        "Give a short recovery plan: how to catch up quickly, what to do about "
        "it today, and how to avoid slipping like this again. "
        "Stay under 100 words."
    )


def build_carry_over_prompt(task: dict[str, Any]) -> str:
    return (
        f'The user did not manage to finish "{task.get("title", "")}" '
        f"(category: {task.get('category')}) today. "
        "Suggest, in an encouraging tone, how to get it done tomorrow with a "
        "couple of concrete steps and a time-management tip. "
        "Stay under 80 words."
    )
