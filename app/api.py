"""API handler registration."""

# ruff: noqa: F401

from __future__ import annotations

from fastapi import FastAPI

from app.api_router import api_router

# Import modules to register routes with the shared router.
from app import api_activity, api_insights, api_tasks, api_weather

# Re-export endpoints for tests and direct imports.
from app.api_activity import read_activity_log
from app.api_insights import (
    dashboard_insights,
    generate_ai_insights,
    generate_task_category,
    task_insights,
)
from app.api_tasks import (
    create_task,
    delete_task,
    end_of_day_review,
    get_task,
    list_tasks,
    set_task_completion,
    task_stats,
    toggle_task,
    update_task,
)
from app.api_weather import get_weather, task_weather


def register_api_handlers(app: FastAPI) -> None:
    """Attach API routes to the FastAPI application."""
    app.include_router(api_router)
