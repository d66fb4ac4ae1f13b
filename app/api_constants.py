"""Shared constants for API endpoints."""

from __future__ import annotations

ACTIVITY_LOG_FILENAME = "activity.log"
TABLES_DIRNAME = "tables"
TASKS_TABLE_FILENAME = "tasks.json"

TASK_CATEGORIES = (
    "work",
    "personal",
    "urgent",
    "health",
    "finance",
    "education",
    "social",
)
DEFAULT_CATEGORY = "personal"

DASHBOARD_TASK_SAMPLE_SIZE = 5
WEATHER_LOOKAHEAD_DAYS = 5
END_OF_DAY_START_HOUR = 18
END_OF_DAY_END_HOUR = 23
