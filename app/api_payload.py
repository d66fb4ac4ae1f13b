"""Payload validation helpers for API endpoints."""

from __future__ import annotations

from typing import Any

from app.errors import ApiError


def _ensure_payload_dict(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ApiError(
            "INVALID_TYPE",
            "Payload must be an object.",
            {"type": type(payload).__name__},
        )
    return payload


def _reject_unknown_fields(payload: dict[str, Any], allowed_fields: set[str]) -> None:
    unknown_fields = sorted(set(payload) - allowed_fields)
    if unknown_fields:
        raise ApiError(
            "UNKNOWN_FIELD",
            "Unknown fields are not allowed.",
            {"fields": unknown_fields},
        )


def _require_task_id(payload: dict[str, Any]) -> str:
    if "id" not in payload:
        raise ApiError(
            "MISSING_ID",
            "id is required.",
            {"fields": ["id"]},
        )
    task_id = payload["id"]
    if not isinstance(task_id, str) or not task_id.strip():
        raise ApiError(
            "INVALID_TYPE",
            "id must be a non-empty string.",
            {"id": str(task_id)},
        )
    return task_id.strip()


def _optional_string(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ApiError(
            "INVALID_TYPE",
            f"{key} must be a string.",
            {key: str(value)},
        )
    return value
