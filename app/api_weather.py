"""Weather proxy endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import Request

from app import upstream
from app.api_constants import WEATHER_LOOKAHEAD_DAYS
from app.api_payload import (
    _ensure_payload_dict,
    _optional_string,
    _reject_unknown_fields,
    _require_task_id,
)
from app.api_router import api_router
from app.config import read_secret
from app.errors import ApiError, success_response
from app.task_model import days_until, parse_timestamp, task_deadline, utc_now
from app.task_store import get_task
from app.user_scope import get_request_data_root
from app.weather import OPENWEATHER_SECRET_KEY, lookup_weather


def _resolve_city(payload: dict[str, Any], request: Request) -> str:
    city = _optional_string(payload, "city")
    if city and city.strip():
        return city.strip()
    return upstream.request_setting(request, "default_city")


def _fetch(request: Request, deadline: datetime, city: str) -> dict[str, Any]:
    api_key = read_secret(OPENWEATHER_SECRET_KEY)
    timeout = upstream.request_setting(request, "http_timeout_seconds")
    with upstream.build_http_client(timeout) as client:
        return lookup_weather(deadline, city, api_key=api_key, client=client)


@api_router.post("/tool:get_weather")
def get_weather(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Weather for a deadline: forecast when 1-5 days out, else current."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"deadline", "city"})

    if payload.get("deadline") in (None, ""):
        raise ApiError(
            "MISSING_DEADLINE",
            "deadline is required.",
            {"fields": ["deadline"]},
        )
    deadline = parse_timestamp(payload["deadline"])
    city = _resolve_city(payload, request)
    return success_response({"weather": _fetch(request, deadline, city)})


@api_router.post("/tool:task_weather")
def task_weather(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Weather for a stored task whose deadline is at most five days away."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"id", "city"})
    task_id = _require_task_id(payload)
    city = _resolve_city(payload, request)

    data_root = get_request_data_root(request)
    deadline = task_deadline(get_task(data_root, task_id))
    if deadline is None:
        return success_response({"weather": None})
    if not 0 <= days_until(deadline, utc_now()) <= WEATHER_LOOKAHEAD_DAYS:
        return success_response({"weather": None})
    return success_response({"weather": _fetch(request, deadline, city)})
