"""OpenWeather lookups for task deadlines."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from app.api_constants import WEATHER_LOOKAHEAD_DAYS
from app.task_model import days_until, utc_now
from app.upstream import request_json, upstream_malformed

OPENWEATHER_API_BASE = "https://api.openweathermap.org/data/2.5"
OPENWEATHER_SECRET_KEY = "OPENWEATHER_API_KEY"
PROVIDER = "OpenWeather"

SOURCE_FORECAST = "forecast"
SOURCE_CURRENT = "current"


def choose_weather_source(deadline: datetime, now: datetime | None = None) -> str:
    """Forecast for deadlines one to five days out, current conditions otherwise."""
    days = days_until(deadline, now)
    if 1 <= days <= WEATHER_LOOKAHEAD_DAYS:
        return SOURCE_FORECAST
    return SOURCE_CURRENT


def shape_weather(data: dict[str, Any], source: str) -> dict[str, Any]:
    try:
        main = data["main"]
        condition = data["weather"][0]
        return {
            "temp": main["temp"],
            "description": condition["description"],
            "icon": condition["icon"],
            "humidity": main["humidity"],
            "windSpeed": data["wind"]["speed"],
            "source": source,
        }
    except (KeyError, IndexError, TypeError):
        raise upstream_malformed(PROVIDER, f"{source} data missing fields")


def select_forecast_slot(
    entries: list[dict[str, Any]], deadline: datetime
) -> dict[str, Any]:
    """First slot on the deadline's UTC date, else the last slot available."""
    if not entries:
        raise upstream_malformed(PROVIDER, "forecast list is empty")
    target_date = deadline.astimezone(timezone.utc).date()
    for entry in entries:
        timestamp = entry.get("dt") if isinstance(entry, dict) else None
        if not isinstance(timestamp, (int, float)):
            continue
        if datetime.fromtimestamp(timestamp, timezone.utc).date() == target_date:
            return entry
    return entries[-1]


def fetch_current_weather(
    city: str, *, api_key: str, client: httpx.Client
) -> dict[str, Any]:
    data = request_json(
        client,
        "GET",
        f"{OPENWEATHER_API_BASE}/weather",
        provider=PROVIDER,
        params={"q": city, "appid": api_key, "units": "metric"},
    )
    return shape_weather(data, SOURCE_CURRENT)


def fetch_forecast_weather(
    city: str, deadline: datetime, *, api_key: str, client: httpx.Client
) -> dict[str, Any]:
    data = request_json(
        client,
        "GET",
        f"{OPENWEATHER_API_BASE}/forecast",
        provider=PROVIDER,
        params={"q": city, "appid": api_key, "units": "metric"},
    )
    entries = data.get("list")
    if not isinstance(entries, list):
        raise upstream_malformed(PROVIDER, "forecast list missing")
    return shape_weather(select_forecast_slot(entries, deadline), SOURCE_FORECAST)


def lookup_weather(
    deadline: datetime,
    city: str,
    *,
    api_key: str,
    client: httpx.Client,
    now: datetime | None = None,
) -> dict[str, Any]:
    if choose_weather_source(deadline, now or utc_now()) == SOURCE_FORECAST:
        return fetch_forecast_weather(city, deadline, api_key=api_key, client=client)
    return fetch_current_weather(city, api_key=api_key, client=client)
