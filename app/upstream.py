"""HTTP plumbing shared by the AI and weather proxies."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import Request

from app.config import DEFAULT_CITY, DEFAULT_GEMINI_MODEL, DEFAULT_HTTP_TIMEOUT_SECONDS
from app.errors import ApiError

logger = logging.getLogger(__name__)


def build_http_client(timeout: float) -> httpx.Client:
    return httpx.Client(timeout=timeout, headers={"Accept": "application/json"})


def request_setting(request: Request, name: str) -> Any:
    """Read a config value for the request, falling back to the defaults."""
    defaults = {
        "http_timeout_seconds": DEFAULT_HTTP_TIMEOUT_SECONDS,
        "gemini_model": DEFAULT_GEMINI_MODEL,
        "default_city": DEFAULT_CITY,
    }
    config = getattr(request.app.state, "config", None)
    value = getattr(config, name, None)
    return defaults[name] if value is None else value


def request_json(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    provider: str,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Call an upstream API and return its JSON object body."""
    try:
        response = client.request(method, url, params=params, json=json)
    except httpx.HTTPError as exc:
        logger.error("%s request failed: %s", provider, exc)
        raise ApiError(
            "UPSTREAM_UNAVAILABLE",
            f"{provider} API could not be reached.",
            {"provider": provider, "error": str(exc)},
            status_code=500,
        ) from exc

    if response.is_error:
        logger.error(
            "%s API error: %s %s", provider, response.status_code, response.reason_phrase
        )
        raise ApiError(
            "UPSTREAM_ERROR",
            f"{provider} API error: {response.reason_phrase}",
            {"provider": provider, "status": response.status_code},
            status_code=500,
        )

    try:
        data = response.json()
    except ValueError as exc:
        logger.error("%s API returned a non-JSON body", provider)
        raise upstream_malformed(provider, "response is not JSON") from exc
    if not isinstance(data, dict):
        raise upstream_malformed(provider, "response is not an object")
    return data


def upstream_malformed(provider: str, reason: str) -> ApiError:
    logger.error("%s API response malformed: %s", provider, reason)
    return ApiError(
        "UPSTREAM_MALFORMED",
        f"{provider} API returned an unexpected response.",
        {"provider": provider, "reason": reason},
        status_code=500,
    )
