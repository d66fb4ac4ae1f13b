"""Client for the Gemini generateContent endpoint."""

from __future__ import annotations

from typing import Any

import httpx

from app.upstream import request_json, upstream_malformed

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_SECRET_KEY = "GEMINI_API_KEY"
PROVIDER = "Gemini"


def generate_text(
    prompt: str, *, api_key: str, model: str, client: httpx.Client
) -> str:
    """Send a single-turn prompt and return the first candidate's text."""
    data = request_json(
        client,
        "POST",
        f"{GEMINI_API_BASE}/models/{model}:generateContent",
        provider=PROVIDER,
        params={"key": api_key},
        json={"contents": [{"parts": [{"text": prompt}]}]},
    )
    return _extract_text(data)


def _extract_text(data: dict[str, Any]) -> str:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise upstream_malformed(PROVIDER, "no candidate text")
    if not isinstance(text, str):
        raise upstream_malformed(PROVIDER, "candidate text is not a string")
    return text.strip()
