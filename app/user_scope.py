"""Who owns a request, and where that owner's tables live.

The identity middleware in ``app.main`` stores the normalized caller id on
``request.state.user_id``; endpoints read it back through
``get_request_user_id`` and never touch the header themselves.
"""

from __future__ import annotations

import re
from pathlib import Path

from fastapi import Request

from app.errors import ApiError

USER_ID_HEADER = "X-Taskpilot-User-Id"
SERVICE_TOKEN_HEADER = "X-Taskpilot-Service-Token"
AUTH_EXEMPT_PATHS = {"/health"}
USERS_DIRNAME = "users"

# Dashes are stripped first, so UUIDs collapse to plain hex.
_VALID_USER_ID = re.compile(r"^[A-Za-z0-9_]{3,128}$")


def _missing_identity() -> ApiError:
    return ApiError(
        "AUTH_REQUIRED",
        "Missing required user identity header.",
        {"header": USER_ID_HEADER},
        status_code=401,
    )


def normalize_user_id(raw_user_id: str) -> str:
    """Turn a caller id into the directory-safe owner id stored on rows."""
    if not isinstance(raw_user_id, str):
        raise ApiError(
            "INVALID_USER_ID",
            "User id must be a string.",
            {"type": type(raw_user_id).__name__},
            status_code=401,
        )
    owner_id = raw_user_id.strip().replace("-", "")
    if not owner_id:
        raise _missing_identity()
    if not _VALID_USER_ID.fullmatch(owner_id):
        raise ApiError(
            "INVALID_USER_ID",
            "User id contains invalid characters.",
            {"user_id": raw_user_id},
            status_code=401,
        )
    return owner_id


def resolve_user_data_root(base_root: Path, user_id: str) -> Path:
    return base_root / USERS_DIRNAME / normalize_user_id(user_id)


def get_request_user_id(request: Request) -> str:
    """Owner id of the request.

    Falls back to the header when the middleware was configured not to
    require one and so left ``request.state`` empty.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        user_id = request.headers.get(USER_ID_HEADER)
    if user_id is None:
        raise _missing_identity()
    return normalize_user_id(user_id)


def get_request_data_root(request: Request) -> Path:
    """The caller's own data root, created on first use."""
    owner_root = resolve_user_data_root(
        Path(request.app.state.data_path), get_request_user_id(request)
    )
    owner_root.mkdir(parents=True, exist_ok=True)
    return owner_root
