"""Configuration loading for the task service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from app.errors import ApiError

DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_CITY = "London"
DEFAULT_LOG_LEVEL = "INFO"


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class AppConfig:
    data_path: Path
    require_user_header: bool
    service_token: str | None
    log_level: str = DEFAULT_LOG_LEVEL
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    gemini_model: str = DEFAULT_GEMINI_MODEL
    default_city: str = DEFAULT_CITY


def _read_dotenv_value(dotenv_path: Path, key: str) -> str | None:
    """Read a single key from a .env file without mutating the environment."""
    if not dotenv_path.is_file():
        return None
    try:
        content = dotenv_path.read_text(encoding="utf-8")
    except OSError:
        return None

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export ") :].strip()
        if "=" not in stripped:
            continue
        name, value = stripped.split("=", 1)
        if name.strip() != key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        return value or None
    return None


def _read_setting(dotenv_path: Path, key: str) -> str | None:
    """Environment first, then the .env file."""
    value = os.environ.get(key)
    if value is None:
        value = _read_dotenv_value(dotenv_path, key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _read_bool(raw_value: str | None, *, default: bool, key: str) -> bool:
    if raw_value is None:
        return default
    normalized = raw_value.strip().lower()
    if not normalized:
        return default
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{key} must be a boolean value.")


def _read_positive_float(raw_value: str | None, *, default: float, key: str) -> float:
    if raw_value is None:
        return default
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number.") from exc
    if value <= 0:
        raise ConfigError(f"{key} must be greater than zero.")
    return value


def load_config() -> AppConfig:
    """Load startup configuration from the environment."""
    dotenv_path = Path.cwd() / ".env"

    data_key = "TASKPILOT_DATA_PATH"
    raw_path = _read_setting(dotenv_path, data_key)
    if not raw_path:
        raise ConfigError(
            "TASKPILOT_DATA_PATH is required; set it to the data root path."
        )

    require_user_key = "TASKPILOT_REQUIRE_USER_HEADER"
    require_user_header = _read_bool(
        _read_setting(dotenv_path, require_user_key),
        default=True,
        key=require_user_key,
    )

    service_token = _read_setting(dotenv_path, "TASKPILOT_SERVICE_TOKEN")

    log_level = (
        _read_setting(dotenv_path, "TASKPILOT_LOG_LEVEL") or DEFAULT_LOG_LEVEL
    ).upper()

    timeout_key = "TASKPILOT_HTTP_TIMEOUT_SECONDS"
    http_timeout_seconds = _read_positive_float(
        _read_setting(dotenv_path, timeout_key),
        default=DEFAULT_HTTP_TIMEOUT_SECONDS,
        key=timeout_key,
    )

    return AppConfig(
        data_path=Path(raw_path).resolve(),
        require_user_header=require_user_header,
        service_token=service_token,
        log_level=log_level,
        http_timeout_seconds=http_timeout_seconds,
        gemini_model=_read_setting(dotenv_path, "TASKPILOT_GEMINI_MODEL")
        or DEFAULT_GEMINI_MODEL,
        default_city=_read_setting(dotenv_path, "TASKPILOT_DEFAULT_CITY")
        or DEFAULT_CITY,
    )


def read_secret(key: str) -> str:
    """Resolve a provider secret at call time.

    Secrets are not part of startup configuration; a missing secret fails the
    request that needs it, not the process.
    """
    value = _read_setting(Path.cwd() / ".env", key)
    if not value:
        raise ApiError(
            "SECRET_MISSING",
            f"{key} is not configured.",
            {"key": key},
            status_code=500,
        )
    return value
