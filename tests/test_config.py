import pytest

from app.config import ConfigError, load_config, read_secret
from app.errors import ApiError


def _clear_env(monkeypatch):
    for key in (
        "TASKPILOT_DATA_PATH",
        "TASKPILOT_REQUIRE_USER_HEADER",
        "TASKPILOT_SERVICE_TOKEN",
        "TASKPILOT_LOG_LEVEL",
        "TASKPILOT_HTTP_TIMEOUT_SECONDS",
        "TASKPILOT_GEMINI_MODEL",
        "TASKPILOT_DEFAULT_CITY",
    ):
        monkeypatch.delenv(key, raising=False)


def test_load_config_requires_env(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigError) as excinfo:
        load_config()

    assert "TASKPILOT_DATA_PATH" in str(excinfo.value)


def test_load_config_reads_env(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TASKPILOT_DATA_PATH", str(tmp_path))

    config = load_config()

    assert config.data_path == tmp_path.resolve()
    assert config.require_user_header is True
    assert config.service_token is None
    assert config.log_level == "INFO"
    assert config.http_timeout_seconds == 15.0
    assert config.gemini_model == "gemini-2.0-flash"
    assert config.default_city == "London"


def test_load_config_reads_dotenv(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    data_root = tmp_path / "data"
    data_root.mkdir()
    (tmp_path / ".env").write_text(
        f'TASKPILOT_DATA_PATH="{data_root}"\n'
        "export TASKPILOT_DEFAULT_CITY='Paris'\n",
        encoding="utf-8",
    )

    config = load_config()

    assert config.data_path == data_root.resolve()
    assert config.default_city == "Paris"


def test_load_config_prefers_env_over_dotenv(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    env_root = tmp_path / "env"
    env_root.mkdir()
    dotenv_root = tmp_path / "dotenv"
    dotenv_root.mkdir()
    (tmp_path / ".env").write_text(
        f"TASKPILOT_DATA_PATH={dotenv_root}\n", encoding="utf-8"
    )
    monkeypatch.setenv("TASKPILOT_DATA_PATH", str(env_root))
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.data_path == env_root.resolve()


def test_load_config_reads_auth_and_http_settings(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TASKPILOT_DATA_PATH", str(tmp_path))
    monkeypatch.setenv("TASKPILOT_REQUIRE_USER_HEADER", "false")
    monkeypatch.setenv("TASKPILOT_SERVICE_TOKEN", "test-token")
    monkeypatch.setenv("TASKPILOT_HTTP_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("TASKPILOT_LOG_LEVEL", "debug")

    config = load_config()

    assert config.require_user_header is False
    assert config.service_token == "test-token"
    assert config.http_timeout_seconds == 2.5
    assert config.log_level == "DEBUG"


def test_load_config_rejects_invalid_bool(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TASKPILOT_DATA_PATH", str(tmp_path))
    monkeypatch.setenv("TASKPILOT_REQUIRE_USER_HEADER", "not-a-bool")

    with pytest.raises(ConfigError) as excinfo:
        load_config()

    assert "TASKPILOT_REQUIRE_USER_HEADER" in str(excinfo.value)


def test_load_config_rejects_invalid_timeout(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TASKPILOT_DATA_PATH", str(tmp_path))
    monkeypatch.setenv("TASKPILOT_HTTP_TIMEOUT_SECONDS", "-1")

    with pytest.raises(ConfigError):
        load_config()


def test_read_secret_reads_at_call_time(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(ApiError) as excinfo:
        read_secret("GEMINI_API_KEY")
    assert excinfo.value.error.code == "SECRET_MISSING"
    assert excinfo.value.status_code == 500

    monkeypatch.setenv("GEMINI_API_KEY", "later-key")
    assert read_secret("GEMINI_API_KEY") == "later-key"


def test_read_secret_falls_back_to_dotenv(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OPENWEATHER_API_KEY", raising=False)
    (tmp_path / ".env").write_text("OPENWEATHER_API_KEY=abc123\n", encoding="utf-8")

    assert read_secret("OPENWEATHER_API_KEY") == "abc123"
