from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest

from app import api, upstream
from app.errors import ApiError
from app.weather import choose_weather_source, select_forecast_slot

TEST_USER_ID = "test-user-123"


def _build_request(data_root):
    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(data_path=data_root)),
        state=SimpleNamespace(user_id=TEST_USER_ID),
    )


def _conditions(temp, description, icon="01d"):
    return {
        "main": {"temp": temp, "humidity": 60},
        "weather": [{"description": description, "icon": icon}],
        "wind": {"speed": 3.5},
    }


def _forecast_slot(when, temp, description):
    slot = _conditions(temp, description, icon="10d")
    slot["dt"] = int(when.timestamp())
    return slot


@pytest.fixture
def openweather(monkeypatch, tmp_path):
    """Fake OpenWeather API serving current conditions and a forecast list."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENWEATHER_API_KEY", "test-weather-key")
    state = SimpleNamespace(requests=[], forecast=[])

    def handler(request):
        state.requests.append(request)
        if request.url.path.endswith("/forecast"):
            return httpx.Response(200, json={"list": state.forecast})
        if request.url.path.endswith("/weather"):
            return httpx.Response(200, json=_conditions(12.5, "light rain"))
        return httpx.Response(404, json={"message": "not found"})

    monkeypatch.setattr(
        upstream,
        "build_http_client",
        lambda timeout: httpx.Client(transport=httpx.MockTransport(handler)),
    )
    return state


def _now():
    return datetime.now(timezone.utc)


@pytest.mark.parametrize(
    "offset, expected",
    [
        (timedelta(hours=-30), "current"),
        (timedelta(hours=-1), "current"),
        (timedelta(hours=12), "forecast"),
        (timedelta(days=1), "forecast"),
        (timedelta(days=5), "forecast"),
        (timedelta(days=5, hours=1), "current"),
        (timedelta(days=12), "current"),
    ],
)
def test_choose_weather_source(offset, expected):
    now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    assert choose_weather_source(now + offset, now) == expected


def test_select_forecast_slot_matches_deadline_date():
    deadline = datetime(2026, 10, 22, 18, 0, tzinfo=timezone.utc)
    entries = [
        _forecast_slot(datetime(2026, 10, 21, 21, 0, tzinfo=timezone.utc), 9, "clear"),
        _forecast_slot(datetime(2026, 10, 22, 0, 0, tzinfo=timezone.utc), 8, "mist"),
        _forecast_slot(datetime(2026, 10, 22, 3, 0, tzinfo=timezone.utc), 7, "fog"),
    ]

    assert select_forecast_slot(entries, deadline)["weather"][0]["description"] == "mist"


def test_select_forecast_slot_falls_back_to_last_entry():
    deadline = datetime(2026, 12, 1, tzinfo=timezone.utc)
    entries = [
        _forecast_slot(datetime(2026, 10, 21, tzinfo=timezone.utc), 9, "clear"),
        _forecast_slot(datetime(2026, 10, 22, tzinfo=timezone.utc), 8, "snow"),
    ]

    assert select_forecast_slot(entries, deadline)["weather"][0]["description"] == "snow"


def test_get_weather_uses_forecast_within_five_days(tmp_path, openweather):
    deadline = _now() + timedelta(days=3)
    openweather.forecast = [
        _forecast_slot(deadline - timedelta(days=1), 20, "sunny"),
        _forecast_slot(deadline, 15, "overcast clouds"),
    ]

    result = api.get_weather(
        {"deadline": deadline.isoformat(), "city": "Berlin"}, _build_request(tmp_path)
    )

    assert result["data"]["weather"] == {
        "temp": 15,
        "description": "overcast clouds",
        "icon": "10d",
        "humidity": 60,
        "windSpeed": 3.5,
        "source": "forecast",
    }
    request = openweather.requests[0]
    assert request.url.path.endswith("/forecast")
    assert request.url.params["q"] == "Berlin"
    assert request.url.params["appid"] == "test-weather-key"
    assert request.url.params["units"] == "metric"


def test_get_weather_uses_current_conditions_otherwise(tmp_path, openweather):
    deadline = _now() + timedelta(days=20)

    result = api.get_weather({"deadline": deadline.isoformat()}, _build_request(tmp_path))

    weather = result["data"]["weather"]
    assert weather["source"] == "current"
    assert weather["temp"] == 12.5
    assert weather["description"] == "light rain"
    request = openweather.requests[0]
    assert request.url.path.endswith("/weather")
    assert request.url.params["q"] == "London"


def test_get_weather_requires_deadline(tmp_path, openweather):
    with pytest.raises(ApiError) as excinfo:
        api.get_weather({"city": "Oslo"}, _build_request(tmp_path))
    assert excinfo.value.error.code == "MISSING_DEADLINE"
    assert openweather.requests == []


def test_get_weather_requires_secret(tmp_path, openweather, monkeypatch):
    monkeypatch.delenv("OPENWEATHER_API_KEY")

    with pytest.raises(ApiError) as excinfo:
        api.get_weather({"deadline": "2026-10-20"}, _build_request(tmp_path))
    assert excinfo.value.error.code == "SECRET_MISSING"


def test_get_weather_reports_malformed_payload(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENWEATHER_API_KEY", "k")
    monkeypatch.setattr(
        upstream,
        "build_http_client",
        lambda timeout: httpx.Client(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"main": {}})
            )
        ),
    )

    with pytest.raises(ApiError) as excinfo:
        api.get_weather(
            {"deadline": (_now() + timedelta(days=30)).isoformat()},
            _build_request(tmp_path),
        )
    assert excinfo.value.error.code == "UPSTREAM_MALFORMED"


def test_task_weather_skips_tasks_without_near_deadline(tmp_path, openweather):
    no_deadline = api.create_task({"title": "Whenever"}, _build_request(tmp_path))
    far_away = api.create_task(
        {"title": "Far", "deadline": (_now() + timedelta(days=30)).isoformat()},
        _build_request(tmp_path),
    )
    past = api.create_task(
        {"title": "Past", "deadline": (_now() - timedelta(days=2)).isoformat()},
        _build_request(tmp_path),
    )

    for created in (no_deadline, far_away, past):
        result = api.task_weather(
            {"id": created["data"]["task"]["id"]}, _build_request(tmp_path)
        )
        assert result["data"]["weather"] is None
    assert openweather.requests == []


def test_task_weather_fetches_forecast_for_upcoming_deadline(tmp_path, openweather):
    deadline = _now() + timedelta(days=2)
    openweather.forecast = [_forecast_slot(deadline, 4, "snow")]
    created = api.create_task(
        {"title": "Hike", "deadline": deadline.isoformat()}, _build_request(tmp_path)
    )

    result = api.task_weather(
        {"id": created["data"]["task"]["id"], "city": "Zurich"}, _build_request(tmp_path)
    )

    assert result["data"]["weather"]["source"] == "forecast"
    assert result["data"]["weather"]["description"] == "snow"
    assert openweather.requests[0].url.params["q"] == "Zurich"
