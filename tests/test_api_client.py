import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from garden_monitor.domain.exceptions import (
    ConflictError,
    GardenMonitorError,
    NotFoundError,
    UpstreamUnavailable,
    ValidationError,
)
from garden_monitor.enums import AlertStatus, ScheduleStatus, SensorType
from infrastructure.api import (
    ApiClient,
    HttpAIDecisionService,
    HttpAlertSource,
    HttpScheduleRepository,
    HttpSensorSource,
)
from infrastructure.api.client import backoff_delay


def _response(status=200, body=None, *, content=None):
    response = MagicMock()
    response.status_code = status
    response.reason = "reason"
    if content is None:
        content = b"" if body is None else b"{}"
    response.content = content
    if body is None and content:
        response.json.side_effect = ValueError("no json")
        response.text = content.decode()
    else:
        response.json.return_value = body
        response.text = ""
    return response


def _client(*responses, **kwargs):
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = list(responses)
    sleeps = []
    client = ApiClient(
        "http://backend/api/",
        api_version="v1",
        token="secret",
        session=session,
        sleep=sleeps.append,
        **kwargs,
    )
    return client, session, sleeps


def test_url_and_auth_header():
    client, session, _ = _client()
    assert client.url("/gardens/1/alerts") == "http://backend/api/v1/gardens/1/alerts"
    assert session.headers["Authorization"] == "Bearer secret"
    client.set_token(None)
    assert "Authorization" not in session.headers


def test_data_envelope_is_unwrapped():
    client, session, _ = _client(_response(body={"data": [1, 2]}), _response(body=[3]))
    assert client.get("/a") == [1, 2]
    assert client.get("/b") == [3]
    method, url = session.request.call_args_list[0].args
    assert (method, url) == ("GET", "http://backend/api/v1/a")
    assert session.request.call_args_list[0].kwargs["timeout"] == client.timeout_s


def test_empty_body_returns_none():
    client, _, _ = _client(_response(204))
    assert client.delete("/watering-schedules/1") is None


def test_invalid_json_is_upstream_fault():
    client, _, _ = _client(_response(200, content=b"<html>"))
    with pytest.raises(UpstreamUnavailable):
        client.post("/x", {})


@pytest.mark.parametrize(
    "status,exc_type",
    [
        (404, NotFoundError),
        (409, ConflictError),
        (400, ValidationError),
        (422, ValidationError),
        (503, UpstreamUnavailable),
        (418, GardenMonitorError),
    ],
)
def test_status_mapping(status, exc_type):
    client, _, _ = _client(_response(status, body={"message": "nope"}))
    with pytest.raises(exc_type) as excinfo:
        client.patch("/alerts/1", {"status": "RESOLVED"})
    assert str(excinfo.value) == "nope"
    assert excinfo.value.detail["status"] == status


def test_get_retries_transient_failures_with_backoff():
    client, session, sleeps = _client(
        requests.ConnectionError("refused"),
        _response(502, body={"error": "bad gateway"}),
        _response(body={"data": {"ok": True}}),
    )
    assert client.get("/gardens/1/alerts") == {"ok": True}
    assert session.request.call_count == 3
    assert len(sleeps) == 2
    assert 0.5 <= sleeps[0] <= 1.0
    assert 1.0 <= sleeps[1] <= 2.0


def test_get_gives_up_after_retry_budget():
    client, session, sleeps = _client(*[requests.Timeout("slow")] * 4)
    with pytest.raises(UpstreamUnavailable):
        client.get("/slow")
    assert session.request.call_count == 4
    assert len(sleeps) == 3


def test_client_errors_are_not_retried():
    client, session, sleeps = _client(_response(404, body={"message": "missing"}))
    with pytest.raises(NotFoundError):
        client.get("/gardens/9/alerts")
    assert session.request.call_count == 1
    assert sleeps == []


def test_mutations_are_never_retried():
    client, session, sleeps = _client(requests.ConnectionError("refused"))
    with pytest.raises(UpstreamUnavailable):
        client.post("/watering-schedules/1/complete")
    assert session.request.call_count == 1
    assert sleeps == []


def test_backoff_delay_bounds():
    assert backoff_delay(0, 1.0, rand=lambda: 0.0) == 0.5
    assert backoff_delay(0, 1.0, rand=lambda: 1.0) == 1.0
    assert backoff_delay(2, 1.0, rand=lambda: 1.0) == 4.0


# ---------------------------------------------------------------------------
# HTTP collaborators
# ---------------------------------------------------------------------------


def _fake_client(**returns):
    client = MagicMock(spec=ApiClient)
    for verb, value in returns.items():
        getattr(client, verb).return_value = value
    return client


def test_sensor_source_decodes_and_skips_unreported():
    client = _fake_client(
        get=[
            {"sensorId": 1, "type": "soil_moisture", "lastReading": 18.5, "unit": "%", "timestamp": "2026-05-01T12:00:00Z"},
            {"id": 2, "sensorType": "TEMPERATURE", "value": None, "timestamp": "2026-05-01T12:00:00Z"},
            {"type": "HUMIDITY"},
        ]
    )
    readings = asyncio.run(HttpSensorSource(client).get_latest_readings(3))

    assert len(readings) == 1
    reading = readings[0]
    assert reading.sensor_type is SensorType.SOIL_MOISTURE
    assert reading.garden_id == 3
    assert reading.value == 18.5
    client.get.assert_called_once_with("/gardens/3/sensors/latest-readings")


def test_alert_source_round_trip():
    client = _fake_client(
        get=[
            {
                "id": 5,
                "userId": 1,
                "gardenId": 3,
                "type": "weather",
                "message": "Frost tonight",
                "status": "pending",
                "severity": "high",
                "createdAt": "2026-05-01T12:00:00Z",
            }
        ]
    )
    source = HttpAlertSource(client)
    alerts = asyncio.run(source.list_alerts(3))
    asyncio.run(source.update_alert_status(5, AlertStatus.RESOLVED))

    assert alerts[0].status is AlertStatus.PENDING
    assert alerts[0].severity.value == "HIGH"
    assert alerts[0].updated_at == alerts[0].created_at
    client.patch.assert_called_once_with("/alerts/5", {"status": "RESOLVED"})


def test_schedule_repository_paths():
    entry = {"id": 7, "gardenId": 3, "scheduledAt": "2026-05-02T06:00:00Z", "status": "completed"}
    client = _fake_client(get=[entry], post=entry)
    repo = HttpScheduleRepository(client)

    upcoming = asyncio.run(repo.get_upcoming(3, 5))
    completed = asyncio.run(repo.complete(7))

    assert upcoming[0].id == 7
    assert completed.status is ScheduleStatus.COMPLETED
    client.get.assert_called_once_with("/gardens/3/watering-schedules/upcoming", {"limit": 5})
    client.post.assert_called_once_with("/watering-schedules/7/complete")


def test_malformed_schedule_is_upstream_fault():
    client = _fake_client(post={"id": "x"})
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(HttpScheduleRepository(client).skip(7))


def test_ai_service_decision_and_probe():
    client = _fake_client(
        post={"decision": "WATER", "confidence": 0.8, "reasons": ["dry"], "recommendedAmount": 2.0},
        get={"connected": False},
    )
    service = HttpAIDecisionService(client)

    decision = asyncio.run(service.decide(3, MagicMock(to_payload=lambda: {"sensorData": {"soil_moisture": 10}})))
    connected = asyncio.run(service.ping())

    assert decision.should_water
    assert decision.recommended_amount == 2.0
    assert connected is False
    client.get.assert_called_once_with("/watering-decision/test-ai", None, retry=False)


def test_ai_service_optimal_amount_shapes():
    service = HttpAIDecisionService(_fake_client(post={"optimalAmount": 1.75}))
    from garden_monitor.utils.time import utc_now

    assert asyncio.run(service.optimal_amount(3, utc_now())) == 1.75
    service.client.post.return_value = None
    assert asyncio.run(service.optimal_amount(3, utc_now())) is None
    service.client.post.return_value = "many"
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(service.optimal_amount(3, utc_now()))
