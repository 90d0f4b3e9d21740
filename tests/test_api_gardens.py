"""HTTP API tests against an in-memory service container."""

import pytest

from conftest import make_alert, make_reading, make_schedule
from garden_monitor.enums import AlertStatus, ScheduleStatus, SensorType, Severity


@pytest.fixture()
def seeded(sensor_source, alert_source, schedule_repo):
    sensor_source.set_readings(
        1,
        [
            make_reading(1, SensorType.SOIL_MOISTURE, 14, unit="%"),
            make_reading(2, SensorType.TEMPERATURE, 22, unit="C"),
        ],
    )
    alert_source.add(make_alert(10, severity=Severity.HIGH))
    alert_source.add(make_alert(11, severity=Severity.LOW))
    schedule_repo.add(make_schedule(100))


def test_get_garden_snapshot(client, seeded):
    response = client.get("/api/gardens/1")
    assert response.status_code == 200

    body = response.get_json()
    assert body["ok"] is True
    assert body["error"] is None
    data = body["data"]
    assert data["garden_id"] == 1
    assert data["open"] is True
    assert [a["id"] for a in data["alerts"]["active"]] == [10, 11]
    assert [s["id"] for s in data["watering"]["schedules"]] == [100]
    assert data["attention"][0]["sensor_id"] == 1
    assert data["attention"][0]["suggested_severity"] == "HIGH"


def test_list_gardens_shows_opened_views(client, seeded):
    assert client.get("/api/gardens/").get_json()["data"] == {"gardens": []}
    client.get("/api/gardens/1")
    assert client.get("/api/gardens/").get_json()["data"] == {"gardens": [1]}


def test_refresh_returns_report_and_snapshot(client, seeded, alert_source):
    alert_source.fail_next("list_alerts")
    client.get("/api/gardens/1")

    data = client.post("/api/gardens/1/refresh").get_json()["data"]
    assert data["report"]["ok"] is True
    assert set(data["report"]["parts"]) == {"sensors", "alerts", "schedules"}
    assert data["snapshot"]["alerts"]["error"] is None


def test_sensors_with_history(client, seeded):
    data = client.get("/api/gardens/1/sensors?history=soil_moisture").get_json()["data"]

    statuses = {s["sensor_id"]: s["status"] for s in data["sensors"]}
    assert statuses == {1: "critical", 2: "normal"}
    assert [r["value"] for r in data["history"]] == [14]
    assert [a["sensor_id"] for a in data["attention"]] == [1]


def test_resolve_alert(client, seeded, alert_source):
    response = client.post("/api/gardens/1/alerts/10/resolve")
    assert response.status_code == 200

    body = response.get_json()
    assert body["message"] == "Alert resolved"
    assert body["data"]["status"] == "RESOLVED"
    assert alert_source.get(10).status is AlertStatus.RESOLVED

    active = client.get("/api/gardens/1/alerts").get_json()["data"]
    assert [a["id"] for a in active["active"]] == [11]
    assert active["counts"]["total_active"] == 1


def test_unknown_alert_is_404(client, seeded):
    response = client.post("/api/gardens/1/alerts/999/ignore")
    assert response.status_code == 404
    assert response.get_json()["error"]["error_type"] == "NotFoundError"


def test_create_schedule(client, seeded, schedule_repo):
    response = client.post(
        "/api/gardens/1/schedules",
        json={"scheduledAt": "2999-01-01T06:30:00Z", "amount": 3, "notes": "morning"},
    )
    assert response.status_code == 201

    body = response.get_json()
    assert body["message"] == "Watering schedule created"
    created = body["data"]
    assert created["status"] == "PENDING"
    assert created["amount"] == 3
    assert schedule_repo.get(created["id"]) is not None

    listed = client.get("/api/gardens/1/schedules").get_json()["data"]
    assert created["id"] in [s["id"] for s in listed["schedules"]]


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"scheduledAt": "2999-01-01T06:30:00Z", "amount": -1},
    ],
)
def test_create_schedule_rejects_invalid_body(client, seeded, schedule_repo, body):
    response = client.post("/api/gardens/1/schedules", json=body)
    assert response.status_code == 400

    payload = response.get_json()
    assert payload["ok"] is False
    assert payload["details"]["errors"]
    assert schedule_repo.calls["create"] == 0


def test_create_schedule_rejects_unparseable_time(client, seeded):
    response = client.post("/api/gardens/1/schedules", json={"scheduledAt": "next tuesday"})
    assert response.status_code == 400
    assert response.get_json()["error"]["error_type"] == "ValidationError"


def test_complete_twice_conflicts(client, seeded, schedule_repo):
    first = client.post("/api/gardens/1/schedules/100/complete")
    assert first.status_code == 200
    assert first.get_json()["data"]["status"] == "COMPLETED"

    second = client.post("/api/gardens/1/schedules/100/complete")
    assert second.status_code == 409
    assert second.get_json()["error"]["error_type"] == "ConflictError"
    assert schedule_repo.calls["complete"] == 1
    assert schedule_repo.get(100).status is ScheduleStatus.COMPLETED


def test_delete_schedule(client, seeded, schedule_repo):
    response = client.delete("/api/gardens/1/schedules/100")
    assert response.get_json()["data"] == {"schedule_id": 100, "deleted": True}
    assert schedule_repo.get(100) is None

    listed = client.get("/api/gardens/1/schedules").get_json()["data"]
    assert listed["schedules"] == []


def test_auto_generate_with_ai_disconnected(client, seeded, ai_service, schedule_repo):
    ai_service.connected = False

    response = client.post("/api/gardens/1/schedules/auto", json={})
    assert response.status_code == 503

    body = response.get_json()
    assert body["error"]["error_type"] == "RecommendationUnavailable"
    assert "manually" in body["message"]
    assert schedule_repo.calls["auto_generate"] == 0


def test_auto_generate_with_ai_connected(client, seeded, ai_service):
    response = client.post("/api/gardens/1/schedules/auto", json={"sensorData": {"soil_moisture": 9}})
    assert response.status_code == 201
    assert response.get_json()["data"]["amount"] == ai_service.amount


def test_decision_and_optimal_amount(client, seeded, ai_service):
    decision = client.post("/api/gardens/1/decision", json={"sensorData": {"soil_moisture": 60}})
    assert decision.status_code == 200
    assert decision.get_json()["data"]["decision"] == "no_water"

    ai_service.optimal = 1.25
    amount = client.post(
        "/api/gardens/1/decision/optimal-amount", json={"wateringTime": "2999-01-01T06:30:00Z"}
    )
    assert amount.get_json()["data"] == {"garden_id": 1, "optimal_amount": 1.25}


def test_decision_rejects_bad_watering_time(client, seeded):
    response = client.post("/api/gardens/1/decision", json={"wateringTime": "soon"})
    assert response.status_code == 400


def test_ai_connection_status_and_probe(client, ai_service):
    status = client.get("/api/gardens/ai/connection").get_json()["data"]
    assert status["state"] == "disconnected"

    probed = client.post("/api/gardens/ai/connection/test").get_json()["data"]
    assert probed["connected"] is True
    assert probed["state"] == "connected"
    assert probed["last_checked_at"] is not None

    ai_service.connected = False
    probed = client.post("/api/gardens/ai/connection/test").get_json()["data"]
    assert probed["connected"] is False
    assert probed["state"] == "disconnected"


def test_close_garden(client, seeded):
    client.get("/api/gardens/1")

    closed = client.delete("/api/gardens/1")
    assert closed.status_code == 200
    assert closed.get_json()["data"] == {"garden_id": 1, "closed": True}

    again = client.delete("/api/gardens/1")
    assert again.status_code == 404
    assert again.get_json()["ok"] is False


def test_unknown_route_returns_json_404(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    body = response.get_json()
    assert body["ok"] is False
    assert body["data"] is None
