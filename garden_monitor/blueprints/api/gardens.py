"""
Gardens API Blueprint
=====================

JSON endpoints backing the garden dashboard. A garden view is opened on first
access (polling starts, the AI connection is probed, everything is loaded once)
and stays open until ``DELETE /api/gardens/<id>``.

Endpoints:
- GET    /api/gardens                                   - Open garden ids
- GET    /api/gardens/<id>                              - Combined snapshot
- POST   /api/gardens/<id>/refresh                      - Reload everything, per-part report
- DELETE /api/gardens/<id>                              - Close the garden view
- GET    /api/gardens/<id>/sensors                      - Sensor snapshot (+ ?history=<type>)
- GET    /api/gardens/<id>/alerts                       - Active alerts and counts
- POST   /api/gardens/<id>/alerts/<alert_id>/resolve    - Resolve an alert
- POST   /api/gardens/<id>/alerts/<alert_id>/ignore     - Ignore an alert
- GET    /api/gardens/<id>/schedules                    - Schedules, upcoming, decision, stats
- POST   /api/gardens/<id>/schedules                    - Create a schedule entry
- POST   /api/gardens/<id>/schedules/auto               - Create an entry from an AI decision
- POST   /api/gardens/<id>/schedules/<sid>/complete     - Mark completed
- POST   /api/gardens/<id>/schedules/<sid>/skip         - Mark skipped
- DELETE /api/gardens/<id>/schedules/<sid>              - Delete an entry
- POST   /api/gardens/<id>/decision                     - Fresh watering decision
- POST   /api/gardens/<id>/decision/optimal-amount      - Optimal water amount
- GET    /api/gardens/ai/connection                     - AI connection state
- POST   /api/gardens/ai/connection/test                - Probe the AI service
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, request

from garden_monitor.blueprints.api._common import get_container, get_json, parse_optional_time, run_for_garden
from garden_monitor.schemas import (
    AutoGenerateRequest,
    CreateScheduleRequest,
    DecisionRequestBody,
    OptimalAmountRequest,
)
from garden_monitor.utils.http import error_response, safe_route, success_response

logger = logging.getLogger(__name__)

gardens_api = Blueprint("gardens_api", __name__)


# ============================================================================
# GARDEN VIEW
# ============================================================================


@gardens_api.get("/")
@safe_route("Failed to list gardens")
def list_gardens() -> Response:
    container = get_container()
    return success_response({"gardens": container.registry.garden_ids})


@gardens_api.get("/<int:garden_id>")
@safe_route("Failed to load garden")
def get_garden(garden_id: int) -> Response:
    return success_response(run_for_garden(garden_id, lambda garden: garden.snapshot()))


@gardens_api.post("/<int:garden_id>/refresh")
@safe_route("Failed to refresh garden")
def refresh_garden(garden_id: int) -> Response:
    async def _refresh(garden):
        report = await garden.refresh_all()
        return {"report": report.to_dict(), "snapshot": garden.snapshot()}

    return success_response(run_for_garden(garden_id, _refresh))


@gardens_api.delete("/<int:garden_id>")
@safe_route("Failed to close garden")
def close_garden(garden_id: int) -> Response:
    container = get_container()
    closed = container.run(container.registry.close(garden_id))
    if not closed:
        return error_response(f"Garden {garden_id} is not open", 404)
    return success_response({"garden_id": garden_id, "closed": True})


# ============================================================================
# SENSORS & ALERTS
# ============================================================================


@gardens_api.get("/<int:garden_id>/sensors")
@safe_route("Failed to load sensors")
def get_sensors(garden_id: int) -> Response:
    """Latest sensor snapshot.

    Query parameters:
        history (str, optional) - sensor type whose recent readings to include
    """
    history_type = request.args.get("history")

    def _sensors(garden):
        data = garden.poller.snapshot().to_dict()
        data["attention"] = garden.attention()
        if history_type:
            data["history"] = [r.to_dict() for r in garden.poller.history(history_type)]
        return data

    return success_response(run_for_garden(garden_id, _sensors))


@gardens_api.get("/<int:garden_id>/alerts")
@safe_route("Failed to load alerts")
def get_alerts(garden_id: int) -> Response:
    def _alerts(garden):
        store = garden.alerts
        return {
            "active": [a.to_dict() for a in store.list_active(garden_id)],
            "counts": store.counts(garden_id).to_dict(),
            "error": store.last_error(garden_id),
        }

    return success_response(run_for_garden(garden_id, _alerts))


@gardens_api.post("/<int:garden_id>/alerts/<int:alert_id>/resolve")
@safe_route("Failed to resolve alert")
def resolve_alert(garden_id: int, alert_id: int) -> Response:
    alert = run_for_garden(garden_id, lambda garden: garden.resolve_alert(alert_id))
    return success_response(alert.to_dict(), message="Alert resolved")


@gardens_api.post("/<int:garden_id>/alerts/<int:alert_id>/ignore")
@safe_route("Failed to ignore alert")
def ignore_alert(garden_id: int, alert_id: int) -> Response:
    alert = run_for_garden(garden_id, lambda garden: garden.ignore_alert(alert_id))
    return success_response(alert.to_dict(), message="Alert ignored")


# ============================================================================
# WATERING SCHEDULES
# ============================================================================


@gardens_api.get("/<int:garden_id>/schedules")
@safe_route("Failed to load watering schedules")
def get_schedules(garden_id: int) -> Response:
    return success_response(run_for_garden(garden_id, lambda garden: garden.schedules.to_dict()))


@gardens_api.post("/<int:garden_id>/schedules")
@safe_route("Failed to create watering schedule")
def create_schedule(garden_id: int) -> Response:
    body = CreateScheduleRequest.model_validate(get_json())
    schedule = run_for_garden(
        garden_id,
        lambda garden: garden.schedules.create(body.scheduled_at, body.amount, body.notes),
    )
    return success_response(schedule.to_dict(), 201, message="Watering schedule created")


@gardens_api.post("/<int:garden_id>/schedules/auto")
@safe_route("Failed to auto-generate watering schedule")
def auto_generate_schedule(garden_id: int) -> Response:
    body = AutoGenerateRequest.model_validate(get_json())
    schedule = run_for_garden(garden_id, lambda garden: garden.schedules.auto_generate(body.sensor_data))
    return success_response(schedule.to_dict(), 201, message="Watering schedule generated")


@gardens_api.post("/<int:garden_id>/schedules/<int:schedule_id>/complete")
@safe_route("Failed to complete watering schedule")
def complete_schedule(garden_id: int, schedule_id: int) -> Response:
    schedule = run_for_garden(garden_id, lambda garden: garden.schedules.complete(schedule_id))
    return success_response(schedule.to_dict(), message="Watering schedule completed")


@gardens_api.post("/<int:garden_id>/schedules/<int:schedule_id>/skip")
@safe_route("Failed to skip watering schedule")
def skip_schedule(garden_id: int, schedule_id: int) -> Response:
    schedule = run_for_garden(garden_id, lambda garden: garden.schedules.skip(schedule_id))
    return success_response(schedule.to_dict(), message="Watering schedule skipped")


@gardens_api.delete("/<int:garden_id>/schedules/<int:schedule_id>")
@safe_route("Failed to delete watering schedule")
def delete_schedule(garden_id: int, schedule_id: int) -> Response:
    run_for_garden(garden_id, lambda garden: garden.schedules.delete(schedule_id))
    return success_response({"schedule_id": schedule_id, "deleted": True}, message="Watering schedule deleted")


# ============================================================================
# AI DECISIONS
# ============================================================================


@gardens_api.post("/<int:garden_id>/decision")
@safe_route("Failed to get watering decision")
def get_decision(garden_id: int) -> Response:
    body = DecisionRequestBody.model_validate(get_json())
    watering_time = parse_optional_time(body.watering_time, "watering_time")
    decision = run_for_garden(
        garden_id,
        lambda garden: garden.schedules.get_decision(body.sensor_data, watering_time, body.notes),
    )
    return success_response(decision.to_dict())


@gardens_api.post("/<int:garden_id>/decision/optimal-amount")
@safe_route("Failed to get optimal watering amount")
def get_optimal_amount(garden_id: int) -> Response:
    body = OptimalAmountRequest.model_validate(get_json())
    amount = run_for_garden(
        garden_id,
        lambda garden: garden.schedules.get_optimal_amount(body.watering_time, body.notes),
    )
    return success_response({"garden_id": garden_id, "optimal_amount": amount})


@gardens_api.get("/ai/connection")
@safe_route("Failed to read AI connection state")
def ai_connection() -> Response:
    container = get_container()
    return success_response(container.ai_gateway.status())


@gardens_api.post("/ai/connection/test")
@safe_route("Failed to test AI connection")
def test_ai_connection() -> Response:
    container = get_container()
    gateway = container.ai_gateway

    async def _probe():
        connected = await gateway.test_connection()
        return {"connected": connected, **gateway.status()}

    return success_response(container.run(_probe()))
