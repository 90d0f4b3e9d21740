import asyncio

import pytest

from garden_monitor.domain.exceptions import UpstreamUnavailable, ValidationError
from garden_monitor.enums import AIConnectionState
from garden_monitor.services.ai_gateway import AIDecisionGateway
from garden_monitor.utils.time import utc_now


def test_initial_state_is_disconnected(gateway):
    assert gateway.state is AIConnectionState.DISCONNECTED
    assert gateway.status() == {"state": "disconnected", "last_checked_at": None}


def test_successful_probe_connects(gateway):
    assert asyncio.run(gateway.test_connection()) is True
    assert gateway.state is AIConnectionState.CONNECTED
    assert gateway.last_checked_at is not None


def test_three_failed_probes_leave_disconnected(gateway, ai_service):
    ai_service.fail_next("ping", times=3)

    async def scenario():
        return [await gateway.test_connection() for _ in range(3)]

    assert asyncio.run(scenario()) == [False, False, False]
    assert gateway.state is AIConnectionState.DISCONNECTED


def test_probe_reporting_false_disconnects(gateway, ai_service):
    async def scenario():
        await gateway.test_connection()
        ai_service.connected = False
        return await gateway.test_connection()

    assert asyncio.run(scenario()) is False
    assert gateway.state is AIConnectionState.DISCONNECTED


def test_probe_timeout_disconnects(ai_service):
    gateway = AIDecisionGateway(ai_service, timeout_s=0.05)
    ai_service.set_delay("ping", 0.5)
    assert asyncio.run(gateway.test_connection()) is False
    assert gateway.state is AIConnectionState.DISCONNECTED


def test_state_is_testing_while_probe_runs(gateway, ai_service):
    ai_service.set_delay("ping", 0.05)

    async def scenario():
        probe = asyncio.create_task(gateway.test_connection())
        await asyncio.sleep(0.01)
        during = gateway.state
        await probe
        return during

    assert asyncio.run(scenario()) is AIConnectionState.TESTING
    assert gateway.state is AIConnectionState.CONNECTED


def test_concurrent_probes_are_coalesced(gateway, ai_service):
    ai_service.set_delay("ping", 0.02)

    async def scenario():
        return await asyncio.gather(gateway.test_connection(), gateway.test_connection())

    assert asyncio.run(scenario()) == [True, True]
    assert ai_service.calls["ping"] == 1


def test_failed_decision_does_not_change_state(gateway, ai_service):
    async def scenario():
        await gateway.test_connection()
        ai_service.fail_next("decide")
        with pytest.raises(UpstreamUnavailable):
            await gateway.get_decision(1, {"soil_moisture": 10})

    asyncio.run(scenario())
    assert gateway.state is AIConnectionState.CONNECTED


def test_decision_uses_sensor_snapshot(gateway, ai_service):
    dry = asyncio.run(gateway.get_decision(1, {"soil_moisture": 12}))
    wet = asyncio.run(gateway.get_decision(1, {"soil_moisture": 55}))

    assert dry.should_water
    assert dry.recommended_amount == ai_service.amount
    assert dry.garden_id == 1
    assert not wet.should_water
    assert wet.recommended_amount == 0


def test_unexpected_service_errors_become_upstream_unavailable():
    class Broken:
        async def decide(self, garden_id, request):
            raise RuntimeError("socket closed")

    gateway = AIDecisionGateway(Broken(), timeout_s=1.0)
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(gateway.get_decision(1))

def test_optimal_amount_passthrough(gateway, ai_service):
    ai_service.optimal = 3.25
    assert asyncio.run(gateway.get_optimal_amount(1, utc_now())) == 3.25
    ai_service.optimal = None
    assert asyncio.run(gateway.get_optimal_amount(1, utc_now())) is None


def test_stats_window_validated(gateway):
    with pytest.raises(ValidationError):
        asyncio.run(gateway.get_stats(1, days=0))


def test_stats_count_decisions(gateway):
    async def scenario():
        await gateway.get_decision(1, {"soil_moisture": 10})
        await gateway.get_decision(1, {"soil_moisture": 60})
        await gateway.get_decision(2, {"soil_moisture": 60})
        return await gateway.get_stats(1)

    stats = asyncio.run(scenario())
    assert stats.total_decisions == 2
    assert stats.water_recommendations == 1
    assert stats.no_water_recommendations == 1


def test_non_numeric_optimal_amount_is_upstream_fault(gateway, ai_service):
    ai_service.optimal = "plenty"
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(gateway.get_optimal_amount(1, utc_now()))
