import asyncio
from datetime import timedelta

from conftest import BASE_TIME, make_reading
from garden_monitor.enums import SensorStatus, SensorType
from garden_monitor.services.sensor_poller import SensorPoller


def _poller(source, **kwargs):
    kwargs.setdefault("poll_interval_s", 60.0)
    kwargs.setdefault("timeout_s", 1.0)
    return SensorPoller(source, **kwargs)


def test_refresh_classifies_latest_readings(sensor_source):
    sensor_source.set_readings(
        1,
        [
            make_reading(2, SensorType.TEMPERATURE, 25),
            make_reading(1, SensorType.SOIL_MOISTURE, 14),
        ],
    )
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        snapshot = await poller.refresh()
        await poller.stop()
        return snapshot

    snapshot = asyncio.run(scenario())

    assert snapshot.garden_id == 1
    assert [r.sensor_type for r in snapshot.records] == ["SOIL_MOISTURE", "TEMPERATURE"]
    assert [r.status for r in snapshot.records] == [SensorStatus.CRITICAL, SensorStatus.NORMAL]
    assert snapshot.status_by_type["SOIL_MOISTURE"] is SensorStatus.CRITICAL
    assert snapshot.error is None
    assert snapshot.last_updated is not None
    assert [r.sensor_id for r in snapshot.needing_attention()] == [1]


def test_failed_refresh_keeps_previous_data(sensor_source):
    sensor_source.set_readings(1, [make_reading(1, SensorType.HUMIDITY, 50)])
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        await poller.refresh()
        sensor_source.fail_next("get_latest_readings")
        snapshot = await poller.refresh()
        await poller.stop()
        return snapshot

    snapshot = asyncio.run(scenario())

    assert snapshot.error
    assert snapshot.is_stale
    assert [r.value for r in snapshot.records] == [50]


def test_success_clears_error(sensor_source):
    sensor_source.set_readings(1, [make_reading(1, SensorType.HUMIDITY, 50)])
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        await poller.refresh()
        sensor_source.fail_next("get_latest_readings")
        await poller.refresh()
        snapshot = await poller.refresh()
        await poller.stop()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert snapshot.error is None
    assert not snapshot.is_stale


def test_timeout_is_reported_as_error(sensor_source):
    sensor_source.set_readings(1, [make_reading(1, SensorType.HUMIDITY, 50)])
    sensor_source.set_delay("get_latest_readings", 0.5)
    poller = _poller(sensor_source, timeout_s=0.05)

    async def scenario():
        await poller.start(1)
        snapshot = await poller.refresh()
        await poller.stop()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert "timed out" in snapshot.error
    assert snapshot.records == ()


def test_concurrent_refreshes_share_one_fetch(sensor_source):
    sensor_source.set_readings(1, [make_reading(1, SensorType.LIGHT, 8000)])
    sensor_source.set_delay("get_latest_readings", 0.05)
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        await asyncio.gather(poller.refresh(), poller.refresh(), poller.refresh())
        await poller.stop()

    asyncio.run(scenario())
    assert sensor_source.calls["get_latest_readings"] == 1


def test_older_reading_never_replaces_newer(sensor_source):
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        sensor_source.set_readings(1, [make_reading(1, SensorType.SOIL_MOISTURE, 40, at=BASE_TIME + timedelta(minutes=10))])
        await poller.refresh()
        sensor_source.set_readings(1, [make_reading(1, SensorType.SOIL_MOISTURE, 10, at=BASE_TIME)])
        snapshot = await poller.refresh()
        await poller.stop()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert [r.value for r in snapshot.records] == [40]
    assert snapshot.records[0].status is SensorStatus.NORMAL


def test_readings_for_other_gardens_are_ignored(sensor_source):
    sensor_source.set_readings(
        1,
        [
            make_reading(1, SensorType.HUMIDITY, 50),
            make_reading(9, SensorType.HUMIDITY, 99, garden_id=2),
        ],
    )
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        snapshot = await poller.refresh()
        await poller.stop()
        return snapshot

    assert [r.sensor_id for r in asyncio.run(scenario()).records] == [1]


def test_history_is_bounded_and_newest_first(sensor_source):
    poller = _poller(sensor_source, history_size=3)

    async def scenario():
        await poller.start(1)
        for minute in range(5):
            sensor_source.set_readings(
                1, [make_reading(1, SensorType.SOIL_MOISTURE, 30 + minute, at=BASE_TIME + timedelta(minutes=minute))]
            )
            await poller.refresh()
        await poller.stop()

    asyncio.run(scenario())
    assert [r.value for r in poller.history("soil_moisture")] == [34, 33, 32]
    assert poller.history(SensorType.TEMPERATURE) == []


def test_switching_gardens_discards_late_results(sensor_source):
    sensor_source.set_readings(1, [make_reading(1, SensorType.HUMIDITY, 50, garden_id=1)])
    sensor_source.set_readings(2, [make_reading(5, SensorType.HUMIDITY, 60, garden_id=2)])
    sensor_source.set_delay("get_latest_readings", 0.05)
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        late = asyncio.create_task(poller.refresh())
        await asyncio.sleep(0.01)
        await poller.start(2)
        await late
        snapshot = await poller.refresh()
        await poller.stop()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert snapshot.garden_id == 2
    assert [r.sensor_id for r in snapshot.records] == [5]


def test_stop_halts_polling(sensor_source):
    sensor_source.set_readings(1, [make_reading(1, SensorType.HUMIDITY, 50)])
    poller = _poller(sensor_source, poll_interval_s=0.01)

    async def scenario():
        await poller.start(1)
        await asyncio.sleep(0.05)
        assert poller.is_running
        await poller.stop()
        calls = sensor_source.calls["get_latest_readings"]
        await asyncio.sleep(0.05)
        return calls

    calls = asyncio.run(scenario())
    assert calls >= 2
    assert sensor_source.calls["get_latest_readings"] == calls
    assert not poller.is_running


def test_start_is_idempotent_for_same_garden(sensor_source):
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        first = poller._task
        await poller.start(1)
        same = poller._task is first
        await poller.stop()
        return same

    assert asyncio.run(scenario()) is True


def test_decision_input_uses_ai_keys(sensor_source):
    sensor_source.set_readings(
        1,
        [
            make_reading(1, SensorType.SOIL_MOISTURE, 22),
            make_reading(2, SensorType.HUMIDITY, 61),
            make_reading(3, SensorType.RAINFALL, 4),
        ],
    )
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        await poller.refresh()
        await poller.stop()

    asyncio.run(scenario())
    assert poller.decision_input() == {"soil_moisture": 22, "air_humidity": 61}


def test_stopped_poller_does_not_fetch(sensor_source):
    sensor_source.set_readings(1, [make_reading(1, SensorType.HUMIDITY, 50)])
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        await poller.refresh()
        await poller.stop()
        sensor_source.set_readings(1, [make_reading(1, SensorType.HUMIDITY, 70, at=BASE_TIME + timedelta(minutes=1))])
        return await poller.refresh()

    snapshot = asyncio.run(scenario())
    assert sensor_source.calls["get_latest_readings"] == 1
    assert [r.value for r in snapshot.records] == [50]


def test_stop_cancels_in_flight_fetch(sensor_source):
    sensor_source.set_readings(1, [make_reading(1, SensorType.HUMIDITY, 50)])
    sensor_source.set_delay("get_latest_readings", 0.5)
    poller = _poller(sensor_source)

    async def scenario():
        await poller.start(1)
        waiting = asyncio.create_task(poller.refresh())
        await asyncio.sleep(0.01)
        inflight = poller._inflight
        await poller.stop()
        snapshot = await waiting
        return inflight, snapshot

    inflight, snapshot = asyncio.run(scenario())
    assert inflight is not None and inflight.cancelled()
    assert sensor_source.calls["get_latest_readings"] == 1
    assert snapshot.records == ()
    assert not snapshot.is_loading
