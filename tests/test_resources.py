import asyncio
import logging

import pytest

from zolastreams.resources import ResourceError, ResourceManager


def make_manager(max_messages=10, max_memory=10**12, threshold=0.8, interval=1.0):
    return ResourceManager(max_messages, max_memory, threshold, interval)


def test_fresh_manager_has_resources():
    manager = make_manager()
    manager.check_resources()
    assert manager.messages_in_flight == 0
    assert manager.is_backpressure_active() is False


def test_max_messages_in_flight_triggers_backpressure():
    manager = make_manager(max_messages=10)
    manager.start_processing(10)
    with pytest.raises(ResourceError) as info:
        manager.check_resources()
    assert "Max messages in flight reached (10 >= 10)" in str(info.value)
    assert manager.is_backpressure_active()


def test_memory_threshold_triggers_backpressure():
    manager = make_manager(max_messages=100, max_memory=5 * 20 * 1024, threshold=1.0)
    manager.start_processing(5)
    with pytest.raises(ResourceError) as info:
        manager.check_resources()
    assert "Estimated memory usage exceeds backpressure threshold" in info.value.reason
    assert manager.is_backpressure_active()


def test_estimated_memory_scales_with_in_flight():
    manager = make_manager(max_messages=100)
    manager.start_processing(3)
    first = manager.estimated_memory()
    manager.start_processing(3)
    assert manager.estimated_memory() == 2 * first
    assert first == 3 * 20 * 1024


def test_completion_below_thresholds_deactivates():
    manager = make_manager(max_messages=10)
    manager.start_processing(10)
    with pytest.raises(ResourceError):
        manager.check_resources()
    manager.complete_processing(10)
    assert manager.messages_in_flight == 0
    assert not manager.is_backpressure_active()
    manager.check_resources()


def test_completion_above_deactivation_point_keeps_backpressure():
    manager = make_manager(max_messages=10)
    manager.start_processing(10)
    with pytest.raises(ResourceError):
        manager.check_resources()
    manager.complete_processing(1)
    assert manager.messages_in_flight == 9
    assert manager.is_backpressure_active()


def test_each_completion_releases_one_signal():
    manager = make_manager(max_messages=10)
    manager.start_processing(10)
    for _ in range(2):
        with pytest.raises(ResourceError):
            manager.check_resources()
    assert manager.backpressure_signals == 2
    manager.complete_processing(10)
    assert manager.backpressure_signals == 1
    manager.complete_processing(0)
    assert manager.backpressure_signals == 0


def test_start_and_complete_round_trip():
    manager = make_manager(max_messages=100)
    manager.start_processing(7)
    manager.start_processing(5)
    manager.complete_processing(12)
    assert manager.messages_in_flight == 0
    assert manager.estimated_memory() == 0


@pytest.mark.asyncio
async def test_monitor_logs_status(caplog):
    caplog.set_level(logging.DEBUG, logger="zolastreams.resources")
    manager = make_manager(max_messages=10, interval=0.01)
    manager.start_processing(10)
    with pytest.raises(ResourceError):
        manager.check_resources()
    task = asyncio.create_task(manager.monitor())
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    statuses = [r.getMessage() for r in caplog.records if "ResourceManager Status" in r.getMessage()]
    assert len(statuses) >= 2
    assert "Backpressure: ACTIVE" in statuses[-1]