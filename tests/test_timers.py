import asyncio

import pytest

from conftest import run

from services.conversation.timers import IdleTimers, TimerHandle
from services.conversation.user_lanes import UserLanes


def _recorder(events, name):
    async def job():
        events.append(name)

    return job


def test_rearming_keeps_a_single_live_pair():
    events = []

    async def scenario():
        timers = IdleTimers(0.03, 0.06, UserLanes())
        first = timers.arm("u1", _recorder(events, "warn-1"), _recorder(events, "expire-1"))
        timers.arm("u1", _recorder(events, "warn-2"), _recorder(events, "expire-2"))
        assert not first.active
        assert timers.live_count("u1") == 1
        await asyncio.sleep(0.1)
        await timers.lanes.drain()
        assert timers.get("u1") is None
        assert timers.live_count("u1") == 0

    run(scenario())
    assert events == ["warn-2", "expire-2"]


def test_clear_cancels_both_timers():
    events = []

    async def scenario():
        timers = IdleTimers(0.01, 0.02, UserLanes())
        timers.arm("u1", _recorder(events, "warn"), _recorder(events, "expire"))
        timers.clear("u1")
        await asyncio.sleep(0.05)
        await timers.lanes.drain()

    run(scenario())
    assert events == []


def test_timer_handle_cancel_after_fire_is_harmless():
    events = []

    async def scenario():
        lanes = UserLanes()
        handle = TimerHandle("u1", 0.01, _recorder(events, "promo"), lanes, name="promo")
        assert handle.active
        await asyncio.sleep(0.03)
        await lanes.drain()
        assert not handle.active
        handle.cancel()

    run(scenario())
    assert events == ["promo"]


def test_timeout_shorter_than_warning_is_rejected():
    with pytest.raises(ValueError):
        IdleTimers(10, 5, UserLanes())
