import asyncio

import pytest

from conftest import run

from services.conversation.message_queue import MessageQueue
from services.conversation.user_lanes import UserLanes


def test_rapid_bubbles_flush_once_joined():
    flushed = []

    async def scenario():
        queue = MessageQueue(gap_seconds=0.05)

        async def on_flush(text):
            flushed.append(text)

        for bubble in ("hola", "quiero", "pendones"):
            queue.enqueue("u1", bubble, on_flush)
            await asyncio.sleep(0.01)
        assert queue.pending_count("u1") == 3
        await asyncio.sleep(0.1)
        await queue.lanes.drain()
        assert queue.is_empty("u1")

    run(scenario())
    assert flushed == ["hola quiero pendones"]


def test_users_are_buffered_independently():
    flushed = []

    async def scenario():
        queue = MessageQueue(gap_seconds=0.02)

        async def on_flush(text):
            flushed.append(text)

        queue.enqueue("u1", "uno", on_flush)
        queue.enqueue("u2", "dos", on_flush)
        await asyncio.sleep(0.06)
        await queue.lanes.drain()

    run(scenario())
    assert sorted(flushed) == ["dos", "uno"]


def test_enqueue_after_flush_starts_new_buffer():
    flushed = []

    async def scenario():
        queue = MessageQueue(gap_seconds=0.02)

        async def on_flush(text):
            flushed.append(text)

        queue.enqueue("u1", "primero", on_flush)
        await asyncio.sleep(0.05)
        queue.enqueue("u1", "segundo", on_flush)
        await asyncio.sleep(0.05)
        await queue.lanes.drain()

    run(scenario())
    assert flushed == ["primero", "segundo"]


def test_clear_drops_pending_messages():
    flushed = []

    async def scenario():
        queue = MessageQueue(gap_seconds=0.02)

        async def on_flush(text):
            flushed.append(text)

        queue.enqueue("u1", "se pierde", on_flush)
        queue.clear("u1")
        await asyncio.sleep(0.05)
        await queue.lanes.drain()

    run(scenario())
    assert flushed == []


def test_callback_failure_does_not_break_later_flushes():
    flushed = []

    async def scenario():
        queue = MessageQueue(gap_seconds=0.01, lanes=UserLanes())

        async def broken(text):
            raise RuntimeError("boom")

        async def on_flush(text):
            flushed.append(text)

        queue.enqueue("u1", "falla", broken)
        await asyncio.sleep(0.03)
        await queue.lanes.drain()
        queue.enqueue("u1", "funciona", on_flush)
        await asyncio.sleep(0.03)
        await queue.lanes.drain()

    run(scenario())
    assert flushed == ["funciona"]


def test_negative_gap_is_rejected():
    with pytest.raises(ValueError):
        MessageQueue(gap_seconds=-1)
