"""Tests for the async EventBus."""

import pytest

from ollama_lore.events.bus import EventBus
from ollama_lore.types import EventType, GenerationEvent


@pytest.fixture
def bus():
    return EventBus()


class TestSubscribeAndEmit:
    async def test_async_handler(self, bus: EventBus):
        received = []

        async def handler(event: GenerationEvent):
            received.append(event)

        bus.subscribe(EventType.ATTEMPT_STARTED, handler)
        ev = GenerationEvent(type=EventType.ATTEMPT_STARTED, data={"attempt": 1})
        await bus.emit(ev)

        assert received == [ev]

    async def test_sync_handler(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.ATTEMPT_FAILED, received.append)
        await bus.emit(GenerationEvent(type=EventType.ATTEMPT_FAILED))
        assert len(received) == 1

    async def test_no_cross_delivery(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.GENERATION_STARTED, received.append)
        await bus.emit(GenerationEvent(type=EventType.GENERATION_FAILED))
        assert received == []

    async def test_wildcard_receives_all(self, bus: EventBus):
        received = []
        bus.subscribe("*", lambda e: received.append(e.type))
        await bus.emit(GenerationEvent(type=EventType.GENERATION_STARTED))
        await bus.emit(GenerationEvent(type=EventType.ATTEMPT_FAILED))
        assert received == [EventType.GENERATION_STARTED, EventType.ATTEMPT_FAILED]


class TestUnsubscribe:
    async def test_unsubscribe(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.GENERATION_SUCCEEDED, received.append)
        await bus.emit(GenerationEvent(type=EventType.GENERATION_SUCCEEDED))
        bus.unsubscribe(EventType.GENERATION_SUCCEEDED, received.append)
        await bus.emit(GenerationEvent(type=EventType.GENERATION_SUCCEEDED))
        assert len(received) == 1

    def test_unsubscribe_nonexistent(self, bus: EventBus):
        bus.unsubscribe(EventType.GENERATION_SUCCEEDED, print)


class TestHistory:
    async def test_history_and_filter(self, bus: EventBus):
        await bus.emit(GenerationEvent(type=EventType.ATTEMPT_STARTED))
        await bus.emit(GenerationEvent(type=EventType.ATTEMPT_FAILED, data={"attempt": 1}))
        await bus.emit(GenerationEvent(type=EventType.ATTEMPT_STARTED))

        assert len(bus.history) == 3
        failed = bus.events_of(EventType.ATTEMPT_FAILED)
        assert [e.data["attempt"] for e in failed] == [1]

    async def test_history_limit(self):
        bus = EventBus(max_history=5)
        for i in range(10):
            await bus.emit(GenerationEvent(type=EventType.ATTEMPT_STARTED, data={"i": i}))
        assert [e.data["i"] for e in bus.history] == [5, 6, 7, 8, 9]

    async def test_clear(self, bus: EventBus):
        bus.subscribe(EventType.ATTEMPT_STARTED, lambda e: None)
        await bus.emit(GenerationEvent(type=EventType.ATTEMPT_STARTED))
        bus.clear()
        assert bus.history == []
        assert bus._handlers == {}


class TestErrorHandling:
    async def test_handler_exception_does_not_propagate(self, bus: EventBus):
        async def bad_handler(event):
            raise ValueError("boom")

        received = []
        bus.subscribe(EventType.GENERATION_STARTED, bad_handler)
        bus.subscribe(EventType.GENERATION_STARTED, received.append)

        await bus.emit(GenerationEvent(type=EventType.GENERATION_STARTED))
        assert len(received) == 1
