"""Async pub/sub EventBus for recording generation progress."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from ollama_lore.types import EventType, GenerationEvent

_logger = logging.getLogger(__name__)

# Sentinel used for wildcard subscriptions (receive all events)
_WILDCARD = "*"

# Handlers may be sync or async callables taking a GenerationEvent
Handler = Callable[[GenerationEvent], Any]


class EventBus:
    """Lightweight async pub/sub event bus.

    - Subscribe to a specific EventType or ``"*"`` for all events.
    - Sync handlers are called directly, async handlers are awaited.
    - Handler exceptions are logged and never reach the emitter.
    - The last ``max_history`` events are kept for inspection.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._history: list[GenerationEvent] = []
        self._max_history = max_history

    def subscribe(self, event_type: EventType | str, handler: Handler) -> None:
        """Register *handler* for *event_type* (or ``"*"`` for all)."""
        self._handlers.setdefault(self._key(event_type), []).append(handler)

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        """Remove *handler* from *event_type*."""
        handlers = self._handlers.get(self._key(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: GenerationEvent) -> None:
        """Record *event* and fan it out to matching handlers."""
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        handlers = list(self._handlers.get(self._key(event.type), []))
        handlers.extend(self._handlers.get(_WILDCARD, []))
        if not handlers:
            return

        await asyncio.gather(
            *(self._call_handler(h, event) for h in handlers),
            return_exceptions=True,
        )

    @property
    def history(self) -> list[GenerationEvent]:
        """Return a copy of the event history."""
        return list(self._history)

    def events_of(self, event_type: EventType) -> list[GenerationEvent]:
        """Return recorded events of a single type, oldest first."""
        return [e for e in self._history if e.type is event_type]

    def clear(self) -> None:
        """Remove all handlers and history."""
        self._handlers.clear()
        self._history.clear()

    @staticmethod
    def _key(event_type: EventType | str) -> str:
        if isinstance(event_type, EventType):
            return event_type.value
        return str(event_type)

    @staticmethod
    async def _call_handler(handler: Handler, event: GenerationEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            _logger.exception(
                "EventBus handler %s raised for event %s",
                getattr(handler, "__name__", handler),
                event.type,
            )
