"""Event bus for generation progress."""

from ollama_lore.events.bus import EventBus

__all__ = ["EventBus"]
