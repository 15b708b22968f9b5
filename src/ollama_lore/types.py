"""Shared data types for ollama-lore."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Request types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GenerationRequest:
    """Everything needed for one ``generate`` call.

    ``instructions`` is the fully rendered prompt text and
    ``content_schema`` the JSON Schema (as a mapping) the result must match.
    """

    model: str
    instructions: str
    content_schema: dict[str, Any]
    update_ui: bool = False


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Events emitted by the generation client."""

    GENERATION_STARTED = "generation.started"
    GENERATION_SUCCEEDED = "generation.succeeded"
    GENERATION_FAILED = "generation.failed"

    ATTEMPT_STARTED = "attempt.started"
    ATTEMPT_FAILED = "attempt.failed"


@dataclass
class GenerationEvent:
    """Event emitted via the EventBus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
