"""Progress sink capability: where the client reports live generation state."""

from __future__ import annotations

import enum
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from rich.console import Console
from rich.markup import escape

_logger = logging.getLogger(__name__)


class ProgressKind(enum.Enum):
    LOADING = "loading"
    PARTIAL = "partial"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class ProgressState:
    """A single update pushed to a sink."""

    kind: ProgressKind
    content: str = ""
    attempt: int = 0
    max_attempts: int = 0

    @classmethod
    def loading(cls, attempt: int = 1, max_attempts: int = 1) -> ProgressState:
        return cls(ProgressKind.LOADING, "Generating content...", attempt, max_attempts)

    @classmethod
    def partial(cls, content: str, attempt: int = 1, max_attempts: int = 1) -> ProgressState:
        return cls(ProgressKind.PARTIAL, content, attempt, max_attempts)

    @classmethod
    def error(cls, message: str, attempt: int = 0, max_attempts: int = 0) -> ProgressState:
        return cls(ProgressKind.ERROR, message, attempt, max_attempts)

    @classmethod
    def done(cls, content: str = "") -> ProgressState:
        return cls(ProgressKind.DONE, content)


def content_of(candidate: dict[str, Any]) -> str:
    """Preview text for a candidate: ``html``, then ``content``, else JSON."""
    for key in ("html", "content"):
        value = candidate.get(key)
        if isinstance(value, str) and value:
            return value
    return json.dumps(candidate, ensure_ascii=False)


class ProgressSink(Protocol):
    """Anything with ``render(state)``; sync or async."""

    def render(self, state: ProgressState) -> Any:
        ...


class NullProgressSink:
    """Sink that ignores every update."""

    def render(self, state: ProgressState) -> None:
        return None


class RichProgressSink:
    """Console sink used by the CLI.

    Partial updates only print when the preview changed.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)
        self._last = ""

    def render(self, state: ProgressState) -> None:
        if state.kind is ProgressKind.LOADING:
            self._last = ""
            self.console.print(
                f"[dim]Generating content... "
                f"(attempt {state.attempt}/{state.max_attempts})[/dim]"
            )
        elif state.kind is ProgressKind.PARTIAL:
            if state.content == self._last:
                return
            self._last = state.content
            self.console.print(f"[cyan]{escape(state.content[-200:])}[/cyan]")
        elif state.kind is ProgressKind.ERROR:
            self.console.print(f"[red]Error: {escape(state.content)}[/red]")
        elif state.kind is ProgressKind.DONE:
            self.console.print("[green]Generation complete.[/green]")


async def push(sink: ProgressSink | None, state: ProgressState) -> None:
    """Deliver *state* to *sink*; sink failures are logged, never raised."""
    if sink is None:
        return
    try:
        result = sink.render(state)
        if inspect.isawaitable(result):
            await result
    except Exception:
        _logger.exception("Progress sink failed on %s update", state.kind.value)
