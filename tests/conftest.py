"""Shared fixtures: configs, scripted streaming responses and a recording sink."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx
import pytest

from ollama_lore.config import LoreConfig
from ollama_lore.progress import ProgressState
from ollama_lore.types import GenerationRequest

HTML_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["html"],
    "properties": {"html": {"type": "string"}},
}


def stream_response(
    chunks: list[str | bytes],
    status_code: int = 200,
    delay: float = 0,
) -> httpx.Response:
    """Response whose body is delivered chunk by chunk."""

    async def body():
        for chunk in chunks:
            if delay:
                await asyncio.sleep(delay)
            yield chunk.encode() if isinstance(chunk, str) else chunk

    return httpx.Response(status_code, content=body())


class ScriptedTransport(httpx.MockTransport):
    """MockTransport that answers successive requests from a script.

    Each script entry is an ``httpx.Response``, an exception to raise, or a
    callable building one. The last entry repeats once the script runs out.
    """

    def __init__(self, script: list[Any]) -> None:
        self.script = script
        self.requests: list[httpx.Request] = []
        super().__init__(self._handle)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        entry = self.script[min(len(self.requests), len(self.script)) - 1]
        if isinstance(entry, Exception):
            raise entry
        if callable(entry) and not isinstance(entry, httpx.Response):
            return entry()
        return entry


class RecordingSink:
    def __init__(self) -> None:
        self.states: list[ProgressState] = []

    def render(self, state: ProgressState) -> None:
        self.states.append(state)


@pytest.fixture
def config() -> LoreConfig:
    return LoreConfig(
        api_endpoint="localhost:11434",
        model="mistral",
        generation_try_limit=3,
        retry_delay=0,
        timeout=5,
    )


@pytest.fixture
def request_factory() -> Callable[..., GenerationRequest]:
    def _make(
        schema: dict[str, Any] | None = None,
        update_ui: bool = False,
        model: str = "mistral",
    ) -> GenerationRequest:
        return GenerationRequest(
            model=model,
            instructions="Describe the ruined abbey.",
            content_schema=schema if schema is not None else HTML_SCHEMA,
            update_ui=update_ui,
        )

    return _make
