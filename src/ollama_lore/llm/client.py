"""Async streaming client for Ollama-style ``/api/generate`` endpoints.

``AsyncLoreClient.generate`` owns the attempt loop: build the payload,
stream the response under a per-attempt deadline, extract the final JSON
object, retry transport and parse failures with a fixed delay, and finally
gate the object through the content schema.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from ollama_lore.config import LoreConfig
from ollama_lore.errors import (
    ConfigurationError,
    GenerationError,
    TransportError,
    ValidationError,
)
from ollama_lore.events.bus import EventBus
from ollama_lore.progress import ProgressSink, ProgressState, content_of, push
from ollama_lore.types import EventType, GenerationEvent, GenerationRequest

from .stream import StreamDecoder, StreamState, extract_final, scan, strip_reasoning
from .template import build_instructions, build_payload
from .validation import SchemaValidator, load_schema

_logger = logging.getLogger(__name__)


class AsyncLoreClient:
    """Generation client bound to one configuration.

    Parameters
    ----------
    config:
        Endpoint, model and retry settings.
    sink:
        Optional progress sink receiving loading/partial/error/done states.
    bus:
        EventBus recording attempt events. A private one is created if omitted.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        config: LoreConfig,
        *,
        sink: ProgressSink | None = None,
        bus: EventBus | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.sink = sink
        self.bus = bus or EventBus()
        self._client = httpx.AsyncClient(
            headers=config.auth_headers,
            timeout=httpx.Timeout(config.timeout, connect=min(config.timeout, 10.0)),
            transport=transport,
        )

    async def __aenter__(self) -> AsyncLoreClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def build_request(
        self,
        highlighted_text: str,
        *,
        model: str | None = None,
        content_schema: str | dict[str, Any] | None = None,
        update_ui: bool | None = None,
    ) -> GenerationRequest:
        """Render a GenerationRequest from configured template and schema."""
        schema = load_schema(
            content_schema if content_schema is not None else self.config.content_schema,
        )
        model = model or self.config.model
        instructions = build_instructions(
            highlighted_text,
            schema,
            model=model,
            global_context=self.config.global_context,
            template=self.config.prompt_template,
        )
        return GenerationRequest(
            model=model,
            instructions=instructions,
            content_schema=schema,
            update_ui=self.config.update_ui if update_ui is None else update_ui,
        )

    async def generate(self, request: GenerationRequest) -> dict[str, Any]:
        """Stream a generation and return the schema-valid object.

        Raises one of ConfigurationError, TransportError, ParseError or
        ValidationError.
        """
        if not request.model or not request.model.strip():
            raise ConfigurationError("No model selected")
        if not request.instructions or not request.instructions.strip():
            raise ConfigurationError("Instructions are empty")
        if self.config.generation_try_limit < 1:
            raise ConfigurationError(
                "generation_try_limit must be at least 1",
                diagnostic=f"got {self.config.generation_try_limit}",
            )
        try:
            httpx.URL(self.config.generate_url)
        except httpx.InvalidURL as e:
            raise ConfigurationError(
                f"Malformed endpoint: {self.config.api_endpoint!r}", diagnostic=str(e),
            ) from e
        validator = SchemaValidator(request.content_schema)
        payload = build_payload(request, self.config.temperature)

        await self.bus.emit(GenerationEvent(
            type=EventType.GENERATION_STARTED,
            data={"model": request.model, "url": self.config.generate_url},
        ))

        result, attempts = await self._run_attempts(payload, request.update_ui)

        outcome = validator.validate(result)
        if not outcome.valid:
            error = ValidationError(
                "Response JSON does not match content schema.",
                attempts=attempts,
                diagnostic=outcome.diagnostic,
            )
            _logger.error("Error linting response JSON: %s", error)
            await self._fail(error, request.update_ui)
            raise error

        await self.bus.emit(GenerationEvent(
            type=EventType.GENERATION_SUCCEEDED,
            data={"attempts": attempts},
        ))
        if request.update_ui:
            await push(self.sink, ProgressState.done(content_of(result)))
        return result

    async def _run_attempts(
        self,
        payload: dict[str, Any],
        update_ui: bool,
    ) -> tuple[dict[str, Any], int]:
        """Attempt loop. Returns ``(object, attempt_number)``."""
        max_retries = self.config.generation_try_limit
        last_error: GenerationError = ConfigurationError(
            "generation_try_limit must be at least 1",
        )

        for attempt in range(1, max_retries + 1):
            await self.bus.emit(GenerationEvent(
                type=EventType.ATTEMPT_STARTED,
                data={"attempt": attempt, "max_attempts": max_retries},
            ))
            if update_ui:
                await push(self.sink, ProgressState.loading(attempt, max_retries))

            start = time.monotonic()
            try:
                result = await self._attempt(payload, update_ui, attempt)
            except GenerationError as e:
                if not e.retryable:
                    raise
                last_error = e
                _logger.warning(
                    "LLM request failed (attempt %d/%d): %s",
                    attempt, max_retries, e,
                )
                await self.bus.emit(GenerationEvent(
                    type=EventType.ATTEMPT_FAILED,
                    data={
                        "attempt": attempt,
                        "max_attempts": max_retries,
                        "kind": e.kind.value,
                        "message": str(e),
                    },
                ))
                if update_ui:
                    await push(self.sink, ProgressState.error(
                        f"Attempt {attempt}/{max_retries} failed: {e}",
                        attempt, max_retries,
                    ))
                if attempt < max_retries:
                    await asyncio.sleep(self.config.retry_delay)
                continue

            _logger.info(
                "Generated content in %.0f ms (attempt %d/%d)",
                (time.monotonic() - start) * 1000, attempt, max_retries,
            )
            return result, attempt

        terminal = type(last_error)(
            f"Failed to generate content after {max_retries} attempts: "
            f"{last_error.message}",
            attempts=max_retries,
            diagnostic=last_error.diagnostic,
        )
        await self._fail(terminal, update_ui)
        raise terminal from last_error

    async def _attempt(
        self,
        payload: dict[str, Any],
        update_ui: bool,
        attempt: int,
    ) -> dict[str, Any]:
        """One request-through-stream cycle with fresh stream state."""
        state = StreamState()
        decoder = StreamDecoder(self.config.stream_format)
        max_retries = self.config.generation_try_limit

        try:
            async with asyncio.timeout(self.config.timeout):
                async with self._client.stream(
                    "POST", self.config.generate_url, json=payload,
                ) as resp:
                    if not resp.is_success:
                        body = (await resp.aread()).decode(errors="replace")
                        raise TransportError(
                            f"HTTP error! status: {resp.status_code}",
                            diagnostic=body[:200] or None,
                        )
                    async for raw in resp.aiter_bytes():
                        state = await self._consume(
                            state, decoder.decode(raw), update_ui, attempt, max_retries,
                        )
                        if decoder.done:
                            break
                    state = await self._consume(
                        state, decoder.flush(), update_ui, attempt, max_retries,
                    )
        except TimeoutError as e:
            raise TransportError(
                f"Request timed out after {self.config.timeout:g}s",
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error: {e}") from e

        text = strip_reasoning(state.accumulated_text, self.config.reasoning_end_tag)
        return extract_final(text)

    async def _consume(
        self,
        state: StreamState,
        text: str,
        update_ui: bool,
        attempt: int,
        max_retries: int,
    ) -> StreamState:
        if not text:
            return state
        state, candidate = scan(state, text)
        if candidate is not None and update_ui:
            await push(self.sink, ProgressState.partial(
                content_of(candidate), attempt, max_retries,
            ))
        return state

    async def _fail(self, error: GenerationError, update_ui: bool) -> None:
        await self.bus.emit(GenerationEvent(
            type=EventType.GENERATION_FAILED,
            data={
                "kind": error.kind.value,
                "attempts": error.attempts,
                "message": str(error),
            },
        ))
        if update_ui:
            await push(self.sink, ProgressState.error(
                str(error), error.attempts, self.config.generation_try_limit,
            ))

    # ------------------------------------------------------------------
    # Endpoint utilities
    # ------------------------------------------------------------------

    async def list_models(self) -> list[str]:
        """Return model names advertised by ``GET /api/tags``."""
        try:
            resp = await self._client.get(self.config.tags_url)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"HTTP error! status: {e.response.status_code}",
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error: {e}") from e
        except ValueError as e:
            raise TransportError("Model list response is not JSON") from e

        if isinstance(data, dict):
            entries = data.get("models") or []
        elif isinstance(data, list):
            entries = data
        else:
            entries = []

        models: list[str] = []
        for entry in entries:
            if isinstance(entry, dict):
                name = entry.get("name") or entry.get("model")
            else:
                name = entry if isinstance(entry, str) else None
            if name:
                models.append(name)
        return models

    async def verify_connection(self) -> bool:
        """True when the endpoint answers ``GET /api/tags`` with 2xx."""
        try:
            resp = await self._client.get(self.config.tags_url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            _logger.warning("LLM connection verification failed: %s", e)
            return False
        return True
