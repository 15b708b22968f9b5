"""Stream decoding and incremental JSON extraction.

LLM streaming endpoints emit tokens, not framed messages, so the only way to
know that an object is complete is to try parsing after every new closing
brace. ``scan`` does that for live progress (advisory); ``extract_final``
is the authoritative post-stream extraction.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any

from ollama_lore.errors import ParseError, TransportError

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stream decoding
# ---------------------------------------------------------------------------

class StreamDecoder:
    """Turn raw body chunks into text fragments, incrementally.

    ``raw``: the body itself is the generated text.
    ``ndjson``: each line is an Ollama envelope
    ``{"response": "...", "done": false}``; only ``response`` is text.
    Once an envelope with ``done: true`` is seen, ``done`` is set and any
    further input is ignored.
    """

    def __init__(self, stream_format: str = "raw") -> None:
        if stream_format not in ("raw", "ndjson"):
            raise ValueError(f"Unknown stream format: {stream_format!r}")
        self._format = stream_format
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._line_buffer = ""
        self.done = False

    def decode(self, chunk: bytes) -> str:
        """Decode one body chunk and return the text it contributes."""
        text = self._decoder.decode(chunk)
        if self._format == "raw":
            return text
        return self._feed_lines(text)

    def flush(self) -> str:
        """Return any text held back at end of stream."""
        text = self._decoder.decode(b"", final=True)
        if self._format == "raw":
            return text
        out = self._feed_lines(text)
        rest, self._line_buffer = self._line_buffer, ""
        if rest.strip():
            out += self._envelope_text(rest)
        return out

    def _feed_lines(self, text: str) -> str:
        if self.done:
            return ""
        self._line_buffer += text
        *lines, self._line_buffer = self._line_buffer.split("\n")
        out = []
        for line in lines:
            out.append(self._envelope_text(line))
            if self.done:
                self._line_buffer = ""
                break
        return "".join(out)

    def _envelope_text(self, line: str) -> str:
        line = line.strip()
        if not line:
            return ""
        try:
            data = json.loads(line)
        except (ValueError, RecursionError):
            _logger.debug("Skipping non-JSON stream line: %.80s", line)
            return ""
        if not isinstance(data, dict):
            return ""
        if data.get("error"):
            raise TransportError(f"LLM endpoint reported an error: {data['error']}")
        if data.get("done"):
            self.done = True
        fragment = data.get("response")
        if fragment is None:
            # /api/chat shaped envelope
            fragment = (data.get("message") or {}).get("content", "")
        return fragment if isinstance(fragment, str) else ""


# ---------------------------------------------------------------------------
# Incremental extraction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StreamState:
    """Accumulated text of one attempt. Never shared between attempts."""

    accumulated_text: str = ""
    json_started: bool = False
    json_start: int = -1

    @property
    def json_buffer(self) -> str:
        """Text from the first ``{`` onward, or empty before it appears."""
        if not self.json_started:
            return ""
        return self.accumulated_text[self.json_start:]


def _parse_region(text: str, start: int) -> dict[str, Any] | None:
    end = text.rfind("}")
    if start < 0 or end < start:
        return None
    try:
        return json.loads(text[start : end + 1])
    except (ValueError, RecursionError):
        return None


def extract_candidate(text: str) -> dict[str, Any] | None:
    """Best-effort object between the first ``{`` and the last ``}``.

    Returns ``None`` while the object is still incomplete.
    """
    return _parse_region(text, text.find("{"))


def scan(state: StreamState, chunk: str) -> tuple[StreamState, dict[str, Any] | None]:
    """Append *chunk* to *state*; return the new state and any candidate.

    The JSON start position is fixed the first time a ``{`` is seen.
    """
    text = state.accumulated_text + chunk
    started, start = state.json_started, state.json_start
    if not started:
        start = text.find("{")
        started = start >= 0
    new_state = StreamState(accumulated_text=text, json_started=started, json_start=start)
    if not started:
        return new_state, None
    return new_state, _parse_region(text, start)


def strip_reasoning(text: str, end_tag: str) -> str:
    """Drop everything up to and including the last *end_tag*."""
    if not end_tag:
        return text
    idx = text.rfind(end_tag)
    if idx < 0:
        return text
    return text[idx + len(end_tag):]


def extract_final(text: str) -> dict[str, Any]:
    """Authoritative extraction after the stream has ended.

    Raises ParseError when no ``{...}`` region exists or it does not parse.
    The region always opens with ``{``, so a parsed value is an object.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end < start:
        raise ParseError("No valid JSON found in response")
    try:
        return json.loads(text[start : end + 1])
    except RecursionError as e:
        raise ParseError("Response JSON is nested too deeply") from e
    except ValueError as e:
        raise ParseError("Response JSON could not be parsed", diagnostic=str(e)) from e
