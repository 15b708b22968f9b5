"""LLM client, stream extraction and schema validation for ollama-lore."""

from ollama_lore.llm.client import AsyncLoreClient
from ollama_lore.llm.stream import (
    StreamDecoder,
    StreamState,
    extract_candidate,
    extract_final,
    scan,
)
from ollama_lore.llm.template import build_instructions, build_payload, render_template
from ollama_lore.llm.validation import (
    SchemaValidator,
    ValidationOutcome,
    load_schema,
    validate,
)

__all__ = [
    "AsyncLoreClient",
    "SchemaValidator",
    "StreamDecoder",
    "StreamState",
    "ValidationOutcome",
    "build_instructions",
    "build_payload",
    "extract_candidate",
    "extract_final",
    "load_schema",
    "render_template",
    "scan",
    "validate",
]
