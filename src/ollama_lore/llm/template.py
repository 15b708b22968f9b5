"""Prompt template rendering and wire payload construction.

Templates use ``{{Placeholder}}`` markers:

- ``{{Model}}`` model name
- ``{{GenerationContext}}`` the user-highlighted text
- ``{{ContentSchema}}`` schema as compact JSON
- ``{{ContentSchemaEscaped}}`` schema JSON escaped for embedding in a JSON string
- ``{{GlobalContext}}`` world-level context shared by all generations
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

from ollama_lore.errors import ConfigurationError
from ollama_lore.types import GenerationRequest

DEFAULT_TEMPERATURE = 0.7

DEFAULT_SYSTEM_PROMPT = (
    "You are a narrative generator for role-playing game journals. "
    "The content must be diegetic. Avoid anachronistic references. "
    "Your output must be a valid JSON object. "
    "The following JSON contains your output instructions and the format to "
    "which your output needs to be. Consider everything wrapped in square "
    "brackets '[]' as instructions for you to strictly abide by. "
    "Your response must strictly adhere to the following JSON schema: "
    "{{ContentSchema}}"
)

DEFAULT_PROMPT_TEMPLATE = (
    DEFAULT_SYSTEM_PROMPT
    + "\n\n{{GlobalContext}}"
    + "\n\nGenerate content for: {{GenerationContext}}"
)

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: str, values: Mapping[str, str]) -> str:
    """Substitute known ``{{Name}}`` placeholders; leave unknown ones as-is."""

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        return values[name] if name in values else match.group(0)

    return _PLACEHOLDER.sub(_sub, template)


def build_instructions(
    highlighted_text: str,
    schema: Mapping[str, Any],
    *,
    model: str = "",
    global_context: str = "",
    template: str = "",
) -> str:
    """Render the full prompt text sent as ``prompt`` to the endpoint."""
    if not highlighted_text or not highlighted_text.strip():
        raise ConfigurationError("No text selected to generate content for")

    schema_json = json.dumps(schema, separators=(",", ":"), ensure_ascii=False)
    context = global_context.strip()
    values = {
        "Model": model,
        "GenerationContext": highlighted_text.strip(),
        "ContentSchema": schema_json,
        "ContentSchemaEscaped": json.dumps(schema_json, ensure_ascii=False)[1:-1],
        "GlobalContext": f"World context: {context}" if context else "",
    }
    rendered = render_template(template or DEFAULT_PROMPT_TEMPLATE, values)
    # Collapse the blank block left by an empty global context
    return re.sub(r"\n{3,}", "\n\n", rendered).strip()


def build_payload(
    request: GenerationRequest,
    temperature: float = DEFAULT_TEMPERATURE,
) -> dict[str, Any]:
    """Wire body for ``POST /api/generate``."""
    return {
        "model": request.model,
        "prompt": request.instructions,
        "format": "json",
        "options": {"temperature": temperature},
        "stream": True,
    }
