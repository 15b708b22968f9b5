"""ollama-lore: schema-validated narrative generation from a streaming LLM."""

from ollama_lore.config import LoreConfig, load_config
from ollama_lore.errors import (
    ConfigurationError,
    ErrorKind,
    GenerationError,
    ParseError,
    TransportError,
    ValidationError,
)
from ollama_lore.llm.client import AsyncLoreClient
from ollama_lore.types import GenerationRequest

__version__ = "0.3.0"

__all__ = [
    "AsyncLoreClient",
    "ConfigurationError",
    "ErrorKind",
    "GenerationError",
    "GenerationRequest",
    "LoreConfig",
    "ParseError",
    "TransportError",
    "ValidationError",
    "load_config",
]
