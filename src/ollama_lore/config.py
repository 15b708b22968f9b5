"""Configuration management for ollama-lore.

Config discovery (first match wins):
  1. Explicit ``--config`` path
  2. ``./ollama_lore.yaml``
  3. ``~/.ollama_lore/ollama_lore.yaml``
  4. Built-in defaults
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import httpx
import pydantic
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from ollama_lore.errors import ConfigurationError

_logger = logging.getLogger(__name__)

CONFIG_FILENAME = "ollama_lore.yaml"
API_KEY_ENV = "OLLAMA_LORE_API_KEY"

_PROTOCOLS = ("http", "https")
_STREAM_FORMATS = ("raw", "ndjson")


class LoreConfig(BaseModel):
    """Endpoint, model and retry settings consumed by the generation client."""

    protocol: str = "http"
    api_endpoint: str = "localhost:11434"  # host[:port], no scheme
    api_key: str = ""
    model: str = "llama2"
    models: list[str] = Field(default_factory=lambda: ["llama2", "mistral"])

    # Retry / timeout
    generation_try_limit: int = 3
    timeout: float = 30.0  # seconds, per attempt
    retry_delay: float = 2.0  # seconds between attempts

    # Request shaping
    temperature: float = 0.7
    stream_format: str = "raw"  # "raw" | "ndjson"
    reasoning_end_tag: str = ""

    # Content
    content_schema: str = ""  # JSON Schema as JSON text
    prompt_template: str = ""  # empty = built-in system prompt
    global_context: str = ""
    update_ui: bool = True

    @field_validator("protocol")
    @classmethod
    def _check_protocol(cls, v: str) -> str:
        v = v.strip().lower().removesuffix("://")
        if v not in _PROTOCOLS:
            raise ValueError(f"protocol must be one of {_PROTOCOLS}, got {v!r}")
        return v

    @field_validator("api_endpoint")
    @classmethod
    def _check_endpoint(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        # Accept a pasted URL and keep only host[:port][/prefix]
        for scheme in ("http://", "https://"):
            if v.lower().startswith(scheme):
                v = v[len(scheme):]
        if not v or " " in v:
            raise ValueError(f"api_endpoint is malformed: {v!r}")
        return v

    @field_validator("generation_try_limit")
    @classmethod
    def _check_try_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("generation_try_limit must be at least 1")
        return v

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("retry_delay")
    @classmethod
    def _check_retry_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("retry_delay must not be negative")
        return v

    @field_validator("stream_format")
    @classmethod
    def _check_stream_format(cls, v: str) -> str:
        if v not in _STREAM_FORMATS:
            raise ValueError(f"stream_format must be one of {_STREAM_FORMATS}")
        return v

    @model_validator(mode="after")
    def _check_base_url(self) -> LoreConfig:
        try:
            httpx.URL(self.base_url)
        except httpx.InvalidURL as e:
            raise ValueError(f"api_endpoint is malformed: {e}") from e
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.api_endpoint}"

    @property
    def generate_url(self) -> str:
        return f"{self.base_url}/api/generate"

    @property
    def tags_url(self) -> str:
        return f"{self.base_url}/api/tags"

    @property
    def auth_headers(self) -> dict[str, str]:
        """Request headers; ``Authorization`` only when a key is configured."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


def config_from_mapping(raw: dict[str, Any]) -> LoreConfig:
    """Build a LoreConfig, reporting bad values as ConfigurationError."""
    data = dict(raw)
    if not data.get("api_key") and os.environ.get(API_KEY_ENV):
        data["api_key"] = os.environ[API_KEY_ENV]
    try:
        return LoreConfig.model_validate(data)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ())) or "config"
        raise ConfigurationError(
            f"Invalid configuration value for {loc}",
            diagnostic=first.get("msg"),
        ) from e


def load_config(
    config_path: str | Path | None = None,
) -> tuple[LoreConfig, Path | None]:
    """Load configuration from a YAML file.

    Returns ``(config, resolved_path)``. *resolved_path* is ``None`` when
    no file was found and built-in defaults are used.

    An explicit *config_path* that does not exist raises
    ``FileNotFoundError``; a file that is not a YAML mapping raises
    ``ConfigurationError``.
    """
    if config_path is None:
        for candidate in (
            Path.cwd() / CONFIG_FILENAME,
            Path.home() / ".ollama_lore" / CONFIG_FILENAME,
        ):
            if candidate.exists():
                config_path = candidate
                break
    elif not Path(config_path).exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return config_from_mapping({}), None

    resolved = Path(config_path)
    _logger.info("Loading config from %s", resolved)
    with open(resolved, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Config file {resolved} must contain a mapping at the top level",
        )
    return config_from_mapping(raw), resolved.resolve()
