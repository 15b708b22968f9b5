"""Error taxonomy for content generation.

Every failure that crosses the public API is a ``GenerationError`` tagged
with one of four kinds, so callers can branch on ``err.kind`` (or on the
subclass) without inspecting message text.
"""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    """Classified failure kinds."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    PARSE = "parse"
    VALIDATION = "validation"


# Kinds that the attempt loop retries
_RETRYABLE = frozenset({ErrorKind.TRANSPORT, ErrorKind.PARSE})


class GenerationError(Exception):
    """Base error with kind, attempt count and optional diagnostic."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 0,
        diagnostic: str | None = None,
    ) -> None:
        self.message = message
        self.attempts = attempts
        self.diagnostic = diagnostic
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE

    def __str__(self) -> str:
        if self.diagnostic:
            return f"{self.message} ({self.diagnostic})"
        return self.message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"attempts={self.attempts}, message={self.message!r})"
        )


class ConfigurationError(GenerationError):
    """Missing/malformed endpoint, request or schema. Never retried."""

    kind = ErrorKind.CONFIGURATION


class TransportError(GenerationError):
    """Non-2xx status, network failure, or timeout."""

    kind = ErrorKind.TRANSPORT


class ParseError(GenerationError):
    """Stream ended without a locatable, parseable JSON object."""

    kind = ErrorKind.PARSE


class ValidationError(GenerationError):
    """Final object does not satisfy the content schema. Never retried."""

    kind = ErrorKind.VALIDATION
