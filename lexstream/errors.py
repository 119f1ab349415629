"""Typed errors surfaced to callers of a chat turn."""
from __future__ import annotations


class LexstreamError(Exception):
    """Base class for errors raised out of the answer pipeline."""


class ConfigurationError(LexstreamError):
    pass


class TransportError(LexstreamError):
    """Connection failure or non-success status on the streaming call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"HTTP Error {self.status_code}: {self.message}"


class QuotaExhaustedError(TransportError):
    """The upstream model reported resource exhaustion (HTTP 429)."""

    user_message = (
        "The service is temporarily unavailable due to high demand. "
        "Please try again with the fallback model."
    )

    def __init__(self, message: str = "", status_code: int | None = 429, model: str | None = None):
        super().__init__(message or self.user_message, status_code=status_code)
        self.model = model


class EmptyResponseError(LexstreamError):
    """The stream completed without any usable answer text."""

    def __init__(self, message: str = "No response received. Please try again."):
        super().__init__(message)
