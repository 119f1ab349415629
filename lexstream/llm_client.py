"""Streaming REST client for Gemini generateContent with search grounding."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator, Sequence

import httpx
from loguru import logger

from lexstream.config import settings
from lexstream.errors import ConfigurationError, QuotaExhaustedError, TransportError
from lexstream.models.answer import ChatContent

QUOTA_STATUS = 429


@dataclass
class GenerationConfig:
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 40
    max_output_tokens: int = 8192

    def to_payload(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topP": self.top_p,
            "topK": self.top_k,
            "maxOutputTokens": self.max_output_tokens,
        }


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
        generation: GenerationConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.generation = generation or GenerationConfig()
        self._transport = transport

    def stream_url(self, model: str) -> str:
        return f"{self.base_url}/models/{model}:streamGenerateContent"

    def build_payload(self, contents: Sequence[ChatContent], *, system_instruction: str) -> dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [content.to_payload() for content in contents],
            "generationConfig": self.generation.to_payload(),
            "tools": [{"google_search": {}}],
        }

    async def stream_generate(
        self,
        contents: Sequence[ChatContent],
        *,
        model: str,
        system_instruction: str,
    ) -> AsyncIterator[bytes]:
        """Yield raw event-stream bytes as the transport delivers them.

        Raises QuotaExhaustedError on HTTP 429 and TransportError for any
        other non-success status or connection failure. Never retries.
        """
        payload = self.build_payload(contents, system_instruction=system_instruction)
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                async with client.stream(
                    "POST",
                    self.stream_url(model),
                    params={"alt": "sse"},
                    headers=headers,
                    json=payload,
                ) as response:
                    if not response.is_success:
                        await self._raise_for_status(response, model)
                    async for chunk in response.aiter_bytes():
                        if chunk:
                            yield chunk
            except httpx.HTTPError as e:
                logger.error(f"Streaming request to {model} failed: {e!r}")
                raise TransportError(f"Network error: {e}") from e

    @staticmethod
    async def _raise_for_status(response: httpx.Response, model: str) -> None:
        status = response.status_code
        message = f"HTTP Error {status}"
        try:
            body = (await response.aread()).decode("utf-8", errors="replace").strip()
            if body:
                message = body
        except httpx.HTTPError as e:
            logger.debug(f"Could not read error body: {e!r}")

        if status == QUOTA_STATUS:
            logger.warning(f"Quota exhausted for model {model}")
            raise QuotaExhaustedError(message, status_code=status, model=model)
        logger.error(f"Upstream returned HTTP {status} for model {model}: {message[:200]}")
        raise TransportError(message, status_code=status)


def get_client() -> GeminiClient:
    """Build a client from application settings."""
    api_key = settings.gemini_api_key.strip()
    if not api_key or api_key == "YOUR_API_KEY":
        raise ConfigurationError("GEMINI_API_KEY is not configured")
    return GeminiClient(
        api_key,
        base_url=settings.gemini_base_url.strip() or "https://generativelanguage.googleapis.com/v1beta",
        timeout=settings.request_timeout_seconds,
        generation=GenerationConfig(
            temperature=settings.generation_temperature,
            top_p=settings.generation_top_p,
            top_k=settings.generation_top_k,
            max_output_tokens=settings.max_output_tokens,
        ),
    )


def get_model() -> str:
    """Model id used for a fresh conversation."""
    return settings.primary_model
