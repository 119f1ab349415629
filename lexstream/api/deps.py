from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from fastapi import HTTPException, Request

from lexstream.chat import ChatSession
from lexstream.config import settings
from lexstream.errors import ConfigurationError
from lexstream.llm_client import get_model
from lexstream.sinks import InMemoryTranscript, QueuePresentationSink


@dataclass
class ChatRuntime:
    """The app's conversation plus the sinks it reports to."""

    session: ChatSession
    presentation: QueuePresentationSink
    transcript: InMemoryTranscript
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def build_runtime() -> ChatRuntime:
    presentation = QueuePresentationSink()
    transcript = InMemoryTranscript()
    session = ChatSession.from_settings(presentation=presentation, persistence=transcript)
    return ChatRuntime(session=session, presentation=presentation, transcript=transcript)


def get_runtime(request: Request) -> ChatRuntime:
    runtime = getattr(request.app.state, "chat_runtime", None)
    if runtime is None:
        try:
            runtime = build_runtime()
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e))
        request.app.state.chat_runtime = runtime
    return runtime


def get_available_models(active: str | None = None) -> list[dict[str, object]]:
    """Return the primary and fallback models, flagging the active one."""
    active = active or get_model()
    return [
        {"id": settings.primary_model, "role": "primary", "active": active == settings.primary_model},
        {"id": settings.fallback_model, "role": "fallback", "active": active == settings.fallback_model},
    ]
