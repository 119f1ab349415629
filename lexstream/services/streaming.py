from __future__ import annotations

from typing import Any

from lexstream.models.answer import Source
from lexstream.models.events import EventType, SSEEvent


def reveal(text: str) -> SSEEvent:
    """Everything revealed so far, not just the newest token."""
    return SSEEvent(event=EventType.REVEAL, data={"text": text})


def sources(items: list[Source]) -> SSEEvent:
    return SSEEvent(event=EventType.SOURCES, data={"sources": [s.to_dict() for s in items]})


def follow_ups(questions: list[str]) -> SSEEvent:
    return SSEEvent(event=EventType.FOLLOW_UPS, data={"questions": list(questions)})


def turn_complete(text: str, source_count: int, model: str, runtime_ms: int | None = None) -> SSEEvent:
    data: dict[str, Any] = {"text": text, "sources_count": source_count, "model": model}
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.TURN_COMPLETE, data=data)


def quota_exhausted(message: str, model: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message, "can_retry_with_fallback": True}
    if model:
        data["model"] = model
    return SSEEvent(event=EventType.QUOTA_EXHAUSTED, data=data)


def error(message: str, status_code: int | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if status_code is not None:
        data["status_code"] = status_code
    return SSEEvent(event=EventType.ERROR, data=data)
