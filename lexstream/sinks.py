"""Contracts with the presentation and persistence layers."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from lexstream.models.answer import Source
from lexstream.models.events import SSEEvent
from lexstream.services import streaming


class PresentationSink(Protocol):
    def on_reveal(self, text: str) -> None: ...

    def on_sources(self, sources: list[Source]) -> None: ...

    def on_follow_ups(self, questions: list[str]) -> None: ...


class PersistenceSink(Protocol):
    def commit(self, text: str, sources: list[Source], follow_ups: list[str]) -> None: ...


@dataclass
class CommittedTurn:
    text: str
    sources: list[Source]
    follow_ups: list[str]
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryTranscript:
    """Persistence sink keeping committed assistant turns in order."""

    def __init__(self) -> None:
        self.turns: list[CommittedTurn] = []

    def commit(self, text: str, sources: list[Source], follow_ups: list[str]) -> None:
        self.turns.append(CommittedTurn(text=text, sources=list(sources), follow_ups=list(follow_ups)))

    @property
    def last(self) -> CommittedTurn | None:
        return self.turns[-1] if self.turns else None


class QueuePresentationSink:
    """Presentation sink that turns callbacks into SSE events on a queue."""

    def __init__(self, queue: asyncio.Queue[SSEEvent] | None = None):
        self.queue: asyncio.Queue[SSEEvent] = queue or asyncio.Queue()

    def on_reveal(self, text: str) -> None:
        self.queue.put_nowait(streaming.reveal(text))

    def on_sources(self, sources: list[Source]) -> None:
        self.queue.put_nowait(streaming.sources(sources))

    def on_follow_ups(self, questions: list[str]) -> None:
        self.queue.put_nowait(streaming.follow_ups(questions))

    def drain(self) -> list[SSEEvent]:
        events: list[SSEEvent] = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events
