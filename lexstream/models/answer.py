from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any
from urllib.parse import urlparse
from uuid import uuid4

from lexstream.models.payload import GenerateContentChunk


@dataclass(frozen=True, slots=True)
class Frame:
    """One server-sent event: the joined payload of its data lines."""

    data: str


@dataclass(frozen=True, slots=True)
class CitationFragment:
    """Grounding citation as reported upstream, before resolution."""

    title: str
    uri: str
    snippet: str | None = None


@dataclass(slots=True)
class ResponseDelta:
    text: str | None = None
    citations: list[CitationFragment] = field(default_factory=list)
    payload: GenerateContentChunk | None = None


@dataclass(slots=True)
class Source:
    title: str
    url: str
    snippet: str | None = None
    favicon: str | None = None
    id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def key(self) -> tuple[str, str]:
        return (self.url, self.title)

    @property
    def domain(self) -> str:
        """Host for display, without a leading www."""
        host = urlparse(self.url).hostname
        if not host:
            return self.url
        return host.removeprefix("www.")

    @property
    def favicon_url(self) -> str:
        if self.favicon:
            return self.favicon
        return f"https://www.google.com/s2/favicons?domain={self.domain}&sz=64"

    def with_url(self, url: str) -> Source:
        """Same source (same id) pointing at a rewritten URL."""
        return replace(self, url=url)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "favicon": self.favicon_url,
            "domain": self.domain,
        }


@dataclass(frozen=True, slots=True)
class AssembledResponse:
    full_text: str
    sources: tuple[Source, ...] = ()
    follow_up_questions: tuple[str, ...] = ()


class ChatMode(str, Enum):
    GENERAL = "general"
    CONTRACTS = "contracts"
    CASE_LAW = "case_law"
    REGULATIONS = "regulations"


@dataclass(frozen=True, slots=True)
class ChatContent:
    """One turn of conversation history in upstream wire shape."""

    role: str
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"role": self.role, "parts": [{"text": self.text}]}


def dedupe_sources(sources: list[Source]) -> list[Source]:
    """Keep the first source for each (url, title) pair, preserving order."""
    seen: set[tuple[str, str]] = set()
    unique: list[Source] = []
    for source in sources:
        if source.key in seen:
            continue
        seen.add(source.key)
        unique.append(source)
    return unique
