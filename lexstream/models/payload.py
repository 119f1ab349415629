"""Schema of one streamed generateContent chunk.

Only the fields the answer pipeline reads are modelled. Unknown fields are
ignored and missing ones default to "no contribution".
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Part(_WireModel):
    text: str | None = None


class Content(_WireModel):
    role: str | None = None
    parts: list[Part] = Field(default_factory=list)


class WebReference(_WireModel):
    uri: str | None = None
    title: str | None = None
    snippet: str | None = None
    # Occasionally populated with the destination URL instead of a redirect
    original_url: str | None = None
    source_url: str | None = None
    link: str | None = None
    url: str | None = None

    @property
    def best_url(self) -> str:
        return self.original_url or self.source_url or self.link or self.url or self.uri or ""


class GroundingChunk(_WireModel):
    web: WebReference | None = None


class GroundingMetadata(_WireModel):
    grounding_chunks: list[GroundingChunk] = Field(default_factory=list)
    web_search_queries: list[str] = Field(default_factory=list)


class Candidate(_WireModel):
    content: Content | None = None
    grounding_metadata: GroundingMetadata | None = None
    finish_reason: str | None = None


class GenerateContentChunk(_WireModel):
    candidates: list[Candidate] = Field(default_factory=list)
    model_version: str | None = None
