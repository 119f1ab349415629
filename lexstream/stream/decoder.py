from __future__ import annotations

import json

from loguru import logger
from pydantic import ValidationError

from lexstream.models.answer import CitationFragment, Frame, ResponseDelta
from lexstream.models.payload import Candidate, GenerateContentChunk


def text_from_chunk(chunk: GenerateContentChunk) -> str | None:
    """Concatenated text parts of the first candidate."""
    if not chunk.candidates:
        return None
    content = chunk.candidates[0].content
    if content is None:
        return None
    texts = [part.text for part in content.parts if part.text]
    if not texts:
        return None
    return "".join(texts)


def citations_from_candidate(candidate: Candidate) -> list[CitationFragment]:
    metadata = candidate.grounding_metadata
    if metadata is None:
        return []

    fragments: list[CitationFragment] = []
    for chunk in metadata.grounding_chunks:
        web = chunk.web
        if web is None:
            continue
        fragments.append(
            CitationFragment(
                title=(web.title or "").strip(),
                uri=web.best_url.strip(),
                snippet=web.snippet,
            )
        )
    return fragments


def citations_from_chunk(
    chunk: GenerateContentChunk,
    *,
    all_candidates: bool = False,
) -> list[CitationFragment]:
    candidates = chunk.candidates if all_candidates else chunk.candidates[:1]
    fragments: list[CitationFragment] = []
    for candidate in candidates:
        fragments.extend(citations_from_candidate(candidate))
    return fragments


class ChunkDecoder:
    """Decode frames into text deltas and citation fragments.

    A frame that is not valid JSON, or whose JSON does not fit the chunk
    schema, is dropped and the stream carries on.
    """

    def __init__(self) -> None:
        self.decoded = 0
        self.dropped = 0

    def decode(self, frame: Frame) -> ResponseDelta | None:
        try:
            raw = json.loads(frame.data)
        except json.JSONDecodeError as e:
            self.dropped += 1
            logger.debug(f"Dropping undecodable frame ({e.msg}): {frame.data[:120]!r}")
            return None

        if not isinstance(raw, dict):
            self.dropped += 1
            logger.debug(f"Dropping frame with non-object payload: {type(raw).__name__}")
            return None

        try:
            chunk = GenerateContentChunk.model_validate(raw)
        except ValidationError as e:
            self.dropped += 1
            logger.debug(f"Dropping frame that does not match chunk schema: {e.error_count()} errors")
            return None

        self.decoded += 1
        return ResponseDelta(
            text=text_from_chunk(chunk),
            citations=citations_from_chunk(chunk),
            payload=chunk,
        )
