from __future__ import annotations

import re

from loguru import logger

from lexstream.models.answer import AssembledResponse, CitationFragment, ResponseDelta, Source
from lexstream.models.payload import GenerateContentChunk
from lexstream.stream.decoder import citations_from_chunk

ABSOLUTE_URL_RE = re.compile(r"https?://[^\s\)]+")
TITLE_PREFIXES = ("Source: ", "From: ", "Cited from: ")


def domain_from_title(title: str) -> str:
    """Best-effort domain from a citation title such as "bhf.org.uk"."""
    domain = title.strip()
    for prefix in TITLE_PREFIXES:
        if domain.startswith(prefix):
            domain = domain[len(prefix):]

    if "." in domain and " " not in domain:
        return domain

    match = re.search(r"https?://([^\s/]+)", domain)
    if match:
        return match.group(1)
    return ""


def source_from_fragment(fragment: CitationFragment, markers: tuple[str, ...] = ()) -> Source | None:
    """Normalize one upstream fragment into a candidate source.

    Returns None when the fragment carries no title, or neither a URL nor a
    title a domain can be read from.
    """
    title = fragment.title.strip()
    if not title:
        return None

    url = fragment.uri.strip()
    looks_bare = not url.startswith("http") and "." in url and "/" not in url
    if (not url or looks_bare) and "http" in title:
        match = ABSOLUTE_URL_RE.search(title)
        if match:
            url = match.group(0)

    if url and "." not in url and not url.startswith("http") and fragment.snippet and "http" in fragment.snippet:
        match = ABSOLUTE_URL_RE.search(fragment.snippet)
        if match and not any(marker in match.group(0).lower() for marker in markers):
            url = match.group(0)

    if not url:
        domain = domain_from_title(title)
        if not domain:
            return None
        url = f"https://{domain}"

    return Source(title=title, url=url, snippet=fragment.snippet)


class ResponseAccumulator:
    """Running text buffer plus an ordered, deduplicated source list."""

    def __init__(self, redirect_markers: tuple[str, ...] = ()) -> None:
        self._parts: list[str] = []
        self._sources: list[Source] = []
        self._keys: set[tuple[str, str]] = set()
        self._markers = redirect_markers
        self.last_payload: GenerateContentChunk | None = None

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def sources(self) -> list[Source]:
        return list(self._sources)

    def apply(self, delta: ResponseDelta) -> None:
        if delta.text:
            self._parts.append(delta.text)
        self.add_fragments(delta.citations)
        if delta.payload is not None:
            self.last_payload = delta.payload

    def add_fragments(self, fragments: list[CitationFragment]) -> int:
        added = 0
        for fragment in fragments:
            source = source_from_fragment(fragment, self._markers)
            if source is None:
                logger.debug(f"Skipping citation without usable title/url: {fragment}")
                continue
            if self.insert(source):
                added += 1
        return added

    def insert(self, source: Source) -> bool:
        if source.key in self._keys:
            return False
        self._keys.add(source.key)
        self._sources.append(source)
        return True

    def finalize(self, last_payload: GenerateContentChunk | None = None) -> AssembledResponse:
        """Assemble text and sources, re-scanning the final payload.

        Some responses only attach grounding metadata to the terminal chunk,
        so every candidate of the last parsed payload is scanned again.
        Citations that only appeared in a dropped frame stay lost.
        """
        payload = last_payload if last_payload is not None else self.last_payload
        if payload is not None:
            recovered = self.add_fragments(citations_from_chunk(payload, all_candidates=True))
            if recovered:
                logger.debug(f"Final extraction pass recovered {recovered} sources")

        return AssembledResponse(full_text=self.text, sources=tuple(self._sources))
