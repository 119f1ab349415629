"""Post-processing applied to the main answer before playback."""
from __future__ import annotations

import re
from urllib.parse import urlparse

from lexstream.models.answer import Source

CITATION_MARKER_RE = re.compile(r"\[\d+\]")
SOURCES_SECTION_RE = re.compile(
    r"(^|\n)[ \t]*(?:#{1,6}[ \t]*)?(?:\*\*)?Sources?(?:\*\*)?[ \t]*(?::|\n|$)[\s\S]*$",
    re.IGNORECASE,
)
URL_UNAVAILABLE_RE = re.compile(r"\(?\s*URL unavailable\s*\)?", re.IGNORECASE)
URL_LABEL_RE = re.compile(r"\bURL:\s*", re.IGNORECASE)
INLINE_URL_RE = re.compile(r"https?://[A-Za-z0-9.\-/_?=#%&+:;,]+[A-Za-z0-9/#]")
BARE_DOMAIN_RE = re.compile(r"\b([A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,})\b")
URL_TRIM_CHARS = ".,);]"


def has_citation_markers(text: str) -> bool:
    return CITATION_MARKER_RE.search(text) is not None


def sanitize_answer(text: str) -> str:
    """Strip an inline "Sources" section and placeholder URL text.

    Falls back to the trimmed raw text when sanitizing would leave nothing.
    """
    result = SOURCES_SECTION_RE.sub(r"\1", text)
    result = URL_UNAVAILABLE_RE.sub("", result)
    result = URL_LABEL_RE.sub("", result)

    while "  " in result:
        result = result.replace("  ", " ")
    while "\n\n\n" in result:
        result = result.replace("\n\n\n", "\n\n")

    result = result.strip()
    if not result:
        return text.strip()
    return result


def derive_sources(text: str) -> list[Source]:
    """Sources read from inline URLs and bare domains in the answer text."""
    seen: set[str] = set()
    sources: list[Source] = []

    for match in INLINE_URL_RE.finditer(text):
        url = match.group(0).strip(URL_TRIM_CHARS)
        if not url or url in seen:
            continue
        seen.add(url)
        sources.append(Source(title=urlparse(url).hostname or url, url=url))

    # Domains that are part of a full URL were handled above
    remainder = INLINE_URL_RE.sub(" ", text)
    known_hosts = {s.title.lower() for s in sources}
    for match in BARE_DOMAIN_RE.finditer(remainder):
        domain = match.group(1).strip(URL_TRIM_CHARS).lower()
        if not domain or domain in known_hosts:
            continue
        url = f"https://{domain}"
        if url in seen:
            continue
        seen.add(url)
        sources.append(Source(title=domain, url=url))

    return sources


def inject_citations(text: str, sources: list[Source]) -> str:
    """Distribute [n] markers over paragraphs that lack them."""
    if not sources:
        return text

    def markers(start: int, end: int) -> str:
        return "".join(f"[{i + 1}]" for i in range(start, end))

    paragraphs = [p for p in text.split("\n\n") if p.strip()]
    if not paragraphs:
        return text + markers(0, len(sources))

    per_paragraph = max(1, len(sources) // len(paragraphs))
    source_index = 0
    modified: list[str] = []

    for paragraph in paragraphs:
        if has_citation_markers(paragraph) or source_index >= len(sources):
            modified.append(paragraph)
            continue

        end = min(source_index + per_paragraph, len(sources))
        to_add = markers(source_index, end)
        cut = max(paragraph.rfind("."), paragraph.rfind("!"), paragraph.rfind("?"))
        if cut >= 0:
            paragraph = paragraph[: cut + 1] + to_add + paragraph[cut + 1:]
        else:
            paragraph += to_add
        source_index = end
        modified.append(paragraph)

    result = "\n\n".join(modified)
    if source_index < len(sources):
        result += markers(source_index, len(sources))
    return result


def is_too_short(text: str, *, min_words: int = 60, min_sentences: int = 3) -> bool:
    words = text.split()
    sentences = [s for s in re.split(r"[.!?]", text) if s]
    return len(words) < min_words or len(sentences) < min_sentences
