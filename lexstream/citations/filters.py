from __future__ import annotations

from collections.abc import Iterable, Sequence

from loguru import logger

from lexstream.models.answer import Source

DEFAULT_DENYLIST: tuple[str, ...] = (
    "dr.oracle",
    "oracle.ai",
    "oracle.com",
    "google.com/search",
    "google.com/url",
    "internal",
    "tool",
    "generated",
)


class SourceFilter:
    """Drop sources whose URL or title contains a denylisted pattern.

    Redirect-marker URLs are not denylisted; they remain valid links.
    """

    def __init__(self, patterns: Sequence[str] = DEFAULT_DENYLIST):
        self.patterns = tuple(p.lower() for p in patterns if p)

    def keep(self, source: Source) -> bool:
        url = source.url.lower()
        title = (source.title or "").lower()
        for pattern in self.patterns:
            if pattern in url or pattern in title:
                logger.debug(f"Excluding source '{source.title}' ({source.url}): matched '{pattern}'")
                return False
        return True

    def apply(self, sources: Iterable[Source]) -> list[Source]:
        return [source for source in sources if self.keep(source)]
