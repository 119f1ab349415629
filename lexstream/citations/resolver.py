"""Resolve grounding redirect links to the pages they point at.

Resolution is an ordered chain of pure tiers, each ``(uri) -> url | None``,
tried until one succeeds. Only a URI that is still a redirect marker after
every tier is probed over the network. A failed probe keeps the redirect,
which stays clickable for a limited time upstream; no URL is ever guessed.
"""
from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Callable, Sequence
from functools import partial
from urllib.parse import parse_qsl, unquote, urlsplit

import httpx
from loguru import logger

from lexstream.models.answer import CitationFragment, Source, dedupe_sources
from lexstream.services import logger as log_service

# Bare "vertexai" is not a marker: it also matches ordinary pages about Vertex AI
# (e.g. cloud.google.com/vertexai/docs), which must be kept as cited.
DEFAULT_REDIRECT_MARKERS: tuple[str, ...] = ("vertexaisearch", "grounding-api-redirect")

# Query keys that may carry the destination, most likely first
REDIRECT_PARAM_NAMES: tuple[str, ...] = (
    "originalUrl",
    "url",
    "link",
    "source",
    "target",
    "redirect",
    "destination",
    "href",
    "source_url",
    "original_url",
)

EMBEDDED_URL_RE = re.compile(r"https?://[^\s\)\?&]+")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)
PROBE_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

Tier = Callable[[str], str | None]


def is_absolute(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def is_redirect(url: str, markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS) -> bool:
    lowered = url.lower()
    return any(marker in lowered for marker in markers)


def _destination(value: str, markers: Sequence[str]) -> str | None:
    decoded = unquote(value)
    if is_absolute(decoded) and not is_redirect(decoded, markers):
        return decoded
    return None


def accept_absolute(uri: str, markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS) -> str | None:
    if is_absolute(uri) and not is_redirect(uri, markers):
        return uri
    return None


def promote_bare_domain(uri: str, markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS) -> str | None:
    if is_absolute(uri) or "." not in uri or " " in uri or not uri:
        return None
    if is_redirect(uri, markers):
        return None
    return f"https://{uri}"


def from_query_params(uri: str, markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS) -> str | None:
    if not is_redirect(uri, markers):
        return None
    params = parse_qsl(urlsplit(uri).query, keep_blank_values=False)
    if not params:
        return None

    by_name: dict[str, str] = {}
    for name, value in params:
        by_name.setdefault(name.lower(), value)

    for name in REDIRECT_PARAM_NAMES:
        value = by_name.get(name.lower())
        if value:
            found = _destination(value, markers)
            if found:
                return found

    # Any other parameter that holds a destination
    for _, value in params:
        found = _destination(value, markers)
        if found:
            return found
    return None


def from_fragment(uri: str, markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS) -> str | None:
    if not is_redirect(uri, markers):
        return None
    fragment = urlsplit(uri).fragment
    if not fragment:
        return None
    return _destination(fragment, markers)


def from_embedded_url(uri: str, markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS) -> str | None:
    """Absolute URL embedded in the path, then anywhere in the string."""
    if not is_redirect(uri, markers):
        return None
    path = urlsplit(uri).path
    for haystack in (path, uri):
        if "http" not in haystack:
            continue
        for match in EMBEDDED_URL_RE.finditer(haystack):
            candidate = match.group(0)
            if not is_redirect(candidate, markers):
                return candidate
    return None


STATIC_TIERS: tuple[tuple[str, Callable[..., str | None]], ...] = (
    ("absolute", accept_absolute),
    ("bare_domain", promote_bare_domain),
    ("query_param", from_query_params),
    ("fragment", from_fragment),
    ("embedded_url", from_embedded_url),
)


def first_success(tiers: Sequence[tuple[str, Tier]], uri: str) -> tuple[str, str] | None:
    """Run tiers in order; return (tier_name, url) for the first that succeeds."""
    for name, tier in tiers:
        found = tier(uri)
        if found:
            return name, found
    return None


def resolve_static(uri: str, markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS) -> str | None:
    """Resolve without any network I/O."""
    hit = first_success([(name, partial(tier, markers=markers)) for name, tier in STATIC_TIERS], uri)
    return hit[1] if hit else None


class CitationResolver:
    def __init__(
        self,
        *,
        redirect_markers: Sequence[str] = DEFAULT_REDIRECT_MARKERS,
        probe_timeout: float = 10.0,
        max_parallel: int = 4,
        resolution_timeout: float | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.markers = tuple(m.lower() for m in redirect_markers)
        self.probe_timeout = probe_timeout
        self.max_parallel = max(int(max_parallel), 1)
        # HEAD then GET may each use the full probe timeout
        self.resolution_timeout = resolution_timeout or probe_timeout * 2
        self.user_agent = user_agent
        self._transport = transport
        self.tiers: list[tuple[str, Tier]] = [
            (name, partial(tier, markers=self.markers)) for name, tier in STATIC_TIERS
        ]

    def is_redirect(self, url: str) -> bool:
        return is_redirect(url, self.markers)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            timeout=self.probe_timeout,
            headers={"User-Agent": self.user_agent, "Accept": PROBE_ACCEPT},
        )

    def _from_response(self, response: httpx.Response) -> str | None:
        final_url = str(response.url)
        if is_absolute(final_url) and not self.is_redirect(final_url):
            return final_url
        location = response.headers.get("location", "")
        if location and is_absolute(location) and not self.is_redirect(location):
            return location
        return None

    async def probe(self, uri: str, client: httpx.AsyncClient) -> str | None:
        """Follow the redirect live: HEAD first, GET when HEAD fails."""
        try:
            response = await client.head(uri)
            return self._from_response(response)
        except httpx.HTTPError as e:
            logger.debug(f"HEAD probe failed for {uri[:80]}: {e!r}; retrying with GET")

        try:
            response = await client.get(uri)
            return self._from_response(response)
        except httpx.HTTPError as e:
            logger.warning(f"Redirect probe failed for {uri[:80]}: {e!r}")
            return None

    async def resolve_url(self, uri: str, client: httpx.AsyncClient | None = None) -> str:
        started = time.monotonic()
        hit = first_success(self.tiers, uri)
        if hit is not None:
            tier, url = hit
            log_service.log_resolution(uri, url, tier)
            return url

        if not self.is_redirect(uri):
            return uri

        if client is None:
            async with self._client() as own_client:
                return await self._resolve_live(uri, own_client, started)
        return await self._resolve_live(uri, client, started)

    async def _resolve_live(self, uri: str, client: httpx.AsyncClient, started: float) -> str:
        try:
            found = await asyncio.wait_for(self.probe(uri, client), timeout=self.resolution_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Redirect probe timed out after {self.resolution_timeout}s: {uri[:80]}")
            found = None

        resolved = found or uri
        log_service.log_resolution(
            uri,
            resolved,
            "live_probe" if found else "unresolved",
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return resolved

    async def resolve(
        self,
        item: CitationFragment | Source,
        client: httpx.AsyncClient | None = None,
    ) -> Source:
        if isinstance(item, CitationFragment):
            item = Source(title=item.title, url=item.uri, snippet=item.snippet)
        url = await self.resolve_url(item.url, client)
        return item if url == item.url else item.with_url(url)

    async def resolve_all(self, sources: Sequence[Source]) -> list[Source]:
        """Resolve every source with bounded parallelism, preserving order.

        Returns only after every resolution has finished or timed out.
        """
        if not sources:
            return []

        semaphore = asyncio.Semaphore(self.max_parallel)

        async with self._client() as client:

            async def run_one(source: Source) -> Source:
                async with semaphore:
                    return await self.resolve(source, client)

            raw_results = await asyncio.gather(
                *(run_one(source) for source in sources),
                return_exceptions=True,
            )

        resolved: list[Source] = []
        for source, item in zip(sources, raw_results):
            if isinstance(item, Exception):
                logger.warning(f"Resolution failed for {source.url[:80]}: {item!r}")
                resolved.append(source)
            else:
                resolved.append(item)

        # Two redirects may land on the same page
        return dedupe_sources(resolved)
