from __future__ import annotations

import json

import httpx
import pytest

from lexstream.models.answer import Source

REDIRECT = (
    "https://vertexaisearch.cloud.google.com/grounding-api-redirect/AbC"
    "?originalUrl=https%3A%2F%2Fwww.uscourts.gov%2Frules"
)
FOLLOW_UPS = (
    "\n---FOLLOW_UP_QUESTIONS---\n"
    "What remedies exist for breach of contract?\n"
    "How is consideration defined?\n"
    "Why?\n"
)


def sse(payload: dict) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


def chunk_payload(text: str | None = None, citations: list[tuple[str, str]] | None = None) -> dict:
    candidate: dict = {}
    if text is not None:
        candidate["content"] = {"role": "model", "parts": [{"text": text}]}
    if citations:
        candidate["groundingMetadata"] = {
            "groundingChunks": [{"web": {"uri": uri, "title": title}} for uri, title in citations]
        }
    return {"candidates": [candidate]}


def rechunk(data: bytes, size: int = 7) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


def answer_stream(answer: str, *, follow_ups: str = FOLLOW_UPS) -> list[bytes]:
    """A realistic upstream stream: split text, noise frames and grounding."""
    half = len(answer) // 2
    body = (
        sse(chunk_payload(answer[:half]))
        + b": keep-alive\n\n"
        + b"data: {broken\n\n"
        + sse(
            chunk_payload(
                answer[half:],
                citations=[
                    ("https://www.law.cornell.edu/wex/contract", "Cornell LII"),
                    ("https://internal.example/notes", "Internal notes"),
                ],
            )
        )
        + sse(chunk_payload(follow_ups, citations=[(REDIRECT, "U.S. Courts")]))
        + b"data: [DONE]\n\n"
    )
    return rechunk(body)


def no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


class FakeClient:
    """Replays scripted byte streams, one script per call."""

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.calls: list[dict] = []

    async def stream_generate(self, contents, *, model, system_instruction):
        self.calls.append(
            {"contents": list(contents), "model": model, "system_instruction": system_instruction}
        )
        script = self.scripts.pop(0)
        if isinstance(script, Exception):
            raise script
        for piece in script:
            yield piece


class RecordingSink:
    def __init__(self):
        self.reveals: list[str] = []
        self.sources: list[list[Source]] = []
        self.follow_ups: list[list[str]] = []

    def on_reveal(self, text: str) -> None:
        self.reveals.append(text)

    def on_sources(self, sources: list[Source]) -> None:
        self.sources.append(sources)

    def on_follow_ups(self, questions: list[str]) -> None:
        self.follow_ups.append(questions)


@pytest.fixture
def long_answer() -> str:
    sentence = "A valid contract generally requires an offer, an acceptance and consideration between the parties. "
    return (sentence * 4).strip() + "\n\n" + (sentence * 3).strip()
