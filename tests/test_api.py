"""Tests for API routes."""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import FakeClient, answer_stream, no_network
from lexstream.api.deps import ChatRuntime
from lexstream.chat import ChatSession
from lexstream.citations.resolver import CitationResolver
from lexstream.config import settings
from lexstream.errors import QuotaExhaustedError
from lexstream.main import app
from lexstream.playback.scheduler import PlaybackScheduler
from lexstream.services.model_fallback import ModelFallbackController
from lexstream.sinks import InMemoryTranscript, QueuePresentationSink


def make_runtime(fake: FakeClient) -> ChatRuntime:
    presentation = QueuePresentationSink()
    transcript = InMemoryTranscript()
    session = ChatSession(
        fake,
        presentation=presentation,
        persistence=transcript,
        models=ModelFallbackController(settings.primary_model, settings.fallback_model),
        resolver=CitationResolver(transport=httpx.MockTransport(no_network)),
        scheduler=PlaybackScheduler(on_reveal=presentation.on_reveal, word_delay=0, whitespace_delay=0),
    )
    return ChatRuntime(session=session, presentation=presentation, transcript=transcript)


def parse_events(body: str) -> list[tuple[str, dict]]:
    events: list[tuple[str, dict]] = []
    name = None
    for line in body.splitlines():
        if line.startswith("event:"):
            name = line[len("event:"):].strip()
        elif line.startswith("data:") and name is not None:
            events.append((name, json.loads(line[len("data:"):].strip())))
            name = None
    return events


@pytest.fixture(autouse=True)
def reset_app_state():
    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = None
    app.state.chat_runtime = None
    yield
    app.state.chat_runtime = None


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "lexstream"


def test_list_models(client):
    response = client.get("/api/models")
    assert response.status_code == 200
    models = response.json()["models"]
    assert [(m["id"], m["role"], m["active"]) for m in models] == [
        (settings.primary_model, "primary", True),
        (settings.fallback_model, "fallback", False),
    ]


def test_chat_streams_reveal_then_sources_and_follow_ups(client, long_answer):
    runtime = make_runtime(FakeClient(answer_stream(long_answer)))
    app.state.chat_runtime = runtime

    response = client.post("/api/chat", json={"message": "Is a verbal contract binding?", "mode": "contracts"})

    assert response.status_code == 200
    events = parse_events(response.text)
    names = [name for name, _ in events]
    assert names[0] == "reveal"
    assert names[-3:] == ["sources", "follow_ups", "turn_complete"]
    assert set(names[:-3]) == {"reveal"}

    final_text = runtime.transcript.last.text
    assert events[-4][1]["text"] == final_text
    assert [s["url"] for s in events[-3][1]["sources"]] == [
        "https://www.law.cornell.edu/wex/contract",
        "https://www.uscourts.gov/rules",
    ]
    assert events[-2][1]["questions"][0] == "What remedies exist for breach of contract?"
    complete = events[-1][1]
    assert complete["text"] == final_text
    assert complete["sources_count"] == 2
    assert complete["model"] == settings.primary_model


def test_quota_exhausted_then_fallback(client, long_answer):
    fake = FakeClient(QuotaExhaustedError(model=settings.primary_model), answer_stream(long_answer))
    app.state.chat_runtime = make_runtime(fake)

    response = client.post("/api/chat", json={"message": "Is a verbal contract binding?"})
    events = parse_events(response.text)
    assert [name for name, _ in events] == ["quota_exhausted"]
    assert events[0][1]["can_retry_with_fallback"] is True

    response = client.post("/api/chat/fallback")
    events = parse_events(response.text)
    assert events[-1][0] == "turn_complete"
    assert events[-1][1]["model"] == settings.fallback_model
    assert fake.calls[1]["model"] == settings.fallback_model


def test_upstream_error_streams_error_event(client):
    from lexstream.errors import TransportError

    app.state.chat_runtime = make_runtime(FakeClient(TransportError("bad gateway", status_code=502)))

    response = client.post("/api/chat", json={"message": "Anything?"})

    assert parse_events(response.text) == [
        ("error", {"message": "HTTP Error 502: bad gateway", "status_code": 502})
    ]


def test_fallback_without_failed_message_conflicts(client):
    app.state.chat_runtime = make_runtime(FakeClient())
    response = client.post("/api/chat/fallback")
    assert response.status_code == 409


def test_blank_message_rejected(client):
    app.state.chat_runtime = make_runtime(FakeClient())
    response = client.post("/api/chat", json={"message": "   "})
    assert response.status_code == 400


def test_reset(client):
    runtime = make_runtime(FakeClient())
    runtime.session.models.mark_exhausted()
    app.state.chat_runtime = runtime

    response = client.post("/api/chat/reset")

    assert response.status_code == 200
    assert response.json() == {"status": "reset", "active_model": settings.primary_model}
    assert runtime.session.history == []


def test_missing_api_key_returns_503(client, monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "")

    response = client.post("/api/chat", json={"message": "Anything?"})

    assert response.status_code == 503
