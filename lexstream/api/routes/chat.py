from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sse_starlette.sse import EventSourceResponse

from lexstream.api.deps import ChatRuntime, get_runtime
from lexstream.errors import LexstreamError, QuotaExhaustedError, TransportError
from lexstream.models.schemas import ChatRequest, ResetResponse
from lexstream.playback.scheduler import PlaybackSession
from lexstream.services import logger as log_service
from lexstream.services import streaming

router = APIRouter(prefix="/api/chat", tags=["chat"])

QUEUE_POLL_SECONDS = 0.1


async def _turn_events(
    runtime: ChatRuntime,
    start_turn: Callable[[], Awaitable[PlaybackSession]],
) -> AsyncIterator[dict[str, str]]:
    """Run one turn and relay its presentation events until it is committed."""
    async with runtime.lock:
        runtime.presentation.drain()
        session = runtime.session
        started = time.monotonic()

        try:
            playback = await start_turn()
        except QuotaExhaustedError as e:
            log_service.log_event("quota_exhausted", "Quota exhausted", model=e.model)
            yield streaming.quota_exhausted(e.user_message, e.model).to_sse()
            return
        except TransportError as e:
            yield streaming.error(str(e), e.status_code).to_sse()
            return
        except (LexstreamError, ValueError) as e:
            yield streaming.error(str(e)).to_sse()
            return

        queue = runtime.presentation.queue
        try:
            while not (playback.finished and queue.empty()):
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=QUEUE_POLL_SECONDS)
                except asyncio.TimeoutError:
                    continue
                yield event.to_sse()
        finally:
            if not playback.finished:
                logger.info("Client went away during playback; finalizing turn")
                session.scheduler.cancel()

        committed = runtime.transcript.last
        yield streaming.turn_complete(
            text=playback.full_text,
            source_count=len(committed.sources) if committed else 0,
            model=session.last_model or session.models.model_name,
            runtime_ms=int((time.monotonic() - started) * 1000),
        ).to_sse()


@router.post("")
async def chat(request: ChatRequest, runtime: ChatRuntime = Depends(get_runtime)):
    """Send a message; streams reveal, sources and follow_ups events."""
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message must not be empty")

    log_service.log_event(
        event_type="turn_started",
        message="Chat turn started",
        mode=request.mode.value,
        model=runtime.session.models.model_name,
    )
    return EventSourceResponse(
        _turn_events(runtime, lambda: runtime.session.send(request.message, mode=request.mode))
    )


@router.post("/fallback")
async def retry_with_fallback(runtime: ChatRuntime = Depends(get_runtime)):
    """Re-send the last quota-exhausted message on the fallback model."""
    if runtime.session.last_failed is None:
        raise HTTPException(status_code=409, detail="No failed message to retry")
    return EventSourceResponse(_turn_events(runtime, runtime.session.retry_with_fallback))


@router.post("/reset", response_model=ResetResponse)
async def reset_chat(runtime: ChatRuntime = Depends(get_runtime)):
    """Start a new conversation."""
    runtime.session.reset()
    runtime.session.models.reset()
    runtime.presentation.drain()
    return ResetResponse(status="reset", active_model=runtime.session.models.model_name)
