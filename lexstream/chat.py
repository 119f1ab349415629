"""One conversation: streams a turn, finalizes its sources and plays it back."""
from __future__ import annotations

import time
from typing import Any, Iterable
from uuid import uuid4

from loguru import logger

from lexstream.citations.filters import SourceFilter
from lexstream.citations.resolver import CitationResolver
from lexstream.config import Settings, settings as default_settings
from lexstream.errors import EmptyResponseError, QuotaExhaustedError, TransportError
from lexstream.llm_client import GeminiClient, get_client
from lexstream.models.answer import AssembledResponse, ChatContent, ChatMode, Frame
from lexstream.playback.scheduler import PlaybackScheduler, PlaybackSession
from lexstream.services import logger as log_service
from lexstream.services.model_fallback import ModelFallbackController
from lexstream.services.prompt_store import system_instruction
from lexstream.sinks import PersistenceSink, PresentationSink
from lexstream.stream.accumulator import ResponseAccumulator
from lexstream.stream.cleanup import (
    derive_sources,
    has_citation_markers,
    inject_citations,
    is_too_short,
    sanitize_answer,
)
from lexstream.stream.decoder import ChunkDecoder
from lexstream.stream.frames import FrameReader
from lexstream.stream.splitter import ResponseSplitter


class ChatSession:
    """Holds the history and collaborators of a single conversation.

    Requests must be serialized per session: the model selection and the
    history are shared mutable state.
    """

    def __init__(
        self,
        client: GeminiClient,
        *,
        presentation: PresentationSink,
        persistence: PersistenceSink,
        models: ModelFallbackController,
        resolver: CitationResolver | None = None,
        source_filter: SourceFilter | None = None,
        splitter: ResponseSplitter | None = None,
        scheduler: PlaybackScheduler | None = None,
        short_response_retry: bool = True,
    ):
        self.client = client
        self.presentation = presentation
        self.persistence = persistence
        self.models = models
        self.resolver = resolver or CitationResolver()
        self.source_filter = source_filter or SourceFilter()
        self.splitter = splitter or ResponseSplitter()
        self.scheduler = scheduler or PlaybackScheduler(on_reveal=presentation.on_reveal)
        self.short_response_retry = short_response_retry
        self.history: list[ChatContent] = []
        self.last_failed: tuple[str, ChatMode] | None = None
        self.last_model: str | None = None

    @classmethod
    def from_settings(
        cls,
        *,
        presentation: PresentationSink,
        persistence: PersistenceSink,
        client: GeminiClient | None = None,
        config: Settings | None = None,
    ) -> ChatSession:
        cfg = config or default_settings
        return cls(
            client or get_client(),
            presentation=presentation,
            persistence=persistence,
            models=ModelFallbackController(cfg.primary_model, cfg.fallback_model),
            resolver=CitationResolver(
                redirect_markers=cfg.redirect_marker_list,
                probe_timeout=cfg.probe_timeout_seconds,
                max_parallel=cfg.probe_max_parallel,
                user_agent=cfg.probe_user_agent,
            ),
            source_filter=SourceFilter(cfg.source_denylist_patterns),
            splitter=ResponseSplitter(
                cfg.follow_up_delimiter,
                min_length=cfg.follow_up_min_length,
                max_items=cfg.follow_up_max_items,
            ),
            scheduler=PlaybackScheduler(
                on_reveal=presentation.on_reveal,
                word_delay=cfg.playback_word_delay_ms / 1000,
                whitespace_delay=cfg.playback_whitespace_delay_ms / 1000,
            ),
            short_response_retry=cfg.short_response_retry,
        )

    # --- History ---

    def start_new_chat(self) -> None:
        self.history = []

    def continue_chat(self, messages: Iterable[dict[str, Any]]) -> None:
        """Seed history from stored messages ({"role", "content"} dicts)."""
        self.history = [
            ChatContent(
                role="user" if message.get("role") == "user" else "model",
                text=message.get("content") or "",
            )
            for message in messages
        ]

    def reset(self) -> None:
        self.scheduler.cancel()
        self.history = []
        self.last_failed = None

    # --- Turns ---

    async def send(self, message: str, *, mode: ChatMode = ChatMode.GENERAL) -> PlaybackSession:
        """Run one turn and start revealing the answer.

        Raises QuotaExhaustedError so the caller can offer the fallback model,
        TransportError for other upstream failures and EmptyResponseError
        when nothing usable came back.

        Only the main answer counts towards the short-answer check; the
        follow-up questions after the delimiter are excluded.
        """
        self.scheduler.cancel()

        text = message.strip()
        if not text:
            raise ValueError("Message must not be empty")

        turn_id = uuid4().hex[:12]
        attempts = 2 if self.short_response_retry else 1
        answer: AssembledResponse | None = None

        for attempt in range(attempts):
            self.history.append(ChatContent(role="user", text=text))
            streamed: AssembledResponse | None = None
            try:
                streamed = await self.stream_answer(mode, turn_id=turn_id)
            except QuotaExhaustedError:
                self.last_failed = (text, mode)
                raise
            finally:
                # failed or cancelled turns leave no user message behind
                if streamed is None:
                    self.history.pop()
            answer = streamed

            if attempt == attempts - 1 or not is_too_short(answer.full_text):
                break
            self.history.pop()
            logger.info(f"Answer too short ({len(answer.full_text.split())} words); requesting once more")

        self.last_failed = None
        try:
            answer = self.prepare(answer)
        except EmptyResponseError:
            self.history.pop()
            raise

        self.history.append(ChatContent(role="model", text=answer.full_text))
        log_service.log_turn_step(
            turn_id,
            "playback",
            "started",
            {"chars": len(answer.full_text), "sources": len(answer.sources)},
        )
        return self.play(answer)

    async def retry_with_fallback(self) -> PlaybackSession:
        """Re-run the last quota-exhausted message on the fallback model."""
        if self.last_failed is None:
            raise ValueError("No failed message to retry")

        text, mode = self.last_failed
        self.models.mark_exhausted()
        try:
            return await self.send(text, mode=mode)
        finally:
            self.models.reset()

    async def stream_answer(self, mode: ChatMode, *, turn_id: str = "") -> AssembledResponse:
        """Stream, assemble, resolve, filter and split one answer."""
        model = self.models.model_name
        self.last_model = model
        instruction = system_instruction(mode, delimiter=self.splitter.delimiter)
        reader = FrameReader()
        decoder = ChunkDecoder()
        accumulator = ResponseAccumulator(self.resolver.markers)

        started = time.monotonic()
        chunks = 0
        try:
            async for chunk in self.client.stream_generate(
                self.history,
                model=model,
                system_instruction=instruction,
            ):
                chunks += 1
                self._consume(reader.ingest(chunk), decoder, accumulator)
        except TransportError as e:
            log_service.log_llm_call(
                model=model,
                caller="chat",
                chunks=chunks,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="failed",
                error=str(e),
            )
            raise
        self._consume(reader.finish(), decoder, accumulator)

        assembled = accumulator.finalize()
        log_service.log_llm_call(
            model=model,
            caller="chat",
            chunks=chunks,
            chars=len(assembled.full_text),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        log_service.log_turn_step(
            turn_id,
            "stream",
            "completed",
            {
                "frames_decoded": decoder.decoded,
                "frames_dropped": decoder.dropped,
                "sources": len(assembled.sources),
            },
        )

        sources = await self.resolver.resolve_all(list(assembled.sources))
        sources = self.source_filter.apply(sources)
        main_text, follow_ups = self.splitter.split(assembled.full_text)
        logger.info(f"Assembled answer: {len(main_text)} chars, {len(sources)} sources, {len(follow_ups)} follow-ups")
        return AssembledResponse(
            full_text=main_text,
            sources=tuple(sources),
            follow_up_questions=tuple(follow_ups),
        )

    def prepare(self, answer: AssembledResponse) -> AssembledResponse:
        """Clean the answer text and backfill sources and citation markers."""
        sources = list(answer.sources)
        if not sources:
            sources = self.source_filter.apply(derive_sources(answer.full_text))

        text = sanitize_answer(answer.full_text)
        if sources and not has_citation_markers(text):
            text = inject_citations(text, sources)
        if not text.strip():
            raise EmptyResponseError()

        return AssembledResponse(
            full_text=text,
            sources=tuple(sources),
            follow_up_questions=answer.follow_up_questions,
        )

    def play(self, answer: AssembledResponse) -> PlaybackSession:
        sources = list(answer.sources)
        follow_ups = list(answer.follow_up_questions)

        def finalize(_session: PlaybackSession) -> None:
            self.persistence.commit(answer.full_text, sources, follow_ups)
            self.presentation.on_sources(sources)
            self.presentation.on_follow_ups(follow_ups)

        return self.scheduler.start(answer.full_text, on_finalize=finalize)

    @staticmethod
    def _consume(frames: list[Frame], decoder: ChunkDecoder, accumulator: ResponseAccumulator) -> None:
        for frame in frames:
            delta = decoder.decode(frame)
            if delta is not None:
                accumulator.apply(delta)
