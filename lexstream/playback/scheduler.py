"""Paced, cancellable reveal of a finished answer.

One session plays at a time. Starting a new session first force-finalizes
the running one. Cancellation goes through an explicit token that the
emission loop checks before every token; cancelling reveals the rest of the
text at once. The finalize callback runs exactly once per session.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from lexstream.playback.tokens import PlaybackToken, TokenKind, segment


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds; return True if cancelled meanwhile."""
        if self.cancelled:
            return True
        if delay <= 0:
            await asyncio.sleep(0)
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True


RevealCallback = Callable[[str], None]
FinalizeCallback = Callable[["PlaybackSession"], None]


@dataclass(eq=False)
class PlaybackSession:
    full_text: str
    tokens: list[PlaybackToken]
    on_finalize: FinalizeCallback | None = None
    cursor: int = 0
    state: PlaybackState = PlaybackState.IDLE
    revealed: str = ""
    cancelled: bool = False
    token: CancellationToken = field(default_factory=CancellationToken)
    _finalized: bool = field(default=False, repr=False)
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def finished(self) -> bool:
        return self._finalized

    async def wait(self) -> None:
        await self._done.wait()


class PlaybackScheduler:
    def __init__(
        self,
        on_reveal: RevealCallback | None = None,
        *,
        word_delay: float = 0.04,
        whitespace_delay: float = 0.01,
    ):
        self.on_reveal = on_reveal
        self.word_delay = word_delay
        self.whitespace_delay = whitespace_delay
        self._current: PlaybackSession | None = None
        self._task: asyncio.Task | None = None

    @property
    def current(self) -> PlaybackSession | None:
        return self._current

    @property
    def is_playing(self) -> bool:
        return self._current is not None and self._current.state is PlaybackState.PLAYING

    def delay_for(self, token: PlaybackToken) -> float:
        if token.kind is TokenKind.WHITESPACE:
            return self.whitespace_delay
        return self.word_delay

    def start(self, full_text: str, on_finalize: FinalizeCallback | None = None) -> PlaybackSession:
        """Begin revealing ``full_text``. Must be called from the event loop."""
        if self.cancel():
            logger.debug("Force-finalized running playback before starting a new one")

        session = PlaybackSession(
            full_text=full_text,
            tokens=segment(full_text),
            on_finalize=on_finalize,
        )
        session.state = PlaybackState.PLAYING
        self._current = session

        if not session.tokens:
            self._finish(session)
            return session

        self._task = asyncio.get_running_loop().create_task(self._play(session))
        return session

    def cancel(self) -> bool:
        """Stop the running session and show its full text immediately.

        Safe to call at any time; returns False when nothing was playing.
        """
        session = self._current
        if session is None or session.state is not PlaybackState.PLAYING:
            return False

        session.state = PlaybackState.CANCELLED
        session.cancelled = True
        session.token.cancel()
        session.cursor = len(session.tokens)
        session.revealed = session.full_text
        self._notify(session.revealed)
        self._finish(session)
        return True

    async def wait(self) -> None:
        """Wait for the current session, if any, to finish."""
        session = self._current
        if session is not None:
            await session.wait()

    async def _play(self, session: PlaybackSession) -> None:
        last = len(session.tokens) - 1
        for index, token in enumerate(session.tokens):
            if session.token.cancelled:
                return
            session.revealed += token.text
            session.cursor = index + 1
            self._notify(session.revealed)
            if index == last:
                break
            if await session.token.sleep(self.delay_for(token)):
                return

        if session.state is PlaybackState.PLAYING:
            self._finish(session)

    def _notify(self, revealed: str) -> None:
        if self.on_reveal is None:
            return
        try:
            self.on_reveal(revealed)
        except Exception as e:
            logger.exception(f"Presentation callback failed: {e}")

    def _finish(self, session: PlaybackSession) -> None:
        if session._finalized:
            return
        session._finalized = True
        session.state = PlaybackState.COMPLETED
        if self._current is session:
            self._current = None
        try:
            if session.on_finalize is not None:
                session.on_finalize(session)
        except Exception as e:
            logger.exception(f"Playback finalize callback failed: {e}")
        finally:
            session._done.set()
