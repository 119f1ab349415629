"""Lexstream - streaming legal answers

Simple CLI for asking a single question.
"""

import argparse
import asyncio
import sys

from lexstream.chat import ChatSession
from lexstream.errors import LexstreamError, QuotaExhaustedError
from lexstream.models.answer import ChatMode, Source
from lexstream.sinks import InMemoryTranscript


class TerminalSink:
    """Prints newly revealed text as playback advances."""

    def __init__(self):
        self.shown = 0

    def on_reveal(self, text: str) -> None:
        print(text[self.shown:], end="", flush=True)
        self.shown = len(text)

    def on_sources(self, sources: list[Source]) -> None:
        if not sources:
            return
        print(f"\n\n[*] Sources ({len(sources)}):")
        for i, source in enumerate(sources, 1):
            print(f"  [{i}] {source.title}")
            print(f"      {source.url}")

    def on_follow_ups(self, questions: list[str]) -> None:
        if not questions:
            return
        print("\n[?] Follow-up questions:")
        for question in questions:
            print(f"  - {question}")


async def ask(query: str, mode: ChatMode, fallback: bool = False) -> int:
    """Ask one question and play the answer back to the terminal."""
    print(f"Question: {query}")
    print("-" * 50)

    sink = TerminalSink()
    try:
        session = ChatSession.from_settings(presentation=sink, persistence=InMemoryTranscript())
        if fallback:
            session.models.mark_exhausted()
        playback = await session.send(query, mode=mode)
    except QuotaExhaustedError as e:
        print(f"\n[!] {e.user_message}")
        print("    Re-run with --fallback to use the fallback model.")
        return 2
    except LexstreamError as e:
        print(f"\n[!] Error: {e}")
        return 1

    await playback.wait()
    print()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Lexstream legal answers")
    parser.add_argument("--query", "-q", required=True, help="Question to ask")
    parser.add_argument(
        "--mode",
        "-m",
        choices=[m.value for m in ChatMode],
        default=ChatMode.GENERAL.value,
        help="Answer mode (default: general)",
    )
    parser.add_argument("--fallback", action="store_true", help="Use the fallback model")

    args = parser.parse_args()

    sys.exit(asyncio.run(ask(args.query, ChatMode(args.mode), args.fallback)))


if __name__ == "__main__":
    main()
