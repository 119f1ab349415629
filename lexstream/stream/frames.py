"""Incremental server-sent-event framing.

Bytes are buffered until a blank line terminates an event, so frames come out
the same regardless of how the transport chunks the stream. Decoding to text
happens per complete event, which also keeps multi-byte characters split
across transport chunks intact.
"""
from __future__ import annotations

import re

from loguru import logger

from lexstream.models.answer import Frame

# Two consecutive line endings, each of which may be CRLF, LF or CR
FRAME_TERMINATOR_RE = re.compile(rb"(?:\r\n|\r(?!\n)|\n)(?:\r\n|\r(?!\n)|\n)")
DATA_PREFIX = "data:"
END_OF_STREAM = "[DONE]"
LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


def parse_event(raw: str) -> Frame | None:
    """Keep only the data lines of one event; None when nothing remains."""
    payloads: list[str] = []
    for line in LINE_BREAK_RE.split(raw):
        if not line.startswith(DATA_PREFIX):
            # comments (":keep-alive"), event/id/retry fields
            continue
        value = line[len(DATA_PREFIX):]
        if value.startswith(" "):
            value = value[1:]
        value = value.strip()
        if not value or value == END_OF_STREAM:
            continue
        payloads.append(value)

    if not payloads:
        return None
    return Frame(data="\n".join(payloads))


class FrameReader:
    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def ingest(self, data: bytes | str) -> list[Frame]:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._buffer.extend(data)

        frames: list[Frame] = []
        while True:
            match = FRAME_TERMINATOR_RE.search(self._buffer)
            if match is None:
                break
            if match.end() == len(self._buffer) and self._buffer.endswith(b"\r"):
                # a trailing CR may be the first half of a CRLF
                break
            raw = bytes(self._buffer[: match.start()])
            del self._buffer[: match.end()]
            frame = self._to_frame(raw)
            if frame is not None:
                frames.append(frame)
        return frames

    def finish(self) -> list[Frame]:
        """Flush whatever is left once the transport reports end of stream."""
        if not self._buffer:
            return []
        raw = bytes(self._buffer)
        self._buffer.clear()
        frame = self._to_frame(raw)
        return [frame] if frame is not None else []

    @staticmethod
    def _to_frame(raw: bytes) -> Frame | None:
        text = raw.decode("utf-8", errors="replace")
        if not text.strip():
            return None
        frame = parse_event(text)
        if frame is None:
            logger.trace(f"Skipping event without data: {text[:80]!r}")
        return frame
