from __future__ import annotations

from lexstream.models.answer import Frame
from lexstream.stream.frames import FrameReader, parse_event

STREAM = (
    b'data: {"a": 1}\n\n'
    b":keep-alive\n\n"
    b'data: {"b": "\xc2\xa7 2-201"}\n\n'
    b"event: ping\nid: 7\n\n"
    b'data: {"c": 3}\n\n'
    b"data: [DONE]\n\n"
)
EXPECTED = [Frame('{"a": 1}'), Frame('{"b": "§ 2-201"}'), Frame('{"c": 3}')]


def read_all(pieces: list[bytes]) -> list[Frame]:
    reader = FrameReader()
    frames: list[Frame] = []
    for piece in pieces:
        frames.extend(reader.ingest(piece))
    frames.extend(reader.finish())
    return frames


def test_single_chunk_yields_data_frames_only():
    assert read_all([STREAM]) == EXPECTED


def test_frames_independent_of_chunk_boundaries():
    for size in (1, 2, 3, 5, 7, 13):
        pieces = [STREAM[i : i + size] for i in range(0, len(STREAM), size)]
        assert read_all(pieces) == EXPECTED, size


def test_every_split_point_gives_same_frames():
    for cut in range(1, len(STREAM)):
        assert read_all([STREAM[:cut], STREAM[cut:]]) == EXPECTED, cut


def test_crlf_terminated_events():
    stream = b'data: {"a": 1}\r\n\r\ndata: {"b": 2}\r\n\r\n'
    assert read_all([stream[:15], stream[15:]]) == [Frame('{"a": 1}'), Frame('{"b": 2}')]


def test_frame_only_emitted_once_terminated():
    reader = FrameReader()
    assert reader.ingest(b'data: {"a"') == []
    assert reader.pending > 0
    assert reader.ingest(b": 1}\n") == []
    assert reader.ingest(b"\n") == [Frame('{"a": 1}')]
    assert reader.pending == 0


def test_finish_flushes_unterminated_event():
    reader = FrameReader()
    assert reader.ingest('data: {"tail": true}') == []
    assert reader.finish() == [Frame('{"tail": true}')]
    assert reader.finish() == []


def test_multiline_data_joined_with_newline():
    assert parse_event("data: first\ndata: second") == Frame("first\nsecond")


def test_event_without_data_is_skipped():
    assert parse_event(": comment") is None
    assert parse_event("data: [DONE]") is None
    assert parse_event("data:   ") is None


def test_mixed_line_endings_terminate_events():
    reader = FrameReader()
    frames = reader.ingest(b'data: {"a": 1}\n\r\ndata: {"b": 2}\r\n\ndata: {"c": 3}\r\rdata: {"d": 4}\n\n')

    assert [f.data for f in frames] == ['{"a": 1}', '{"b": 2}', '{"c": 3}', '{"d": 4}']


def test_trailing_cr_waits_for_possible_lf():
    reader = FrameReader()
    assert reader.ingest(b"data: x\r\n\r") == []
    assert reader.ingest(b"\n") == [Frame("x")]
    assert reader.pending == 0


def test_single_crlf_does_not_end_event():
    reader = FrameReader()
    assert reader.ingest(b"data: first\r\ndata: second\r\n") == []
    assert reader.ingest(b"\r\n") == [Frame("first\nsecond")]


def test_mixed_endings_independent_of_split_point():
    stream = b'data: {"a": 1}\n\r\ndata: {"b": 2}\r\n\r\ndata: {"c": 3}\r\n\n'
    expected = [Frame('{"a": 1}'), Frame('{"b": 2}'), Frame('{"c": 3}')]

    for cut in range(1, len(stream)):
        assert read_all([stream[:cut], stream[cut:]]) == expected, cut
