from __future__ import annotations

import json
import math

import pytest

from app.core.relay import (
    END_OF_STREAM,
    CancellationToken,
    StreamRelay,
    chunk_text,
    stream_text,
)


class RecordingSource:
    def __init__(self, fragments: list[str], error: Exception | None = None) -> None:
        self.fragments = fragments
        self.error = error
        self.pulled = 0
        self.closed = False

    async def generate(self):
        try:
            for fragment in self.fragments:
                self.pulled += 1
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


def _decode(frames: list[bytes]) -> list[object]:
    decoded: list[object] = []
    for frame in frames:
        raw = frame.decode("utf-8").removeprefix("data: ").strip()
        decoded.append(raw if raw == "[DONE]" else json.loads(raw))
    return decoded


async def _collect(iterator) -> list:
    return [item async for item in iterator]


@pytest.mark.parametrize(
    ("text", "size"),
    [
        ("hello world", 10),
        ("hello world", 1),
        ("abcdefghij", 5),
        ("x", 3),
        ("", 4),
        ("Résumé, naïve café ✓", 3),
    ],
)
def test_chunk_text_preserves_text_and_count(text: str, size: int):
    fragments = list(chunk_text(text, size))

    assert "".join(fragments) == text
    assert len(fragments) == math.ceil(len(text) / size)
    assert all(0 < len(fragment) <= size for fragment in fragments)


def test_chunk_text_rejects_non_positive_size():
    with pytest.raises(ValueError):
        list(chunk_text("text", 0))


@pytest.mark.asyncio
async def test_stream_text_replays_whole_text():
    fragments = await _collect(stream_text("a" * 25, 10))

    assert fragments == ["a" * 10, "a" * 10, "a" * 5]


@pytest.mark.asyncio
async def test_relay_emits_content_frames_then_sentinel():
    source = RecordingSource(["he", "", "llo"])
    relay = StreamRelay()

    frames = await _collect(relay.frames(source.generate(), CancellationToken()))

    assert frames[-1] == END_OF_STREAM
    assert _decode(frames) == [{"content": "he"}, {"content": "llo"}, "[DONE]"]
    assert source.closed is True


@pytest.mark.asyncio
async def test_relay_writes_one_error_frame_without_sentinel():
    source = RecordingSource(["partial"], error=RuntimeError("backend died"))
    relay = StreamRelay(error_message=lambda exc: f"failed: {exc}")

    frames = await _collect(relay.frames(source.generate(), CancellationToken()))

    assert _decode(frames) == [{"content": "partial"}, {"error": "failed: backend died"}]
    assert END_OF_STREAM not in frames
    assert source.closed is True


@pytest.mark.asyncio
async def test_relay_stops_and_closes_source_when_client_disconnects():
    source = RecordingSource(["one", "two", "three"])
    token = CancellationToken()
    checks = iter([False, True])

    async def is_disconnected() -> bool:
        return next(checks, True)

    frames = await _collect(StreamRelay().frames(source.generate(), token, is_disconnected))

    assert _decode(frames) == [{"content": "one"}]
    assert token.cancelled is True
    assert source.pulled == 1
    assert source.closed is True


@pytest.mark.asyncio
async def test_relay_honours_pre_cancelled_token():
    source = RecordingSource(["never"])
    token = CancellationToken()
    token.cancel()

    frames = await _collect(StreamRelay().frames(source.generate(), token))

    assert frames == []
    assert source.pulled == 0
