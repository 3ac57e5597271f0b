from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from typing import Any

logger = logging.getLogger(__name__)

END_OF_STREAM = b"data: [DONE]\n\n"


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def chunk_text(text: str, size: int) -> Iterator[str]:
    if size < 1:
        raise ValueError("chunk size must be at least 1")

    for start in range(0, len(text), size):
        yield text[start : start + size]


async def stream_text(text: str, size: int) -> AsyncIterator[str]:
    """Replay a whole-text result as fragments, yielding control between them."""
    for fragment in chunk_text(text, size):
        yield fragment
        await asyncio.sleep(0)


class StreamRelay:
    """Turns a fragment source into SSE frames, one pull per flushed frame.

    The source is always closed when relaying ends, whether it finished,
    failed, or the consumer went away.
    """

    def __init__(self, error_message: Callable[[Exception], str] = str) -> None:
        self._error_message = error_message

    async def frames(
        self,
        source: AsyncIterator[str],
        token: CancellationToken,
        is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> AsyncIterator[bytes]:
        try:
            while True:
                if not token.cancelled and is_disconnected is not None and await is_disconnected():
                    token.cancel()
                if token.cancelled:
                    logger.info("client disconnected, stopping stream")
                    return

                try:
                    fragment = await anext(source)
                except StopAsyncIteration:
                    break

                if fragment:
                    yield sse_data({"content": fragment})

            yield END_OF_STREAM
        except Exception as exc:
            logger.exception("streaming error occurred: %s", exc)
            yield sse_data({"error": self._error_message(exc)})
        finally:
            await close_source(source)


async def close_source(source: AsyncIterator[str]) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


def sse_data(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")
