# the uniform adapter contract every generation backend implements
# the dispatcher only ever talks to backends through these two calls

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from app.core import config
from app.core.relay import stream_text
from app.core.types import ChatMessage, GenerationOptions, GenerationResult, ModelDescriptor


class Adapter(Protocol):
    async def generate_once(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> GenerationResult: ...

    def generate_stream(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> AsyncIterator[str]: ...


class WholeTextStreaming:
    """Stream support for backends that only produce a finished text."""

    chunk_chars: int = config.STREAM_CHUNK_CHARS

    async def generate_once(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> GenerationResult:
        raise NotImplementedError

    async def generate_stream(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        result = await self.generate_once(messages, descriptor, options)
        async for fragment in stream_text(result.text, self.chunk_chars):
            yield fragment


def resolve_max_tokens(options: GenerationOptions, descriptor: ModelDescriptor) -> int:
    requested = options.max_tokens or config.MAX_TOKENS
    return max(1, min(requested, descriptor.max_tokens))


def resolve_temperature(options: GenerationOptions) -> float:
    if options.temperature is None:
        return config.TEMPERATURE
    return options.temperature
