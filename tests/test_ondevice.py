from __future__ import annotations

import asyncio
import threading
import time

import pytest

import app.providers.ondevice as ondevice
from app.core.errors import FailureKind, ProviderError
from app.core.registry import ModelRegistry
from app.core.types import ChatMessage, GenerationOptions
from app.providers.ondevice import OnDeviceTransformerAdapter, PipelineCache

MESSAGES = [ChatMessage(role="user", content="hi")]


class EchoingPipeline:
    """Mimics a transformers pipeline that returns prompt + continuation."""

    def __init__(self, continuation: str = " Hello from the device.") -> None:
        self.continuation = continuation
        self.kwargs: dict = {}

    def __call__(self, prompt: str, **kwargs):
        self.kwargs = kwargs
        return [{"generated_text": prompt + self.continuation}]


class CountingFactory:
    def __init__(self, pipeline) -> None:
        self.pipeline = pipeline
        self.built: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, model_name: str):
        time.sleep(0.01)
        with self._lock:
            self.built.append(model_name)
        return self.pipeline


@pytest.fixture()
def tinyllama():
    return ModelRegistry.from_config().lookup("ondevice/tinyllama-chat")


@pytest.mark.asyncio
async def test_cache_builds_each_model_once_under_concurrency():
    factory = CountingFactory(EchoingPipeline())
    cache = PipelineCache(factory)

    results = await asyncio.gather(*(cache.get("tiny") for _ in range(8)))

    assert factory.built == ["tiny"]
    assert all(result is factory.pipeline for result in results)
    assert "tiny" in cache


@pytest.mark.asyncio
async def test_cache_keeps_models_separate():
    factory = CountingFactory(EchoingPipeline())
    cache = PipelineCache(factory)

    await cache.get("a")
    await cache.get("b")
    await cache.get("a")

    assert sorted(factory.built) == ["a", "b"]


@pytest.mark.asyncio
async def test_cache_retries_after_failed_build():
    attempts: list[str] = []

    def flaky(model_name: str):
        attempts.append(model_name)
        if len(attempts) == 1:
            raise OSError("download interrupted")
        return EchoingPipeline()

    cache = PipelineCache(flaky)

    with pytest.raises(OSError):
        await cache.get("tiny")
    assert "tiny" not in cache

    await cache.get("tiny")
    assert attempts == ["tiny", "tiny"]


@pytest.mark.asyncio
async def test_adapter_strips_prompt_echo(tinyllama):
    pipeline = EchoingPipeline()
    adapter = OnDeviceTransformerAdapter(PipelineCache(CountingFactory(pipeline)))

    result = await adapter.generate_once(MESSAGES, tinyllama, GenerationOptions(max_tokens=2000))

    assert result.text == "Hello from the device."
    assert result.resolved_model_id == "ondevice/tinyllama-chat"
    # requested tokens are capped by the descriptor window
    assert pipeline.kwargs["max_new_tokens"] == tinyllama.max_tokens


@pytest.mark.asyncio
async def test_adapter_streams_whole_text_in_fragments(tinyllama):
    adapter = OnDeviceTransformerAdapter(PipelineCache(CountingFactory(EchoingPipeline())))

    fragments = [f async for f in adapter.generate_stream(MESSAGES, tinyllama, GenerationOptions())]

    assert "".join(fragments) == "Hello from the device."
    assert all(len(f) <= adapter.chunk_chars for f in fragments)


@pytest.mark.asyncio
async def test_adapter_timeout_is_service_unavailable(tinyllama):
    def slow_pipeline(prompt: str, **kwargs):
        time.sleep(0.2)
        return [{"generated_text": prompt}]

    adapter = OnDeviceTransformerAdapter(
        PipelineCache(lambda name: slow_pipeline),
        timeout_s=0.01,
    )

    with pytest.raises(ProviderError) as exc_info:
        await adapter.generate_once(MESSAGES, tinyllama, GenerationOptions())

    assert exc_info.value.kind is FailureKind.SERVICE_UNAVAILABLE


@pytest.mark.asyncio
async def test_inference_failure_is_unknown_with_notice(tinyllama):
    def broken_pipeline(prompt: str, **kwargs):
        raise RuntimeError("CUDA out of memory")

    adapter = OnDeviceTransformerAdapter(PipelineCache(lambda name: broken_pipeline))

    with pytest.raises(ProviderError) as exc_info:
        await adapter.generate_once(MESSAGES, tinyllama, GenerationOptions())

    assert exc_info.value.kind is FailureKind.UNKNOWN
    assert "CUDA out of memory" in exc_info.value.notice


def test_missing_transformers_is_explained(monkeypatch):
    monkeypatch.setattr(ondevice, "HAS_TRANSFORMERS", False)

    with pytest.raises(ProviderError) as exc_info:
        ondevice.build_text_generation_pipeline("microsoft/phi-1_5")

    assert exc_info.value.kind is FailureKind.UNKNOWN
    assert "transformers" in exc_info.value.notice


@pytest.mark.asyncio
async def test_echo_only_output_is_empty_reply(tinyllama):
    adapter = OnDeviceTransformerAdapter(PipelineCache(CountingFactory(EchoingPipeline(""))))

    result = await adapter.generate_once(
        [ChatMessage(role="user", content="tell me a secret plan")],
        tinyllama,
        GenerationOptions(),
    )

    assert result.text == ondevice.EMPTY_OUTPUT
    assert "assistant:" not in result.text
