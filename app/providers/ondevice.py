from __future__ import annotations

import asyncio
import importlib
import importlib.util
import logging
from collections.abc import Callable
from typing import Any

from app.core import config
from app.core.errors import FailureKind, ProviderError
from app.core.types import ChatMessage, GenerationOptions, GenerationResult, ModelDescriptor

from .base import WholeTextStreaming, resolve_max_tokens, resolve_temperature
from .prompting import format_messages_as_prompt, strip_prompt_echo

logger = logging.getLogger(__name__)

transformers: Any = None
if importlib.util.find_spec("transformers") is not None:
    transformers = importlib.import_module("transformers")
HAS_TRANSFORMERS = transformers is not None

PROVIDER = "transformers"
EMPTY_OUTPUT = "Local model did not return any output."

PipelineFactory = Callable[[str], Any]


def build_text_generation_pipeline(model_name: str) -> Any:
    if not HAS_TRANSFORMERS:
        raise ProviderError(
            kind=FailureKind.UNKNOWN,
            message="The transformers package is not installed in this environment.",
            provider=PROVIDER,
            notice=(
                f"On-device model {model_name} needs the `transformers` package, "
                "which is not installed."
            ),
        )
    return transformers.pipeline("text-generation", model=model_name)


class PipelineCache:
    """Text-generation pipelines shared by every request in the process.

    Each model is built at most once: concurrent first requests for the same
    key wait on a per-key lock and reuse the winner's pipeline. Entries are
    never evicted. A failed build leaves the key empty so a later request can
    try again.
    """

    def __init__(self, factory: PipelineFactory = build_text_generation_pipeline) -> None:
        self._factory = factory
        self._pipelines: dict[str, Any] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, model_name: str) -> bool:
        return model_name in self._pipelines

    async def get(self, model_name: str) -> Any:
        pipeline = self._pipelines.get(model_name)
        if pipeline is not None:
            return pipeline

        lock = self._locks.setdefault(model_name, asyncio.Lock())
        async with lock:
            pipeline = self._pipelines.get(model_name)
            if pipeline is None:
                logger.info("building text-generation pipeline for %s", model_name)
                pipeline = await asyncio.to_thread(self._factory, model_name)
                self._pipelines[model_name] = pipeline

        return pipeline


class OnDeviceTransformerAdapter(WholeTextStreaming):
    def __init__(self, cache: PipelineCache, *, timeout_s: float = config.ONDEVICE_TIMEOUT_S) -> None:
        self.cache = cache
        self._timeout_s = timeout_s

    async def generate_once(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> GenerationResult:
        target = descriptor.target_model
        prompt = format_messages_as_prompt(messages, target)

        try:
            pipeline = await self.cache.get(target)
            outputs = await asyncio.wait_for(
                asyncio.to_thread(
                    pipeline,
                    prompt,
                    max_new_tokens=resolve_max_tokens(options, descriptor),
                    do_sample=True,
                    temperature=resolve_temperature(options),
                    top_p=0.95,
                    repetition_penalty=1.1,
                ),
                timeout=self._timeout_s,
            )
        except ProviderError:
            raise
        except TimeoutError as exc:
            raise ProviderError(
                kind=FailureKind.SERVICE_UNAVAILABLE,
                message=f"On-device model {target} timed out after {self._timeout_s}s.",
                provider=PROVIDER,
                notice=f"On-device model {descriptor.name} is still warming up.",
            ) from exc
        except Exception as exc:
            logger.warning("on-device generation failed: model=%s error=%s", target, exc)
            raise ProviderError(
                kind=FailureKind.UNKNOWN,
                message=f"On-device model {target} failed: {exc}",
                provider=PROVIDER,
                notice=f"On-device model {descriptor.name} failed: {exc}.",
            ) from exc

        generated = _generated_text(outputs)
        text = strip_prompt_echo(prompt, generated) or EMPTY_OUTPUT

        return GenerationResult(
            text=text,
            resolved_model_id=descriptor.id,
            model_info=descriptor,
        )


def _generated_text(outputs: Any) -> str:
    if isinstance(outputs, str):
        return outputs
    if isinstance(outputs, list) and outputs:
        first = outputs[0]
        if isinstance(first, dict) and isinstance(first.get("generated_text"), str):
            return first["generated_text"]
    return ""
