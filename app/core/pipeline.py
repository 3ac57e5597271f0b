# composition root: builds the registry, adapters and collaborators once per process
# and exposes the three request shapes the HTTP layer serves

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from app.collaborators.analyzer import KeywordAnalyzer
from app.collaborators.external_apis import FileApiCatalogue
from app.collaborators.images import ImageGenerator
from app.collaborators.search import default_search
from app.core import config
from app.core.augmentation import Augmenter
from app.core.dispatcher import AdapterSet, Dispatcher, italic_notice
from app.core.registry import ModelRegistry
from app.core.relay import CancellationToken, close_source, stream_text
from app.core.safety import SafetyFilter
from app.core.types import (
    ChatMessage,
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
)
from app.providers.cloud import CloudChatAdapter
from app.providers.daemon import LocalDaemonAdapter
from app.providers.ondevice import OnDeviceTransformerAdapter, PipelineCache
from app.providers.rule_based import RuleBasedAdapter

logger = logging.getLogger(__name__)


class ChatPipeline:
    def __init__(self, augmenter: Augmenter, dispatcher: Dispatcher) -> None:
        self.augmenter = augmenter
        self.dispatcher = dispatcher

    @property
    def registry(self) -> ModelRegistry:
        return self.dispatcher.registry

    async def chat(self, request: GenerationRequest) -> GenerationResult:
        outcome = await self.augmenter.apply(request)
        if outcome.image_result is not None:
            return outcome.image_result
        return await self.dispatcher.generate(outcome.request)

    async def stream(
        self,
        request: GenerationRequest,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        outcome = await self.augmenter.apply(request)
        if outcome.image_result is not None:
            for notice in outcome.image_result.notices:
                yield italic_notice(notice)
            async for fragment in stream_text(outcome.image_result.text, config.STREAM_CHUNK_CHARS):
                yield fragment
            return

        source = self.dispatcher.stream(outcome.request, token)
        try:
            async for fragment in source:
                yield fragment
        finally:
            await close_source(source)

    async def generate(
        self,
        prompt: str,
        model_id: str | None = None,
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Single-prompt completion. Skips augmentation."""
        request = GenerationRequest(
            messages=[ChatMessage(role="user", content=prompt)],
            requested_model_id=model_id or "",
            options=options or GenerationOptions(),
        )
        return await self.dispatcher.generate(request)


def build_default_pipeline(registry: ModelRegistry | None = None) -> ChatPipeline:
    registry = registry or ModelRegistry.from_config()
    adapters = AdapterSet(
        cloud=CloudChatAdapter(),
        daemon=LocalDaemonAdapter(),
        on_device=OnDeviceTransformerAdapter(PipelineCache()),
        rule_based=RuleBasedAdapter(registry, KeywordAnalyzer()),
    )
    augmenter = Augmenter(
        registry,
        search=default_search(),
        images=ImageGenerator(),
        apis=FileApiCatalogue(),
    )
    logger.info(
        "pipeline ready: models=%d default=%s", len(registry.descriptors()), registry.default.id
    )
    return ChatPipeline(augmenter, Dispatcher(registry, adapters, SafetyFilter()))
