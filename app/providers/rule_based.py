from __future__ import annotations

import logging

from app.collaborators.analyzer import KeywordAnalyzer, TextAnalyzer
from app.core.registry import ModelRegistry
from app.core.types import (
    ChatMessage,
    GenerationOptions,
    GenerationResult,
    ModelDescriptor,
    ProviderKind,
)

from .base import WholeTextStreaming
from .knowledge import EMPTY_PROMPT_REPLY, head_reply, mesh_reply, playbook_reply

logger = logging.getLogger(__name__)

SCORING_HEAD_MODEL_ID = "local/assistant-10m"
MESH_MODEL_ID = "local/aakarsh"
PREVIOUS_TOPIC_LIMIT = 3
SAFE_REPLY = (
    "I ran into a problem putting that answer together, but I'm still here. "
    "Could you rephrase the question or add a little more detail?"
)


class RuleBasedAdapter(WholeTextStreaming):
    """Deterministic built-in assistant and the terminal fallback.

    Never touches the network and never raises: any input, including empty
    or non-text content, produces a reply.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        analyzer: TextAnalyzer | None = None,
    ) -> None:
        self.registry = registry
        self.analyzer = analyzer or KeywordAnalyzer()

    async def generate_once(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> GenerationResult:
        if descriptor.provider_kind is not ProviderKind.RULE_BASED:
            descriptor = self.registry.default

        try:
            text = self.reply(messages, descriptor)
        except Exception:
            logger.exception("rule-based reply failed: model=%s", descriptor.id)
            text = SAFE_REPLY

        return GenerationResult(
            text=text or EMPTY_PROMPT_REPLY,
            resolved_model_id=descriptor.id,
            model_info=descriptor,
        )

    def reply(self, messages: list[ChatMessage], descriptor: ModelDescriptor) -> str:
        user_turns = [
            m.content
            for m in messages or []
            if getattr(m, "role", None) == "user" and isinstance(m.content, str)
        ]
        prompt = user_turns[-1] if user_turns else ""
        capability_lines = self.registry.offline_capability_summary()

        if descriptor.id == SCORING_HEAD_MODEL_ID:
            return head_reply(prompt, self.analyzer.analyze(prompt), capability_lines)
        if descriptor.id == MESH_MODEL_ID:
            return mesh_reply(prompt, self.analyzer.analyze(prompt), capability_lines)

        previous = [
            turn.strip()[:80] for turn in user_turns[:-1] if turn.strip()
        ][-PREVIOUS_TOPIC_LIMIT:]
        return playbook_reply(prompt, previous, capability_lines)
