from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from typing import Any

from app.core import config
from app.core.types import ModelDescriptor, ProviderKind

DEFAULT_CATALOG: tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        id="local/instruct",
        name="Rule-Based Assistant",
        provider_kind=ProviderKind.RULE_BASED,
        max_tokens=1024,
        description="Instant answers from built-in playbooks. Offline and deterministic.",
    ),
    ModelDescriptor(
        id="local/assistant-10m",
        name="Local Assistant (10M)",
        provider_kind=ProviderKind.RULE_BASED,
        max_tokens=1024,
        static_notice="Deterministic built-in assistant tuned for small-footprint deployments.",
        description="Built-in assistant with a compact scoring head over text analysis signals.",
    ),
    ModelDescriptor(
        id="local/aakarsh",
        name="AAKARSH (Local)",
        provider_kind=ProviderKind.RULE_BASED,
        max_tokens=2048,
        static_notice="Text analysis with mesh routing. Entirely local and deterministic.",
        description="Built-in assistant that routes replies through a ten-feature scoring mesh.",
    ),
    ModelDescriptor(
        id="ondevice/tinyllama-chat",
        name="TinyLlama Chat (On-device)",
        provider_kind=ProviderKind.ON_DEVICE_TRANSFORMER,
        max_tokens=512,
        static_notice="Runs locally on CPU. No data leaves your device.",
        description="Lightweight 1.1B chat model running in-process.",
        backend_model="TinyLlama/TinyLlama-1.1B-Chat-v1.0",
    ),
    ModelDescriptor(
        id="ondevice/phi-1_5",
        name="Phi-1.5 (On-device)",
        provider_kind=ProviderKind.ON_DEVICE_TRANSFORMER,
        max_tokens=512,
        static_notice="Runs locally. First use downloads the model weights.",
        description="Phi-1.5 running in-process. Good balance of speed and reasoning.",
        backend_model="microsoft/phi-1_5",
    ),
    ModelDescriptor(
        id="ollama/mistral:7b",
        name="Mistral 7B (Ollama)",
        provider_kind=ProviderKind.LOCAL_DAEMON,
        max_tokens=2048,
        static_notice='Requires Ollama running locally with the "mistral" model.',
        description="Local model served by Ollama.",
        backend_model="mistral:7b",
    ),
    ModelDescriptor(
        id="ollama/llava",
        name="LLaVA (Ollama, vision)",
        provider_kind=ProviderKind.LOCAL_DAEMON,
        max_tokens=2048,
        supports_vision=True,
        static_notice='Requires Ollama running locally with the "llava" model.',
        description="Local multimodal model (text + vision) served by Ollama.",
        backend_model="llava",
    ),
    ModelDescriptor(
        id="gpt-4o-mini",
        name="GPT-4o mini",
        provider_kind=ProviderKind.CLOUD_CHAT,
        max_tokens=4096,
        requires_credential="OPENAI_API_KEY",
        description="OpenAI cloud chat model.",
    ),
    ModelDescriptor(
        id="gpt-4o",
        name="GPT-4o (vision)",
        provider_kind=ProviderKind.CLOUD_CHAT,
        max_tokens=4096,
        requires_credential="OPENAI_API_KEY",
        supports_vision=True,
        description="OpenAI multimodal cloud model (text + vision).",
    ),
)


class ModelRegistry:
    def __init__(self, descriptors: Iterable[ModelDescriptor], default_id: str) -> None:
        self._models: dict[str, ModelDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._models:
                raise ValueError(f"Duplicate model id '{descriptor.id}'.")
            self._models[descriptor.id] = descriptor

        default = self._models.get(default_id)
        if default is None:
            raise ValueError(f"Default model '{default_id}' is not registered.")
        if default.provider_kind is not ProviderKind.RULE_BASED:
            raise ValueError(f"Default model '{default_id}' must be rule-based.")
        self._default = default

    @classmethod
    def from_config(cls) -> ModelRegistry:
        return cls(DEFAULT_CATALOG, config.DEFAULT_MODEL_ID)

    @property
    def default(self) -> ModelDescriptor:
        return self._default

    def lookup(self, model_id: str | None) -> ModelDescriptor:
        return self.resolve(model_id)[0]

    def resolve(self, model_id: str | None) -> tuple[ModelDescriptor, bool]:
        if not model_id:
            return self._default, False
        descriptor = self._models.get(model_id)
        if descriptor is None:
            return self._default, True
        return descriptor, False

    def descriptors(self) -> list[ModelDescriptor]:
        return list(self._models.values())

    def list_available(self, environ: Mapping[str, str] | None = None) -> list[dict[str, Any]]:
        env = os.environ if environ is None else environ
        models: list[dict[str, Any]] = []

        for descriptor in self._models.values():
            card = descriptor.to_card()
            credential = descriptor.requires_credential
            available = credential is None or bool(env.get(credential))
            card["available"] = available
            card["configured"] = available
            if not available:
                card["message"] = f"Requires {credential} environment variable"
            models.append(card)

        return models

    def offline_capability_summary(self, limit: int = 6) -> list[str]:
        lines: list[str] = []
        for descriptor in self._models.values():
            if not descriptor.provider_kind.is_offline:
                continue
            if descriptor.provider_kind is ProviderKind.RULE_BASED:
                continue

            notes = [f"{descriptor.max_tokens} token window"]
            if descriptor.supports_vision:
                notes.append("vision")
            if descriptor.requires_credential is None:
                notes.append("no-cost")

            summary = descriptor.description or "Open-source capable model"
            lines.append(f"- {descriptor.name}: {summary} ({', '.join(notes)})")

        return lines[:limit]
