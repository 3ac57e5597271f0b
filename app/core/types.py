from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

Role = Literal["system", "user", "assistant"]


class ProviderKind(StrEnum):
    CLOUD_CHAT = "cloud_chat"
    LOCAL_DAEMON = "local_daemon"
    ON_DEVICE_TRANSFORMER = "on_device_transformer"
    RULE_BASED = "rule_based"

    @property
    def is_offline(self) -> bool:
        return self is not ProviderKind.CLOUD_CHAT


class SearchMode(StrEnum):
    AUTO = "auto"
    ON = "on"
    OFF = "off"


@dataclass(frozen=True, slots=True)
class ModelDescriptor:
    id: str
    name: str
    provider_kind: ProviderKind
    max_tokens: int
    requires_credential: str | None = None
    supports_vision: bool = False
    static_notice: str | None = None
    description: str = ""
    backend_model: str | None = None

    @property
    def target_model(self) -> str:
        return self.backend_model or self.id

    def to_card(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "providerKind": self.provider_kind.value,
            "maxTokens": self.max_tokens,
            "requiresCredential": self.requires_credential,
            "supportsVision": self.supports_vision,
            "notice": self.static_notice,
            "description": self.description,
        }


@dataclass(slots=True)
class ChatMessage:
    role: Role
    content: str
    image: str | None = None


@dataclass(slots=True)
class GenerationOptions:
    temperature: float | None = None
    max_tokens: int | None = None
    search_mode: SearchMode = SearchMode.AUTO
    notices: tuple[str, ...] = ()


@dataclass(slots=True)
class GenerationRequest:
    messages: list[ChatMessage]
    requested_model_id: str
    options: GenerationOptions = field(default_factory=GenerationOptions)
    augmented: set[str] = field(default_factory=set)
    pending_notices: list[str] = field(default_factory=list)

    def latest_user_content(self) -> str:
        return latest_user_content(self.messages)


@dataclass(frozen=True, slots=True)
class SafetyVerdict:
    blocked: bool
    category: str | None = None
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "blocked": self.blocked,
            "category": self.category,
            "message": self.message,
        }


@dataclass(slots=True)
class GenerationResult:
    text: str
    resolved_model_id: str
    model_info: ModelDescriptor
    notices: list[str] = field(default_factory=list)
    loading: bool = False
    safety: SafetyVerdict | None = None


def latest_user_content(messages: list[ChatMessage]) -> str:
    for message in reversed(messages):
        if message.role == "user" and isinstance(message.content, str):
            return message.content
    return ""
