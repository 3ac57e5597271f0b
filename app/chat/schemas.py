from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ChatMessagePayload(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: Any = ""
    image: str | None = None

    model_config = ConfigDict(extra="allow")


class ChatOptionsPayload(BaseModel):
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, alias="maxTokens", ge=1)
    search_mode: Literal["auto", "on", "off"] = Field(default="auto", alias="searchMode")
    notice: str | list[str] | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ChatRequestPayload(BaseModel):
    messages: list[ChatMessagePayload] = Field(min_length=1)
    model: str | None = None
    options: ChatOptionsPayload | None = None

    model_config = ConfigDict(extra="allow")


class GenerateRequestPayload(BaseModel):
    prompt: str = Field(min_length=1)
    model: str | None = None
    options: ChatOptionsPayload | None = None

    model_config = ConfigDict(extra="allow")


class IntentRequestPayload(BaseModel):
    text: str = Field(min_length=1, validation_alias=AliasChoices("text", "query"))

    model_config = ConfigDict(extra="allow")


class SearchToolPayload(BaseModel):
    query: str = Field(min_length=1)

    model_config = ConfigDict(extra="allow")


class ImageToolPayload(BaseModel):
    prompt: str = Field(min_length=1)

    model_config = ConfigDict(extra="allow")
