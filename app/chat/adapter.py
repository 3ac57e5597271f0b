from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from app.core.notices import dedupe_preserve_order, normalize_notices
from app.core.pipeline import ChatPipeline
from app.core.relay import CancellationToken, StreamRelay
from app.core.types import (
    ChatMessage,
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
    SearchMode,
)

from .errors import map_chat_error
from .schemas import (
    ChatMessagePayload,
    ChatOptionsPayload,
    ChatRequestPayload,
    GenerateRequestPayload,
)

_relay = StreamRelay(error_message=lambda exc: map_chat_error(exc).message)


def notice_headers(notices: list[str]) -> dict[str, str]:
    if not notices:
        return {}

    value = " | ".join(dedupe_preserve_order(notices))
    # header values must stay latin-1 and reasonably short
    value = value.encode("latin-1", "replace").decode("latin-1")
    if len(value) > 2048:
        value = value[:2045] + "..."
    return {"X-Chat-Notices": value}


def generation_options(payload: ChatOptionsPayload | None) -> GenerationOptions:
    if payload is None:
        return GenerationOptions()

    return GenerationOptions(
        temperature=payload.temperature,
        max_tokens=payload.max_tokens,
        search_mode=SearchMode(payload.search_mode),
        notices=tuple(normalize_notices(payload.notice)),
    )


def prepare_chat_request(payload: ChatRequestPayload) -> GenerationRequest:
    messages: list[ChatMessage] = []
    warnings: list[str] = []

    for idx, message in enumerate(payload.messages):
        text, content_warnings = _extract_text_content(message, idx)
        warnings.extend(content_warnings)
        messages.append(ChatMessage(role=message.role, content=text, image=message.image))

    return GenerationRequest(
        messages=messages,
        requested_model_id=payload.model or "",
        options=generation_options(payload.options),
        pending_notices=dedupe_preserve_order(warnings),
    )


def result_payload(result: GenerationResult, text_key: str = "message") -> dict[str, Any]:
    return {
        text_key: result.text,
        "model": result.resolved_model_id,
        "modelInfo": result.model_info.to_card(),
        "loading": result.loading,
        "notices": list(result.notices),
        "safety": result.safety.to_payload() if result.safety is not None else None,
    }


async def create_chat(
    pipeline: ChatPipeline,
    payload: ChatRequestPayload,
) -> tuple[dict[str, Any], list[str]]:
    request = prepare_chat_request(payload)
    try:
        result = await pipeline.chat(request)
    except Exception as exc:
        raise map_chat_error(exc) from exc

    return result_payload(result), result.notices


def create_chat_stream(
    pipeline: ChatPipeline,
    payload: ChatRequestPayload,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[bytes]:
    request = prepare_chat_request(payload)
    token = CancellationToken()
    return _relay.frames(pipeline.stream(request, token), token, is_disconnected)


async def create_generation(
    pipeline: ChatPipeline,
    payload: GenerateRequestPayload,
) -> tuple[dict[str, Any], list[str]]:
    try:
        result = await pipeline.generate(
            payload.prompt,
            payload.model,
            generation_options(payload.options),
        )
    except Exception as exc:
        raise map_chat_error(exc) from exc

    return result_payload(result, text_key="text"), result.notices


def _extract_text_content(
    message: ChatMessagePayload,
    message_index: int,
) -> tuple[str, list[str]]:
    content = message.content
    warnings: list[str] = []

    if content is None:
        return "", warnings

    if isinstance(content, str):
        return content, warnings

    if not isinstance(content, list):
        warnings.append(f"Converted non-text content in messages[{message_index}] to text.")
        return str(content), warnings

    parts: list[str] = []
    ignored_non_text = False

    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif (
            isinstance(part, dict)
            and part.get("type") == "text"
            and isinstance(part.get("text"), str)
        ):
            parts.append(part["text"])
        else:
            ignored_non_text = True

    if ignored_non_text:
        warnings.append(f"Ignored non-text content parts in messages[{message_index}].")

    return "".join(parts), warnings
