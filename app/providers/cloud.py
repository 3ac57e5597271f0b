from __future__ import annotations

import json
import logging
import os
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx

from app.core import config
from app.core.errors import FailureKind, ProviderError, kind_for_status
from app.core.types import ChatMessage, GenerationOptions, GenerationResult, ModelDescriptor

from .base import resolve_max_tokens, resolve_temperature
from .prompting import image_data_url

logger = logging.getLogger(__name__)

PROVIDER = "openai"


class CloudChatAdapter:
    """OpenAI-compatible chat completions over HTTP."""

    def __init__(
        self,
        base_url: str = config.OPENAI_BASE_URL,
        *,
        environ: Mapping[str, str] | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._environ = environ
        self._timeout = timeout or httpx.Timeout(
            config.REQUEST_TIMEOUT_S, connect=config.CONNECT_TIMEOUT_S
        )

    async def generate_once(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> GenerationResult:
        headers = self._headers(descriptor)
        payload = self._payload(messages, descriptor, options, stream=False)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                r = await client.post(
                    f"{self.base_url}/chat/completions", json=payload, headers=headers
                )
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as exc:
            raise _status_error(exc.response, descriptor) from exc
        except httpx.HTTPError as exc:
            raise _transport_error(exc, self.base_url) from exc
        except ValueError as exc:
            raise ProviderError(
                kind=FailureKind.MALFORMED_UPSTREAM_RESPONSE,
                message=f"Chat API returned a non-JSON body: {exc}",
                provider=PROVIDER,
            ) from exc

        text = _completion_text(data)
        logger.info("cloud chat completed: model=%s chars=%d", descriptor.id, len(text))
        return GenerationResult(
            text=text,
            resolved_model_id=descriptor.id,
            model_info=descriptor,
        )

    async def generate_stream(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        headers = self._headers(descriptor)
        payload = self._payload(messages, descriptor, options, stream=True)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                ) as r:
                    if r.is_error:
                        await r.aread()
                        raise _status_error(r, descriptor)

                    async for line in r.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        raw = line.removeprefix("data:").strip()
                        if raw == "[DONE]":
                            break
                        delta = _delta_text(raw)
                        if delta:
                            yield delta
        except httpx.HTTPError as exc:
            raise _transport_error(exc, self.base_url) from exc

    def _headers(self, descriptor: ModelDescriptor) -> dict[str, str]:
        env = os.environ if self._environ is None else self._environ
        credential = descriptor.requires_credential or "OPENAI_API_KEY"
        api_key = env.get(credential)
        if not api_key:
            raise ProviderError(
                kind=FailureKind.AUTH_ERROR,
                message=(
                    f"Chat API key not configured. Please set the {credential} "
                    "environment variable."
                ),
                provider=PROVIDER,
            )
        return {"Authorization": f"Bearer {api_key}"}

    def _payload(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
        *,
        stream: bool,
    ) -> dict[str, Any]:
        return {
            "model": descriptor.target_model,
            "messages": [_wire_message(m, descriptor.supports_vision) for m in messages],
            "max_tokens": resolve_max_tokens(options, descriptor),
            "temperature": resolve_temperature(options),
            "stream": stream,
        }


def _wire_message(message: ChatMessage, vision: bool) -> dict[str, Any]:
    content = message.content if isinstance(message.content, str) else str(message.content)
    if message.image and vision:
        return {
            "role": message.role,
            "content": [
                {"type": "text", "text": content},
                {"type": "image_url", "image_url": {"url": image_data_url(message.image)}},
            ],
        }
    return {"role": message.role, "content": content}


def _completion_text(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ProviderError(
            kind=FailureKind.MALFORMED_UPSTREAM_RESPONSE,
            message="Chat API response did not contain a completion message.",
            provider=PROVIDER,
        ) from exc
    return content if isinstance(content, str) else ""


def _delta_text(raw: str) -> str:
    try:
        chunk = json.loads(raw)
    except json.JSONDecodeError:
        return ""
    if not isinstance(chunk, dict):
        return ""
    if chunk.get("error"):
        raise _stream_error(chunk["error"])
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""


def _stream_error(error: Any) -> ProviderError:
    # error frames sent inside a 200 event stream
    if isinstance(error, dict):
        message = str(error.get("message") or error.get("type") or "unknown error")
        marker = f"{error.get('type', '')} {error.get('code', '')} {message}".lower()
    else:
        message = str(error)
        marker = message.lower()

    overloaded = any(word in marker for word in ("overload", "server_error", "unavailable"))
    return ProviderError(
        kind=FailureKind.SERVICE_UNAVAILABLE if overloaded else FailureKind.UNKNOWN,
        message=f"Chat API stream error: {message}",
        provider=PROVIDER,
    )


def _status_error(response: httpx.Response, descriptor: ModelDescriptor) -> ProviderError:
    detail = _error_detail(response)
    return ProviderError(
        kind=kind_for_status(response.status_code),
        message=f"Chat API returned {response.status_code} for {descriptor.id}: {detail}",
        provider=PROVIDER,
        status_code=response.status_code,
    )


def _transport_error(exc: httpx.HTTPError, base_url: str) -> ProviderError:
    if isinstance(exc, httpx.TimeoutException):
        return ProviderError(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message=f"Chat API at {base_url} timed out.",
            provider=PROVIDER,
        )
    if isinstance(exc, httpx.ConnectError):
        return ProviderError(
            kind=FailureKind.CONNECTION_REFUSED,
            message=f"Could not connect to the chat API at {base_url}: {exc}",
            provider=PROVIDER,
        )
    return ProviderError(
        kind=FailureKind.UNKNOWN,
        message=f"Chat API HTTP error: {exc}",
        provider=PROVIDER,
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    return response.reason_phrase
