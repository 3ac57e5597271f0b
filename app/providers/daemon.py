from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from app.core import config
from app.core.errors import FailureKind, ProviderError, kind_for_status
from app.core.types import ChatMessage, GenerationOptions, GenerationResult, ModelDescriptor

from .base import resolve_max_tokens, resolve_temperature
from .prompting import bare_base64, format_messages_as_prompt

logger = logging.getLogger(__name__)

PROVIDER = "ollama"
EMPTY_OUTPUT = "Ollama model did not return any output."


class LocalDaemonAdapter:
    """Ollama-style model server reached over HTTP."""

    def __init__(
        self,
        base_url: str = config.OLLAMA_HOST,
        *,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout or httpx.Timeout(
            config.REQUEST_TIMEOUT_S, connect=config.CONNECT_TIMEOUT_S
        )

    async def generate_once(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> GenerationResult:
        target = descriptor.target_model
        payload: dict[str, Any] = {
            "model": target,
            "prompt": format_messages_as_prompt(messages, target),
            "stream": False,
            "options": self._options(descriptor, options),
        }
        if descriptor.supports_vision:
            images = [bare_base64(m.image) for m in messages if m.image]
            if images:
                payload["images"] = images

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                r = await client.post(f"{self.base_url}/api/generate", json=payload)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as exc:
            raise self._status_error(exc.response, target) from exc
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, target) from exc
        except ValueError as exc:
            raise ProviderError(
                kind=FailureKind.MALFORMED_UPSTREAM_RESPONSE,
                message=f"Ollama returned a non-JSON body: {exc}",
                provider=PROVIDER,
            ) from exc

        if not isinstance(data, dict):
            raise ProviderError(
                kind=FailureKind.MALFORMED_UPSTREAM_RESPONSE,
                message="Unexpected response type from Ollama.",
                provider=PROVIDER,
            )

        err = data.get("error")
        if isinstance(err, str) and err:
            raise self._daemon_error(err, target)

        reply = data.get("response", "")
        if not isinstance(reply, str):
            raise ProviderError(
                kind=FailureKind.MALFORMED_UPSTREAM_RESPONSE,
                message="Unexpected response type from Ollama.",
                provider=PROVIDER,
            )

        return GenerationResult(
            text=reply.strip() or EMPTY_OUTPUT,
            resolved_model_id=descriptor.id,
            model_info=descriptor,
        )

    async def generate_stream(
        self,
        messages: list[ChatMessage],
        descriptor: ModelDescriptor,
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        target = descriptor.target_model
        payload = {
            "model": target,
            "messages": [self._wire_message(m, descriptor.supports_vision) for m in messages],
            "stream": True,
            "options": self._options(descriptor, options),
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                async with client.stream("POST", f"{self.base_url}/api/chat", json=payload) as r:
                    if r.is_error:
                        await r.aread()
                        raise self._status_error(r, target)

                    async for line in r.aiter_lines():
                        if not line:
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            continue
                        if not isinstance(data, dict):
                            continue
                        if data.get("error"):
                            raise self._daemon_error(str(data["error"]), target)
                        content = (data.get("message") or {}).get("content")
                        if isinstance(content, str) and content:
                            yield content
                        if data.get("done"):
                            break
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, target) from exc

    def _options(self, descriptor: ModelDescriptor, options: GenerationOptions) -> dict[str, Any]:
        return {
            "temperature": resolve_temperature(options),
            "top_p": 0.9,
            "repeat_penalty": 1.1,
            "num_predict": resolve_max_tokens(options, descriptor),
        }

    def _wire_message(self, message: ChatMessage, vision: bool) -> dict[str, Any]:
        wire: dict[str, Any] = {"role": message.role, "content": message.content}
        if message.image and vision:
            wire["images"] = [bare_base64(message.image)]
        return wire

    def _transport_error(self, exc: httpx.HTTPError, target: str) -> ProviderError:
        if isinstance(exc, httpx.ConnectError):
            return ProviderError(
                kind=FailureKind.CONNECTION_REFUSED,
                message=f"Could not reach Ollama at {self.base_url}: {exc}",
                provider=PROVIDER,
                notice=(
                    f"Could not reach Ollama at {self.base_url}. Ensure the Ollama service "
                    "is running and the model is pulled."
                ),
            )
        if isinstance(exc, httpx.TimeoutException):
            return ProviderError(
                kind=FailureKind.SERVICE_UNAVAILABLE,
                message=f"Ollama at {self.base_url} timed out serving {target}.",
                provider=PROVIDER,
                notice=f"Ollama model {target} did not answer in time; it may still be loading.",
            )
        return ProviderError(
            kind=FailureKind.UNKNOWN,
            message=f"Ollama HTTP error: {exc}",
            provider=PROVIDER,
        )

    def _status_error(self, response: httpx.Response, target: str) -> ProviderError:
        detail = _error_detail(response)
        status = response.status_code

        if status == 503 or "loading" in detail.lower():
            return ProviderError(
                kind=FailureKind.SERVICE_UNAVAILABLE,
                message=f"Ollama returned {status}: {detail}",
                provider=PROVIDER,
                status_code=status,
                notice=f"Ollama model {target} is still loading ({detail}).",
            )

        kind = kind_for_status(status)
        if kind in (FailureKind.RATE_LIMITED, FailureKind.AUTH_ERROR):
            return ProviderError(
                kind=kind,
                message=f"Ollama returned {status}: {detail}",
                provider=PROVIDER,
                status_code=status,
                notice=f"Ollama at {self.base_url} refused model {target} ({status}: {detail}).",
            )

        if status < 500:
            return ProviderError(
                kind=FailureKind.MALFORMED_REQUEST,
                message=f"Ollama returned {status}: {detail}",
                provider=PROVIDER,
                status_code=status,
                notice=(
                    f"Ollama at {self.base_url} is running but model {target} is not "
                    f"available ({detail}). Pull it with `ollama pull {target}`."
                ),
            )

        return ProviderError(
            kind=FailureKind.UNKNOWN,
            message=f"Ollama returned {status}: {detail}",
            provider=PROVIDER,
            status_code=status,
            notice=f"Ollama model {target} failed: {detail}.",
        )

    def _daemon_error(self, detail: str, target: str) -> ProviderError:
        return ProviderError(
            kind=FailureKind.UNKNOWN,
            message=f"Ollama error: {detail}",
            provider=PROVIDER,
            notice=f"Ollama model {target} failed: {detail}.",
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase

    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return response.reason_phrase
