from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import NoReturn, assert_never

import httpx

from app.core import config
from app.core.errors import FailureKind, ProviderError, kind_for_status
from app.core.notices import compose_notices
from app.core.registry import ModelRegistry
from app.core.relay import CancellationToken, close_source, stream_text
from app.core.safety import SafetyFilter
from app.core.types import (
    GenerationRequest,
    GenerationResult,
    ModelDescriptor,
    ProviderKind,
    SafetyVerdict,
)
from app.providers.base import Adapter
from app.providers.daemon import LocalDaemonAdapter
from app.providers.knowledge import PRODUCT_PROFILES, product_sheet

logger = logging.getLogger(__name__)

_REASONS: dict[FailureKind, str] = {
    FailureKind.RATE_LIMITED: "{name} is rate limited right now.",
    FailureKind.SERVICE_UNAVAILABLE: "{name} is still loading or temporarily unavailable.",
    FailureKind.CONNECTION_REFUSED: "Could not connect to {name}.",
    FailureKind.MALFORMED_REQUEST: "{name} rejected the request: {detail}",
    FailureKind.MALFORMED_UPSTREAM_RESPONSE: "{name} returned an unreadable response: {detail}",
    FailureKind.UNKNOWN: "{name} failed: {detail}",
}


@dataclass(slots=True)
class AdapterSet:
    cloud: Adapter
    daemon: LocalDaemonAdapter
    on_device: Adapter
    rule_based: Adapter


def classify_failure(exc: BaseException) -> ProviderError:
    """Map anything an adapter raised onto a ``ProviderError``.

    Adapters classify their own failures; this covers raw transport and
    parsing exceptions that escape them.
    """
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return ProviderError(kind=kind_for_status(status), message=str(exc), status_code=status)
    if isinstance(exc, httpx.TimeoutException):
        return ProviderError(kind=FailureKind.SERVICE_UNAVAILABLE, message=str(exc) or "timed out")
    if isinstance(exc, httpx.ConnectError):
        return ProviderError(kind=FailureKind.CONNECTION_REFUSED, message=str(exc))
    if isinstance(exc, httpx.HTTPError):
        return ProviderError(kind=FailureKind.UNKNOWN, message=str(exc))
    if isinstance(exc, TimeoutError):
        return ProviderError(kind=FailureKind.SERVICE_UNAVAILABLE, message=str(exc) or "timed out")
    if isinstance(exc, ConnectionError):
        return ProviderError(kind=FailureKind.CONNECTION_REFUSED, message=str(exc))
    if isinstance(exc, ValueError):
        return ProviderError(kind=FailureKind.MALFORMED_UPSTREAM_RESPONSE, message=str(exc))
    return ProviderError(kind=FailureKind.UNKNOWN, message=str(exc) or type(exc).__name__)


def italic_notice(notice: str) -> str:
    return f"*{notice}*\n\n"


def refusal_text(descriptor: ModelDescriptor, verdict: SafetyVerdict) -> str:
    message = verdict.message or ""
    profile = PRODUCT_PROFILES.get(descriptor.id)
    if profile is None:
        return message
    return f"{message}\n\n{product_sheet(profile)}"


class Dispatcher:
    """Routes a request to its backend and owns the single fallback hop.

    Authentication failures are raised to the caller. Every other failure
    is retried once on the default rule-based model with a notice saying
    why.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        adapters: AdapterSet,
        safety: SafetyFilter | None = None,
    ) -> None:
        self.registry = registry
        self.adapters = adapters
        self.safety = safety or SafetyFilter()

    def adapter_for(self, kind: ProviderKind) -> Adapter:
        match kind:
            case ProviderKind.CLOUD_CHAT:
                return self.adapters.cloud
            case ProviderKind.LOCAL_DAEMON:
                return self.adapters.daemon
            case ProviderKind.ON_DEVICE_TRANSFORMER:
                return self.adapters.on_device
            case ProviderKind.RULE_BASED:
                return self.adapters.rule_based
            case _:
                assert_never(kind)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        descriptor, dynamic = self._resolve(request)

        verdict = None
        if descriptor.provider_kind.is_offline:
            verdict = self.safety.check(request.latest_user_content())
            if verdict.blocked:
                return self._refusal(request, descriptor, verdict, dynamic)

        adapter = self.adapter_for(descriptor.provider_kind)
        try:
            result = await adapter.generate_once(request.messages, descriptor, request.options)
        except Exception as exc:
            failure = self._fallback_failure(exc, descriptor)
            return await self._fall_back(request, descriptor, failure, dynamic, verdict)

        result.notices = compose_notices(
            inline=request.options.notices,
            static=descriptor.static_notice,
            dynamic=[*dynamic, *result.notices],
        )
        return result

    async def stream(
        self,
        request: GenerationRequest,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        """Yield content fragments, leading with any runtime notices in italics.

        A failure before the first content fragment falls back to the
        rule-based model. Once content has been sent, or for an
        authentication failure, the error is raised to the relay.
        """
        descriptor, dynamic = self._resolve(request)
        for notice in compose_notices(dynamic=dynamic):
            yield italic_notice(notice)

        verdict = None
        if descriptor.provider_kind.is_offline:
            verdict = self.safety.check(request.latest_user_content())
            if verdict.blocked:
                async for fragment in stream_text(
                    refusal_text(descriptor, verdict), config.STREAM_CHUNK_CHARS
                ):
                    yield fragment
                return

        adapter = self.adapter_for(descriptor.provider_kind)
        source = adapter.generate_stream(request.messages, descriptor, request.options)
        emitted = False
        failure: ProviderError | None = None
        try:
            async for fragment in source:
                if token is not None and token.cancelled:
                    return
                if not fragment:
                    continue
                emitted = True
                yield fragment
        except Exception as exc:
            if emitted:
                _reraise(exc)
            failure = self._fallback_failure(exc, descriptor)
        finally:
            await close_source(source)

        if failure is None:
            return

        default = self.registry.default
        if verdict is None:
            verdict = self.safety.check(request.latest_user_content())
        if verdict.blocked:
            async for fragment in stream_text(
                refusal_text(default, verdict), config.STREAM_CHUNK_CHARS
            ):
                yield fragment
            return

        yield italic_notice(self.fallback_notice(descriptor, failure))
        fallback = self.adapters.rule_based.generate_stream(
            request.messages, default, request.options
        )
        try:
            async for fragment in fallback:
                if token is not None and token.cancelled:
                    return
                if fragment:
                    yield fragment
        finally:
            await close_source(fallback)

    def fallback_notice(self, descriptor: ModelDescriptor, failure: ProviderError) -> str:
        default = self.registry.default
        if (
            failure.kind is FailureKind.CONNECTION_REFUSED
            and descriptor.provider_kind is ProviderKind.LOCAL_DAEMON
        ):
            reason = (
                f"Could not reach Ollama at {self.adapters.daemon.base_url}. Ensure the Ollama "
                "service is running and the model is pulled."
            )
        elif failure.notice:
            reason = failure.notice
        else:
            template = _REASONS.get(failure.kind, _REASONS[FailureKind.UNKNOWN])
            reason = template.format(name=descriptor.name, detail=failure.message)
        return f"{reason.rstrip()} Switched to {default.name} for this reply."

    def _resolve(self, request: GenerationRequest) -> tuple[ModelDescriptor, list[str]]:
        descriptor, substituted = self.registry.resolve(request.requested_model_id)
        dynamic = list(request.pending_notices)
        if substituted:
            logger.info(
                "unknown model requested: model=%s using=%s",
                request.requested_model_id,
                descriptor.id,
            )
            dynamic.append(
                f"Model '{request.requested_model_id}' is not registered. "
                f"Using {descriptor.name} instead."
            )
        return descriptor, dynamic

    def _fallback_failure(self, exc: Exception, descriptor: ModelDescriptor) -> ProviderError:
        failure = classify_failure(exc)
        if failure.kind is FailureKind.AUTH_ERROR:
            logger.warning("authentication failed: model=%s", descriptor.id)
            _reraise(exc)
        if descriptor.provider_kind is ProviderKind.RULE_BASED:
            # the rule-based model is the last hop
            _reraise(exc)
        logger.warning(
            "generation failed, falling back: model=%s kind=%s error=%s",
            descriptor.id,
            failure.kind.value,
            failure.message,
        )
        return failure

    async def _fall_back(
        self,
        request: GenerationRequest,
        descriptor: ModelDescriptor,
        failure: ProviderError,
        dynamic: list[str],
        verdict: SafetyVerdict | None,
    ) -> GenerationResult:
        default = self.registry.default
        dynamic = [*dynamic, self.fallback_notice(descriptor, failure)]

        if verdict is None:
            verdict = self.safety.check(request.latest_user_content())
        if verdict.blocked:
            return self._refusal(request, default, verdict, dynamic)

        result = await self.adapters.rule_based.generate_once(
            request.messages, default, request.options
        )
        result.notices = compose_notices(
            inline=request.options.notices,
            static=default.static_notice,
            dynamic=[*dynamic, *result.notices],
        )
        result.loading = failure.kind is FailureKind.SERVICE_UNAVAILABLE
        return result

    def _refusal(
        self,
        request: GenerationRequest,
        descriptor: ModelDescriptor,
        verdict: SafetyVerdict,
        dynamic: list[str],
    ) -> GenerationResult:
        logger.info("request blocked by safety filter: category=%s", verdict.category)
        return GenerationResult(
            text=refusal_text(descriptor, verdict),
            resolved_model_id=descriptor.id,
            model_info=descriptor,
            notices=compose_notices(
                inline=request.options.notices,
                static=descriptor.static_notice,
                dynamic=dynamic,
            ),
            safety=verdict,
        )


def _reraise(exc: Exception) -> NoReturn:
    if isinstance(exc, ProviderError):
        raise exc
    raise classify_failure(exc) from exc
