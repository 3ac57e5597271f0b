from __future__ import annotations

from app.collaborators.search import SearchResult
from app.core.registry import ModelRegistry
from app.core.types import (
    ChatMessage,
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
)
from app.providers.rule_based import RuleBasedAdapter

DAEMON_URL = "http://daemon.test:11434"


class FakeAdapter:
    """Adapter double that counts calls and can fail on demand.

    ``fail_at`` is the fragment index at which streaming raises ``error``;
    the default fails before anything is yielded.
    """

    def __init__(
        self,
        text: str = "fake reply",
        fragments: tuple[str, ...] = ("fa", "ke"),
        error: Exception | None = None,
        fail_at: int = 0,
        base_url: str = DAEMON_URL,
    ) -> None:
        self.text = text
        self.fragments = fragments
        self.error = error
        self.fail_at = fail_at
        self.base_url = base_url
        self.calls = 0
        self.stream_calls = 0
        self.closed = False

    async def generate_once(self, messages, descriptor, options) -> GenerationResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return GenerationResult(text=self.text, resolved_model_id=descriptor.id, model_info=descriptor)

    async def generate_stream(self, messages, descriptor, options):
        self.stream_calls += 1
        try:
            for index, fragment in enumerate(self.fragments):
                if self.error is not None and index == self.fail_at:
                    raise self.error
                yield fragment
            if self.error is not None and self.fail_at >= len(self.fragments):
                raise self.error
        finally:
            self.closed = True


class CountingRuleBased(RuleBasedAdapter):
    def __init__(self, registry: ModelRegistry) -> None:
        super().__init__(registry)
        self.calls = 0
        self.stream_calls = 0

    async def generate_once(self, messages, descriptor, options) -> GenerationResult:
        self.calls += 1
        return await super().generate_once(messages, descriptor, options)

    async def generate_stream(self, messages, descriptor, options):
        self.stream_calls += 1
        async for fragment in super().generate_stream(messages, descriptor, options):
            yield fragment


def make_request(
    content: str = "hello",
    model: str = "local/instruct",
    **options,
) -> GenerationRequest:
    return GenerationRequest(
        messages=[ChatMessage(role="user", content=content)],
        requested_model_id=model,
        options=GenerationOptions(**options),
    )


class FakeSearch:
    name = "Fake Search"

    def __init__(self, results=None, error: Exception | None = None) -> None:
        self.results = results if results is not None else [
            SearchResult(title="Result", link="https://example.com", snippet="A snippet"),
        ]
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str) -> list[SearchResult]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.results


class FakeImages:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return "data:image/png;base64,QUJD"

