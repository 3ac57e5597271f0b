from __future__ import annotations

import pytest

from app.collaborators.external_apis import FileApiCatalogue
from app.collaborators.images import ImageGenerationError
from app.collaborators.search import SearchError
from app.core.augmentation import (
    API_CONTEXT_FLAG,
    DEFAULT_SYSTEM_PROMPT,
    SEARCH_FLAG,
    Augmenter,
    append_to_system,
)
from app.core.registry import ModelRegistry
from app.core.types import ChatMessage, GenerationOptions, GenerationRequest, SearchMode

from fakes import FakeImages, FakeSearch


def _request(content: str, search_mode: SearchMode = SearchMode.AUTO, system: str | None = None):
    messages = [ChatMessage(role="system", content=system)] if system else []
    messages.append(ChatMessage(role="user", content=content))
    return GenerationRequest(
        messages=messages,
        requested_model_id="local/instruct",
        options=GenerationOptions(search_mode=search_mode),
    )


@pytest.fixture()
def registry() -> ModelRegistry:
    return ModelRegistry.from_config()


@pytest.mark.asyncio
async def test_search_context_is_injected_once(registry):
    search = FakeSearch()
    augmenter = Augmenter(registry, search=search)
    request = _request("what's new in python", SearchMode.ON, system="Be brief.")

    await augmenter.apply(request)
    await augmenter.apply(request)

    system = request.messages[0]
    assert system.role == "system"
    assert system.content.startswith("Be brief.")
    assert system.content.count("[Web Search Results (Fake Search):") == 1
    assert "- [Result](https://example.com): A snippet" in system.content
    assert len(search.queries) == 1
    assert SEARCH_FLAG in request.augmented


@pytest.mark.asyncio
async def test_api_context_is_injected_once(registry):
    apis = FileApiCatalogue.from_entries(
        [
            {"name": "Weather", "description": "Forecasts", "baseUrl": "https://weather.test"},
            {"name": "Hidden", "description": "Off", "baseUrl": "https://off.test", "enabled": False},
        ]
    )
    augmenter = Augmenter(registry, apis=apis)
    request = _request("hello")

    await augmenter.apply(request)
    await augmenter.apply(request)

    assert len(request.messages) == 2
    system = request.messages[0].content
    assert system.startswith(DEFAULT_SYSTEM_PROMPT)
    assert system.count("System Note: You have access to the following external APIs") == 1
    assert "- Weather: Forecasts (https://weather.test)" in system
    assert "Hidden" not in system
    assert API_CONTEXT_FLAG in request.augmented


@pytest.mark.asyncio
async def test_auto_mode_searches_only_for_web_search_intent(registry):
    search = FakeSearch()
    augmenter = Augmenter(registry, search=search)

    await augmenter.apply(_request("how do I write a unit test"))
    assert search.queries == []

    await augmenter.apply(_request("latest news on the stock price"))
    assert search.queries == ["latest news on the stock price"]


@pytest.mark.asyncio
async def test_off_mode_never_searches(registry):
    search = FakeSearch()
    augmenter = Augmenter(registry, search=search)

    await augmenter.apply(_request("latest news", SearchMode.OFF))

    assert search.queries == []


@pytest.mark.asyncio
async def test_search_failure_becomes_notice(registry):
    augmenter = Augmenter(registry, search=FakeSearch(error=SearchError("quota exceeded")))
    request = _request("anything", SearchMode.ON)

    await augmenter.apply(request)

    assert request.pending_notices == ["Search failed: quota exceeded"]
    assert [m.role for m in request.messages] == ["user"]


@pytest.mark.asyncio
async def test_missing_search_backend_becomes_notice(registry):
    request = _request("anything", SearchMode.ON)

    await Augmenter(registry).apply(request)

    assert any("not configured" in notice for notice in request.pending_notices)


@pytest.mark.asyncio
async def test_image_intent_short_circuits(registry):
    images = FakeImages()
    augmenter = Augmenter(registry, images=images)

    outcome = await augmenter.apply(_request("draw a picture of a lighthouse"))

    assert outcome.intent.key == "image_generation"
    assert outcome.image_result is not None
    assert outcome.image_result.text == "![Generated Image](data:image/png;base64,QUJD)"
    assert outcome.image_result.resolved_model_id == "local/instruct"
    assert images.prompts == ["draw a picture of a lighthouse"]


@pytest.mark.asyncio
async def test_failed_image_generation_continues_with_notice(registry):
    augmenter = Augmenter(registry, images=FakeImages(error=ImageGenerationError("no provider")))
    request = _request("draw a picture of a lighthouse")

    outcome = await augmenter.apply(request)

    assert outcome.image_result is None
    assert request.pending_notices == ["Image generation failed: no provider"]


def test_append_to_system_does_not_mutate_input():
    original = [ChatMessage(role="system", content="Base."), ChatMessage(role="user", content="hi")]

    rewritten = append_to_system(original, "[block]")

    assert original[0].content == "Base."
    assert rewritten[0].content == "Base.\n\n[block]"
    assert rewritten[1] is original[1]


class BrokenCatalogue:
    def list_apis(self):
        raise OSError("catalogue locked")


@pytest.mark.asyncio
async def test_unexpected_collaborator_errors_become_notices(registry):
    augmenter = Augmenter(
        registry,
        search=FakeSearch(error=RuntimeError("socket closed")),
        images=FakeImages(error=KeyError("data")),
        apis=BrokenCatalogue(),
    )
    image_request = _request("draw a picture of a lighthouse")
    search_request = _request("latest news", SearchMode.ON)

    image_outcome = await augmenter.apply(image_request)
    await augmenter.apply(search_request)

    assert image_outcome.image_result is None
    assert any(n.startswith("Image generation failed:") for n in image_request.pending_notices)
    assert "Search failed: socket closed" in search_request.pending_notices
    assert "External API catalogue unavailable: catalogue locked" in search_request.pending_notices
