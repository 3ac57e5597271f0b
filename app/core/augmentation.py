from __future__ import annotations

import logging
from dataclasses import dataclass

from app.collaborators.external_apis import ExternalApiCatalogue
from app.collaborators.images import ImageCollaborator, ImageGenerationError
from app.collaborators.search import SearchCollaborator, SearchError, SearchResult
from app.core.intent import IntentMatch, classify_intent
from app.core.notices import compose_notices
from app.core.registry import ModelRegistry
from app.core.types import ChatMessage, GenerationRequest, GenerationResult, SearchMode

logger = logging.getLogger(__name__)

SEARCH_FLAG = "web_search"
API_CONTEXT_FLAG = "api_context"
IMAGE_FLAG = "image_generation"

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
CITATION_INSTRUCTION = (
    "[Instruction: Use the above search results to answer the user's question. "
    "Cite your sources using [Title](Link) format.]"
)


@dataclass(slots=True)
class AugmentationOutcome:
    request: GenerationRequest
    intent: IntentMatch
    image_result: GenerationResult | None = None


class Augmenter:
    """Intent-driven request rewriting ahead of dispatch.

    Each step records itself in ``request.augmented`` and is skipped when
    already present, so applying the stage twice changes nothing the second
    time. Collaborator failures become notices on the request.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        *,
        search: SearchCollaborator | None = None,
        images: ImageCollaborator | None = None,
        apis: ExternalApiCatalogue | None = None,
    ) -> None:
        self.registry = registry
        self.search = search
        self.images = images
        self.apis = apis

    async def apply(self, request: GenerationRequest) -> AugmentationOutcome:
        prompt = request.latest_user_content()
        intent = classify_intent(prompt)

        if intent.key == "image_generation" and IMAGE_FLAG not in request.augmented:
            request.augmented.add(IMAGE_FLAG)
            image_result = await self._generate_image(request, prompt)
            if image_result is not None:
                return AugmentationOutcome(request=request, intent=intent, image_result=image_result)

        if self._should_search(request, intent) and SEARCH_FLAG not in request.augmented:
            request.augmented.add(SEARCH_FLAG)
            await self._inject_search(request, prompt)

        if API_CONTEXT_FLAG not in request.augmented:
            request.augmented.add(API_CONTEXT_FLAG)
            self._inject_api_context(request)

        return AugmentationOutcome(request=request, intent=intent)

    def _should_search(self, request: GenerationRequest, intent: IntentMatch) -> bool:
        match request.options.search_mode:
            case SearchMode.ON:
                return True
            case SearchMode.AUTO:
                return intent.key == "web_search"
            case _:
                return False

    async def _generate_image(
        self, request: GenerationRequest, prompt: str
    ) -> GenerationResult | None:
        if self.images is None:
            request.pending_notices.append(
                "Image generation is not configured; answering in text instead."
            )
            return None

        try:
            url = await self.images.generate(prompt)
        except ImageGenerationError as exc:
            logger.warning("image generation failed: %s", exc)
            request.pending_notices.append(f"Image generation failed: {exc}")
            return None
        except Exception as exc:
            logger.exception("image collaborator raised unexpectedly")
            request.pending_notices.append(f"Image generation failed: {exc}")
            return None

        descriptor = self.registry.lookup(request.requested_model_id)
        return GenerationResult(
            text=f"![Generated Image]({url})",
            resolved_model_id=descriptor.id,
            model_info=descriptor,
            notices=compose_notices(
                inline=request.options.notices,
                dynamic=request.pending_notices,
            ),
        )

    async def _inject_search(self, request: GenerationRequest, prompt: str) -> None:
        if self.search is None:
            request.pending_notices.append(
                "Web search is not configured; answering without live results."
            )
            return

        try:
            results = await self.search.search(prompt)
        except SearchError as exc:
            logger.warning("web search failed: %s", exc)
            request.pending_notices.append(f"Search failed: {exc}")
            return
        except Exception as exc:
            logger.exception("search collaborator raised unexpectedly")
            request.pending_notices.append(f"Search failed: {exc}")
            return

        if not results:
            request.pending_notices.append(f"{self.search.name} returned no results.")
            return

        request.messages = append_to_system(
            request.messages, search_block(self.search.name, results)
        )
        request.pending_notices.append(f"Answer grounded with {self.search.name} results.")

    def _inject_api_context(self, request: GenerationRequest) -> None:
        if self.apis is None:
            return
        try:
            apis = self.apis.list_apis()
        except Exception as exc:
            logger.exception("external API catalogue raised unexpectedly")
            request.pending_notices.append(f"External API catalogue unavailable: {exc}")
            return
        if not apis:
            return

        lines = "\n".join(f"- {api.name}: {api.description} ({api.base_url})" for api in apis)
        block = (
            "[System Note: You have access to the following external APIs. If the user asks "
            "for data from these sources, you can help them construct a query.\n"
            f"{lines}\n]"
        )
        request.messages = append_to_system(request.messages, block)


def search_block(source: str, results: list[SearchResult]) -> str:
    listing = "\n".join(f"- [{r.title}]({r.link}): {r.snippet}" for r in results)
    return f"[Web Search Results ({source}):\n{listing}\n]\n{CITATION_INSTRUCTION}"


def append_to_system(messages: list[ChatMessage], block: str) -> list[ChatMessage]:
    """Return a new message list with ``block`` appended to the first system message."""
    rewritten = list(messages)
    for idx, message in enumerate(rewritten):
        if message.role == "system":
            rewritten[idx] = ChatMessage(
                role="system",
                content=f"{message.content}\n\n{block}",
                image=message.image,
            )
            return rewritten

    rewritten.insert(0, ChatMessage(role="system", content=f"{DEFAULT_SYSTEM_PROMPT}\n\n{block}"))
    return rewritten
