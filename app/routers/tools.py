from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from app.chat.schemas import ImageToolPayload, SearchToolPayload
from app.collaborators.images import ImageGenerationError
from app.collaborators.search import SearchError
from app.core.errors import GatewayError
from app.core.pipeline import ChatPipeline
from app.dependencies import get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["tools"])


@router.get("/status")
async def status() -> dict[str, str]:
    return {
        "api_version": "v1",
        "status": "operational",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/apis")
async def list_apis(pipeline: ChatPipeline = Depends(get_pipeline)) -> list[dict[str, str]]:
    catalogue = pipeline.augmenter.apis
    if catalogue is None:
        return []
    return [
        {"name": api.name, "description": api.description, "baseUrl": api.base_url}
        for api in catalogue.list_apis()
    ]


@router.post("/tools/search")
async def run_search(
    payload: SearchToolPayload,
    pipeline: ChatPipeline = Depends(get_pipeline),
) -> dict:
    search = pipeline.augmenter.search
    if search is None:
        raise GatewayError(
            status_code=503,
            message="Web search is not configured.",
            code="search_unavailable",
        )

    try:
        results = await search.search(payload.query)
    except SearchError as exc:
        logger.warning("search tool failed: %s", exc)
        raise GatewayError(status_code=502, message=str(exc), code="search_failed") from exc

    return {"query": payload.query, "results": [asdict(result) for result in results]}


@router.post("/generate-image")
async def generate_image(
    payload: ImageToolPayload,
    pipeline: ChatPipeline = Depends(get_pipeline),
) -> dict[str, str]:
    images = pipeline.augmenter.images
    if images is None:
        raise GatewayError(
            status_code=503,
            message="Image generation is not configured.",
            code="image_generation_unavailable",
        )

    try:
        image_url = await images.generate(payload.prompt)
    except ImageGenerationError as exc:
        logger.warning("image tool failed: %s", exc)
        raise GatewayError(
            status_code=502, message=str(exc), code="image_generation_failed"
        ) from exc

    return {"imageUrl": image_url}
