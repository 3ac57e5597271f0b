from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.pipeline import ChatPipeline
from app.dependencies import get_pipeline

router = APIRouter(prefix="/api/v1", tags=["models"])


@router.get("/models")
async def list_models(pipeline: ChatPipeline = Depends(get_pipeline)) -> dict:
    registry = pipeline.registry
    return {
        "models": registry.list_available(),
        "default": registry.default.id,
    }
