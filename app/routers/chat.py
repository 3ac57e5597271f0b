from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from app.chat.adapter import (
    create_chat,
    create_chat_stream,
    create_generation,
    notice_headers,
)
from app.chat.schemas import ChatRequestPayload, GenerateRequestPayload
from app.core.pipeline import ChatPipeline
from app.dependencies import get_pipeline

router = APIRouter(prefix="/api/v1", tags=["chat"])


@router.post("/chat")
async def chat(
    payload: ChatRequestPayload,
    pipeline: ChatPipeline = Depends(get_pipeline),
):
    response_payload, notices = await create_chat(pipeline, payload)
    return JSONResponse(content=response_payload, headers=notice_headers(notices))


@router.post("/chat/stream")
async def chat_stream(
    payload: ChatRequestPayload,
    request: Request,
    pipeline: ChatPipeline = Depends(get_pipeline),
):
    iterator = create_chat_stream(pipeline, payload, request.is_disconnected)
    return StreamingResponse(
        iterator,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/generate")
async def generate(
    payload: GenerateRequestPayload,
    pipeline: ChatPipeline = Depends(get_pipeline),
):
    response_payload, notices = await create_generation(pipeline, payload)
    return JSONResponse(content=response_payload, headers=notice_headers(notices))
