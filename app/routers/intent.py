from __future__ import annotations

from fastapi import APIRouter

from app.chat.schemas import IntentRequestPayload
from app.core.intent import available_intents, classify_intent

router = APIRouter(prefix="/api/v1", tags=["intent"])


@router.post("/intent")
async def detect_intent(payload: IntentRequestPayload) -> dict:
    return classify_intent(payload.text).to_payload()


@router.get("/intents")
async def list_intents() -> dict:
    return {"intents": available_intents()}
