"""Voice assistant and health routes."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from smarthome.adapters.web.state import AppState, get_state
from smarthome.errors import UpstreamError

logger = logging.getLogger(__name__)

assistant_router = APIRouter(prefix="/api", tags=["Assistant"])


class AssistantRequest(BaseModel):
    # Loose types so bad input gets a 400 from the handler, not a 422
    text: Any = None
    history: Any = None


class AssistantResponse(BaseModel):
    action: str
    say: str
    room: Optional[str] = None
    device: Optional[str] = None
    value: Optional[str] = None
    door: Optional[str] = None


@assistant_router.get("/health")
async def health():
    return {"ok": True}


@assistant_router.post(
    "/assistant",
    response_model=AssistantResponse,
    response_model_exclude_none=True,
)
async def assistant(
    req: Optional[AssistantRequest] = None,
    state: AppState = Depends(get_state),
):
    """Translate user text into a device/door command plus a spoken reply."""
    text = req.text if req else None
    if not isinstance(text, str) or not text.strip():
        raise HTTPException(status_code=400, detail="text required")
    try:
        reply = await state.assistant.get_reply(text, req.history)
    except UpstreamError as e:
        logger.error("Assistant upstream failure: %s", e)
        raise HTTPException(status_code=502, detail=str(e) or "assistant request failed")
    return AssistantResponse(**reply.to_response())
