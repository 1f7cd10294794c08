from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.helpdesk.api.dependencies import get_chat_orchestrator
from src.helpdesk.domain.models.chat import ChatRequest
from src.helpdesk.services.chat.orchestrator import ChatOrchestrator

router = APIRouter(prefix="", tags=["chat"])


@router.post("/chat")
async def chat(
    payload: Optional[ChatRequest] = None,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> JSONResponse:
    """Forward one user message to the configured provider chain.

    The status code comes from the orchestrator: 200 on a reply, 400 for a
    missing message, 500 for configuration or internal errors and 502 when
    every upstream failed.
    """

    payload = payload or ChatRequest()
    outcome = await orchestrator.handle(payload.session_id, payload.message)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)
