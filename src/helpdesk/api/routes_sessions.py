from __future__ import annotations

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from src.helpdesk.api.dependencies import get_chat_orchestrator
from src.helpdesk.domain.errors import SessionBusyError
from src.helpdesk.domain.models.transcript import TranscriptEntry
from src.helpdesk.services.audit.service import audit_service
from src.helpdesk.services.chat.orchestrator import ChatOrchestrator

router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionView(BaseModel):
    id: str
    created_at: datetime
    transcript: List[TranscriptEntry]


@router.get("/{session_id}", response_model=SessionView)
async def get_session(
    session_id: str,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> SessionView:
    session = orchestrator.session_store.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return SessionView(id=session.id, created_at=session.created_at, transcript=list(session.transcript))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> Response:
    try:
        deleted = orchestrator.session_store.delete(session_id)
    except SessionBusyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    audit_service.log_event(
        action="delete_session",
        resource_type="chat_session",
        resource_id=session_id,
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
