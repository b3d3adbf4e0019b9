"""Chat API routes."""
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import CallerContext, caller_for, optional_caller
from app.realtime.hub import RealtimeHub, get_hub
from app.schemas.event import EventOut, MessageCreate
from app.services import chat_service

router = APIRouter()


@router.post("/{event_id}/messages", response_model=EventOut)
def post_message(
    event_id: str,
    payload: MessageCreate,
    header_caller: Optional[CallerContext] = Depends(optional_caller),
    db: Session = Depends(get_db),
    hub: RealtimeHub = Depends(get_hub),
):
    caller = caller_for(payload.user_id, header_caller)
    return chat_service.post_message(
        db=db, event_id=event_id, caller=caller, text=payload.text, profile=payload.profile, hub=hub,
    )
