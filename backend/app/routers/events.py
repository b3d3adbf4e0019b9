"""Event API routes — delegates to event_service for invariant enforcement."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import CallerContext, caller_for, optional_caller, require_caller
from app.realtime.hub import RealtimeHub, get_hub
from app.schemas.event import EventCreate, EventDeleted, EventOut
from app.services import event_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    header_caller: Optional[CallerContext] = Depends(optional_caller),
    db: Session = Depends(get_db),
):
    """Create a new event hosted by ``createdBy``."""
    caller = caller_for(payload.created_by, header_caller)
    return event_service.create_event(db=db, payload=payload, caller=caller)


@router.get("", response_model=list[EventOut])
def list_events(
    limit: Optional[int] = Query(None, ge=1),
    active_only: bool = Query(False, alias="activeOnly"),
    db: Session = Depends(get_db),
):
    """List events newest-first; ``activeOnly`` keeps only the last 24 hours."""
    return event_service.list_events(db=db, limit=limit, active_only=active_only)


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    """Fetch a single event with attendees and chat."""
    return event_service.get_event(db=db, event_id=event_id)


@router.delete("/{event_id}", response_model=EventDeleted)
def delete_event(
    event_id: str,
    caller: CallerContext = Depends(require_caller),
    db: Session = Depends(get_db),
    hub: RealtimeHub = Depends(get_hub),
):
    """Permanently delete an event (host only)."""
    event_service.delete_event(db=db, event_id=event_id, caller=caller, hub=hub)
    return EventDeleted(id=event_id)
