"""Attendance API routes — join requests and host decisions."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import CallerContext, caller_for, optional_caller, require_caller
from app.realtime.hub import RealtimeHub, get_hub
from app.schemas.event import DecisionRequest, EventOut, JoinRequest
from app.services import attendance_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{event_id}/join", response_model=EventOut)
def join_event(
    event_id: str,
    payload: JoinRequest,
    header_caller: Optional[CallerContext] = Depends(optional_caller),
    db: Session = Depends(get_db),
    hub: RealtimeHub = Depends(get_hub),
):
    """Request to join an event; the registration starts as pending."""
    caller = caller_for(payload.user_id, header_caller)
    return attendance_service.join_event(
        db=db, event_id=event_id, caller=caller, profile=payload.profile, hub=hub,
    )


@router.post("/{event_id}/attendees/{attendee_id}/confirm", response_model=EventOut)
def decide_attendee(
    event_id: str,
    attendee_id: str,
    payload: DecisionRequest,
    caller: CallerContext = Depends(require_caller),
    db: Session = Depends(get_db),
    hub: RealtimeHub = Depends(get_hub),
):
    """Host confirms or rejects a pending request (``action``: confirm | reject)."""
    return attendance_service.decide_attendee(
        db=db, event_id=event_id, attendee_id=attendee_id,
        caller=caller, action=payload.action, hub=hub,
    )


@router.post("/{event_id}/attendees/{attendee_id}/cancel", response_model=EventOut)
def cancel_attendance(
    event_id: str,
    attendee_id: str,
    caller: CallerContext = Depends(require_caller),
    db: Session = Depends(get_db),
    hub: RealtimeHub = Depends(get_hub),
):
    """Attendee withdraws their own registration."""
    return attendance_service.cancel_attendance(
        db=db, event_id=event_id, attendee_id=attendee_id, caller=caller, hub=hub,
    )


@router.post("/{event_id}/attendees/{attendee_id}/remove", response_model=EventOut)
def remove_attendee(
    event_id: str,
    attendee_id: str,
    caller: CallerContext = Depends(require_caller),
    db: Session = Depends(get_db),
    hub: RealtimeHub = Depends(get_hub),
):
    """Host removes a confirmed attendee."""
    return attendance_service.remove_attendee(
        db=db, event_id=event_id, attendee_id=attendee_id, caller=caller, hub=hub,
    )
