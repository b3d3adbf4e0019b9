"""Attendance state machine — per (event, user) registration lifecycle.

    none ──join──▶ pending ──confirm──▶ confirmed ──remove──▶ removed
                      │                     │
                      ├──reject──▶ rejected  │
                      └──────cancel──────────┴──▶ cancelled

rejected / cancelled / removed are terminal. A user whose record reached
any of them can never join that event again; the unique (event, user)
constraint on the table makes that hold in the database as well.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.dependencies import CallerContext
from app.errors import EventPermissionError, NotFoundError, StateConflictError
from app.models.attendee import Attendee, AttendeeStatus
from app.models.event import Event
from app.realtime.hub import RealtimeHub, hub as default_hub
from app.schemas.profile import ProfileSnapshotIn
from app.services.event_service import check_host, mutate_event
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

# action -> (allowed source states, target state, error code, message)
TRANSITIONS = {
    "confirm": (
        {AttendeeStatus.pending}, AttendeeStatus.confirmed,
        "not_pending", "這筆報名已經處理過了",
    ),
    "reject": (
        {AttendeeStatus.pending}, AttendeeStatus.rejected,
        "not_pending", "這筆報名已經處理過了",
    ),
    "cancel": (
        {AttendeeStatus.pending, AttendeeStatus.confirmed}, AttendeeStatus.cancelled,
        "not_active", "這筆報名目前無法取消",
    ),
    "remove": (
        {AttendeeStatus.confirmed}, AttendeeStatus.removed,
        "not_confirmed", "只能移除已確認的參加者",
    ),
}

REJOIN_MESSAGES = {
    AttendeeStatus.rejected: "主揪已婉拒你的報名，無法再次報名這個活動",
    AttendeeStatus.cancelled: "你已取消過報名，無法再次報名這個活動",
    AttendeeStatus.removed: "你已被主揪移出活動，無法再次報名這個活動",
}


def apply_transition(attendee: Attendee, action: str, now: Optional[datetime] = None) -> AttendeeStatus:
    """Move ``attendee`` along ``action`` or raise StateConflictError."""
    sources, target, code, message = TRANSITIONS[action]
    if attendee.status not in sources:
        raise StateConflictError(message, code=code)
    attendee.status = target
    attendee.decided_at = now or utcnow()
    return target


def _find_attendee(event: Event, attendee_id: str) -> Attendee:
    for attendee in event.attendees:
        if attendee.id == attendee_id:
            return attendee
    raise NotFoundError("找不到這筆報名")


def join_event(
    db: Session,
    event_id: str,
    caller: CallerContext,
    profile: ProfileSnapshotIn,
    hub: RealtimeHub = default_hub,
) -> Event:
    """Register the caller as a pending attendee."""
    try:
        with mutate_event(db, event_id, hub) as event:
            if event.is_host(caller.user_id):
                raise StateConflictError("主揪不能報名自己的活動", code="host_cannot_join")

            existing = event.attendee_for_user(caller.user_id)
            if existing is not None:
                if existing.status.is_active:
                    raise StateConflictError("你已經報名過這個活動了", code="already_joined")
                raise StateConflictError(
                    REJOIN_MESSAGES[existing.status], code=f"rejoin_after_{existing.status.value}"
                )

            event.attendees.append(Attendee(
                seq=len(event.attendees) + 1,
                user_id=caller.user_id,
                status=AttendeeStatus.pending,
                joined_at=utcnow(),
                profile=profile.snapshot(),
            ))
    except IntegrityError:
        # Another process inserted the same (event, user) first.
        raise StateConflictError("你已經報名過這個活動了", code="already_joined")

    logger.info("User %s requested to join event %s", caller.user_id, event_id)
    return event


def decide_attendee(
    db: Session,
    event_id: str,
    attendee_id: str,
    caller: CallerContext,
    action: str,
    hub: RealtimeHub = default_hub,
    enforce_capacity: Optional[bool] = None,
) -> Event:
    """Host confirms or rejects a pending request.

    With ``enforce_capacity`` (default: ENFORCE_CAPACITY_ON_CONFIRM) a
    confirm that would go past maxPeople is refused.
    """
    if action not in ("confirm", "reject"):
        raise ValueError(f"unknown decision {action!r}")
    if enforce_capacity is None:
        enforce_capacity = settings.ENFORCE_CAPACITY_ON_CONFIRM

    with mutate_event(db, event_id, hub) as event:
        check_host(event, caller, "只有主揪可以審核報名")
        attendee = _find_attendee(event, attendee_id)
        if action == "confirm" and attendee.status == AttendeeStatus.pending and enforce_capacity and event.is_full:
            raise StateConflictError("人數已滿，無法再確認新的參加者", code="event_full")
        apply_transition(attendee, action)

    logger.info("Host %s %sed attendee %s on event %s", caller.user_id, action, attendee_id, event_id)
    return event


def cancel_attendance(
    db: Session,
    event_id: str,
    attendee_id: str,
    caller: CallerContext,
    hub: RealtimeHub = default_hub,
) -> Event:
    """The attendee withdraws their own pending or confirmed registration."""
    with mutate_event(db, event_id, hub) as event:
        attendee = _find_attendee(event, attendee_id)
        if attendee.user_id != caller.user_id:
            raise EventPermissionError("只能取消自己的報名", code="not_owner")
        apply_transition(attendee, "cancel")

    logger.info("User %s cancelled attendance %s on event %s", caller.user_id, attendee_id, event_id)
    return event


def remove_attendee(
    db: Session,
    event_id: str,
    attendee_id: str,
    caller: CallerContext,
    hub: RealtimeHub = default_hub,
) -> Event:
    """Host removes a confirmed attendee."""
    with mutate_event(db, event_id, hub) as event:
        check_host(event, caller, "只有主揪可以移除參加者")
        attendee = _find_attendee(event, attendee_id)
        apply_transition(attendee, "remove")

    logger.info("Host %s removed attendee %s from event %s", caller.user_id, attendee_id, event_id)
    return event
