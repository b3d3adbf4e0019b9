"""Event store — the single source of truth for event aggregates.

Responsibilities:
- Create / list / get / delete events
- Validation of new events before anything is written
- Per-event serialized mutations (lock + row lock + version bump)
- Fan-out of the committed snapshot to the event's realtime room
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

import pytz
from sqlalchemy.orm import Session

from app.config import settings
from app.dependencies import CallerContext
from app.errors import EventPermissionError, EventValidationError, NotFoundError
from app.models.event import Event
from app.realtime.hub import RealtimeHub, hub as default_hub
from app.schemas.event import EventCreate, EventDeleted, EventOut
from app.services import locks
from app.utils.clock import active_window, as_utc, utcnow

logger = logging.getLogger(__name__)


def event_payload(event: Event) -> dict[str, Any]:
    """Serialize an event exactly as the REST API returns it."""
    return EventOut.model_validate(event).model_dump(mode="json", by_alias=True)


def _get_or_404(db: Session, event_id: str, for_update: bool = False) -> Event:
    query = db.query(Event).filter(Event.id == event_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    event = query.first()
    if not event:
        raise NotFoundError("活動不存在或已被刪除")
    return event


def check_host(event: Event, caller: CallerContext, message: str) -> None:
    """Only the host (createdBy) may perform host actions."""
    if not event.is_host(caller.user_id):
        raise EventPermissionError(message, code="host_only")


@contextmanager
def mutate_event(db: Session, event_id: str, hub: RealtimeHub) -> Iterator[Event]:
    """Serialize a read-validate-write cycle on one event.

    The body receives the locked event and mutates it; on normal exit the
    version is bumped, the transaction committed and the fresh snapshot
    broadcast while the lock is still held, so subscribers see updates in
    commit order. Any exception rolls the session back untouched.
    """
    with locks.event_lock(event_id):
        try:
            event = _get_or_404(db, event_id, for_update=True)
            yield event
            event.version += 1
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(event)
        hub.publish(event.id, event_payload(event))


def _display_time(moment: datetime) -> str:
    tz = pytz.timezone(settings.DISPLAY_TIMEZONE)
    return as_utc(moment).astimezone(tz).strftime("%H:%M")


def _validate_new_event(payload: EventCreate, now: datetime) -> None:
    if not payload.region.strip() or not payload.place.strip():
        raise EventValidationError("除了備註之外，其他欄位都是必填喔！", code="missing_fields")
    if payload.time_range is not None and not payload.time_range.strip():
        raise EventValidationError("請選擇開始時間", code="missing_fields")
    if payload.built_in_people < 1:
        raise EventValidationError("內建人數請設定大於 0 的數字", code="invalid_headcount")
    if payload.max_people <= payload.built_in_people:
        raise EventValidationError(
            "內建人數必須小於人數上限（不能一樣，也不能比上限多）", code="invalid_headcount"
        )
    if as_utc(payload.time_iso) < now:
        raise EventValidationError("時間已經過去了，請選擇晚一點的日期或時間", code="time_in_past")


def create_event(
    db: Session,
    payload: EventCreate,
    caller: CallerContext,
    now: Optional[datetime] = None,
) -> Event:
    """Validate and persist a new event; id and createdAt are assigned here."""
    if caller.user_id != payload.created_by:
        raise EventPermissionError("不能代替其他使用者發起活動", code="identity_mismatch")

    now = now or utcnow()
    _validate_new_event(payload, now)

    time_range = payload.time_range.strip() if payload.time_range else _display_time(payload.time_iso)
    event = Event(
        type=payload.type,
        region=payload.region.strip(),
        place=payload.place.strip(),
        time_range=time_range,
        time_iso=as_utc(payload.time_iso),
        built_in_people=payload.built_in_people,
        max_people=payload.max_people,
        notes=payload.notes.strip(),
        created_at=now,
        created_by=payload.created_by,
        created_by_profile=payload.created_by_profile.snapshot(),
        version=1,
    )
    db.add(event)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(event)
    logger.info("Created %s event %s at %s by host %s", event.type.value, event.id, event.place, event.created_by)
    return event


def list_events(
    db: Session,
    limit: Optional[int] = None,
    active_only: bool = False,
    now: Optional[datetime] = None,
) -> list[Event]:
    """Newest-first by createdAt, capped at ``limit``.

    Unfiltered by default; ``active_only`` applies the visibility window
    in the query.
    """
    if limit is None:
        limit = settings.LIST_DEFAULT_LIMIT
    limit = max(1, min(limit, settings.LIST_MAX_LIMIT))

    query = db.query(Event)
    if active_only:
        cutoff = (as_utc(now) if now else utcnow()) - active_window()
        query = query.filter(Event.created_at > cutoff)
    return query.order_by(Event.created_at.desc()).limit(limit).all()


def get_event(db: Session, event_id: str) -> Event:
    return _get_or_404(db, event_id)


def delete_event(
    db: Session,
    event_id: str,
    caller: CallerContext,
    hub: RealtimeHub = default_hub,
) -> None:
    """Hard-delete an event with its attendees and messages (host only).

    Subscribers get ``{id, deleted: true}`` before the rows go away.
    Unknown ids raise NotFoundError so callers can tell "already gone"
    from a failed request.
    """
    with locks.event_lock(event_id):
        try:
            event = _get_or_404(db, event_id, for_update=True)
            check_host(event, caller, "只有主揪可以刪除活動")
            hub.publish(event_id, EventDeleted(id=event_id).model_dump())
            db.delete(event)
            db.commit()
        except Exception:
            db.rollback()
            raise
        hub.close_room(event_id)
    logger.info("Deleted event %s by host %s", event_id, caller.user_id)
