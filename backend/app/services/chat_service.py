"""Per-event chat log, open to the host and confirmed attendees."""
import logging

from sqlalchemy.orm import Session

from app.config import settings
from app.dependencies import CallerContext
from app.errors import EventPermissionError, EventValidationError
from app.models.attendee import AttendeeStatus
from app.models.event import Event
from app.models.message import ChatMessage
from app.realtime.hub import RealtimeHub, hub as default_hub
from app.schemas.profile import ProfileSnapshotIn
from app.services.event_service import mutate_event
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def can_chat(event: Event, user_id: str) -> bool:
    if event.is_host(user_id):
        return True
    attendee = event.attendee_for_user(user_id)
    return attendee is not None and attendee.status == AttendeeStatus.confirmed


def post_message(
    db: Session,
    event_id: str,
    caller: CallerContext,
    text: str,
    profile: ProfileSnapshotIn,
    hub: RealtimeHub = default_hub,
) -> Event:
    """Append a message to the event's chat log."""
    text = text.strip()
    if not text:
        raise EventValidationError("訊息不能空白", code="empty_message")
    if len(text) > settings.MESSAGE_MAX_LENGTH:
        raise EventValidationError(f"訊息最多 {settings.MESSAGE_MAX_LENGTH} 個字", code="message_too_long")

    with mutate_event(db, event_id, hub) as event:
        if not can_chat(event, caller.user_id):
            attendee = event.attendee_for_user(caller.user_id)
            if attendee is not None and attendee.status == AttendeeStatus.pending:
                raise EventPermissionError("主揪確認後才能加入聊天", code="awaiting_confirmation")
            raise EventPermissionError("只有主揪和已確認的參加者可以聊天", code="not_a_member")
        event.messages.append(ChatMessage(
            seq=len(event.messages) + 1,
            user_id=caller.user_id,
            text=text,
            created_at=utcnow(),
            profile=profile.snapshot(),
        ))

    logger.info("User %s posted message on event %s", caller.user_id, event_id)
    return event
