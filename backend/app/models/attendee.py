"""Attendee ORM model — one registration per (event, user), for ever."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Integer, JSON, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from app.database import Base


class AttendeeStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"
    cancelled = "cancelled"
    removed = "removed"

    @property
    def is_active(self) -> bool:
        return self in (AttendeeStatus.pending, AttendeeStatus.confirmed)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active


class Attendee(Base):
    __tablename__ = "event_attendees"
    # Terminal states are permanent, so a user never needs a second record.
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_attendee_event_user"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seq = Column(Integer, nullable=False)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    status = Column(SAEnum(AttendeeStatus), nullable=False, default=AttendeeStatus.pending)
    joined_at = Column(DateTime(timezone=True), nullable=False)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    profile = Column(JSON, nullable=False)

    event = relationship("Event", back_populates="attendees")
