"""Event ORM model — the aggregate root for attendees and chat."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, Enum as SAEnum
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.attendee import AttendeeStatus
from app.utils.clock import active_window, as_utc


class EventType(str, enum.Enum):
    ktv = "KTV"
    bar = "Bar"


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(SAEnum(EventType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    region = Column(String(100), nullable=False)
    place = Column(String(255), nullable=False)
    time_range = Column(String(20), nullable=False)
    time_iso = Column(DateTime(timezone=True), nullable=False)
    built_in_people = Column(Integer, nullable=False)
    max_people = Column(Integer, nullable=False)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_by = Column(String(64), nullable=False, index=True)
    created_by_profile = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    attendees = relationship(
        "Attendee",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Attendee.seq",
    )
    messages = relationship(
        "ChatMessage",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="ChatMessage.seq",
    )

    def is_host(self, user_id: str) -> bool:
        return self.created_by == user_id

    def attendee_for_user(self, user_id: str):
        for attendee in self.attendees:
            if attendee.user_id == user_id:
                return attendee
        return None

    @property
    def confirmed_count(self) -> int:
        return sum(1 for a in self.attendees if a.status == AttendeeStatus.confirmed)

    @property
    def headcount(self) -> int:
        """Seats taken: people brought by the host plus confirmed attendees."""
        return self.built_in_people + self.confirmed_count

    @property
    def is_full(self) -> bool:
        return self.headcount >= self.max_people

    @property
    def expires_at(self):
        """When the event drops out of active listings."""
        return as_utc(self.created_at) + active_window()
