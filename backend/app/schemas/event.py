"""Pydantic schemas for Events, Attendees and chat messages.

Field names are snake_case in Python and camelCase on the wire, matching
what the mobile client reads (``timeISO``, ``builtInPeople``, ...).
"""
from __future__ import annotations
from datetime import datetime
from typing import Annotated, Literal, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.attendee import AttendeeStatus
from app.models.event import EventType
from app.schemas.profile import ProfileSnapshot, ProfileSnapshotIn
from app.utils.clock import as_utc

UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]

# Matches the String(64) user id columns
USER_ID_MAX_LENGTH = 64

_wire = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_wire_out = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class EventCreate(BaseModel):
    type: EventType
    region: str = Field(max_length=100)
    place: str = Field(max_length=255)
    time_range: Optional[str] = Field(None, max_length=20)
    time_iso: UtcDatetime = Field(alias="timeISO")
    built_in_people: int
    max_people: int
    notes: str = ""
    created_by: str = Field(max_length=USER_ID_MAX_LENGTH)
    created_by_profile: ProfileSnapshotIn

    model_config = _wire


class JoinRequest(BaseModel):
    user_id: str = Field(max_length=USER_ID_MAX_LENGTH)
    profile: ProfileSnapshotIn

    model_config = _wire


class DecisionRequest(BaseModel):
    action: Literal["confirm", "reject"]

    model_config = _wire


class MessageCreate(BaseModel):
    user_id: str = Field(max_length=USER_ID_MAX_LENGTH)
    text: str
    profile: ProfileSnapshotIn

    model_config = _wire


class AttendeeOut(BaseModel):
    id: str
    user_id: str
    status: AttendeeStatus
    joined_at: UtcDatetime
    profile: ProfileSnapshot

    model_config = _wire_out


class ChatMessageOut(BaseModel):
    id: str
    user_id: str
    text: str
    created_at: UtcDatetime
    profile: ProfileSnapshot

    model_config = _wire_out


class EventOut(BaseModel):
    id: str
    type: EventType
    region: str
    place: str
    time_range: str
    time_iso: UtcDatetime = Field(alias="timeISO")
    built_in_people: int
    max_people: int
    notes: str
    created_at: UtcDatetime
    created_by: str
    created_by_profile: ProfileSnapshot
    version: int
    headcount: int
    is_full: bool
    expires_at: UtcDatetime
    attendees: list[AttendeeOut] = []
    messages: list[ChatMessageOut] = []

    model_config = _wire_out


class EventDeleted(BaseModel):
    id: str
    deleted: Literal[True] = True
