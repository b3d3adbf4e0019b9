"""Pydantic schemas for profile snapshots.

Profiles are owned by the client. Every mutating call carries a copy which
is validated here and then embedded verbatim into the event, attendee or
message record it belongs to.
"""
import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from app.config import settings


class Gender(str, enum.Enum):
    MALE = "男"
    FEMALE = "女"


class ProfileSnapshot(BaseModel):
    """Snapshot as stored and returned; no policy checks on the way out."""

    nickname: str
    gender: Optional[Gender] = None
    age: Optional[int] = None
    intro: str = ""
    photo_uri: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProfileSnapshotIn(ProfileSnapshot):
    """Snapshot supplied by a caller — the client's profile rules apply."""

    gender: Gender
    age: int
    photo_uri: str

    @field_validator("nickname")
    @classmethod
    def _nickname(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("暱稱不能空白")
        if len(value) > settings.NICKNAME_MAX_LENGTH:
            raise ValueError(f"暱稱最多 {settings.NICKNAME_MAX_LENGTH} 個字")
        return value

    @field_validator("gender", mode="before")
    @classmethod
    def _gender(cls, value):
        if isinstance(value, str) and value.upper() in Gender.__members__:
            return Gender[value.upper()]
        return value

    @field_validator("age")
    @classmethod
    def _age(cls, value: int) -> int:
        if value < settings.MIN_PROFILE_AGE:
            raise ValueError(f"需年滿 {settings.MIN_PROFILE_AGE} 歲")
        return value

    @field_validator("intro")
    @classmethod
    def _intro(cls, value: str) -> str:
        return value.strip()

    @field_validator("photo_uri")
    @classmethod
    def _photo(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("請上傳大頭貼")
        return value

    def snapshot(self) -> dict:
        """Plain JSON copy for embedding into a record."""
        return self.model_dump(mode="json", by_alias=True)
