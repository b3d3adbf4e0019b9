"""Timestamp helpers shared by models, schemas and services."""
from datetime import datetime, timedelta, timezone

from app.config import settings


def as_utc(value: datetime) -> datetime:
    """Naive timestamps (SQLite reads them back that way) are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def active_window() -> timedelta:
    """How long an event stays in active listings after creation."""
    return timedelta(hours=settings.EVENT_ACTIVE_HOURS)
