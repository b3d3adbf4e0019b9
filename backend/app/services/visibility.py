"""Active-window policy shared by listings and clients.

An event is "active" while less than ``EVENT_ACTIVE_HOURS`` have elapsed
since it was created. This is a presentation filter: the store keeps
events until the host deletes them.
"""
from datetime import datetime
from typing import Optional

from app.utils.clock import active_window, as_utc, utcnow


def is_active(event, now: Optional[datetime] = None) -> bool:
    """``now - event.created_at < window``; works on ORM rows and schemas."""
    now = as_utc(now) if now is not None else utcnow()
    return now - as_utc(event.created_at) < active_window()
