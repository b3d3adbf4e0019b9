"""Request-scoped caller identity.

There is no login: the client generates its own user id and sends it in the
``X-User-Id`` header. The resolved context is passed explicitly into every
service call.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from app.errors import EventPermissionError


@dataclass(frozen=True)
class CallerContext:
    user_id: str


def optional_caller(x_user_id: Optional[str] = Header(None)) -> Optional[CallerContext]:
    if x_user_id is None or not x_user_id.strip():
        return None
    return CallerContext(user_id=x_user_id.strip())


def require_caller(x_user_id: Optional[str] = Header(None)) -> CallerContext:
    caller = optional_caller(x_user_id)
    if caller is None:
        raise EventPermissionError("請先建立會員資料", code="identity_required")
    return caller


def caller_for(body_user_id: str, header_caller: Optional[CallerContext]) -> CallerContext:
    """Identity for calls that carry the user id in the body.

    When the header is also present both must name the same user.
    """
    if header_caller is not None and header_caller.user_id != body_user_id:
        raise EventPermissionError("不能代替其他使用者操作", code="identity_mismatch")
    return CallerContext(user_id=body_user_id)
