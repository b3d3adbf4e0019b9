"""Realtime fan-out of event snapshots over Socket.IO.

Clients emit ``joinEvent(eventId)`` / ``leaveEvent(eventId)`` to manage
their rooms and receive ``event:updated`` carrying the full event, or
``{id, deleted: true}`` once the event is gone.

Route handlers are sync and run in worker threads, so ``publish`` hands
each emit to the server's event loop with ``run_coroutine_threadsafe``.
Emits run one at a time in submission order, which keeps every room in
commit order. Delivery is best-effort: until a client has connected
there is no loop to hand off to and publishing is a no-op.
"""
import asyncio
import logging
from concurrent.futures import Future
from typing import Any, Optional

import socketio

from app.config import settings

logger = logging.getLogger(__name__)

EVENT_UPDATED = "event:updated"
NAMESPACE = "/"


def _cors_origins():
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    return "*" if origins == ["*"] else origins


def _room_arg(args) -> Optional[str]:
    if len(args) != 1 or not isinstance(args[0], str) or not args[0].strip():
        return None
    return args[0]


class RealtimeHub:
    """Room membership and ordered fan-out on a Socket.IO server."""

    def __init__(self, server: Optional[socketio.AsyncServer] = None):
        self.sio = server or socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins=_cors_origins(),
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._emit_lock: Optional[asyncio.Lock] = None

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("joinEvent", self._on_join)
        self.sio.on("leaveEvent", self._on_leave)

    def asgi_app(self, other_app) -> socketio.ASGIApp:
        """Serve Socket.IO under ``/socket.io/`` and everything else from ``other_app``."""
        return socketio.ASGIApp(self.sio, other_asgi_app=other_app)

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._loop is not loop:
            self._loop = loop
            self._emit_lock = asyncio.Lock()

    # -- client events ------------------------------------------------------

    async def _on_connect(self, sid, environ, auth=None):
        self.bind(asyncio.get_running_loop())
        logger.debug("Socket %s connected", sid)

    async def _on_disconnect(self, sid, reason=None):
        # the server has already taken the socket out of its rooms
        logger.debug("Socket %s disconnected (%s)", sid, reason)

    async def _on_join(self, sid, *args):
        event_id = _room_arg(args)
        if event_id is None:
            return {"ok": False, "error": "eventId is required"}
        await self.sio.enter_room(sid, event_id, namespace=NAMESPACE)
        logger.debug("Socket %s joined room %s", sid, event_id)
        return {"ok": True, "eventId": event_id}

    async def _on_leave(self, sid, *args):
        event_id = _room_arg(args)
        if event_id is None:
            return {"ok": False, "error": "eventId is required"}
        await self.sio.leave_room(sid, event_id, namespace=NAMESPACE)
        logger.debug("Socket %s left room %s", sid, event_id)
        return {"ok": True, "eventId": event_id}

    # -- server side --------------------------------------------------------

    def subscribers(self, event_id: str) -> list[str]:
        return [sid for sid, _ in self.sio.manager.get_participants(NAMESPACE, event_id)]

    def publish(self, event_id: str, payload: dict[str, Any]) -> Optional[Future]:
        """Emit ``event:updated`` to the room; safe to call from any thread.

        Returns the scheduled delivery, or None when nothing is listening yet.
        """
        return self._submit(f"{EVENT_UPDATED} to {event_id}", self.sio.emit, EVENT_UPDATED, payload,
                            room=event_id, namespace=NAMESPACE)

    def close_room(self, event_id: str) -> Optional[Future]:
        """Drop a room after its event is gone; sockets stay connected."""
        return self._submit(f"close room {event_id}", self.sio.close_room, event_id, namespace=NAMESPACE)

    def _submit(self, label: str, func, *args, **kwargs) -> Optional[Future]:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No realtime loop bound, skipped %s", label)
            return None
        coro = self._in_order(label, func, *args, **kwargs)
        try:
            return asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError:
            coro.close()
            logger.debug("Realtime loop stopped, skipped %s", label)
            return None

    async def _in_order(self, label: str, func, *args, **kwargs) -> None:
        async with self._emit_lock:
            try:
                await func(*args, **kwargs)
            except Exception:
                logger.exception("Realtime %s failed", label)


hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    """FastAPI dependency; overridden in tests with a fresh hub."""
    return hub
