"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.database import Base, engine
from app.errors import register_exception_handlers

# Import routers
from app.realtime.hub import hub
from app.routers import events, attendees, messages

# Import all models so Base.metadata knows about them
from app.models.event import Event              # noqa: F401
from app.models.attendee import Attendee        # noqa: F401
from app.models.message import ChatMessage      # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Meetup Events",
    description="Event service for ad-hoc KTV / bar meetups — join requests, host approval, chat",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register routers
app.include_router(events.router, prefix="/events", tags=["Events"])
app.include_router(attendees.router, prefix="/events", tags=["Attendees"])
app.include_router(messages.router, prefix="/events", tags=["Chat"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/health")
def health_check():
    return {"status": "ok"}


# Socket.IO on /socket.io/, the REST API everywhere else. Serve this one:
#   uvicorn app.main:asgi_app
asgi_app = hub.asgi_app(app)
