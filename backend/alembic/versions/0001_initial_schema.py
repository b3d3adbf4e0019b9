"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the event service tables: events, event_attendees, event_messages.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", sa.Enum("KTV", "Bar", name="eventtype"), nullable=False),
        sa.Column("region", sa.String(100), nullable=False),
        sa.Column("place", sa.String(255), nullable=False),
        sa.Column("time_range", sa.String(20), nullable=False),
        sa.Column("time_iso", sa.DateTime(timezone=True), nullable=False),
        sa.Column("built_in_people", sa.Integer, nullable=False),
        sa.Column("max_people", sa.Integer, nullable=False),
        sa.Column("notes", sa.Text, nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("created_by_profile", sa.JSON, nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )
    op.create_index("ix_events_created_at", "events", ["created_at"])
    op.create_index("ix_events_created_by", "events", ["created_by"])

    # --- event_attendees ---
    op.create_table(
        "event_attendees",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "confirmed", "rejected", "cancelled", "removed", name="attendeestatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("profile", sa.JSON, nullable=False),
        sa.UniqueConstraint("event_id", "user_id", name="uq_attendee_event_user"),
    )
    op.create_index("ix_event_attendees_event_id", "event_attendees", ["event_id"])

    # --- event_messages ---
    op.create_table(
        "event_messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("profile", sa.JSON, nullable=False),
    )
    op.create_index("ix_event_messages_event_id", "event_messages", ["event_id"])


def downgrade() -> None:
    op.drop_index("ix_event_messages_event_id", table_name="event_messages")
    op.drop_table("event_messages")
    op.drop_index("ix_event_attendees_event_id", table_name="event_attendees")
    op.drop_table("event_attendees")
    op.drop_index("ix_events_created_by", table_name="events")
    op.drop_index("ix_events_created_at", table_name="events")
    op.drop_table("events")
    sa.Enum(name="attendeestatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="eventtype").drop(op.get_bind(), checkfirst=True)
