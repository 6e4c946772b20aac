"""Initial Event Desk schema."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("creatorEmail", sa.Text(), nullable=False),
        sa.Column("eventName", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("targetedAttendees", sa.Integer(), nullable=False),
        sa.Column("eventDate", sa.Text(), nullable=True),
        sa.Column("eventStartTime", sa.Text(), nullable=True),
        sa.Column("eventEndTime", sa.Text(), nullable=True),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="Created"
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "\"status\" IN ('Created', 'Published', 'Archived', 'Cancelled')",
            name="ck_events_status",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "eventAttendees",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("eventId", sa.Integer(), nullable=False),
        sa.Column("attendeeEmail", sa.Text(), nullable=False),
        sa.Column(
            "responseStatus",
            sa.String(length=16),
            nullable=False,
            server_default="Pending",
        ),
        sa.Column("rsvpDate", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "\"responseStatus\" IN ('Pending', 'Attending', 'Not Attending', 'Maybe')",
            name="ck_event_attendees_response_status",
        ),
        sa.ForeignKeyConstraint(
            ["eventId"],
            ["events.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("eventId", "attendeeEmail", name="uq_event_attendee"),
    )


def downgrade() -> None:
    op.drop_table("eventAttendees")
    op.drop_table("events")
