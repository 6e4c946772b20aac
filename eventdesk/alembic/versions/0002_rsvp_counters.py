"""Add running RSVP counters, eventDuration and updated_at to events."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_rsvp_counters"
down_revision = "0001_initial"
branch_labels = None
depends_on = None

COUNTERS = (
    ("attendingCount", "Attending"),
    ("notAttendingCount", "Not Attending"),
    ("maybeCount", "Maybe"),
    ("pendingCount", "Pending"),
)


def upgrade() -> None:
    op.add_column("events", sa.Column("eventDuration", sa.Text(), nullable=True))
    for column, _status in COUNTERS:
        op.add_column(
            "events",
            sa.Column(
                column,
                sa.Integer(),
                nullable=False,
                server_default=sa.text("0"),
            ),
        )
    op.add_column("events", sa.Column("updated_at", sa.DateTime(), nullable=True))

    events = sa.table("events", sa.column("id"), *(sa.column(c) for c, _ in COUNTERS))
    attendees = sa.table(
        "eventAttendees", sa.column("eventId"), sa.column("responseStatus")
    )
    for column, status in COUNTERS:
        count = (
            sa.select(sa.func.count())
            .select_from(attendees)
            .where(
                attendees.c.eventId == events.c.id,
                attendees.c.responseStatus == status,
            )
            .scalar_subquery()
        )
        op.execute(events.update().values({column: count}))
    op.execute(
        'UPDATE events SET "updated_at" = "created_at" WHERE "updated_at" IS NULL'
    )


def downgrade() -> None:
    with op.batch_alter_table("events") as batch_op:
        batch_op.drop_column("updated_at")
        for column, _status in reversed(COUNTERS):
            batch_op.drop_column(column)
        batch_op.drop_column("eventDuration")
