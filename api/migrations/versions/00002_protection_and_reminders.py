"""Add protection period, dispatch claims and payment reminder tracking.

Adds columns:
- introductions.protection_ends_at, introductions.expiry_alert_sent_at
- check_ins.dispatch_claimed_at
- placements.remaining_reminder_sent_at

Existing active introductions get protection_ends_at = introduced_at + 365 days.

Revision ID: 00002
Revises: 00001
Create Date: 2026-10-18
"""

from datetime import timedelta

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "00002"
down_revision = "00001"
branch_labels = None
depends_on = None

PROTECTION_DAYS = 365


def upgrade() -> None:
    """Add the new columns and backfill protection periods."""
    op.add_column(
        "introductions",
        sa.Column("protection_ends_at", sa.DateTime(), nullable=True),
    )
    op.add_column(
        "introductions",
        sa.Column("expiry_alert_sent_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "idx_introductions_protection",
        "introductions",
        ["status", "protection_ends_at"],
    )

    op.add_column(
        "check_ins",
        sa.Column("dispatch_claimed_at", sa.DateTime(), nullable=True),
    )

    op.add_column(
        "placements",
        sa.Column("remaining_reminder_sent_at", sa.DateTime(), nullable=True),
    )

    # Date arithmetic differs per dialect; backfill row by row
    introductions = sa.table(
        "introductions",
        sa.column("id", sa.Integer),
        sa.column("introduced_at", sa.DateTime),
        sa.column("protection_ends_at", sa.DateTime),
    )
    conn = op.get_bind()
    rows = conn.execute(
        sa.select(introductions.c.id, introductions.c.introduced_at)
        .where(introductions.c.introduced_at.isnot(None))
    ).fetchall()
    for row in rows:
        conn.execute(
            introductions.update()
            .where(introductions.c.id == row.id)
            .values(protection_ends_at=row.introduced_at + timedelta(days=PROTECTION_DAYS))
        )


def downgrade() -> None:
    """Remove the columns."""
    op.drop_column("placements", "remaining_reminder_sent_at")
    op.drop_column("check_ins", "dispatch_claimed_at")
    op.drop_index("idx_introductions_protection", table_name="introductions")
    op.drop_column("introductions", "expiry_alert_sent_at")
    op.drop_column("introductions", "protection_ends_at")
