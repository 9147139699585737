"""notification_events outbox table

Revision ID: c2a8e6f4d1b7
Revises: 7b9f3c1e5a62
Create Date: 2026-03-09

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "c2a8e6f4d1b7"
down_revision: Union[str, Sequence[str], None] = "7b9f3c1e5a62"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not insp.has_table("notification_events"):
        op.create_table(
            "notification_events",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("kind", sa.String(length=20), nullable=False),
            sa.Column("item_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("message", sa.String(length=500), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column("locked_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("locked_by", sa.String(length=100), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=False),
            sa.Column("delivered_at", sa.TIMESTAMP(), nullable=True),
            sa.UniqueConstraint("subject_id", "kind", "item_id", name="uq_notification_events_award"),
        )

    existing_indexes = {ix["name"] for ix in insp.get_indexes("notification_events")}
    if "ix_notification_events_subject_id" not in existing_indexes:
        op.create_index("ix_notification_events_subject_id", "notification_events", ["subject_id"])
    if "ix_notification_events_status_created" not in existing_indexes:
        op.create_index("ix_notification_events_status_created", "notification_events", ["status", "created_at"])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not insp.has_table("notification_events"):
        return

    existing_indexes = {ix["name"] for ix in insp.get_indexes("notification_events")}
    if "ix_notification_events_status_created" in existing_indexes:
        op.drop_index("ix_notification_events_status_created", table_name="notification_events")
    if "ix_notification_events_subject_id" in existing_indexes:
        op.drop_index("ix_notification_events_subject_id", table_name="notification_events")

    op.drop_table("notification_events")
