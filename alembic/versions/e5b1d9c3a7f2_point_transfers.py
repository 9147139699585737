"""point_transfers table

Revision ID: e5b1d9c3a7f2
Revises: c2a8e6f4d1b7
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "e5b1d9c3a7f2"
down_revision: Union[str, Sequence[str], None] = "c2a8e6f4d1b7"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not insp.has_table("point_transfers"):
        op.create_table(
            "point_transfers",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("sender_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("recipient_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("points", sa.Integer(), nullable=False),
            sa.Column("description", sa.String(length=255), nullable=True),
            sa.Column("category_id", sa.Integer(), sa.ForeignKey("point_categories.id"), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=False),
            sa.CheckConstraint("points > 0", name="ck_point_transfers_points_positive"),
        )

    existing_indexes = {ix["name"] for ix in insp.get_indexes("point_transfers")}
    if "ix_point_transfers_sender_id" not in existing_indexes:
        op.create_index("ix_point_transfers_sender_id", "point_transfers", ["sender_id"])
    if "ix_point_transfers_recipient_id" not in existing_indexes:
        op.create_index("ix_point_transfers_recipient_id", "point_transfers", ["recipient_id"])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not insp.has_table("point_transfers"):
        return

    existing_indexes = {ix["name"] for ix in insp.get_indexes("point_transfers")}
    if "ix_point_transfers_recipient_id" in existing_indexes:
        op.drop_index("ix_point_transfers_recipient_id", table_name="point_transfers")
    if "ix_point_transfers_sender_id" in existing_indexes:
        op.drop_index("ix_point_transfers_sender_id", table_name="point_transfers")

    op.drop_table("point_transfers")
