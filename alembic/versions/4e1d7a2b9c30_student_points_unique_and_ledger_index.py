"""student_points unique per student, ledger (user_id, created_at) index

Revision ID: 4e1d7a2b9c30
Revises: 
Create Date: 2026-03-02

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4e1d7a2b9c30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if insp.has_table("points_transactions"):
        existing_indexes = {ix["name"] for ix in insp.get_indexes("points_transactions")}
        if "ix_points_transactions_user_created" not in existing_indexes:
            op.create_index(
                "ix_points_transactions_user_created",
                "points_transactions",
                ["user_id", "created_at"],
            )

    if not insp.has_table("student_points"):
        return

    cols = {c["name"] for c in insp.get_columns("student_points")}
    if "updated_at" not in cols:
        op.add_column(
            "student_points",
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.text("now()"), nullable=True),
        )

    existing_uqs = {tuple(uq.get("column_names") or []) for uq in insp.get_unique_constraints("student_points")}
    unique_indexes = {
        tuple(ix.get("column_names") or [])
        for ix in insp.get_indexes("student_points")
        if ix.get("unique")
    }
    if ("student_id",) in existing_uqs or ("student_id",) in unique_indexes:
        return

    # Duplicate cache rows were possible before; the cache is rebuilt from the
    # ledger anyway, so keep one row per student and let sync fix the value.
    op.execute(
        """
        DELETE FROM student_points a
        USING student_points b
        WHERE a.student_id = b.student_id
          AND a.ctid < b.ctid
        """
    )
    op.create_unique_constraint("uq_student_points_student_id", "student_points", ["student_id"])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if insp.has_table("student_points"):
        existing_uqs = {uq.get("name") for uq in insp.get_unique_constraints("student_points")}
        if "uq_student_points_student_id" in existing_uqs:
            op.drop_constraint("uq_student_points_student_id", "student_points", type_="unique")

    if insp.has_table("points_transactions"):
        existing_indexes = {ix["name"] for ix in insp.get_indexes("points_transactions")}
        if "ix_points_transactions_user_created" in existing_indexes:
            op.drop_index("ix_points_transactions_user_created", table_name="points_transactions")
