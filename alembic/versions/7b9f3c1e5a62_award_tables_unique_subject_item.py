"""user_medals / user_badges unique (user_id, item)

Revision ID: 7b9f3c1e5a62
Revises: 4e1d7a2b9c30
Create Date: 2026-03-04

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "7b9f3c1e5a62"
down_revision: Union[str, Sequence[str], None] = "4e1d7a2b9c30"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


_AWARD_TABLES = (
    ("user_medals", "medal_id", "uq_user_medals_user_medal"),
    ("user_badges", "badge_id", "uq_user_badges_user_badge"),
)


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    for table, item_col, name in _AWARD_TABLES:
        if not insp.has_table(table):
            continue

        existing_uqs = {tuple(uq.get("column_names") or []) for uq in insp.get_unique_constraints(table)}
        if ("user_id", item_col) in existing_uqs:
            continue

        # keep the earliest award of each pair; awards are sticky
        op.execute(
            f"""
            DELETE FROM {table} a
            USING {table} b
            WHERE a.user_id = b.user_id
              AND a.{item_col} = b.{item_col}
              AND (a.awarded_at, a.ctid) > (b.awarded_at, b.ctid)
            """
        )
        op.create_unique_constraint(name, table, ["user_id", item_col])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    for table, _item_col, name in _AWARD_TABLES:
        if not insp.has_table(table):
            continue
        existing_uqs = {uq.get("name") for uq in insp.get_unique_constraints(table)}
        if name in existing_uqs:
            op.drop_constraint(name, table, type_="unique")
