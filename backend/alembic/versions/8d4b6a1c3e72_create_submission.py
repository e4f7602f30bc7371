"""create_submission

Revision ID: 8d4b6a1c3e72
Revises: 5c1e2f7a9b30
Create Date: 2026-10-19 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d4b6a1c3e72'
down_revision: Union[str, Sequence[str], None] = '5c1e2f7a9b30'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "submission",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("challenge_id", sa.String(255), nullable=False),
        sa.Column("language_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("passed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], name="fk_submission_user_id", ondelete="CASCADE"),
    )
    op.create_index("ix_submission_user_id", "submission", ["user_id"])
    op.create_index("ix_submission_challenge_id", "submission", ["challenge_id"])


def downgrade() -> None:
    op.drop_index("ix_submission_challenge_id", table_name="submission")
    op.drop_index("ix_submission_user_id", table_name="submission")
    op.drop_table("submission")
