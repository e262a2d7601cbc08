"""Add template_overrides table.

Revision ID: 3f6a1c9d2b7e
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f6a1c9d2b7e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "template_overrides",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("app", sa.String(64), nullable=False),
        sa.Column("template_set", sa.String(64), nullable=False, server_default="default"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("comment", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("app", "template_set", "name", name="uq_template_overrides_app_set_name"),
    )
    op.create_index("ix_template_overrides_app", "template_overrides", ["app"])


def downgrade() -> None:
    op.drop_index("ix_template_overrides_app", table_name="template_overrides")
    op.drop_table("template_overrides")
