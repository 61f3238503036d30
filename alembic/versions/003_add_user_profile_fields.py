"""Add user profile fields

Revision ID: 003
Revises: 002
Create Date: 2026-10-20

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("user", sa.Column("first_name", sa.String(length=100), nullable=True))
    op.add_column("user", sa.Column("last_name", sa.String(length=100), nullable=True))
    op.add_column("user", sa.Column("pronunciation", sa.String(length=256), nullable=True))
    op.add_column("user", sa.Column("pronouns", sa.String(length=64), nullable=True))


def downgrade() -> None:
    op.drop_column("user", "pronouns")
    op.drop_column("user", "pronunciation")
    op.drop_column("user", "last_name")
    op.drop_column("user", "first_name")
