"""add explicit lifetime flag to profiles

Lifetime plans used to be stored as a subscription end date past 2099. The
flag replaces that sentinel; existing rows are backfilled here.

Revision ID: 20261017_01
Revises: 20261017_00
Create Date: 2026-10-17 09:40:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_01"
down_revision = "20261017_00"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "profiles",
        sa.Column("is_lifetime", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.execute(
        """
        UPDATE profiles
        SET is_lifetime = true
        WHERE subscription_tier = 'lifetime'
           OR EXTRACT(YEAR FROM subscription_end_date) > 2099
        """
    )
    op.alter_column("profiles", "is_lifetime", server_default=None)


def downgrade() -> None:
    op.drop_column("profiles", "is_lifetime")
