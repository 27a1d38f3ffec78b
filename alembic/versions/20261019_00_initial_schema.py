"""create organization table

Revision ID: 20261019_00
Revises: 
Create Date: 2026-10-19 09:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_00"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "organization",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("stripe_id", sa.String(length=255), nullable=False),
        sa.Column("stripe_sub", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("sub_status", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("plans", sa.LargeBinary(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_organization_stripe_id", "organization", ["stripe_id"], unique=False)
    op.create_index("ix_organization_stripe_sub", "organization", ["stripe_sub"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_organization_stripe_sub", table_name="organization")
    op.drop_index("ix_organization_stripe_id", table_name="organization")
    op.drop_table("organization")
