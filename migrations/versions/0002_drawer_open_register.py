"""one open drawer session per register

Revision ID: 0002_drawer_open_register
Revises: 0001_initial
Create Date: 2026-10-17 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_drawer_open_register"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


OPEN_ONLY = sa.text("status = 'OPEN'")


def upgrade() -> None:
    op.create_index(
        "uq_cash_drawer_sessions_open_register",
        "cash_drawer_sessions",
        ["tenant_id", "register"],
        unique=True,
        postgresql_where=OPEN_ONLY,
        sqlite_where=OPEN_ONLY,
    )


def downgrade() -> None:
    op.drop_index("uq_cash_drawer_sessions_open_register", table_name="cash_drawer_sessions")
