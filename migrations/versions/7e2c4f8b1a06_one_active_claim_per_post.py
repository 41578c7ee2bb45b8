"""one active claim per post

Revision ID: 7e2c4f8b1a06
Revises: 3b7d1e5a9c20
Create Date: 2026-10-18

"""
from alembic import op


revision = "7e2c4f8b1a06"
down_revision = "3b7d1e5a9c20"
branch_labels = None
depends_on = None


def upgrade():
    # Partial index: SQLite and PostgreSQL both accept the WHERE clause.
    op.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS uq_claims_one_active_per_post "
        "ON claims (surplus_post_id) WHERE status = 'ACTIVE'"
    )


def downgrade():
    op.execute("DROP INDEX IF EXISTS uq_claims_one_active_per_post")
