"""claim and pickup workflow tables

Revision ID: 3b7d1e5a9c20
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


revision = "3b7d1e5a9c20"
down_revision = None
branch_labels = None
depends_on = None


POST_STATUSES = ("AVAILABLE", "CLAIMED", "COMPLETED", "CANCELLED", "EXPIRED")
CLAIM_STATUSES = ("ACTIVE", "CANCELLED", "COMPLETED")


def _table_exists(inspector, table_name):
    return table_name in inspector.get_table_names()


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "surplus_posts"):
        op.create_table(
            "surplus_posts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("donor_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=150), nullable=False),
            sa.Column("food_categories", sa.JSON(), nullable=False),
            sa.Column("quantity_value", sa.Float(), nullable=False),
            sa.Column("quantity_unit", sa.String(length=30), nullable=False, server_default="kg"),
            sa.Column("pickup_location", sa.String(length=255), nullable=False),
            sa.Column("expiry_date", sa.Date(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column(
                "status",
                sa.Enum(*POST_STATUSES, name="poststatus", native_enum=False, length=20),
                nullable=False,
                server_default="AVAILABLE",
            ),
            sa.Column("flagged", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("flag_reason", sa.String(length=255), nullable=True),
            sa.Column("pickup_photo_url", sa.String(length=255), nullable=True),
            sa.Column("pickup_temperature", sa.Float(), nullable=True),
            sa.Column("packaging_condition", sa.String(length=100), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_surplus_posts_donor_id", "surplus_posts", ["donor_id"])
        op.create_index("ix_surplus_posts_status", "surplus_posts", ["status"])

    if not _table_exists(inspector, "pickup_slots"):
        op.create_table(
            "pickup_slots",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("surplus_post_id", sa.Integer(), sa.ForeignKey("surplus_posts.id"), nullable=False),
            sa.Column("pickup_date", sa.Date(), nullable=False),
            sa.Column("start_time", sa.Time(), nullable=False),
            sa.Column("end_time", sa.Time(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("slot_order", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(inspector, "claims"):
        op.create_table(
            "claims",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("surplus_post_id", sa.Integer(), sa.ForeignKey("surplus_posts.id"), nullable=False),
            sa.Column("receiver_id", sa.Integer(), nullable=False),
            sa.Column("claimed_at", sa.DateTime(), nullable=False),
            sa.Column(
                "status",
                sa.Enum(*CLAIM_STATUSES, name="claimstatus", native_enum=False, length=20),
                nullable=False,
                server_default="ACTIVE",
            ),
            sa.Column("confirmed_pickup_date", sa.Date(), nullable=False),
            sa.Column("confirmed_pickup_start_time", sa.Time(), nullable=False),
            sa.Column("confirmed_pickup_end_time", sa.Time(), nullable=False),
            sa.Column("pickup_code_hash", sa.String(length=64), nullable=True),
            sa.Column("code_generated_at", sa.DateTime(), nullable=True),
            sa.Column("code_expires_at", sa.DateTime(), nullable=True),
            sa.Column("picked_up_at", sa.DateTime(), nullable=True),
            sa.Column("cancelled_at", sa.DateTime(), nullable=True),
            sa.Column("cancellation_reason", sa.String(length=255), nullable=True),
        )
        op.create_index("ix_claims_surplus_post_id", "claims", ["surplus_post_id"])
        op.create_index("ix_claims_receiver_id", "claims", ["receiver_id"])

    if not _table_exists(inspector, "post_timeline"):
        op.create_table(
            "post_timeline",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("surplus_post_id", sa.Integer(), sa.ForeignKey("surplus_posts.id"), nullable=False),
            sa.Column("event_type", sa.String(length=50), nullable=False),
            sa.Column("timestamp", sa.DateTime(), nullable=False),
            sa.Column("actor", sa.String(length=20), nullable=False),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("old_status", sa.String(length=20), nullable=True),
            sa.Column("new_status", sa.String(length=20), nullable=True),
            sa.Column("details", sa.Text(), nullable=True),
            sa.Column("visible_to_users", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("temperature", sa.Float(), nullable=True),
            sa.Column("packaging_condition", sa.String(length=100), nullable=True),
            sa.Column("pickup_evidence_url", sa.String(length=255), nullable=True),
        )
        op.create_index("ix_post_timeline_surplus_post_id", "post_timeline", ["surplus_post_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name in ["post_timeline", "claims", "pickup_slots", "surplus_posts"]:
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
