"""Initial schema: users, subscriptions, class instances, bookings, waitlist.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users are provisioned by the identity platform
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'client'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('client', 'instructor', 'staff')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default=sa.text("'group'")),
        sa.Column("equipment_access", sa.String(20), nullable=False, server_default=sa.text("'both'")),
        sa.Column("remaining_credits", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        *_timestamps(),
        # Debits are conditional UPDATEs; this is the last line against underflow
        sa.CheckConstraint("remaining_credits >= 0", name="check_remaining_credits_non_negative"),
        sa.CheckConstraint("end_date >= start_date", name="check_subscription_dates"),
        sa.CheckConstraint(
            "status IN ('active', 'cancelled', 'expired')", name="check_subscription_status"
        ),
        sa.CheckConstraint(
            "category IN ('group', 'personal', 'daypass')", name="check_subscription_category"
        ),
        sa.CheckConstraint(
            "equipment_access IN ('mat', 'reformer', 'both')", name="check_subscription_equipment"
        ),
    )
    op.create_index("ix_subscriptions_id", "subscriptions", ["id"])
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    op.create_index("ix_subscriptions_user_status", "subscriptions", ["user_id", "status"])

    op.create_table(
        "class_instances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default=sa.text("'group'")),
        sa.Column("equipment_type", sa.String(20), nullable=False, server_default=sa.text("'mat'")),
        sa.Column("instructor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default=sa.text("50")),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("reserved_seats", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'scheduled'")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="check_class_capacity_positive"),
        sa.CheckConstraint("reserved_seats >= 0", name="check_reserved_seats_non_negative"),
        sa.CheckConstraint("reserved_seats <= capacity", name="check_reserved_lte_capacity"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'cancelled', 'completed')", name="check_class_status"
        ),
        sa.CheckConstraint(
            "category IN ('group', 'personal', 'daypass')", name="check_class_category"
        ),
        sa.CheckConstraint("equipment_type IN ('mat', 'reformer')", name="check_class_equipment"),
    )
    op.create_index("ix_class_instances_id", "class_instances", ["id"])
    # Schedule listings and the sweep both filter on start time
    op.create_index("ix_class_instances_starts_at", "class_instances", ["starts_at"])
    op.create_index(
        "ix_class_instances_status_starts_at", "class_instances", ["status", "starts_at"]
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("class_instances.id"), nullable=False),
        sa.Column("subscription_id", sa.Integer(), sa.ForeignKey("subscriptions.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'attended', 'no_show')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_class_id", "bookings", ["class_id"])
    op.create_index("ix_bookings_class_status", "bookings", ["class_id", "status"])
    # One live booking per (user, class); cancelled rows stay for the audit trail
    op.create_index(
        "uq_active_booking_user_class",
        "bookings",
        ["user_id", "class_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "waitlist_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("class_instances.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("class_id", "user_id", name="uq_waitlist_class_user"),
        sa.CheckConstraint("position > 0", name="check_waitlist_position_positive"),
    )
    op.create_index("ix_waitlist_entries_id", "waitlist_entries", ["id"])
    op.create_index("ix_waitlist_entries_user_id", "waitlist_entries", ["user_id"])
    op.create_index("ix_waitlist_class_position", "waitlist_entries", ["class_id", "position"])


def downgrade() -> None:
    op.drop_table("waitlist_entries")
    op.drop_table("bookings")
    op.drop_table("class_instances")
    op.drop_table("subscriptions")
    op.drop_table("users")
