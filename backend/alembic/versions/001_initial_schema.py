"""Initial schema: bookings, editors, edit requests, notifications, activities.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
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
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("owner_name", sa.String(255), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(50), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("hotel_name", sa.String(255), nullable=True),
        sa.Column("flight_number", sa.String(50), nullable=True),
        sa.Column("package_name", sa.String(255), nullable=True),
        sa.Column("travel_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("destinations", sa.JSON(), nullable=False),
        sa.Column("hotel_or_resort", sa.String(255), nullable=True),
        sa.Column("number_of_clients", sa.Integer(), nullable=True),
        sa.Column("check_in", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("flight_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("guests", sa.JSON(), nullable=False),
        sa.Column("rooms", sa.Integer(), nullable=True),
        sa.Column("activities", sa.JSON(), nullable=False),
        sa.Column("other_services", sa.Text(), nullable=True),
        sa.Column("costs", sa.Float(), nullable=True),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("amount_paid", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("date_paid", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("balance", sa.Float(), nullable=True),
        sa.Column("payment_due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("documents", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("type IN ('hotel', 'flight', 'package')", name="check_booking_type"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'failed')",
            name="check_booking_payment_status",
        ),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
    )
    # Listing is "all bookings newest first", filtered by owner on the dashboard
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])

    # Approved editors: the unique pair is what makes granting a set insertion
    op.create_table(
        "booking_editors",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id", sa.String(36),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("user_id", sa.String(255), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", "user_id", name="uq_booking_editor"),
    )
    op.create_index("ix_booking_editors_booking_id", "booking_editors", ["booking_id"])
    op.create_index("ix_booking_editors_user_id", "booking_editors", ["user_id"])

    # Edit requests reference bookings without a foreign key: they outlive deletion
    op.create_table(
        "booking_edit_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), nullable=False),
        sa.Column("requester_id", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="check_edit_request_status",
        ),
    )
    op.create_index("ix_booking_edit_requests_booking_id", "booking_edit_requests", ["booking_id"])
    op.create_index("ix_booking_edit_requests_requester_id", "booking_edit_requests", ["requester_id"])
    op.create_index("ix_booking_edit_requests_owner_id", "booking_edit_requests", ["owner_id"])
    op.create_index(
        "ix_edit_requests_booking_requester_status",
        "booking_edit_requests",
        ["booking_id", "requester_id", "status"],
    )
    # One pending request per (booking, requester); resolved rows are unconstrained
    op.create_index(
        "uq_edit_requests_one_pending",
        "booking_edit_requests",
        ["booking_id", "requester_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("booking_id", sa.String(36), nullable=False),
        sa.Column("edit_request_id", sa.String(36), nullable=True),
        sa.Column("requester_id", sa.String(255), nullable=True),
        sa.Column("requester_name", sa.String(255), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "type IN ('edit_request', 'edit_approved', 'edit_rejected')",
            name="check_notification_type",
        ),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index(
        "ix_notifications_user_read_created",
        "notifications",
        ["user_id", "is_read", "created_at"],
    )

    op.create_table(
        "booking_activities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "action IN ('create', 'update', 'delete', 'request_edit', 'approve_edit', 'reject_edit')",
            name="check_activity_action",
        ),
    )
    op.create_index("ix_booking_activities_booking_id", "booking_activities", ["booking_id"])
    op.create_index("ix_booking_activities_user_id", "booking_activities", ["user_id"])


def downgrade() -> None:
    op.drop_table("booking_activities")
    op.drop_table("notifications")
    op.drop_table("booking_edit_requests")
    op.drop_table("booking_editors")
    op.drop_table("bookings")
