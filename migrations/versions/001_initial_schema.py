"""Initial schema: build projects, orders, consultations, showcase bookings, slot reservations, outbox.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "build_projects",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("consultation_id", sa.String(), nullable=False, server_default=""),
        sa.Column("invoice_id", sa.String(), nullable=False, server_default=""),
        sa.Column("business_name", sa.String(), nullable=False),
        sa.Column("contact_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=False, server_default=""),
        sa.Column("tier_name", sa.String(), nullable=False, server_default=""),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(), nullable=False, server_default="KES"),
        sa.Column("showcase_booking_token", sa.String(), nullable=True),
        sa.Column("showcase_booking_id", sa.String(), nullable=True),
        sa.Column("showcase_scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("showcase_scheduled_note", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_build_projects_showcase_booking_token"), "build_projects", ["showcase_booking_token"], unique=True)

    op.create_table(
        "web_service_orders",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False, server_default=""),
        sa.Column("business_name", sa.String(), nullable=False, server_default=""),
        sa.Column("phone_number", sa.String(), nullable=False, server_default=""),
        sa.Column("total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("showcase_booking_token", sa.String(), nullable=True),
        sa.Column("showcase_booking_id", sa.String(), nullable=True),
        sa.Column("meeting_link", sa.String(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_web_service_orders_showcase_booking_token"), "web_service_orders", ["showcase_booking_token"], unique=True)

    op.create_table(
        "consultations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("client_name", sa.String(), nullable=False),
        sa.Column("client_email", sa.String(), nullable=False),
        sa.Column("client_phone", sa.String(), nullable=False, server_default=""),
        sa.Column("business_name", sa.String(), nullable=False, server_default=""),
        sa.Column("meeting_type", sa.String(), nullable=False, server_default="online"),
        sa.Column("preferred_date", sa.String(), nullable=False),
        sa.Column("preferred_time", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("previous_date", sa.String(), nullable=True),
        sa.Column("previous_time", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_consultations_client_email"), "consultations", ["client_email"], unique=False)
    op.create_index(op.f("ix_consultations_preferred_date"), "consultations", ["preferred_date"], unique=False)

    op.create_table(
        "showcase_bookings",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("subject_kind", sa.String(), nullable=False),
        sa.Column("project_id", sa.String(), nullable=True),
        sa.Column("order_id", sa.String(), nullable=True),
        sa.Column("consultation_id", sa.String(), nullable=False, server_default=""),
        sa.Column("client_name", sa.String(), nullable=False),
        sa.Column("client_email", sa.String(), nullable=False),
        sa.Column("client_phone", sa.String(), nullable=False, server_default=""),
        sa.Column("meeting_type", sa.String(), nullable=False, server_default="online"),
        sa.Column("appointment_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("appointment_time", sa.String(), nullable=False),
        sa.Column("meet_link", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="confirmed"),
        sa.Column("client_timezone", sa.String(), nullable=False, server_default="Africa/Nairobi"),
        sa.Column("client_country", sa.String(), nullable=False, server_default="Unknown"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_showcase_bookings_project_id"), "showcase_bookings", ["project_id"], unique=False)
    op.create_index(op.f("ix_showcase_bookings_order_id"), "showcase_bookings", ["order_id"], unique=False)
    op.create_index(op.f("ix_showcase_bookings_appointment_at"), "showcase_bookings", ["appointment_at"], unique=False)

    op.create_table(
        "slot_reservations",
        sa.Column("slot_key", sa.String(), nullable=False),
        sa.Column("holder_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("slot_key"),
    )
    op.create_index(op.f("ix_slot_reservations_holder_id"), "slot_reservations", ["holder_id"], unique=False)

    op.create_table(
        "outbox_messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("ref_id", sa.String(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_error", sa.String(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_outbox_messages_kind"), "outbox_messages", ["kind"], unique=False)
    op.create_index(op.f("ix_outbox_messages_ref_id"), "outbox_messages", ["ref_id"], unique=False)
    op.create_index(op.f("ix_outbox_messages_next_attempt_at"), "outbox_messages", ["next_attempt_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_outbox_messages_next_attempt_at"), table_name="outbox_messages")
    op.drop_index(op.f("ix_outbox_messages_ref_id"), table_name="outbox_messages")
    op.drop_index(op.f("ix_outbox_messages_kind"), table_name="outbox_messages")
    op.drop_table("outbox_messages")
    op.drop_index(op.f("ix_slot_reservations_holder_id"), table_name="slot_reservations")
    op.drop_table("slot_reservations")
    op.drop_index(op.f("ix_showcase_bookings_appointment_at"), table_name="showcase_bookings")
    op.drop_index(op.f("ix_showcase_bookings_order_id"), table_name="showcase_bookings")
    op.drop_index(op.f("ix_showcase_bookings_project_id"), table_name="showcase_bookings")
    op.drop_table("showcase_bookings")
    op.drop_index(op.f("ix_consultations_preferred_date"), table_name="consultations")
    op.drop_index(op.f("ix_consultations_client_email"), table_name="consultations")
    op.drop_table("consultations")
    op.drop_index(op.f("ix_web_service_orders_showcase_booking_token"), table_name="web_service_orders")
    op.drop_table("web_service_orders")
    op.drop_index(op.f("ix_build_projects_showcase_booking_token"), table_name="build_projects")
    op.drop_table("build_projects")
