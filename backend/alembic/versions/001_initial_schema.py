"""Initial schema: seats, bookings, seat_reservations with indexes and constraints.

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


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Seats: physical layout of a vessel
    op.create_table(
        "seats",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("vessel_id", sa.String(36), nullable=False),
        sa.Column("seat_number", sa.String(10), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("is_window", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_aisle", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_row_aisle", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("seat_type", sa.String(20), nullable=False, server_default="standard"),
        sa.Column("seat_class", sa.String(20), nullable=False, server_default="economy"),
        sa.Column("is_disabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("price_multiplier", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.Column("position_x", sa.Integer(), nullable=True),
        sa.Column("position_y", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("vessel_id", "seat_number", name="unique_seat"),
    )
    op.create_index("ix_seats_vessel_id", "seats", ["vessel_id"])
    op.create_index("ix_seats_vessel_row_number", "seats", ["vessel_id", "row_number", "seat_number"])

    # Bookings: only the columns seat sync reads
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        *_timestamps(),
        sa.CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
    )
    op.create_index("ix_bookings_trip_id", "bookings", ["trip_id"])

    # Seat reservations: per-trip seat state
    op.create_table(
        "seat_reservations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), nullable=False),
        sa.Column("seat_id", sa.String(36), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_reserved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("trip_id", "seat_id", name="unique_trip_seat"),
    )
    op.create_index("idx_seat_reservations_trip_id", "seat_reservations", ["trip_id"])
    op.create_index("idx_seat_reservations_trip_booking", "seat_reservations", ["trip_id", "booking_id"])


def downgrade() -> None:
    op.drop_table("seat_reservations")
    op.drop_table("bookings")
    op.drop_table("seats")
