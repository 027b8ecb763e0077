"""
Seat model: the physical seat layout of a vessel.

Key design decisions:
- Unique constraint on (vessel_id, seat_number) so a vessel never lists a seat twice
- Index on (vessel_id, row_number, seat_number) matches the seat-map ordering
- position_x / position_y are optional; the layout falls back to row_number
"""

import uuid

from sqlalchemy import Boolean, Column, Float, Index, Integer, String, UniqueConstraint

from seatsync.db.base import Base, TimestampMixin


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vessel_id = Column(String(36), nullable=False, index=True)
    seat_number = Column(String(10), nullable=False)
    row_number = Column(Integer, nullable=False)
    is_window = Column(Boolean, nullable=False, default=False)
    is_aisle = Column(Boolean, nullable=False, default=False)
    is_row_aisle = Column(Boolean, nullable=False, default=False)
    seat_type = Column(String(20), nullable=False, default="standard")  # standard, premium, crew, disabled
    seat_class = Column(String(20), nullable=False, default="economy")  # economy, business, first
    is_disabled = Column(Boolean, nullable=False, default=False)
    is_premium = Column(Boolean, nullable=False, default=False)
    price_multiplier = Column(Float, nullable=False, default=1.0)
    position_x = Column(Integer, nullable=True)
    position_y = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("vessel_id", "seat_number", name="unique_seat"),
        Index("ix_seats_vessel_row_number", "vessel_id", "row_number", "seat_number"),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, vessel={self.vessel_id}, number={self.seat_number})>"
