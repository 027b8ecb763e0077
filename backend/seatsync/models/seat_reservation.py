"""
Seat reservation model: per-(trip, seat) booking/blocking state.

Key design decisions:
- Unique constraint on (trip_id, seat_id): at most one row per seat per trip
- booking_id takes precedence over is_available when deriving status
- No version column; concurrent admin writes are last-write-wins
"""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, UniqueConstraint

from seatsync.db.base import Base, TimestampMixin


class SeatReservation(Base, TimestampMixin):
    __tablename__ = "seat_reservations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    trip_id = Column(String(36), nullable=False)
    seat_id = Column(String(36), ForeignKey("seats.id"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    is_reserved = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("trip_id", "seat_id", name="unique_trip_seat"),
        Index("idx_seat_reservations_trip_id", "trip_id"),
        Index("idx_seat_reservations_trip_booking", "trip_id", "booking_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<SeatReservation(id={self.id}, trip={self.trip_id}, seat={self.seat_id}, "
            f"booking={self.booking_id}, available={self.is_available})>"
        )
