"""
Booking model. Only the columns seat synchronization reads are mapped;
the booking flow itself lives outside this service.
"""

import uuid

from sqlalchemy import CheckConstraint, Column, String

from seatsync.db.base import Base, TimestampMixin


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    trip_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="confirmed")  # confirmed, cancelled

    __table_args__ = (
        CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, trip={self.trip_id}, status={self.status})>"
