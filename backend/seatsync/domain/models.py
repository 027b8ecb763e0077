"""Domain models for trip seat inventory.

Seats and reservations are immutable values; a new instance replaces the
old one whenever the projection changes. Status and snapshot are always
derived from a (seats, reservation map) pair and never stored on their own.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping


class SeatStatus(str, Enum):
    AVAILABLE = "available"
    BLOCKED = "blocked"
    BOOKED = "booked"


@dataclass(frozen=True)
class Seat:
    """Physical seat on a vessel plus the derived availability projection."""

    id: str
    number: str
    row_number: int
    is_window: bool = False
    is_aisle: bool = False
    is_row_aisle: bool = False
    seat_type: str = "standard"
    seat_class: str = "economy"
    is_disabled: bool = False
    is_premium: bool = False
    price_multiplier: float = 1.0
    position_x: int = 1
    position_y: int = 1
    is_available: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any], is_available: bool = True) -> "Seat":
        """Build a seat from a `seats` table row, filling layout defaults."""
        row_number = int(row.get("row_number") or 0)
        return cls(
            id=str(row["id"]),
            number=str(row.get("seat_number") or ""),
            row_number=row_number,
            is_window=bool(row.get("is_window")),
            is_aisle=bool(row.get("is_aisle")),
            is_row_aisle=bool(row.get("is_row_aisle")),
            seat_type=row.get("seat_type") or "standard",
            seat_class=row.get("seat_class") or "economy",
            is_disabled=bool(row.get("is_disabled")),
            is_premium=bool(row.get("is_premium")),
            price_multiplier=float(row.get("price_multiplier") or 1.0),
            position_x=int(row.get("position_x") or row_number or 1),
            position_y=int(row.get("position_y") or 1),
            is_available=is_available,
        )


@dataclass(frozen=True)
class SeatReservation:
    """Authoritative per-(trip, seat) record of booking/blocking state."""

    id: str
    seat_id: str
    trip_id: str
    booking_id: str | None = None
    is_available: bool = True

    @property
    def is_booked(self) -> bool:
        return self.booking_id is not None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], trip_id: str | None = None) -> "SeatReservation":
        booking_id = row.get("booking_id")
        return cls(
            id=str(row["id"]),
            seat_id=str(row["seat_id"]),
            trip_id=str(row.get("trip_id") or trip_id or ""),
            booking_id=str(booking_id) if booking_id is not None else None,
            is_available=bool(row.get("is_available", True)),
        )


@dataclass(frozen=True)
class InventorySnapshot:
    total: int = 0
    available: int = 0
    booked: int = 0
    blocked: int = 0


def derive_status(
    seat_id: str, reservations: Mapping[str, SeatReservation]
) -> SeatStatus:
    """Classify a seat against the reservation map.

    A booking id always wins over the stored availability flag; a missing
    reservation row means the seat is open.
    """
    reservation = reservations.get(seat_id)
    if reservation is None:
        return SeatStatus.AVAILABLE
    if reservation.booking_id is not None:
        return SeatStatus.BOOKED
    if not reservation.is_available:
        return SeatStatus.BLOCKED
    return SeatStatus.AVAILABLE


def compute_snapshot(
    seats: Iterable[Seat], reservations: Mapping[str, SeatReservation]
) -> InventorySnapshot:
    counts = {status: 0 for status in SeatStatus}
    total = 0
    for seat in seats:
        counts[derive_status(seat.id, reservations)] += 1
        total += 1
    return InventorySnapshot(
        total=total,
        available=counts[SeatStatus.AVAILABLE],
        booked=counts[SeatStatus.BOOKED],
        blocked=counts[SeatStatus.BLOCKED],
    )
