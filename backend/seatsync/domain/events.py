"""Internal change events produced from the remote change feed."""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from seatsync.domain.models import SeatReservation


class FeedStatus(str, Enum):
    """Live-sync health reported to the presentation layer. Observational only."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ReservationUpserted:
    reservation: SeatReservation

    @property
    def seat_id(self) -> str:
        return self.reservation.seat_id


@dataclass(frozen=True)
class ReservationDeleted:
    """A reservation row disappeared.

    Delete payloads may only carry the row's primary key, so `seat_id` can be
    None and is then resolved through `reservation_id`.
    """

    seat_id: str | None
    reservation_id: str | None = None


@dataclass(frozen=True)
class BookingChanged:
    trip_id: str
    booking_id: str | None = None


ChangeEvent = Union[ReservationUpserted, ReservationDeleted, BookingChanged]
