from seatsync.domain.models import (
    InventorySnapshot,
    Seat,
    SeatReservation,
    SeatStatus,
    compute_snapshot,
    derive_status,
)
from seatsync.domain.events import (
    BookingChanged,
    ChangeEvent,
    FeedStatus,
    ReservationDeleted,
    ReservationUpserted,
)

__all__ = [
    "InventorySnapshot", "Seat", "SeatReservation", "SeatStatus",
    "compute_snapshot", "derive_status",
    "BookingChanged", "ChangeEvent", "FeedStatus",
    "ReservationDeleted", "ReservationUpserted",
]
