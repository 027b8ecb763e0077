"""
Remote store interface.
The hosted data service is an opaque collaborator; seat synchronization only
talks to it through this narrow surface so backends can be swapped.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

RESERVATIONS_TABLE = "seat_reservations"
BOOKINGS_TABLE = "bookings"

Row = Mapping[str, Any]


class RemoteStoreError(Exception):
    """Raised by a remote store when a read or write is rejected."""


class SubscriptionStatus(str, Enum):
    """Transport-level channel states, as reported by the change feed."""

    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class ChangePayload:
    """
    Row-level change notification.

    Mirrors the postgres-changes shape: `event_type` is INSERT, UPDATE or
    DELETE; `new` holds the row after the change, `old` the row (or only its
    primary key) before it.
    """

    table: str
    event_type: str
    new: Optional[dict] = None
    old: Optional[dict] = None

    def to_message(self) -> dict:
        return {
            "table": self.table,
            "eventType": self.event_type,
            "new": self.new,
            "old": self.old,
        }

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> "ChangePayload":
        return cls(
            table=message["table"],
            event_type=message["eventType"],
            new=message.get("new"),
            old=message.get("old"),
        )


ChangeHandler = Callable[[ChangePayload], Awaitable[None]]
StatusHandler = Callable[[SubscriptionStatus], None]


class Subscription(ABC):
    """Handle for one open change-feed channel."""

    @abstractmethod
    async def close(self) -> None:
        """
        Stop delivery and release the channel.
        Must be safe to call more than once.
        """
        pass


class RemoteSeatStore(ABC):
    """
    Interface for the remote seat/reservation data service.

    Implementations:
    - MemoryRemoteStore: in-process tables with an asyncio change feed
    - SqlRemoteStore: SQLAlchemy tables with a Redis pub/sub change feed
    """

    @abstractmethod
    async def fetch_seats(self, vessel_id: str) -> list[Row]:
        """
        Return all seats of a vessel, ordered by row number then seat number.

        Rows carry: id, row_number, seat_number, is_window, is_aisle,
        is_row_aisle, is_disabled, is_premium, seat_type, seat_class,
        price_multiplier, position_x, position_y.
        """
        pass

    @abstractmethod
    async def fetch_reservations(self, trip_id: str) -> list[Row]:
        """Return every reservation row of a trip (id, seat_id, booking_id, is_available)."""
        pass

    @abstractmethod
    async def insert_reservation(
        self,
        trip_id: str,
        seat_id: str,
        is_available: bool,
        is_reserved: bool,
        booking_id: Optional[str] = None,
    ) -> Row:
        """Insert a reservation row and return it as stored."""
        pass

    @abstractmethod
    async def update_reservation_availability(
        self, reservation_id: str, is_available: bool
    ) -> Row:
        """Set the availability flag of a reservation row by id and return the row."""
        pass

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        trip_id: str,
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> Subscription:
        """
        Open a change-feed channel for `table` rows filtered by `trip_id`.

        Payloads for one channel are delivered in emission order, one at a
        time; `on_change` is awaited before the next payload is handed over.
        """
        pass
