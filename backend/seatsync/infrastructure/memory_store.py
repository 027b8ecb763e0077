"""
In-process remote store.

Keeps seats, reservations and bookings in dictionaries and fans row changes
out to subscribers through one asyncio queue per channel. Used as the
development backend and as the base of the test double.
"""

import asyncio
import uuid
from typing import Optional

from seatsync.core.logging import get_logger
from seatsync.services.interfaces.remote_store import (
    BOOKINGS_TABLE,
    RESERVATIONS_TABLE,
    ChangeHandler,
    ChangePayload,
    RemoteSeatStore,
    RemoteStoreError,
    Row,
    StatusHandler,
    Subscription,
    SubscriptionStatus,
)

logger = get_logger(__name__)


class MemorySubscription(Subscription):
    def __init__(
        self,
        store: "MemoryRemoteStore",
        table: str,
        trip_id: str,
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> None:
        self.table = table
        self.trip_id = trip_id
        self.queue: asyncio.Queue[ChangePayload] = asyncio.Queue()
        self._store = store
        self._on_change = on_change
        self._on_status = on_status
        self._closed = False
        self.pending = 0
        self._task = asyncio.create_task(self._deliver())

    async def _deliver(self) -> None:
        while True:
            payload = await self.queue.get()
            try:
                await self._on_change(payload)
            except Exception as e:
                logger.error(
                    "memory_feed_handler_failed",
                    table=self.table,
                    trip_id=self.trip_id,
                    error=str(e),
                )
            finally:
                self.pending -= 1
                self.queue.task_done()

    def deliver(self, payload: ChangePayload) -> None:
        self.pending += 1
        self.queue.put_nowait(payload)

    def set_status(self, status: SubscriptionStatus) -> None:
        self._on_status(status)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._subscriptions.discard(self)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._on_status(SubscriptionStatus.CLOSED)


class MemoryRemoteStore(RemoteSeatStore):
    def __init__(self) -> None:
        self.seats: dict[str, list[dict]] = {}
        self.reservations: dict[str, dict] = {}
        self.bookings: dict[str, dict] = {}
        self._subscriptions: set[MemorySubscription] = set()

    # -- seeding ------------------------------------------------------------

    def add_seat(self, vessel_id: str, seat_number: str, row_number: int, **fields) -> dict:
        row = {
            "id": fields.pop("id", None) or str(uuid.uuid4()),
            "vessel_id": vessel_id,
            "seat_number": seat_number,
            "row_number": row_number,
            "is_window": False,
            "is_aisle": False,
            "is_row_aisle": False,
            "is_disabled": False,
            "is_premium": False,
            "seat_type": "standard",
            "seat_class": "economy",
            "price_multiplier": 1.0,
            "position_x": None,
            "position_y": None,
        }
        row.update(fields)
        self.seats.setdefault(vessel_id, []).append(row)
        return row

    def seed_reservation(self, trip_id: str, seat_id: str, **fields) -> dict:
        """Insert a reservation row without emitting a change event."""
        row = self._new_reservation_row(trip_id, seat_id, **fields)
        self.reservations[row["id"]] = row
        return row

    # -- queries ------------------------------------------------------------

    async def fetch_seats(self, vessel_id: str) -> list[Row]:
        rows = self.seats.get(vessel_id, [])
        ordered = sorted(rows, key=lambda r: (r["row_number"], r["seat_number"]))
        return [dict(row) for row in ordered]

    async def fetch_reservations(self, trip_id: str) -> list[Row]:
        return [
            {
                "id": row["id"],
                "seat_id": row["seat_id"],
                "trip_id": row["trip_id"],
                "booking_id": row["booking_id"],
                "is_available": row["is_available"],
            }
            for row in self.reservations.values()
            if row["trip_id"] == trip_id
        ]

    def reservation_for_seat(self, trip_id: str, seat_id: str) -> Optional[dict]:
        for row in self.reservations.values():
            if row["trip_id"] == trip_id and row["seat_id"] == seat_id:
                return row
        return None

    # -- mutations ----------------------------------------------------------

    async def insert_reservation(
        self,
        trip_id: str,
        seat_id: str,
        is_available: bool,
        is_reserved: bool,
        booking_id: Optional[str] = None,
    ) -> Row:
        if self.reservation_for_seat(trip_id, seat_id) is not None:
            raise RemoteStoreError(
                'duplicate key value violates unique constraint "unique_trip_seat"'
            )
        row = self._new_reservation_row(
            trip_id,
            seat_id,
            booking_id=booking_id,
            is_available=is_available,
            is_reserved=is_reserved,
        )
        self.reservations[row["id"]] = row
        self.emit(trip_id, ChangePayload(RESERVATIONS_TABLE, "INSERT", new=dict(row)))
        return dict(row)

    async def update_reservation_availability(self, reservation_id: str, is_available: bool) -> Row:
        row = self.reservations.get(reservation_id)
        if row is None:
            raise RemoteStoreError(f"reservation {reservation_id} not found")
        old = dict(row)
        row["is_available"] = is_available
        self.emit(row["trip_id"], ChangePayload(RESERVATIONS_TABLE, "UPDATE", new=dict(row), old=old))
        return dict(row)

    async def delete_reservation(self, reservation_id: str) -> None:
        row = self.reservations.pop(reservation_id, None)
        if row is None:
            raise RemoteStoreError(f"reservation {reservation_id} not found")
        # Like a default replica identity, the delete only carries the primary key.
        self.emit(row["trip_id"], ChangePayload(RESERVATIONS_TABLE, "DELETE", old={"id": row["id"]}))

    async def create_booking(self, trip_id: str, seat_ids: list[str]) -> str:
        """Confirm a booking for seats; stands in for the customer booking flow."""
        booking = {"id": str(uuid.uuid4()), "trip_id": trip_id, "status": "confirmed"}
        self.bookings[booking["id"]] = booking
        self.emit(trip_id, ChangePayload(BOOKINGS_TABLE, "INSERT", new=dict(booking)))

        for seat_id in seat_ids:
            row = self.reservation_for_seat(trip_id, seat_id)
            if row is None:
                row = self.seed_reservation(
                    trip_id, seat_id, booking_id=booking["id"], is_available=False, is_reserved=True
                )
                self.emit(trip_id, ChangePayload(RESERVATIONS_TABLE, "INSERT", new=dict(row)))
                continue
            old = dict(row)
            row.update(booking_id=booking["id"], is_available=False, is_reserved=True)
            self.emit(trip_id, ChangePayload(RESERVATIONS_TABLE, "UPDATE", new=dict(row), old=old))
        return booking["id"]

    async def cancel_booking(self, booking_id: str) -> None:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise RemoteStoreError(f"booking {booking_id} not found")
        old_booking = dict(booking)
        booking["status"] = "cancelled"
        trip_id = booking["trip_id"]
        for row in self.reservations.values():
            if row["booking_id"] == booking_id:
                old = dict(row)
                row.update(booking_id=None, is_available=True, is_reserved=False)
                self.emit(trip_id, ChangePayload(RESERVATIONS_TABLE, "UPDATE", new=dict(row), old=old))
        self.emit(trip_id, ChangePayload(BOOKINGS_TABLE, "UPDATE", new=dict(booking), old=old_booking))

    # -- change feed --------------------------------------------------------

    async def subscribe(
        self,
        table: str,
        trip_id: str,
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> Subscription:
        subscription = MemorySubscription(self, table, trip_id, on_change, on_status)
        self._subscriptions.add(subscription)
        subscription.set_status(SubscriptionStatus.SUBSCRIBED)
        return subscription

    def emit(self, trip_id: str, payload: ChangePayload) -> None:
        for subscription in list(self._subscriptions):
            if subscription.table == payload.table and subscription.trip_id == trip_id:
                subscription.deliver(payload)

    async def drain(self) -> None:
        """Wait until every queued payload has been handled, including ones emitted meanwhile."""
        while True:
            subscriptions = list(self._subscriptions)
            await asyncio.gather(*(s.queue.join() for s in subscriptions))
            if all(s.pending == 0 for s in subscriptions):
                return

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close()

    @staticmethod
    def _new_reservation_row(trip_id: str, seat_id: str, **fields) -> dict:
        row = {
            "id": str(uuid.uuid4()),
            "trip_id": trip_id,
            "seat_id": seat_id,
            "booking_id": None,
            "is_available": True,
            "is_reserved": False,
        }
        row.update(fields)
        return row
