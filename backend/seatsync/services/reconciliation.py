"""
Reconciliation between the change feed, local writes and the seat store.

RECONCILIATION POLICY
=====================

Incremental:
  Reservation upserts and deletes touch exactly one seat, so they are patched
  straight into the store. A local write and its feed echo apply the same
  upsert, which makes double application harmless; echoes are not
  suppressed.

Full reload:
  A booking change can move any number of seats and the two feed channels
  have no relative ordering, so booking events always re-fetch seats and
  reservations. Reloads are coalesced: while one runs, further requests
  collapse into a single follow-up reload.

  Events arriving before the first load or during a reload are buffered and
  replayed in arrival order once the fetched state is committed. A fetch
  failure keeps the previous projection and records `load_error`.

Mutual exclusion:
  The in-flight set holds seats with a local write outstanding. It is a
  logical guard against overlapping async commands on one seat, not a
  thread lock; the store itself is only mutated synchronously on the loop.
"""

import asyncio
from typing import Callable, Optional

from seatsync.core.config import get_settings
from seatsync.core.logging import get_logger
from seatsync.core.metrics import record_reload
from seatsync.domain.errors import SeatLoadError
from seatsync.domain.events import (
    BookingChanged,
    ChangeEvent,
    ReservationDeleted,
    ReservationUpserted,
)
from seatsync.domain.models import Seat, SeatReservation
from seatsync.services.interfaces.remote_store import RemoteSeatStore, RemoteStoreError
from seatsync.services.inventory_store import SeatInventoryStore

logger = get_logger(__name__)

ChangeListener = Callable[[], None]


class ReconciliationEngine:
    def __init__(
        self,
        store: SeatInventoryStore,
        remote: RemoteSeatStore,
        trip_id: str,
        vessel_id: str,
        on_change: Optional[ChangeListener] = None,
        highlight_seconds: Optional[float] = None,
    ) -> None:
        self.store = store
        self.trip_id = trip_id
        self.vessel_id = vessel_id
        self.on_change = on_change
        self.in_flight: set[str] = set()
        self.recently_updated: set[str] = set()
        self.load_error: Optional[SeatLoadError] = None

        self._remote = remote
        self._highlight_seconds = (
            highlight_seconds
            if highlight_seconds is not None
            else get_settings().RECENTLY_UPDATED_SECONDS
        )
        self._highlight_timers: dict[str, asyncio.TimerHandle] = {}
        self._pending: list[ChangeEvent] = []
        self._loading = False
        self._reload_task: Optional[asyncio.Task] = None
        self._reload_requested = False
        self._closed = False

    # -- mutual exclusion ---------------------------------------------------

    def try_acquire(self, seat_id: str) -> bool:
        """Mark a seat in flight. False when a local write for it is already outstanding."""
        if seat_id in self.in_flight:
            return False
        self.in_flight.add(seat_id)
        self._notify()
        return True

    def release(self, seat_id: str) -> None:
        self.in_flight.discard(seat_id)
        self._notify()

    # -- events -------------------------------------------------------------

    async def handle_event(self, event: ChangeEvent) -> None:
        """Change feed sink."""
        if self._closed:
            return
        if isinstance(event, BookingChanged):
            logger.info("booking_changed_reload", trip_id=self.trip_id, booking_id=event.booking_id)
            try:
                await self.reload()
            except SeatLoadError:
                logger.warning("feed_reload_failed", trip_id=self.trip_id)
            return
        self.apply(event)

    def apply(self, event: ChangeEvent) -> None:
        """Patch one reservation change into the store, buffering while a load is pending."""
        if self._loading or not self.store.loaded:
            self._pending.append(event)
            return
        self._apply_now(event)

    def _apply_now(self, event: ChangeEvent) -> None:
        if isinstance(event, ReservationUpserted):
            seat_id = event.seat_id
            known = self.store.apply_reservation_upsert(event.reservation)
        elif isinstance(event, ReservationDeleted):
            seat_id = event.seat_id
            if seat_id is None and event.reservation_id is not None:
                seat_id = self.store.seat_id_for_reservation(event.reservation_id)
            if seat_id is None:
                # Row was never in the local map; the seat already reads as available.
                logger.debug("reservation_delete_unmatched", reservation_id=event.reservation_id)
                return
            known = self.store.apply_reservation_removal(seat_id)
        else:
            self._schedule_reload()
            return

        if not known:
            logger.info("reservation_for_unknown_seat", trip_id=self.trip_id, seat_id=seat_id)
            self._schedule_reload()
            return

        self._flag_recent(seat_id)
        self._notify()

    # -- reload -------------------------------------------------------------

    async def reload(self) -> None:
        """
        Re-fetch seats and reservations and replace the projection.
        Raises SeatLoadError when the fetch fails; the previous state is kept.
        """
        await asyncio.shield(self.request_reload())

    def request_reload(self) -> asyncio.Task:
        if self._reload_task is None or self._reload_task.done():
            self._reload_task = asyncio.create_task(self._reload_loop())
        else:
            self._reload_requested = True
        return self._reload_task

    def _schedule_reload(self) -> None:
        task = self.request_reload()
        task.add_done_callback(_consume_reload_result)

    async def _reload_loop(self) -> None:
        while True:
            self._reload_requested = False
            await self._load_once()
            if not self._reload_requested or self._closed:
                return

    async def _load_once(self) -> None:
        log = logger.bind(trip_id=self.trip_id, vessel_id=self.vessel_id)
        self._loading = True
        try:
            seat_rows = await self._remote.fetch_seats(self.vessel_id)
            reservation_rows = await self._remote.fetch_reservations(self.trip_id)
            seats = [Seat.from_row(row) for row in seat_rows]
            reservations = [SeatReservation.from_row(row, self.trip_id) for row in reservation_rows]
        except (RemoteStoreError, KeyError, TypeError, ValueError) as e:
            self._loading = False
            self.load_error = SeatLoadError(self.trip_id)
            record_reload(success=False)
            log.error("seat_load_failed", error=str(e))
            if self.store.loaded:
                self._replay_pending()
            self._notify()
            raise self.load_error from e

        self.store.load(seats, reservations)
        self.load_error = None
        self._loading = False
        record_reload(success=True)
        log.info(
            "seat_load_completed",
            seats=len(seats),
            reservations=len(reservations),
            replayed=len(self._pending),
        )
        self._replay_pending()
        self._notify()

    def _replay_pending(self) -> None:
        pending, self._pending = self._pending, []
        for event in pending:
            self._apply_now(event)

    # -- highlighting -------------------------------------------------------

    def _flag_recent(self, seat_id: str) -> None:
        timer = self._highlight_timers.pop(seat_id, None)
        if timer is not None:
            timer.cancel()
        self.recently_updated.add(seat_id)
        loop = asyncio.get_running_loop()
        self._highlight_timers[seat_id] = loop.call_later(
            self._highlight_seconds, self._clear_recent, seat_id
        )

    def _clear_recent(self, seat_id: str) -> None:
        self._highlight_timers.pop(seat_id, None)
        self.recently_updated.discard(seat_id)
        self._notify()

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Stop reacting to events. Outstanding local writes are left to finish."""
        self._closed = True
        for timer in self._highlight_timers.values():
            timer.cancel()
        self._highlight_timers.clear()
        self.recently_updated.clear()
        self._pending.clear()
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_task.cancel()

    def _notify(self) -> None:
        if self.on_change and not self._closed:
            self.on_change()


def _consume_reload_result(task: asyncio.Task) -> None:
    # Background reload failures are already recorded in load_error.
    if not task.cancelled():
        task.exception()
