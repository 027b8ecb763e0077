"""
Block / release command for a single seat.

STATE MACHINE
=============

  IDLE -> VALIDATING -> WRITING -> SUCCEEDED | FAILED

  VALIDATING rejects unknown seats and booked seats before any remote call
  and falls back to IDLE. A seat that already has a local write in flight
  drops the command (no-op) and also returns to IDLE.

  WRITING issues exactly one remote mutation:
    block   - existing row: update is_available=False
              no row:       insert {booking_id: None, is_available: False}
    release - existing row: update is_available=True
              no row:       nothing to do, the seat is already open

  On success the written row is patched into the store. On failure the store
  is left untouched and the error is raised to the caller. The in-flight
  marker is cleared on every path. Nothing is retried automatically.

Concurrent writers on other clients are last-write-wins: there is no version
column on the reservation row to compare against.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from seatsync.core.logging import get_logger
from seatsync.core.metrics import record_seat_command, remote_write_latency
from seatsync.domain.errors import (
    DomainError,
    SeatBookedError,
    SeatNotFoundError,
    SeatWriteError,
    SeatWriteTimeoutError,
)
from seatsync.domain.events import ReservationUpserted
from seatsync.domain.models import SeatReservation, SeatStatus
from seatsync.services.interfaces.remote_store import RemoteSeatStore, RemoteStoreError
from seatsync.services.reconciliation import ReconciliationEngine

logger = get_logger(__name__)


class SeatAction(str, Enum):
    BLOCK = "block"
    RELEASE = "release"


class CommandState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    WRITING = "writing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CommandOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"
    DROPPED = "dropped"


@dataclass(frozen=True)
class CommandResult:
    seat_id: str
    action: SeatAction
    outcome: CommandOutcome
    reservation: Optional[SeatReservation] = None
    error: Optional[DomainError] = None

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.message
        if self.outcome is CommandOutcome.DROPPED:
            return "Seat update already in progress"
        return "Seat blocked" if self.action is SeatAction.BLOCK else "Seat released"


class SeatBlockCommand:
    def __init__(
        self,
        engine: ReconciliationEngine,
        remote: RemoteSeatStore,
        seat_id: str,
        action: SeatAction,
        write_timeout: Optional[float] = None,
    ) -> None:
        self.engine = engine
        self.seat_id = seat_id
        self.action = action
        self.state = CommandState.IDLE
        self._remote = remote
        self._write_timeout = write_timeout

    async def execute(self) -> CommandResult:
        """
        Run the command to completion.

        Returns a SUCCEEDED or DROPPED result. Raises SeatNotFoundError or
        SeatBookedError when validation rejects the seat, and SeatWriteError
        or SeatWriteTimeoutError when the remote write fails.
        """
        store = self.engine.store
        log = logger.bind(trip_id=self.engine.trip_id, seat_id=self.seat_id, action=self.action.value)

        self.state = CommandState.VALIDATING
        if not store.has_seat(self.seat_id):
            self.state = CommandState.IDLE
            record_seat_command(self.action.value, CommandOutcome.REJECTED.value)
            raise SeatNotFoundError(self.seat_id)

        if store.status(self.seat_id) is SeatStatus.BOOKED:
            self.state = CommandState.IDLE
            record_seat_command(self.action.value, CommandOutcome.REJECTED.value)
            log.info("seat_command_rejected", reason="booked")
            raise SeatBookedError(self.seat_id, self.action.value)

        if not self.engine.try_acquire(self.seat_id):
            self.state = CommandState.IDLE
            record_seat_command(self.action.value, CommandOutcome.DROPPED.value)
            log.info("seat_command_dropped", reason="in_flight")
            return CommandResult(self.seat_id, self.action, CommandOutcome.DROPPED)

        existing = store.reservation_for(self.seat_id)
        self.state = CommandState.WRITING
        start_time = time.perf_counter()
        try:
            reservation = await self._write_with_timeout(existing)
            if reservation is not None:
                self.engine.apply(ReservationUpserted(reservation))
        except asyncio.TimeoutError as e:
            self.state = CommandState.FAILED
            record_seat_command(self.action.value, CommandOutcome.FAILED.value)
            log.warning("seat_write_timed_out", timeout=self._write_timeout)
            raise SeatWriteTimeoutError(self.seat_id, self.action.value, self._write_timeout) from e
        except RemoteStoreError as e:
            self.state = CommandState.FAILED
            record_seat_command(self.action.value, CommandOutcome.FAILED.value)
            log.error("seat_write_failed", error=str(e))
            raise SeatWriteError(self.seat_id, self.action.value) from e
        finally:
            remote_write_latency.observe(time.perf_counter() - start_time)
            self.engine.release(self.seat_id)

        self.state = CommandState.SUCCEEDED
        record_seat_command(self.action.value, CommandOutcome.SUCCEEDED.value)
        log.info(
            f"seat_{self.action.value}_succeeded",
            reservation_id=reservation.id if reservation else None,
            inserted=existing is None and reservation is not None,
        )
        return CommandResult(self.seat_id, self.action, CommandOutcome.SUCCEEDED, reservation)

    async def _write_with_timeout(
        self, existing: Optional[SeatReservation]
    ) -> Optional[SeatReservation]:
        if self._write_timeout is None:
            return await self._write(existing)
        return await asyncio.wait_for(self._write(existing), timeout=self._write_timeout)

    async def _write(self, existing: Optional[SeatReservation]) -> Optional[SeatReservation]:
        trip_id = self.engine.trip_id
        if self.action is SeatAction.BLOCK:
            if existing is not None:
                row = await self._remote.update_reservation_availability(existing.id, False)
            else:
                row = await self._remote.insert_reservation(
                    trip_id,
                    self.seat_id,
                    is_available=False,
                    is_reserved=True,
                    booking_id=None,
                )
        else:
            if existing is None:
                return None
            row = await self._remote.update_reservation_availability(existing.id, True)
        return SeatReservation.from_row(row, trip_id)
