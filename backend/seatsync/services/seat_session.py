"""
Seat synchronization session for one trip.

A session wires a SeatInventoryStore, a ReconciliationEngine and a
ChangeFeedSubscriber together and exposes what a seat map needs: seats with
derived status, counts, feed health, transient highlights and the
block/release actions.

Usage:
    async with SeatSyncSession(remote, trip_id, vessel_id) as session:
        await session.block(seat_id)
        session.snapshot
"""

from contextlib import AsyncExitStack
from typing import Callable, Optional

from seatsync.core.config import get_settings
from seatsync.core.logging import get_logger
from seatsync.core.metrics import active_sessions
from seatsync.domain.errors import DomainError, SeatNotFoundError, SessionClosedError
from seatsync.domain.events import FeedStatus
from seatsync.domain.models import InventorySnapshot, SeatStatus
from seatsync.services.change_feed import ChangeFeedSubscriber
from seatsync.services.interfaces.remote_store import RemoteSeatStore
from seatsync.services.inventory_store import SeatInventoryStore, SeatRow, SeatView
from seatsync.services.reconciliation import ReconciliationEngine
from seatsync.services.seat_block_command import (
    CommandOutcome,
    CommandResult,
    CommandState,
    SeatAction,
    SeatBlockCommand,
)

logger = get_logger(__name__)

SessionListener = Callable[["SeatSyncSession"], None]
SettledListener = Callable[[CommandResult], None]


class SeatSyncSession:
    def __init__(
        self,
        remote: RemoteSeatStore,
        trip_id: str,
        vessel_id: str,
        on_change: Optional[SessionListener] = None,
        on_settled: Optional[SettledListener] = None,
        write_timeout: Optional[float] = None,
        highlight_seconds: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.trip_id = trip_id
        self.vessel_id = vessel_id
        self.on_change = on_change
        self.on_settled = on_settled
        self.store = SeatInventoryStore()
        self.engine = ReconciliationEngine(
            self.store,
            remote,
            trip_id,
            vessel_id,
            on_change=self._changed,
            highlight_seconds=highlight_seconds,
        )
        self.feed = ChangeFeedSubscriber(
            remote, self.engine.handle_event, on_status=lambda status: self._changed()
        )
        self._remote = remote
        self._write_timeout = (
            write_timeout if write_timeout is not None else settings.SEAT_WRITE_TIMEOUT_SECONDS
        )
        self._stack: Optional[AsyncExitStack] = None

    async def __aenter__(self) -> "SeatSyncSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._stack is not None

    async def open(self) -> None:
        """
        Subscribe first, then load; events arriving during the initial load are
        buffered by the engine. Raises SeatLoadError after tearing the
        subscriptions back down if the initial load fails.
        """
        if self._stack is not None:
            return
        stack = AsyncExitStack()
        try:
            await stack.enter_async_context(self.feed.open(self.trip_id))
            await self.engine.reload()
        except BaseException:
            self.engine.close()
            await stack.aclose()
            raise
        self._stack = stack
        active_sessions.inc()
        logger.info(
            "seat_session_opened",
            trip_id=self.trip_id,
            vessel_id=self.vessel_id,
            seats=self.snapshot.total,
        )

    async def close(self) -> None:
        """Tear down the change feed. In-flight writes are not aborted."""
        if self._stack is None:
            return
        stack, self._stack = self._stack, None
        try:
            await stack.aclose()
        finally:
            self.engine.close()
            active_sessions.dec()
            logger.info("seat_session_closed", trip_id=self.trip_id)

    # -- read contract ------------------------------------------------------

    @property
    def seats(self) -> list[SeatView]:
        return self.store.seat_views()

    def layout(self) -> list[SeatRow]:
        return self.store.layout()

    @property
    def snapshot(self) -> InventorySnapshot:
        return self.store.snapshot

    @property
    def feed_status(self) -> FeedStatus:
        return self.feed.status

    @property
    def is_connected(self) -> bool:
        return self.feed.status is FeedStatus.CONNECTED

    @property
    def recently_updated(self) -> frozenset[str]:
        return frozenset(self.engine.recently_updated)

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self.engine.in_flight)

    @property
    def load_error(self) -> Optional[DomainError]:
        return self.engine.load_error

    def status(self, seat_id: str) -> SeatStatus:
        return self.store.status(seat_id)

    # -- actions ------------------------------------------------------------

    async def block(self, seat_id: str) -> CommandResult:
        return await self._run(seat_id, SeatAction.BLOCK)

    async def release(self, seat_id: str) -> CommandResult:
        return await self._run(seat_id, SeatAction.RELEASE)

    async def toggle(self, seat_id: str) -> CommandResult:
        """Release a blocked seat, block anything else."""
        if not self.store.has_seat(seat_id):
            raise SeatNotFoundError(seat_id)
        if self.store.status(seat_id) is SeatStatus.BLOCKED:
            return await self.release(seat_id)
        return await self.block(seat_id)

    async def reload(self) -> None:
        """Forced full reload. Raises SeatLoadError; the previous state is kept."""
        self._ensure_open()
        await self.engine.reload()

    async def _run(self, seat_id: str, action: SeatAction) -> CommandResult:
        self._ensure_open()
        command = SeatBlockCommand(
            self.engine, self._remote, seat_id, action, write_timeout=self._write_timeout
        )
        try:
            result = await command.execute()
        except DomainError as e:
            outcome = (
                CommandOutcome.FAILED if command.state is CommandState.FAILED else CommandOutcome.REJECTED
            )
            self._settled(CommandResult(seat_id, action, outcome, error=e))
            raise
        self._settled(result)
        return result

    def _ensure_open(self) -> None:
        if self._stack is None:
            raise SessionClosedError(self.trip_id)

    def _settled(self, result: CommandResult) -> None:
        if self.on_settled:
            self.on_settled(result)

    def _changed(self) -> None:
        if self.on_change:
            self.on_change(self)
