"""
Change feed subscriber for one trip.

Opens two channels on the remote store (reservation rows and booking rows
filtered by trip) and turns raw row payloads into internal change events.
Both channels are a scoped resource: `open()` closes whatever it opened on
every exit path, including a failure while opening the second channel.
"""

from contextlib import AsyncExitStack, asynccontextmanager
from functools import partial
from typing import AsyncIterator, Awaitable, Callable, Optional

from seatsync.core.logging import get_logger
from seatsync.core.metrics import feed_connected, record_feed_event
from seatsync.domain.events import (
    BookingChanged,
    ChangeEvent,
    FeedStatus,
    ReservationDeleted,
    ReservationUpserted,
)
from seatsync.domain.models import SeatReservation
from seatsync.services.interfaces.remote_store import (
    BOOKINGS_TABLE,
    RESERVATIONS_TABLE,
    ChangePayload,
    RemoteSeatStore,
    SubscriptionStatus,
)

logger = get_logger(__name__)

EventSink = Callable[[ChangeEvent], Awaitable[None]]
StatusListener = Callable[[FeedStatus], None]

_DOWN_STATES = {
    SubscriptionStatus.CHANNEL_ERROR,
    SubscriptionStatus.TIMED_OUT,
    SubscriptionStatus.CLOSED,
}


class MalformedPayloadError(ValueError):
    pass


class ChangeFeedSubscriber:
    def __init__(
        self,
        remote: RemoteSeatStore,
        on_event: EventSink,
        on_status: Optional[StatusListener] = None,
    ) -> None:
        self._remote = remote
        self._on_event = on_event
        self._on_status = on_status
        self._trip_id: Optional[str] = None
        self._channels: dict[str, Optional[SubscriptionStatus]] = {}
        self._closed = True
        self.status = FeedStatus.DISCONNECTED

    @property
    def is_open(self) -> bool:
        return not self._closed

    @asynccontextmanager
    async def open(self, trip_id: str) -> AsyncIterator["ChangeFeedSubscriber"]:
        """Subscribe to reservation and booking changes for `trip_id`."""
        if not self._closed:
            raise RuntimeError("change feed is already open")

        self._trip_id = trip_id
        self._channels = {RESERVATIONS_TABLE: None, BOOKINGS_TABLE: None}
        self._closed = False
        self._set_status(FeedStatus.CONNECTING)
        logger.info("feed_opening", trip_id=trip_id)

        try:
            async with AsyncExitStack() as stack:
                for table in (RESERVATIONS_TABLE, BOOKINGS_TABLE):
                    subscription = await self._remote.subscribe(
                        table,
                        trip_id,
                        partial(self._dispatch, table),
                        partial(self._channel_status_changed, table),
                    )
                    stack.push_async_callback(subscription.close)
                # Closed before the channels are released so nothing is
                # delivered while teardown is in progress.
                stack.callback(self._mark_closed)
                yield self
        finally:
            self._mark_closed()
            self._set_status(FeedStatus.DISCONNECTED)
            logger.info("feed_closed", trip_id=trip_id)

    def normalize(self, table: str, payload: ChangePayload) -> ChangeEvent:
        """Translate a raw row payload into an internal change event."""
        if table == BOOKINGS_TABLE:
            row = payload.new or payload.old or {}
            booking_id = row.get("id")
            return BookingChanged(
                trip_id=self._trip_id or "",
                booking_id=str(booking_id) if booking_id is not None else None,
            )

        if table != RESERVATIONS_TABLE:
            raise MalformedPayloadError(f"unexpected table {table!r}")

        event_type = payload.event_type.upper()
        if event_type in ("INSERT", "UPDATE"):
            if not payload.new:
                raise MalformedPayloadError(f"{event_type} without a new row")
            try:
                return ReservationUpserted(SeatReservation.from_row(payload.new, self._trip_id))
            except (KeyError, TypeError) as e:
                raise MalformedPayloadError(str(e)) from e
        if event_type == "DELETE":
            old = payload.old or {}
            seat_id = old.get("seat_id")
            reservation_id = old.get("id")
            if seat_id is None and reservation_id is None:
                raise MalformedPayloadError("DELETE without seat or reservation id")
            return ReservationDeleted(
                seat_id=str(seat_id) if seat_id is not None else None,
                reservation_id=str(reservation_id) if reservation_id is not None else None,
            )
        raise MalformedPayloadError(f"unknown event type {payload.event_type!r}")

    async def _dispatch(self, table: str, payload: ChangePayload) -> None:
        if self._closed:
            return
        try:
            event = self.normalize(table, payload)
        except MalformedPayloadError as e:
            record_feed_event("malformed")
            logger.warning(
                "feed_payload_malformed",
                trip_id=self._trip_id,
                table=table,
                error=str(e),
            )
            return

        record_feed_event(_event_kind(event))
        logger.debug("feed_event", trip_id=self._trip_id, table=table, change=event)
        await self._on_event(event)

    def _channel_status_changed(self, table: str, status: SubscriptionStatus) -> None:
        if self._closed:
            return
        logger.info("feed_channel_status", trip_id=self._trip_id, table=table, status=status.value)
        self._channels[table] = status

        states = self._channels.values()
        if all(state is SubscriptionStatus.SUBSCRIBED for state in states):
            self._set_status(FeedStatus.CONNECTED)
        elif any(state in _DOWN_STATES for state in states):
            self._set_status(FeedStatus.DISCONNECTED)
        else:
            self._set_status(FeedStatus.CONNECTING)

    def _mark_closed(self) -> None:
        self._closed = True

    def _set_status(self, status: FeedStatus) -> None:
        if status == self.status:
            return
        if status is FeedStatus.CONNECTED:
            feed_connected.inc()
        elif self.status is FeedStatus.CONNECTED:
            feed_connected.dec()
        self.status = status
        logger.info("feed_status_changed", trip_id=self._trip_id, status=status.value)
        if self._on_status:
            self._on_status(status)


def _event_kind(event: ChangeEvent) -> str:
    if isinstance(event, ReservationUpserted):
        return "reservation_upserted"
    if isinstance(event, ReservationDeleted):
        return "reservation_deleted"
    return "booking_changed"
