"""
SQL-backed remote store with a Redis pub/sub change feed.

Reads and writes go through SQLAlchemy async sessions. After a write
commits, the changed row is published as a JSON change payload on
"{prefix}:{table}:{trip_id}"; subscribers read that channel.

Publishing is best effort: the row is already committed, so a publish
failure is logged and the write still succeeds. Clients that miss the echo
converge through their own success patch or the next full reload.
"""

import asyncio
import json
from typing import Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seatsync.core.config import get_settings
from seatsync.core.logging import get_logger
from seatsync.models import Booking, Seat, SeatReservation
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


def seat_row(seat: Seat) -> dict:
    return {
        "id": seat.id,
        "vessel_id": seat.vessel_id,
        "seat_number": seat.seat_number,
        "row_number": seat.row_number,
        "is_window": seat.is_window,
        "is_aisle": seat.is_aisle,
        "is_row_aisle": seat.is_row_aisle,
        "seat_type": seat.seat_type,
        "seat_class": seat.seat_class,
        "is_disabled": seat.is_disabled,
        "is_premium": seat.is_premium,
        "price_multiplier": seat.price_multiplier,
        "position_x": seat.position_x,
        "position_y": seat.position_y,
    }


def reservation_row(reservation: SeatReservation) -> dict:
    return {
        "id": reservation.id,
        "trip_id": reservation.trip_id,
        "seat_id": reservation.seat_id,
        "booking_id": reservation.booking_id,
        "is_available": reservation.is_available,
        "is_reserved": reservation.is_reserved,
    }


def channel_name(prefix: str, table: str, trip_id: str) -> str:
    return f"{prefix}:{table}:{trip_id}"


class RedisSubscription(Subscription):
    """
    One pub/sub channel read by a background task.

    On a transport error the channel reports CHANNEL_ERROR, waits
    `reconnect_delay` and subscribes again. Payloads published while the
    channel is down are lost; a manual reload recovers them.
    """

    def __init__(
        self,
        client: redis.Redis,
        channel: str,
        on_change: ChangeHandler,
        on_status: StatusHandler,
        reconnect_delay: float = 5.0,
    ) -> None:
        self.channel = channel
        self._client = client
        self._on_change = on_change
        self._on_status = on_status
        self._reconnect_delay = reconnect_delay
        self._task: Optional[asyncio.Task] = None
        self._subscribed = asyncio.Event()
        self._closed = False

    async def start(self) -> None:
        self._task = asyncio.create_task(self._subscribe_loop())
        await self._subscribed.wait()

    async def _subscribe_loop(self) -> None:
        while True:
            pubsub = self._client.pubsub()
            try:
                await pubsub.subscribe(self.channel)
                self._subscribed.set()
                self._on_status(SubscriptionStatus.SUBSCRIBED)
                logger.info("feed_subscribed", channel=self.channel)

                async for message in pubsub.listen():
                    if message["type"] == "message":
                        await self._handle_message(message["data"])
            except RedisError as e:
                logger.error("feed_channel_error", channel=self.channel, error=str(e))
                self._on_status(SubscriptionStatus.CHANNEL_ERROR)
                # Let start() return; the loop keeps retrying in the background.
                self._subscribed.set()
            finally:
                try:
                    await pubsub.unsubscribe(self.channel)
                    await pubsub.aclose()
                except RedisError as e:
                    logger.warning("feed_unsubscribe_failed", channel=self.channel, error=str(e))

            logger.info("feed_reconnecting", channel=self.channel, delay=self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)

    async def _handle_message(self, data: str) -> None:
        try:
            payload = ChangePayload.from_message(json.loads(data))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("feed_message_unparseable", channel=self.channel, error=str(e))
            return
        try:
            await self._on_change(payload)
        except Exception as e:
            # A failing handler must not end the listen loop for the channel.
            logger.error("feed_handler_failed", channel=self.channel, error=str(e))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._on_status(SubscriptionStatus.CLOSED)
        logger.info("feed_unsubscribed", channel=self.channel)


class SqlRemoteStore(RemoteSeatStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis_factory: Callable[[], redis.Redis],
        channel_prefix: Optional[str] = None,
        reconnect_delay: float = 5.0,
    ) -> None:
        self._session_factory = session_factory
        self._redis_factory = redis_factory
        self._channel_prefix = channel_prefix or get_settings().FEED_CHANNEL_PREFIX
        self._reconnect_delay = reconnect_delay

    async def fetch_seats(self, vessel_id: str) -> list[Row]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Seat)
                    .where(Seat.vessel_id == vessel_id)
                    .order_by(Seat.row_number.asc(), Seat.seat_number.asc())
                )
                return [seat_row(seat) for seat in result.scalars().all()]
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"failed to fetch seats for vessel {vessel_id}") from e

    async def fetch_reservations(self, trip_id: str) -> list[Row]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(SeatReservation).where(SeatReservation.trip_id == trip_id)
                )
                return [reservation_row(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"failed to fetch reservations for trip {trip_id}") from e

    async def insert_reservation(
        self,
        trip_id: str,
        seat_id: str,
        is_available: bool,
        is_reserved: bool,
        booking_id: Optional[str] = None,
    ) -> Row:
        try:
            async with self._session_factory() as db:
                reservation = SeatReservation(
                    trip_id=trip_id,
                    seat_id=seat_id,
                    booking_id=booking_id,
                    is_available=is_available,
                    is_reserved=is_reserved,
                )
                db.add(reservation)
                await db.commit()
                row = reservation_row(reservation)
        except SQLAlchemyError as e:
            # A concurrent insert for the same seat lands here via unique_trip_seat.
            raise RemoteStoreError(f"failed to insert reservation for seat {seat_id}") from e

        logger.info("reservation_inserted", trip_id=trip_id, seat_id=seat_id, reservation_id=row["id"])
        await self.publish(trip_id, ChangePayload(RESERVATIONS_TABLE, "INSERT", new=row))
        return row

    async def update_reservation_availability(self, reservation_id: str, is_available: bool) -> Row:
        try:
            async with self._session_factory() as db:
                reservation = await db.get(SeatReservation, reservation_id)
                if reservation is None:
                    raise RemoteStoreError(f"reservation {reservation_id} not found")
                old = reservation_row(reservation)
                reservation.is_available = is_available
                await db.commit()
                row = reservation_row(reservation)
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"failed to update reservation {reservation_id}") from e

        logger.info("reservation_updated", reservation_id=reservation_id, is_available=is_available)
        await self.publish(row["trip_id"], ChangePayload(RESERVATIONS_TABLE, "UPDATE", new=row, old=old))
        return row

    async def publish_booking_change(self, booking: Booking, event_type: str = "UPDATE") -> None:
        """Announce a booking change for the booking flow, which writes bookings elsewhere."""
        row = {"id": booking.id, "trip_id": booking.trip_id, "status": booking.status}
        await self.publish(booking.trip_id, ChangePayload(BOOKINGS_TABLE, event_type, new=row))

    async def publish(self, trip_id: str, payload: ChangePayload) -> None:
        channel = channel_name(self._channel_prefix, payload.table, trip_id)
        try:
            await self._redis_factory().publish(channel, json.dumps(payload.to_message(), default=str))
        except RedisError as e:
            logger.error("feed_publish_failed", channel=channel, error=str(e))

    async def subscribe(
        self,
        table: str,
        trip_id: str,
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> Subscription:
        subscription = RedisSubscription(
            self._redis_factory(),
            channel_name(self._channel_prefix, table, trip_id),
            on_change,
            on_status,
            reconnect_delay=self._reconnect_delay,
        )
        await subscription.start()
        return subscription
