"""
Tests for the reconciliation engine: buffering, coalesced reloads,
booking-triggered reloads, load failures and transient highlights.
"""

import asyncio

import pytest
import pytest_asyncio

from seatsync.domain.errors import SeatLoadError
from seatsync.domain.events import BookingChanged, ReservationDeleted, ReservationUpserted
from seatsync.domain.models import SeatReservation, SeatStatus
from seatsync.services.inventory_store import SeatInventoryStore
from seatsync.services.reconciliation import ReconciliationEngine

from conftest import TRIP_ID, VESSEL_ID, wait_for


def upsert(seat_id: str, is_available=False, booking_id=None, id=None) -> ReservationUpserted:
    return ReservationUpserted(
        SeatReservation(
            id=id or f"r-{seat_id}",
            seat_id=seat_id,
            trip_id=TRIP_ID,
            booking_id=booking_id,
            is_available=is_available,
        )
    )


@pytest_asyncio.fixture
async def engine(remote):
    engine = ReconciliationEngine(SeatInventoryStore(), remote, TRIP_ID, VESSEL_ID, highlight_seconds=0.05)
    yield engine
    engine.close()


@pytest.mark.asyncio
async def test_reload_loads_seats_and_reservations(engine, remote):
    remote.seed_reservation(TRIP_ID, "seat-1A", is_available=False)

    await engine.reload()

    assert engine.store.loaded
    assert engine.store.snapshot.total == 8
    assert engine.store.status("seat-1A") is SeatStatus.BLOCKED
    assert engine.load_error is None


@pytest.mark.asyncio
async def test_events_before_first_load_are_replayed(engine):
    engine.apply(upsert("seat-2C"))
    assert not engine.store.loaded

    await engine.reload()

    assert engine.store.status("seat-2C") is SeatStatus.BLOCKED


@pytest.mark.asyncio
async def test_events_during_reload_are_applied_after_it(engine, remote):
    await engine.reload()
    remote.read_gate = asyncio.Event()

    reload = asyncio.create_task(engine.reload())
    await wait_for(lambda: remote.fetch_count() == 2)
    engine.apply(upsert("seat-1C"))
    assert engine.store.status("seat-1C") is SeatStatus.AVAILABLE

    remote.read_gate.set()
    await reload

    # The fetched state has no row for 1C; the buffered event still lands on top.
    assert engine.store.status("seat-1C") is SeatStatus.BLOCKED


@pytest.mark.asyncio
async def test_reload_requests_coalesce(engine, remote):
    remote.read_gate = asyncio.Event()

    first = asyncio.create_task(engine.reload())
    await wait_for(lambda: remote.fetch_count() == 1)
    for _ in range(3):
        engine.request_reload()

    remote.read_gate.set()
    await first

    assert remote.fetch_count() == 2


@pytest.mark.asyncio
async def test_booking_change_triggers_full_reload(engine, remote):
    await engine.reload()
    remote.seed_reservation(TRIP_ID, "seat-2A", booking_id="b1", is_available=False)

    await engine.handle_event(BookingChanged(trip_id=TRIP_ID, booking_id="b1"))

    assert remote.fetch_count() == 2
    assert engine.store.status("seat-2A") is SeatStatus.BOOKED
    assert engine.store.snapshot.booked == 1


@pytest.mark.asyncio
async def test_failed_reload_keeps_previous_state(engine, remote):
    remote.seed_reservation(TRIP_ID, "seat-1A", is_available=False)
    await engine.reload()
    before = engine.store.snapshot

    remote.fail_reads = True
    with pytest.raises(SeatLoadError):
        await engine.reload()

    assert engine.store.snapshot == before
    assert engine.load_error is not None
    assert engine.load_error.message == "Failed to load seat data. Please try again."

    remote.fail_reads = False
    await engine.reload()
    assert engine.load_error is None


@pytest.mark.asyncio
async def test_booking_reload_failure_is_not_raised_from_the_feed(engine, remote):
    await engine.reload()
    remote.fail_reads = True

    await engine.handle_event(BookingChanged(trip_id=TRIP_ID))

    assert engine.load_error is not None
    assert engine.store.snapshot.total == 8


@pytest.mark.asyncio
async def test_event_for_unknown_seat_reloads_layout(engine, remote):
    await engine.reload()
    remote.add_seat(VESSEL_ID, "3A", 3, id="seat-3A", position_x=1)
    remote.seed_reservation(TRIP_ID, "seat-3A", is_available=False)

    engine.apply(upsert("seat-3A"))

    await wait_for(lambda: engine.store.has_seat("seat-3A"))
    assert engine.store.status("seat-3A") is SeatStatus.BLOCKED
    assert engine.store.snapshot.total == 9


@pytest.mark.asyncio
async def test_delete_resolved_through_reservation_id(engine, remote):
    row = remote.seed_reservation(TRIP_ID, "seat-1D", is_available=False)
    await engine.reload()

    engine.apply(ReservationDeleted(seat_id=None, reservation_id=row["id"]))

    assert engine.store.status("seat-1D") is SeatStatus.AVAILABLE
    assert "seat-1D" in engine.recently_updated


@pytest.mark.asyncio
async def test_unmatched_delete_is_a_no_op(engine):
    await engine.reload()
    before = engine.store.snapshot

    engine.apply(ReservationDeleted(seat_id=None, reservation_id="never-seen"))

    assert engine.store.snapshot == before
    assert engine.recently_updated == set()


@pytest.mark.asyncio
async def test_recently_updated_clears_after_highlight_window(remote):
    engine = ReconciliationEngine(SeatInventoryStore(), remote, TRIP_ID, VESSEL_ID, highlight_seconds=0.2)
    await engine.reload()

    engine.apply(upsert("seat-1B"))
    assert engine.recently_updated == {"seat-1B"}

    await asyncio.sleep(0.12)
    engine.apply(upsert("seat-1B", is_available=True))
    await asyncio.sleep(0.12)
    # Second change restarted the window.
    assert engine.recently_updated == {"seat-1B"}

    await asyncio.sleep(0.2)
    assert engine.recently_updated == set()
    engine.close()


@pytest.mark.asyncio
async def test_in_flight_guard(engine):
    assert engine.try_acquire("seat-1A")
    assert not engine.try_acquire("seat-1A")
    engine.release("seat-1A")
    assert engine.try_acquire("seat-1A")


@pytest.mark.asyncio
async def test_change_listener_is_notified(remote):
    changes = []
    engine = ReconciliationEngine(
        SeatInventoryStore(), remote, TRIP_ID, VESSEL_ID, on_change=lambda: changes.append(1)
    )
    await engine.reload()
    engine.apply(upsert("seat-1A"))

    assert len(changes) >= 2
    engine.close()


@pytest.mark.asyncio
async def test_closed_engine_ignores_events(engine):
    await engine.reload()
    engine.apply(upsert("seat-2B"))
    engine.close()

    await engine.handle_event(upsert("seat-2D"))

    assert engine.recently_updated == set()
    assert engine.store.status("seat-2D") is SeatStatus.AVAILABLE
