"""
Tests for the seat inventory store: status derivation, snapshot counts and layout.
"""

from seatsync.domain.models import (
    InventorySnapshot,
    Seat,
    SeatReservation,
    SeatStatus,
    compute_snapshot,
    derive_status,
)
from seatsync.services.inventory_store import SeatInventoryStore


def make_seats(count: int = 4) -> list[Seat]:
    return [
        Seat(id=f"s{i}", number=f"1{'ABCDEFGH'[i]}", row_number=1, position_x=i + 1)
        for i in range(count)
    ]


def reservation(seat_id: str, booking_id=None, is_available=True, id=None) -> SeatReservation:
    return SeatReservation(
        id=id or f"r-{seat_id}",
        seat_id=seat_id,
        trip_id="trip-1",
        booking_id=booking_id,
        is_available=is_available,
    )


def test_derive_status_without_reservation_is_available():
    assert derive_status("s0", {}) is SeatStatus.AVAILABLE


def test_derive_status_booking_wins_over_availability_flag():
    """A booked row reads as booked even if is_available was left true."""
    reservations = {"s0": reservation("s0", booking_id="b1", is_available=True)}
    assert derive_status("s0", reservations) is SeatStatus.BOOKED


def test_derive_status_blocked_and_released():
    assert derive_status("s0", {"s0": reservation("s0", is_available=False)}) is SeatStatus.BLOCKED
    assert derive_status("s0", {"s0": reservation("s0", is_available=True)}) is SeatStatus.AVAILABLE


def test_snapshot_counts_partition_seats():
    seats = make_seats(4)
    reservations = {
        "s0": reservation("s0", booking_id="b1", is_available=False),
        "s1": reservation("s1", is_available=False),
        "s2": reservation("s2", is_available=True),
    }
    snapshot = compute_snapshot(seats, reservations)
    assert snapshot == InventorySnapshot(total=4, available=2, booked=1, blocked=1)
    assert snapshot.available + snapshot.booked + snapshot.blocked == snapshot.total


def test_snapshot_ignores_reservations_for_unknown_seats():
    snapshot = compute_snapshot(make_seats(2), {"ghost": reservation("ghost", is_available=False)})
    assert snapshot == InventorySnapshot(total=2, available=2, booked=0, blocked=0)


def test_empty_store():
    store = SeatInventoryStore()
    assert not store.loaded
    assert store.snapshot == InventorySnapshot()
    assert store.layout() == []


def test_load_projects_availability():
    store = SeatInventoryStore()
    store.load(make_seats(3), [reservation("s1", is_available=False)])

    assert store.loaded
    assert [seat.is_available for seat in store.seats] == [True, False, True]
    assert store.snapshot == InventorySnapshot(total=3, available=2, booked=0, blocked=1)


def test_upsert_is_idempotent():
    """Applying the same reservation twice leaves the same state as applying it once."""
    store = SeatInventoryStore()
    store.load(make_seats(3), [])
    blocked = reservation("s2", is_available=False)

    assert store.apply_reservation_upsert(blocked)
    once = (store.snapshot, dict(store.reservations), store.seats)
    assert store.apply_reservation_upsert(blocked)

    assert (store.snapshot, dict(store.reservations), store.seats) == once
    assert store.status("s2") is SeatStatus.BLOCKED


def test_removal_makes_seat_available():
    store = SeatInventoryStore()
    store.load(make_seats(2), [reservation("s0", is_available=False)])

    assert store.apply_reservation_removal("s0")
    assert store.status("s0") is SeatStatus.AVAILABLE
    assert store.seat("s0").is_available
    assert store.snapshot.blocked == 0


def test_upsert_for_unknown_seat_reports_false_and_keeps_counts():
    store = SeatInventoryStore()
    store.load(make_seats(2), [])

    assert not store.apply_reservation_upsert(reservation("ghost", is_available=False))
    assert store.snapshot == InventorySnapshot(total=2, available=2, booked=0, blocked=0)


def test_reservation_lookup_by_id():
    store = SeatInventoryStore()
    store.load(make_seats(2), [reservation("s1", id="res-9")])
    assert store.seat_id_for_reservation("res-9") == "s1"
    assert store.seat_id_for_reservation("missing") is None


def test_snapshot_matches_reservations_after_every_mutation():
    store = SeatInventoryStore()
    store.load(make_seats(4), [])
    mutations = [
        lambda: store.apply_reservation_upsert(reservation("s0", is_available=False)),
        lambda: store.apply_reservation_upsert(reservation("s1", booking_id="b1")),
        lambda: store.apply_reservation_upsert(reservation("s0", is_available=True)),
        lambda: store.apply_reservation_removal("s1"),
        lambda: store.apply_reservation_upsert(reservation("s3", is_available=False)),
    ]
    for mutate in mutations:
        mutate()
        assert store.snapshot == compute_snapshot(store.seats, store.reservations)
        for seat in store.seats:
            assert seat.is_available == (store.status(seat.id) is SeatStatus.AVAILABLE)


def test_layout_groups_rows_at_aisles_and_gaps():
    seats = [
        Seat(id="a", number="1A", row_number=1, position_x=1),
        Seat(id="b", number="1B", row_number=1, position_x=2, is_aisle=True),
        Seat(id="c", number="1C", row_number=1, position_x=3),
        Seat(id="e", number="1E", row_number=1, position_x=5),
        Seat(id="x", number="2A", row_number=2, position_x=1),
    ]
    store = SeatInventoryStore()
    store.load(list(reversed(seats)), [])

    rows = store.layout()
    assert [row.row_number for row in rows] == [1, 2]
    assert [[view.seat.id for view in group] for group in rows[0].groups] == [["a", "b"], ["c"], ["e"]]
    assert [[view.seat.id for view in group] for group in rows[1].groups] == [["x"]]


def test_seat_from_row_fills_layout_defaults():
    seat = Seat.from_row({"id": 7, "seat_number": "3C", "row_number": 3})
    assert seat.id == "7"
    assert seat.position_x == 3
    assert seat.position_y == 1
    assert seat.seat_type == "standard"
    assert seat.price_multiplier == 1.0
