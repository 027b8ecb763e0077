"""
In-memory seat inventory for one trip.

The store holds the vessel seat list, the seat -> reservation map and the
aggregate snapshot. Every mutation swaps in fully-built collections and
recomputes the snapshot before returning, so a reader never sees a map
that disagrees with the counts.
"""

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from seatsync.domain.models import (
    InventorySnapshot,
    Seat,
    SeatReservation,
    SeatStatus,
    compute_snapshot,
    derive_status,
)


@dataclass(frozen=True)
class SeatView:
    seat: Seat
    status: SeatStatus


@dataclass(frozen=True)
class SeatRow:
    """One row of the seat map, split into groups separated by aisles."""

    row_number: int
    groups: tuple[tuple[SeatView, ...], ...]


class SeatInventoryStore:
    def __init__(self) -> None:
        self._seats: tuple[Seat, ...] = ()
        self._positions: dict[str, int] = {}
        self._reservations: dict[str, SeatReservation] = {}
        self._snapshot = InventorySnapshot()
        self.loaded = False

    @property
    def seats(self) -> tuple[Seat, ...]:
        return self._seats

    @property
    def reservations(self) -> Mapping[str, SeatReservation]:
        return MappingProxyType(self._reservations)

    @property
    def snapshot(self) -> InventorySnapshot:
        return self._snapshot

    def has_seat(self, seat_id: str) -> bool:
        return seat_id in self._positions

    def seat(self, seat_id: str) -> Optional[Seat]:
        position = self._positions.get(seat_id)
        return self._seats[position] if position is not None else None

    def reservation_for(self, seat_id: str) -> Optional[SeatReservation]:
        return self._reservations.get(seat_id)

    def seat_id_for_reservation(self, reservation_id: str) -> Optional[str]:
        for reservation in self._reservations.values():
            if reservation.id == reservation_id:
                return reservation.seat_id
        return None

    def status(self, seat_id: str) -> SeatStatus:
        return derive_status(seat_id, self._reservations)

    def load(self, seats: Iterable[Seat], reservations: Iterable[SeatReservation]) -> None:
        """Replace seats and reservations wholesale."""
        reservation_map = {reservation.seat_id: reservation for reservation in reservations}
        projected = tuple(
            _project(seat, reservation_map) for seat in seats
        )
        self._commit(projected, reservation_map)
        self.loaded = True

    def apply_reservation_upsert(self, reservation: SeatReservation) -> bool:
        """
        Replace the reservation for `reservation.seat_id`.
        Idempotent. Returns False when the seat is not part of the loaded layout.
        """
        reservation_map = dict(self._reservations)
        reservation_map[reservation.seat_id] = reservation
        self._commit(self._reproject(reservation.seat_id, reservation_map), reservation_map)
        return self.has_seat(reservation.seat_id)

    def apply_reservation_removal(self, seat_id: str) -> bool:
        """Drop the reservation for a seat; a seat without a row is available."""
        reservation_map = dict(self._reservations)
        reservation_map.pop(seat_id, None)
        self._commit(self._reproject(seat_id, reservation_map), reservation_map)
        return self.has_seat(seat_id)

    def seat_views(self) -> list[SeatView]:
        return [SeatView(seat, self.status(seat.id)) for seat in self._seats]

    def layout(self) -> list[SeatRow]:
        """
        Group seats by row, order each row by horizontal position and break it
        into groups after an aisle seat or wherever position_x skips a column.
        """
        rows: dict[int, list[SeatView]] = {}
        for view in self.seat_views():
            rows.setdefault(view.seat.row_number, []).append(view)

        layout = []
        for row_number in sorted(rows):
            row_seats = sorted(rows[row_number], key=lambda v: v.seat.position_x or 0)
            groups: list[tuple[SeatView, ...]] = []
            current: list[SeatView] = []
            for index, view in enumerate(row_seats):
                current.append(view)
                next_view = row_seats[index + 1] if index + 1 < len(row_seats) else None
                if next_view is None:
                    continue
                gap = (next_view.seat.position_x or 0) > (view.seat.position_x or 0) + 1
                if view.seat.is_aisle or gap:
                    groups.append(tuple(current))
                    current = []
            if current:
                groups.append(tuple(current))
            layout.append(SeatRow(row_number=row_number, groups=tuple(groups)))
        return layout

    def _reproject(
        self, seat_id: str, reservation_map: Mapping[str, SeatReservation]
    ) -> tuple[Seat, ...]:
        position = self._positions.get(seat_id)
        if position is None:
            return self._seats
        seats = list(self._seats)
        seats[position] = _project(seats[position], reservation_map)
        return tuple(seats)

    def _commit(
        self, seats: tuple[Seat, ...], reservation_map: dict[str, SeatReservation]
    ) -> None:
        self._seats = seats
        self._positions = {seat.id: index for index, seat in enumerate(seats)}
        self._reservations = reservation_map
        self._snapshot = compute_snapshot(seats, reservation_map)


def _project(seat: Seat, reservation_map: Mapping[str, SeatReservation]) -> Seat:
    is_available = derive_status(seat.id, reservation_map) is SeatStatus.AVAILABLE
    if seat.is_available == is_available:
        return seat
    return replace(seat, is_available=is_available)
