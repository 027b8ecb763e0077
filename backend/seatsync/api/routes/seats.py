"""
Seat map endpoints for one trip.

Each trip is served by a shared SeatSyncSession that stays subscribed to the
change feed, so reads come from the reconciled local copy rather than the
database.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from seatsync.core.logging import get_logger
from seatsync.domain.errors import DomainError, ErrorCode
from seatsync.schemas.seat import (
    SeatCommandResponse,
    SeatMapResponse,
    SeatResponse,
    SeatRowResponse,
    SnapshotResponse,
)
from seatsync.services.seat_block_command import CommandOutcome, CommandResult
from seatsync.services.seat_session import SeatSyncSession
from seatsync.services.session_registry import SessionRegistry, get_session_registry

logger = get_logger(__name__)
router = APIRouter(prefix="/trips", tags=["Seats"])

ERROR_STATUS = {
    ErrorCode.SEAT_BOOKED: status.HTTP_409_CONFLICT,
    ErrorCode.SEAT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SEAT_WRITE_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.SEAT_WRITE_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.SEAT_LOAD_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.SESSION_CLOSED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_error(error: DomainError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )


async def open_session(registry: SessionRegistry, trip_id: str, vessel_id: str) -> SeatSyncSession:
    try:
        return await registry.get_or_open(trip_id, vessel_id)
    except DomainError as e:
        logger.warning("seat_session_open_failed", trip_id=trip_id, vessel_id=vessel_id, code=e.code.value)
        raise http_error(e) from e


def snapshot_response(session: SeatSyncSession) -> SnapshotResponse:
    return SnapshotResponse.model_validate(session.snapshot)


def seat_map_response(session: SeatSyncSession) -> SeatMapResponse:
    recent = session.recently_updated
    in_flight = session.in_flight
    seats = [
        SeatResponse(
            id=view.seat.id,
            number=view.seat.number,
            row_number=view.seat.row_number,
            is_window=view.seat.is_window,
            is_aisle=view.seat.is_aisle,
            is_row_aisle=view.seat.is_row_aisle,
            seat_type=view.seat.seat_type,
            seat_class=view.seat.seat_class,
            is_disabled=view.seat.is_disabled,
            is_premium=view.seat.is_premium,
            price_multiplier=view.seat.price_multiplier,
            position_x=view.seat.position_x,
            position_y=view.seat.position_y,
            is_available=view.seat.is_available,
            status=view.status.value,
            recently_updated=view.seat.id in recent,
            in_flight=view.seat.id in in_flight,
        )
        for view in session.seats
    ]
    rows = [
        SeatRowResponse(
            row_number=row.row_number,
            groups=[[view.seat.id for view in group] for group in row.groups],
        )
        for row in session.layout()
    ]
    return SeatMapResponse(
        trip_id=session.trip_id,
        vessel_id=session.vessel_id,
        connection_status=session.feed_status.value,
        is_connected=session.is_connected,
        snapshot=snapshot_response(session),
        seats=seats,
        rows=rows,
        recently_updated=sorted(recent),
        load_error=session.load_error.message if session.load_error else None,
    )


def command_response(session: SeatSyncSession, result: CommandResult) -> SeatCommandResponse:
    return SeatCommandResponse(
        seat_id=result.seat_id,
        action=result.action.value,
        outcome=result.outcome.value,
        status=session.status(result.seat_id).value,
        message=result.message,
        reservation_id=result.reservation.id if result.reservation else None,
        snapshot=snapshot_response(session),
    )


@router.get("/{trip_id}/seats", response_model=SeatMapResponse)
async def get_seat_map(
    trip_id: str,
    vessel_id: str = Query(..., description="Vessel whose seats are laid out for this trip"),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Current seat map with derived status, counts and feed health."""
    session = await open_session(registry, trip_id, vessel_id)
    return seat_map_response(session)


@router.post("/{trip_id}/seats/reload", response_model=SeatMapResponse)
async def reload_seat_map(
    trip_id: str,
    vessel_id: str = Query(...),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Force a full reload of seats and reservations.

    On failure the previous seat map is kept and a 503 is returned.
    """
    session = await open_session(registry, trip_id, vessel_id)
    try:
        await session.reload()
    except DomainError as e:
        raise http_error(e) from e
    return seat_map_response(session)


async def run_command(
    registry: SessionRegistry,
    trip_id: str,
    vessel_id: str,
    seat_id: str,
    action: str,
    response: Response,
) -> SeatCommandResponse:
    session = await open_session(registry, trip_id, vessel_id)
    try:
        result = await getattr(session, action)(seat_id)
    except DomainError as e:
        raise http_error(e) from e

    if result.outcome is CommandOutcome.DROPPED:
        response.status_code = status.HTTP_202_ACCEPTED
    return command_response(session, result)


@router.post("/{trip_id}/seats/{seat_id}/block", response_model=SeatCommandResponse)
async def block_seat(
    trip_id: str,
    seat_id: str,
    response: Response,
    vessel_id: str = Query(...),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Hold a seat out of sale. Booked seats are rejected with 409."""
    return await run_command(registry, trip_id, vessel_id, seat_id, "block", response)


@router.post("/{trip_id}/seats/{seat_id}/release", response_model=SeatCommandResponse)
async def release_seat(
    trip_id: str,
    seat_id: str,
    response: Response,
    vessel_id: str = Query(...),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Put a blocked seat back on sale."""
    return await run_command(registry, trip_id, vessel_id, seat_id, "release", response)


@router.post("/{trip_id}/seats/{seat_id}/toggle", response_model=SeatCommandResponse)
async def toggle_seat(
    trip_id: str,
    seat_id: str,
    response: Response,
    vessel_id: str = Query(...),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Release the seat if it is blocked, otherwise block it."""
    return await run_command(registry, trip_id, vessel_id, seat_id, "toggle", response)
