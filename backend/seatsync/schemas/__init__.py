from seatsync.schemas.seat import (
    SeatResponse, SeatRowResponse, SnapshotResponse, SeatMapResponse, SeatCommandResponse,
)

__all__ = [
    "SeatResponse", "SeatRowResponse", "SnapshotResponse", "SeatMapResponse", "SeatCommandResponse",
]
