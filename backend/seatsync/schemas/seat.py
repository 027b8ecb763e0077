"""
Pydantic schemas for the seat map and seat command responses.
"""

from typing import Optional
from pydantic import BaseModel


class SeatResponse(BaseModel):
    id: str
    number: str
    row_number: int
    is_window: bool
    is_aisle: bool
    is_row_aisle: bool
    seat_type: str
    seat_class: str
    is_disabled: bool
    is_premium: bool
    price_multiplier: float
    position_x: int
    position_y: int
    is_available: bool
    status: str
    recently_updated: bool = False
    in_flight: bool = False


class SeatRowResponse(BaseModel):
    row_number: int
    groups: list[list[str]]  # seat ids, split at aisles


class SnapshotResponse(BaseModel):
    total: int
    available: int
    booked: int
    blocked: int

    model_config = {"from_attributes": True}


class SeatMapResponse(BaseModel):
    trip_id: str
    vessel_id: str
    connection_status: str
    is_connected: bool
    snapshot: SnapshotResponse
    seats: list[SeatResponse]
    rows: list[SeatRowResponse]
    recently_updated: list[str]
    load_error: Optional[str] = None


class SeatCommandResponse(BaseModel):
    seat_id: str
    action: str
    outcome: str
    status: str
    message: str
    reservation_id: Optional[str] = None
    snapshot: SnapshotResponse
