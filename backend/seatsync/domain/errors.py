"""Domain error codes for seat synchronization."""

from dataclasses import dataclass
from enum import Enum


_PAST_TENSE = {"block": "blocked", "release": "released"}


class ErrorCode(Enum):
    """Domain error codes."""

    SEAT_BOOKED = "SEAT_BOOKED"
    SEAT_NOT_FOUND = "SEAT_NOT_FOUND"
    SEAT_WRITE_FAILED = "SEAT_WRITE_FAILED"
    SEAT_WRITE_TIMEOUT = "SEAT_WRITE_TIMEOUT"
    SEAT_LOAD_FAILED = "SEAT_LOAD_FAILED"
    SESSION_CLOSED = "SESSION_CLOSED"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class SeatBookedError(DomainError):
    """Raised when a block is attempted on a booked seat."""

    def __init__(self, seat_id: str, action: str = "block") -> None:
        super().__init__(
            code=ErrorCode.SEAT_BOOKED,
            message=f"This seat is already booked and cannot be {_PAST_TENSE.get(action, action)}.",
        )
        self.seat_id = seat_id
        self.action = action


class SeatNotFoundError(DomainError):
    """Raised when a seat id is not part of the loaded vessel layout."""

    def __init__(self, seat_id: str) -> None:
        super().__init__(
            code=ErrorCode.SEAT_NOT_FOUND,
            message="Seat not found on this trip",
        )
        self.seat_id = seat_id


class SeatWriteError(DomainError):
    """Raised when the remote store rejects a reservation write."""

    def __init__(self, seat_id: str, action: str) -> None:
        super().__init__(
            code=ErrorCode.SEAT_WRITE_FAILED,
            message=f"Failed to {action} seat. Please try again.",
        )
        self.seat_id = seat_id
        self.action = action


class SeatWriteTimeoutError(DomainError):
    """Raised when a reservation write does not settle within the configured timeout."""

    def __init__(self, seat_id: str, action: str, timeout: float) -> None:
        super().__init__(
            code=ErrorCode.SEAT_WRITE_TIMEOUT,
            message=f"Timed out trying to {action} seat. Please try again.",
        )
        self.seat_id = seat_id
        self.action = action
        self.timeout = timeout


class SeatLoadError(DomainError):
    """Raised when seats or reservations cannot be fetched."""

    def __init__(self, trip_id: str) -> None:
        super().__init__(
            code=ErrorCode.SEAT_LOAD_FAILED,
            message="Failed to load seat data. Please try again.",
        )
        self.trip_id = trip_id


class SessionClosedError(DomainError):
    def __init__(self, trip_id: str) -> None:
        super().__init__(
            code=ErrorCode.SESSION_CLOSED,
            message="Seat session is closed",
        )
        self.trip_id = trip_id
