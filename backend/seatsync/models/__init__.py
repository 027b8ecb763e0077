from seatsync.models.seat import Seat
from seatsync.models.seat_reservation import SeatReservation
from seatsync.models.booking import Booking

__all__ = ["Seat", "SeatReservation", "Booking"]
