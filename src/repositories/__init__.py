"""
Repositories package - persistence contracts and their SQLAlchemy implementations.
"""
from .booking_repository import BookingRepository, SqlAlchemyBookingRepository
from .room_repository import RoomRepository, SqlAlchemyRoomRepository

__all__ = [
    "BookingRepository",
    "SqlAlchemyBookingRepository",
    "RoomRepository",
    "SqlAlchemyRoomRepository",
]
