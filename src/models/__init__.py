"""
Models package - SQLAlchemy ORM models, value objects and Pydantic schemas.
"""
from .time_range import TimeRange, WEEKDAY_NAMES, day_of_week

from .database import (
    Base,
    Booking,
    BookingParticipant,
    BookingStatus,
    Room,
    init_db,
    create_tables,
    get_db_session,
    is_overlap_violation,
)

from .schemas import (
    BookingCreate,
    BookingUpdate,
    RecurringKind,
    RecurrencePattern,
    RecurringBookingCreate,
    RecurringBookingResult,
    BookingSummary,
    RoomSchedule,
    BookingCounts,
    BookingTotals,
    OccupancyRate,
    RoomUsage,
    BookingTrend,
)

__all__ = [
    # Value objects
    "TimeRange",
    "WEEKDAY_NAMES",
    "day_of_week",
    # Database models
    "Base",
    "Booking",
    "BookingParticipant",
    "BookingStatus",
    "Room",
    # Database utilities
    "init_db",
    "create_tables",
    "get_db_session",
    "is_overlap_violation",
    # Pydantic schemas
    "BookingCreate",
    "BookingUpdate",
    "RecurringKind",
    "RecurrencePattern",
    "RecurringBookingCreate",
    "RecurringBookingResult",
    "BookingSummary",
    "RoomSchedule",
    "BookingCounts",
    "BookingTotals",
    "OccupancyRate",
    "RoomUsage",
    "BookingTrend",
]
