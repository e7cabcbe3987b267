"""
Pydantic models for the intents accepted from the web layer and the
read models returned by analytics.
"""
import enum
from datetime import datetime, time
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field, field_validator, ConfigDict


def _to_naive(v: Optional[datetime]) -> Optional[datetime]:
    """Normalize timezone-aware values to naive local time."""
    if v is not None and v.tzinfo is not None:
        return v.astimezone().replace(tzinfo=None)
    return v


class BookingCreate(BaseModel):
    """
    Already type-checked request to create a booking.

    Domain rules (ordering, not-in-past, positivity, conflicts) are checked
    by the lifecycle manager, not here.
    """
    title: str = Field(..., max_length=255, description="Booking title")
    room_id: str = Field(..., description="Room identifier")
    organizer_id: str = Field(..., description="Organizer user identifier")
    started_at: datetime = Field(..., description="Start (ISO-8601)")
    ended_at: datetime = Field(..., description="End (ISO-8601)")
    participants_count: int = Field(..., description="Number of participants")
    is_private: bool = Field(False, description="Hide details from other users")
    participant_ids: List[str] = Field(default_factory=list, description="Invited user identifiers")

    @field_validator("started_at", "ended_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return _to_naive(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Sprint planning",
                "room_id": "7d7c1f7e-2f5e-4a5e-9a43-3a0c6e1d2b10",
                "organizer_id": "0f8b2c84-9a0e-4a7b-b5c2-2c1d1e5e8a21",
                "started_at": "2025-03-10T10:00:00",
                "ended_at": "2025-03-10T11:00:00",
                "participants_count": 6,
                "is_private": False,
                "participant_ids": []
            }
        }
    )


class BookingUpdate(BaseModel):
    """Partial update of a booking; ``None`` means unchanged."""
    title: Optional[str] = Field(None, max_length=255)
    room_id: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    participants_count: Optional[int] = None
    is_private: Optional[bool] = None
    participant_ids: Optional[List[str]] = None

    @field_validator("started_at", "ended_at")
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_naive(v)


class RecurringKind(str, enum.Enum):
    """Kind of housekeeping booking generated from a weekly pattern."""
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"

    @property
    def booking_title(self) -> str:
        return "Cleaning" if self is RecurringKind.CLEANING else "Maintenance"


class RecurrencePattern(BaseModel):
    """
    Weekly template expanded into concrete bookings.

    ``days_of_week`` uses 0 = Sunday ... 6 = Saturday.
    """
    days_of_week: Set[int]
    start_time: time
    end_time: time


class RecurringBookingCreate(BaseModel):
    """Request to generate recurring cleaning or maintenance bookings."""
    room_id: str
    organizer_id: str
    kind: RecurringKind = RecurringKind.MAINTENANCE
    days_of_week: Set[int]
    start_time: time
    end_time: time
    weeks_ahead: Optional[int] = None

    @property
    def pattern(self) -> RecurrencePattern:
        return RecurrencePattern(
            days_of_week=self.days_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class RecurringBookingResult(BaseModel):
    created_count: int
    booking_ids: List[str]


class BookingSummary(BaseModel):
    """Compact view of a booking used by room schedules."""
    id: str
    title: str
    started_at: datetime
    ended_at: datetime
    participants_count: int
    is_private: bool

    model_config = ConfigDict(from_attributes=True)


class RoomSchedule(BaseModel):
    """Derived view of a room's current and upcoming active bookings."""
    room_id: str
    current: Optional[BookingSummary] = None
    next: List[BookingSummary] = Field(default_factory=list)


class BookingCounts(BaseModel):
    total: int = 0
    active: int = 0
    completed: int = 0
    cancelled: int = 0


class BookingTotals(BaseModel):
    total: int
    this_month: int
    this_week: int
    today: int


class OccupancyRate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    day_name: str
    rate: float = Field(..., ge=0, le=100)


class RoomUsage(BaseModel):
    room_id: str
    room_name: str
    count: int
    percentage: float
    weekly_count: int
    monthly_count: int


class BookingTrend(BaseModel):
    """Per-weekday counts keyed by short day name (Sun ... Sat)."""
    confirmed: Dict[str, int]
    pending: Dict[str, int]
    cancelled: Dict[str, int]
