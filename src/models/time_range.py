"""
Half-open time interval used for booking ranges.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from error_handling.exceptions import ValidationError

# Weekday indexes used across the booking core: 0 = Sunday ... 6 = Saturday
WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


def day_of_week(value: date) -> int:
    """Weekday index of a date or datetime, with Sunday as 0."""
    return (value.weekday() + 1) % 7


@dataclass(frozen=True)
class TimeRange:
    """
    A validated ``[start, end)`` interval.

    A range ending exactly when another starts does not overlap it.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(
                "End time must be after start time",
                field="ended_at",
                value=self.end,
                started_at=self.start
            )

    def overlaps(self, other: "TimeRange") -> bool:
        """Check whether two ranges share at least one instant."""
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        """Check whether ``instant`` falls inside the range."""
        return self.start <= instant < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def hours(self) -> float:
        return self.duration.total_seconds() / 3600

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"
