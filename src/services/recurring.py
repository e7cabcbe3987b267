"""
Recurring cleaning and maintenance bookings.

A weekly pattern is expanded into concrete slots over a horizon starting
tomorrow; every slot goes through the regular create path, so the same
validation and conflict rules apply to generated bookings.
"""
from datetime import date, datetime, timedelta
from typing import List, Optional

from loguru import logger

from error_handling.exceptions import ValidationError, ConflictError
from error_handling.handlers import database_operation
from models.schemas import RecurrencePattern, RecurringBookingResult, RecurringKind
from models.time_range import TimeRange, day_of_week
from services.lifecycle import BookingLifecycleManager


class RecurringBookingGenerator:
    """
    Creates a batch of bookings from a ``RecurrencePattern``.

    Conflicting slots are skipped, the batch is never aborted by one of them.
    """

    def __init__(self, lifecycle: BookingLifecycleManager):
        self.lifecycle = lifecycle

    @staticmethod
    def validate(pattern: RecurrencePattern, weeks_ahead: Optional[int]) -> None:
        """Reject malformed patterns before any booking is attempted."""
        if not pattern.days_of_week:
            raise ValidationError(
                "At least one day of week is required",
                field="days_of_week",
                value=[]
            )

        invalid = sorted(day for day in pattern.days_of_week if not 0 <= day <= 6)
        if invalid:
            raise ValidationError(
                "Days of week must be between 0 (Sunday) and 6 (Saturday)",
                field="days_of_week",
                value=invalid
            )

        if pattern.start_time >= pattern.end_time:
            raise ValidationError(
                "End time must be after start time",
                field="end_time",
                value=pattern.end_time,
                start_time=pattern.start_time
            )

        if weeks_ahead is None or weeks_ahead < 1:
            raise ValidationError(
                "Weeks ahead must be at least 1",
                field="weeks_ahead",
                value=weeks_ahead
            )

    @staticmethod
    def expand(pattern: RecurrencePattern, weeks_ahead: int, today: date) -> List[TimeRange]:
        """
        Concrete slots of ``pattern`` for ``weeks_ahead`` weeks after ``today``.

        Week ``w`` covers the seven days starting at ``tomorrow + 7 * w``;
        within a week, slots follow ascending day index (Sunday first).
        """
        first_day = today + timedelta(days=1)
        days = sorted(pattern.days_of_week)
        slots = []

        for week in range(weeks_ahead):
            week_start = first_day + timedelta(weeks=week)
            offset_base = day_of_week(week_start)
            for day in days:
                slot_date = week_start + timedelta(days=(day - offset_base) % 7)
                slots.append(TimeRange(
                    datetime.combine(slot_date, pattern.start_time),
                    datetime.combine(slot_date, pattern.end_time),
                ))

        return slots

    def generate(
        self,
        room_id: str,
        organizer_id: str,
        pattern: RecurrencePattern,
        weeks_ahead: int,
        kind: RecurringKind = RecurringKind.MAINTENANCE
    ) -> RecurringBookingResult:
        """
        Create the bookings of a weekly pattern.

        Generated bookings are private, count one participant and are titled
        after ``kind``.

        Returns:
            Count and identifiers of the bookings actually created

        Raises:
            ValidationError: If the pattern or horizon is malformed
            NotFoundError: If the room does not exist
        """
        self.validate(pattern, weeks_ahead)
        with database_operation(self.lifecycle.bookings, "get_room"):
            self.lifecycle.rooms.get(room_id)

        today = self.lifecycle.now().date()
        booking_ids = []
        skipped = 0

        for time_range in self.expand(pattern, weeks_ahead, today):
            try:
                booking = self.lifecycle.create(
                    title=kind.booking_title,
                    room_id=room_id,
                    organizer_id=organizer_id,
                    time_range=time_range,
                    participants_count=1,
                    is_private=True,
                )
            except ConflictError as e:
                skipped += 1
                logger.info(
                    f"Skipping {kind.value} slot {time_range} in room {room_id}: "
                    f"conflicts with booking {e.context.get('conflicting_booking_id')}"
                )
                continue
            booking_ids.append(booking.id)

        logger.info(
            f"Recurring {kind.value} for room {room_id}: "
            f"created {len(booking_ids)}, skipped {skipped} over {weeks_ahead} week(s)"
        )
        return RecurringBookingResult(created_count=len(booking_ids), booking_ids=booking_ids)
