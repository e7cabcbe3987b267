"""
Read-only reporting over an organization's bookings.
"""
from datetime import datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from error_handling.exceptions import ValidationError
from error_handling.logging_config import log_performance
from models.database import BookingStatus
from models.schemas import (
    BookingCounts,
    BookingSummary,
    BookingTotals,
    BookingTrend,
    OccupancyRate,
    RoomSchedule,
    RoomUsage,
)
from models.time_range import WEEKDAY_NAMES, day_of_week
from repositories.booking_repository import BookingRepository
from repositories.room_repository import RoomRepository

# Occupancy is reported Monday first
OCCUPANCY_DAY_ORDER = (1, 2, 3, 4, 5, 6, 0)

SHORT_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

DEFAULT_HOURS_PER_DAY = 12.0


def period_starts(now: datetime) -> Tuple[datetime, datetime, datetime]:
    """Start of today, of the current week (Monday) and of the current month."""
    today = datetime.combine(now.date(), time.min)
    week_start = today - timedelta(days=now.weekday())
    month_start = today.replace(day=1)
    return today, week_start, month_start


class OccupancyAnalytics:
    """
    Counts, occupancy and usage figures for dashboards.

    Cancelled bookings never count as occupied time.
    """

    def __init__(
        self,
        bookings: BookingRepository,
        rooms: RoomRepository,
        available_hours_per_day: float = DEFAULT_HOURS_PER_DAY,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.bookings = bookings
        self.rooms = rooms
        self.available_hours_per_day = available_hours_per_day
        self._clock = clock

    @log_performance("counts_by_status")
    def counts_by_status(
        self,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> BookingCounts:
        """Booking counts per status for one organizer or one organization."""
        if (user_id is None) == (organization_id is None):
            raise ValidationError(
                "Exactly one of user_id or organization_id is required",
                field="scope",
                value={"user_id": user_id, "organization_id": organization_id}
            )

        counts = self.bookings.count_by_status(
            organizer_id=user_id,
            organization_id=organization_id
        )
        return BookingCounts(
            total=sum(counts.values()),
            active=counts.get(BookingStatus.ACTIVE, 0),
            completed=counts.get(BookingStatus.COMPLETED, 0),
            cancelled=counts.get(BookingStatus.CANCELLED, 0),
        )

    @log_performance("total_stats")
    def total_stats(self, organization_id: str, now: Optional[datetime] = None) -> BookingTotals:
        """Bookings created overall, this month, this week and today."""
        today, week_start, month_start = period_starts(now or self._clock())
        created = [b.created_at for b in self.bookings.find_by_organization(organization_id)]

        return BookingTotals(
            total=len(created),
            this_month=sum(1 for c in created if c >= month_start),
            this_week=sum(1 for c in created if c >= week_start),
            today=sum(1 for c in created if c >= today),
        )

    @log_performance("occupancy_rate_by_day_of_week")
    def occupancy_rate_by_day_of_week(self, organization_id: str) -> List[OccupancyRate]:
        """
        Share of available room hours taken by bookings, per start weekday.

        The available time for every weekday is
        ``number of rooms * available_hours_per_day``. Rates are clamped to
        100 and rounded to one decimal.
        """
        room_count = len(self.rooms.find_by_organization(organization_id))
        available_hours = room_count * self.available_hours_per_day

        booked_hours: Dict[int, float] = {day: 0.0 for day in range(7)}
        for booking in self.bookings.find_by_organization(organization_id):
            if booking.status == BookingStatus.CANCELLED:
                continue
            booked_hours[day_of_week(booking.started_at)] += booking.time_range.hours

        rates = []
        for day in OCCUPANCY_DAY_ORDER:
            rate = 0.0
            if available_hours > 0:
                rate = min(booked_hours[day] / available_hours * 100, 100.0)
            rates.append(OccupancyRate(
                day_of_week=day,
                day_name=WEEKDAY_NAMES[day],
                rate=round(rate, 1),
            ))
        return rates

    @log_performance("usage_ranking")
    def usage_ranking(
        self,
        organization_id: str,
        limit: int = 5,
        least_used: bool = False,
        now: Optional[datetime] = None
    ) -> List[RoomUsage]:
        """
        Rooms ranked by booking count, all statuses included.

        Rooms without bookings are listed with zero counts. Ties are broken
        by room id.
        """
        if limit < 1:
            raise ValidationError("Limit must be at least 1", field="limit", value=limit)

        _, week_start, month_start = period_starts(now or self._clock())
        rooms = self.rooms.find_by_organization(organization_id)
        bookings = self.bookings.find_by_organization(organization_id)
        total = len(bookings)

        by_room = {room.id: [] for room in rooms}
        for booking in bookings:
            by_room.setdefault(booking.room_id, []).append(booking.created_at)

        usage = []
        for room in rooms:
            created = by_room[room.id]
            usage.append(RoomUsage(
                room_id=room.id,
                room_name=room.name,
                count=len(created),
                percentage=round(len(created) / total * 100, 2) if total else 0.0,
                weekly_count=sum(1 for c in created if c >= week_start),
                monthly_count=sum(1 for c in created if c >= month_start),
            ))

        if least_used:
            usage.sort(key=lambda u: (u.count, u.room_id))
        else:
            usage.sort(key=lambda u: (-u.count, u.room_id))
        return usage[:limit]

    @log_performance("booking_trend")
    def booking_trend(self, organization_id: str, now: Optional[datetime] = None) -> BookingTrend:
        """
        Bookings per start weekday split into confirmed, pending and cancelled.

        Completed bookings, and active ones that already ended, are confirmed;
        other active bookings are pending.
        """
        now = now or self._clock()
        trend = {
            "confirmed": {name: 0 for name in SHORT_DAY_NAMES},
            "pending": {name: 0 for name in SHORT_DAY_NAMES},
            "cancelled": {name: 0 for name in SHORT_DAY_NAMES},
        }

        for booking in self.bookings.find_by_organization(organization_id):
            day = SHORT_DAY_NAMES[day_of_week(booking.started_at)]
            if booking.status == BookingStatus.CANCELLED:
                trend["cancelled"][day] += 1
            elif booking.status == BookingStatus.COMPLETED or booking.ended_at <= now:
                trend["confirmed"][day] += 1
            else:
                trend["pending"][day] += 1

        return BookingTrend(**trend)

    def room_schedule(self, room_id: str, now: Optional[datetime] = None) -> RoomSchedule:
        """Current and upcoming active bookings of a room, derived at read time."""
        now = now or self._clock()
        self.rooms.get(room_id)

        current = None
        upcoming = []
        for booking in self.bookings.find_active_for_room(room_id, ending_after=now):
            if booking.time_range.contains(now):
                current = BookingSummary.model_validate(booking)
            elif booking.started_at > now:
                upcoming.append(BookingSummary.model_validate(booking))

        return RoomSchedule(room_id=room_id, current=current, next=upcoming)
