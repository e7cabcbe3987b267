"""
BookingService - Entry point of the room booking core.

This service wires the repositories, conflict detector, lifecycle manager,
recurring generator and analytics over one database session, and exposes
them as the commands and queries the web layer calls:
- Creating, updating and cancelling bookings
- Expiring finished bookings
- Generating recurring cleaning/maintenance bookings
- Reporting counts, occupancy and room usage
"""
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from error_handling.handlers import database_operation
from models.database import Booking
from models.schemas import (
    BookingCreate,
    BookingUpdate,
    RecurringBookingCreate,
    RecurringBookingResult,
    BookingCounts,
    BookingTotals,
    BookingTrend,
    OccupancyRate,
    RoomSchedule,
    RoomUsage,
)
from models.time_range import TimeRange
from repositories.booking_repository import SqlAlchemyBookingRepository
from repositories.room_repository import SqlAlchemyRoomRepository
from services.analytics import OccupancyAnalytics, DEFAULT_HOURS_PER_DAY
from services.conflict_detector import ConflictDetector
from services.lifecycle import BookingLifecycleManager
from services.recurring import RecurringBookingGenerator


class BookingService:
    """
    Service class that encapsulates all booking business logic.

    All datetimes are naive and interpreted in the server's local time.
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[Callable[[], datetime]] = None,
        available_hours_per_day: float = DEFAULT_HOURS_PER_DAY,
        default_weeks_ahead: int = 12,
        usage_ranking_limit: int = 5
    ):
        """
        Initialize the booking service with a database session.

        Args:
            session: SQLAlchemy database session
            clock: Source of the current time, ``datetime.now`` by default
            available_hours_per_day: Bookable hours per room per day, used for occupancy
            default_weeks_ahead: Horizon of recurring bookings when the request omits it
            usage_ranking_limit: Default number of rooms in usage rankings
        """
        self.session = session
        self.clock = clock or datetime.now
        self.default_weeks_ahead = default_weeks_ahead
        self.usage_ranking_limit = usage_ranking_limit

        self.bookings = SqlAlchemyBookingRepository(session)
        self.rooms = SqlAlchemyRoomRepository(session)
        self.conflict_detector = ConflictDetector(self.bookings)
        self.lifecycle = BookingLifecycleManager(
            self.bookings, self.rooms, self.conflict_detector, clock=self.clock
        )
        self.recurring = RecurringBookingGenerator(self.lifecycle)
        self.analytics = OccupancyAnalytics(
            self.bookings, self.rooms, available_hours_per_day, clock=self.clock
        )

    @classmethod
    def from_settings(cls, session: Session, settings) -> "BookingService":
        """Build a service using the tunables of a ``Settings`` instance."""
        return cls(
            session,
            available_hours_per_day=settings.available_hours_per_day,
            default_weeks_ahead=settings.default_weeks_ahead,
            usage_ranking_limit=settings.usage_ranking_limit,
        )

    # ==========================================================================
    # Commands
    # ==========================================================================

    def create_booking(self, booking_data: BookingCreate) -> Booking:
        """
        Create a booking from an already type-checked request.

        Raises:
            ValidationError: End not after start, start in the past,
                participants count below 1 or blank title
            NotFoundError: If the room does not exist
            ConflictError: If the room is already booked for an overlapping range
        """
        time_range = TimeRange(booking_data.started_at, booking_data.ended_at)
        return self.lifecycle.create(
            title=booking_data.title,
            room_id=booking_data.room_id,
            organizer_id=booking_data.organizer_id,
            time_range=time_range,
            participants_count=booking_data.participants_count,
            is_private=booking_data.is_private,
            participant_ids=booking_data.participant_ids,
        )

    def update_booking(self, booking_id: str, changes: BookingUpdate) -> Booking:
        """Apply a partial update to an active booking."""
        booking = self.get_booking(booking_id)

        time_range = None
        if changes.started_at is not None or changes.ended_at is not None:
            time_range = TimeRange(
                changes.started_at or booking.started_at,
                changes.ended_at or booking.ended_at,
            )

        return self.lifecycle.update(
            booking,
            title=changes.title,
            room_id=changes.room_id,
            time_range=time_range,
            participants_count=changes.participants_count,
            is_private=changes.is_private,
            participant_ids=changes.participant_ids,
        )

    def cancel_booking(self, booking_id: str, now: Optional[datetime] = None) -> Booking:
        """
        Cancel an active booking.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidStateError: If it is already cancelled or completed
        """
        booking = self.get_booking(booking_id)
        return self.lifecycle.cancel(booking, now)

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Mark finished active bookings as completed; returns how many changed."""
        return self.lifecycle.sweep_expired(now)

    def create_recurring_booking(self, request: RecurringBookingCreate) -> RecurringBookingResult:
        """Generate cleaning or maintenance bookings from a weekly pattern."""
        weeks_ahead = request.weeks_ahead
        if weeks_ahead is None:
            weeks_ahead = self.default_weeks_ahead

        return self.recurring.generate(
            room_id=request.room_id,
            organizer_id=request.organizer_id,
            pattern=request.pattern,
            weeks_ahead=weeks_ahead,
            kind=request.kind,
        )

    def cancel_room_bookings(self, room_id: str, now: Optional[datetime] = None) -> int:
        """Cancel the remaining active bookings of a room being removed."""
        return self.lifecycle.cancel_room_bookings(room_id, now)

    # ==========================================================================
    # Queries
    # ==========================================================================

    def get_booking(self, booking_id: str) -> Booking:
        with database_operation(self.bookings, "get_booking"):
            return self.bookings.get(booking_id)

    def list_bookings(self, user_id: Optional[str] = None) -> List[Booking]:
        """All bookings, or the ones a user organizes or participates in."""
        with database_operation(self.bookings, "list_bookings"):
            if user_id is None:
                return self.bookings.find_all()
            return self.bookings.find_for_user(user_id)

    def get_room_schedule(self, room_id: str) -> RoomSchedule:
        with database_operation(self.bookings, "room_schedule"):
            return self.analytics.room_schedule(room_id)

    def get_booking_counts(
        self,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> BookingCounts:
        with database_operation(self.bookings, "counts_by_status"):
            return self.analytics.counts_by_status(user_id=user_id, organization_id=organization_id)

    def get_total_stats(self, organization_id: str) -> BookingTotals:
        with database_operation(self.bookings, "total_stats"):
            return self.analytics.total_stats(organization_id)

    def get_occupancy_rate_by_day_of_week(self, organization_id: str) -> List[OccupancyRate]:
        with database_operation(self.bookings, "occupancy_rate_by_day_of_week"):
            return self.analytics.occupancy_rate_by_day_of_week(organization_id)

    def get_room_usage(
        self,
        organization_id: str,
        limit: Optional[int] = None,
        least_used: bool = False
    ) -> List[RoomUsage]:
        with database_operation(self.bookings, "usage_ranking"):
            return self.analytics.usage_ranking(
                organization_id,
                limit=limit if limit is not None else self.usage_ranking_limit,
                least_used=least_used,
            )

    def get_booking_trend(self, organization_id: str) -> BookingTrend:
        with database_operation(self.bookings, "booking_trend"):
            return self.analytics.booking_trend(organization_id)
