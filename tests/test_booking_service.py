"""
Integration tests for BookingService.

Tests cover:
- Request schemas flowing through the lifecycle rules
- Lookups and listings
- Recurring bookings with the configured default horizon
- Authorization predicates
- Error translation for storage failures
"""
import pytest
from datetime import datetime, time, timedelta, timezone
from unittest.mock import Mock
from sqlalchemy.exc import OperationalError

from error_handling.exceptions import (
    ConflictError,
    DatabaseConnectionError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from models.database import BookingStatus
from models.schemas import BookingCreate, BookingUpdate, RecurringBookingCreate, RecurringKind
from services import can_cancel, can_edit
from services.booking_service import BookingService

from conftest import NOW, ORGANIZATION_ID, ORGANIZER_ID, at


def booking_request(start: datetime, end: datetime, **overrides) -> BookingCreate:
    data = dict(
        title="Team sync",
        room_id="room-a",
        organizer_id=ORGANIZER_ID,
        started_at=start,
        ended_at=end,
        participants_count=5,
    )
    data.update(overrides)
    return BookingCreate(**data)


class TestCreateBooking:
    """Test booking creation from request schemas."""

    def test_create_and_read_back(self, booking_service):
        created = booking_service.create_booking(
            booking_request(at(1, 10), at(1, 11), is_private=True, participant_ids=["u2", "u3"])
        )

        fetched = booking_service.get_booking(created.id)

        assert fetched.title == "Team sync"
        assert fetched.room_id == "room-a"
        assert fetched.organizer_id == ORGANIZER_ID
        assert fetched.started_at == at(1, 10)
        assert fetched.ended_at == at(1, 11)
        assert fetched.participants_count == 5
        assert fetched.is_private is True
        assert fetched.status == BookingStatus.ACTIVE
        assert fetched.participant_ids == ["u2", "u3"]

    def test_end_before_start_rejected(self, booking_service):
        with pytest.raises(ValidationError) as exc_info:
            booking_service.create_booking(booking_request(at(1, 11), at(1, 10)))
        assert exc_info.value.message == "End time must be after start time"

    def test_overlap_rejected(self, booking_service):
        existing = booking_service.create_booking(booking_request(at(1, 10), at(1, 11)))
        with pytest.raises(ConflictError) as exc_info:
            booking_service.create_booking(booking_request(at(1, 10, 30), at(1, 11, 30)))
        assert exc_info.value.conflicting.id == existing.id

    def test_timezone_aware_input_is_normalized(self):
        aware = datetime(2025, 3, 13, 10, 0, tzinfo=timezone.utc)
        request = booking_request(aware, aware + timedelta(hours=1))
        assert request.started_at.tzinfo is None
        assert request.ended_at - request.started_at == timedelta(hours=1)


class TestUpdateBooking:
    """Test partial updates."""

    def test_move_end_only(self, booking_service):
        booking = booking_service.create_booking(booking_request(at(1, 10), at(1, 11)))

        updated = booking_service.update_booking(booking.id, BookingUpdate(ended_at=at(1, 12)))

        assert updated.started_at == at(1, 10)
        assert updated.ended_at == at(1, 12)

    def test_end_before_existing_start_rejected(self, booking_service):
        booking = booking_service.create_booking(booking_request(at(1, 10), at(1, 11)))
        with pytest.raises(ValidationError):
            booking_service.update_booking(booking.id, BookingUpdate(ended_at=at(1, 9)))

    def test_unknown_booking(self, booking_service):
        with pytest.raises(NotFoundError) as exc_info:
            booking_service.update_booking("missing", BookingUpdate(title="x"))
        assert exc_info.value.message == "Booking not found"


class TestCancelBooking:
    """Test cancellation by identifier."""

    def test_cancel(self, booking_service):
        booking = booking_service.create_booking(booking_request(at(1, 10), at(1, 11)))
        assert booking_service.cancel_booking(booking.id).status == BookingStatus.CANCELLED

    def test_cancel_twice(self, booking_service):
        booking = booking_service.create_booking(booking_request(at(1, 10), at(1, 11)))
        booking_service.cancel_booking(booking.id)
        with pytest.raises(InvalidStateError, match="Booking already cancelled"):
            booking_service.cancel_booking(booking.id)

    def test_cancel_unknown_booking(self, booking_service):
        with pytest.raises(NotFoundError):
            booking_service.cancel_booking("missing")

    def test_cancel_room_bookings(self, booking_service):
        booking_service.create_booking(booking_request(at(1, 10), at(1, 11)))
        booking_service.create_booking(booking_request(at(2, 10), at(2, 11)))
        booking_service.create_booking(booking_request(at(2, 10), at(2, 11), room_id="room-b"))

        assert booking_service.cancel_room_bookings("room-a") == 2
        assert booking_service.get_booking_counts(organization_id=ORGANIZATION_ID).active == 1


class TestListBookings:
    """Test listings."""

    def test_list_for_user_includes_participations(self, booking_service):
        own = booking_service.create_booking(booking_request(at(1, 10), at(1, 11)))
        invited = booking_service.create_booking(
            booking_request(at(2, 10), at(2, 11), organizer_id="user-2", participant_ids=[ORGANIZER_ID])
        )
        booking_service.create_booking(booking_request(at(3, 10), at(3, 11), organizer_id="user-2"))

        assert [b.id for b in booking_service.list_bookings(ORGANIZER_ID)] == [own.id, invited.id]
        assert len(booking_service.list_bookings()) == 3


class TestSweep:
    """Test the sweep entry point."""

    def test_sweep_after_clock_moves(self, booking_service, clock):
        booking = booking_service.create_booking(booking_request(at(0, 10), at(0, 11)))
        clock.advance(hours=3)

        assert booking_service.sweep_expired() == 1
        assert booking_service.get_booking(booking.id).status == BookingStatus.COMPLETED
        assert booking_service.sweep_expired() == 0


class TestRecurringBookings:
    """Test recurring requests."""

    def test_default_horizon(self, db_session, clock, rooms):
        service = BookingService(db_session, clock=clock, default_weeks_ahead=3)
        request = RecurringBookingCreate(
            room_id="room-a",
            organizer_id=ORGANIZER_ID,
            kind=RecurringKind.CLEANING,
            days_of_week={1},
            start_time=time(7, 0),
            end_time=time(7, 30),
        )

        result = service.create_recurring_booking(request)

        assert result.created_count == 3

    def test_explicit_horizon(self, booking_service):
        request = RecurringBookingCreate(
            room_id="room-a",
            organizer_id=ORGANIZER_ID,
            days_of_week={1, 3},
            start_time=time(8, 0),
            end_time=time(8, 30),
            weeks_ahead=2,
        )
        assert booking_service.create_recurring_booking(request).created_count == 4


class TestPolicies:
    """Test authorization predicates."""

    def test_organizer_and_admin(self, booking_service):
        booking = booking_service.create_booking(booking_request(at(1, 10), at(1, 11)))

        assert can_cancel(booking, ORGANIZER_ID)
        assert not can_cancel(booking, "user-2")
        assert can_cancel(booking, "user-2", is_admin=True)
        assert can_edit(booking, ORGANIZER_ID)

        booking_service.cancel_booking(booking.id)
        assert not can_edit(booking, ORGANIZER_ID)
        assert not can_edit(booking, "user-2", is_admin=True)


class TestErrorTranslation:
    """Test storage failures surface as booking system errors."""

    def test_connection_failure_on_lookup(self, booking_service, monkeypatch):
        failing = Mock(side_effect=OperationalError("SELECT", {}, Exception("connection refused")))
        monkeypatch.setattr(booking_service.bookings, "get", failing)

        with pytest.raises(DatabaseConnectionError) as exc_info:
            booking_service.get_booking("anything")
        assert exc_info.value.operation == "get_booking"
        assert exc_info.value.retry_possible is True

    def test_connection_failure_on_recurring_room_lookup(self, booking_service, monkeypatch):
        failing = Mock(side_effect=OperationalError("SELECT", {}, Exception("connection refused")))
        monkeypatch.setattr(booking_service.rooms, "get", failing)
        request = RecurringBookingCreate(
            room_id="room-a",
            organizer_id=ORGANIZER_ID,
            days_of_week={1},
            start_time=time(8, 0),
            end_time=time(8, 30),
            weeks_ahead=1,
        )

        with pytest.raises(DatabaseConnectionError) as exc_info:
            booking_service.create_recurring_booking(request)
        assert exc_info.value.operation == "get_room"


class TestRoomUsage:
    """Test the usage ranking limit."""

    def test_default_limit_applies_when_omitted(self, booking_service):
        assert len(booking_service.get_room_usage(ORGANIZATION_ID)) == 3

    def test_zero_limit_rejected(self, booking_service):
        with pytest.raises(ValidationError):
            booking_service.get_room_usage(ORGANIZATION_ID, limit=0)


class TestFromSettings:
    """Test construction from settings."""

    def test_tunables_applied(self, db_session):
        settings = Mock(available_hours_per_day=10.0, default_weeks_ahead=4, usage_ranking_limit=2)

        service = BookingService.from_settings(db_session, settings)

        assert service.analytics.available_hours_per_day == 10.0
        assert service.default_weeks_ahead == 4
        assert service.usage_ranking_limit == 2
