"""
Tests for the exception hierarchy, transaction scoping, retries and logging helpers.
"""
import time

import pytest
from unittest.mock import Mock
from loguru import logger
from sqlalchemy.exc import IntegrityError, OperationalError

from error_handling import (
    BookingSystemError,
    ConflictError,
    DatabaseConnectionError,
    DatabaseError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    log_context,
    database_operation,
    log_booking_event,
    log_performance,
    retry_on_transient_errors,
)


class TestExceptions:
    """Test exception messages and context."""

    def test_all_errors_share_base(self):
        for error in (
            ValidationError("bad"),
            ConflictError(),
            InvalidStateError("b1", "completed", "cancel"),
            NotFoundError("Room", "r1"),
            DatabaseError("boom"),
        ):
            assert isinstance(error, BookingSystemError)

    def test_conflict_carries_booking(self):
        conflicting = Mock(id="b1")
        error = ConflictError(conflicting, room_id="room-a")
        assert error.message == "Time slot already booked"
        assert error.conflicting is conflicting
        assert error.context == {"conflicting_booking_id": "b1", "room_id": "room-a"}

    def test_invalid_state_messages(self):
        assert InvalidStateError("b1", "cancelled", "cancel").message == "Booking already cancelled"
        assert InvalidStateError("b1", "completed", "cancel").message == "Cannot cancel booking with status 'completed'"
        assert not InvalidStateError("b1", "completed", "update").recoverable

    def test_not_found_message(self):
        error = NotFoundError("Booking", "b1")
        assert error.message == "Booking not found"
        assert error.context["identifier"] == "b1"


class TestDatabaseOperation:
    """Test rollback and translation in database_operation."""

    def test_success_does_not_roll_back(self):
        repository = Mock()
        with database_operation(repository, "noop"):
            pass
        repository.rollback.assert_not_called()

    def test_domain_error_passes_through(self):
        repository = Mock()
        with pytest.raises(ConflictError):
            with database_operation(repository, "create_booking"):
                raise ConflictError()
        repository.rollback.assert_called_once()

    def test_operational_error_becomes_connection_error(self):
        repository = Mock()
        with pytest.raises(DatabaseConnectionError) as exc_info:
            with database_operation(repository, "create_booking"):
                raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))
        assert exc_info.value.operation == "create_booking"
        repository.rollback.assert_called_once()

    def test_other_sqlalchemy_error_becomes_database_error(self):
        repository = Mock()
        with pytest.raises(DatabaseError) as exc_info:
            with database_operation(repository, "update_booking"):
                raise IntegrityError("UPDATE", {}, Exception("constraint failed"))
        assert not isinstance(exc_info.value, DatabaseConnectionError)
        assert "update_booking" in exc_info.value.message


class TestRetry:
    """Test retrying transient failures."""

    @pytest.fixture(autouse=True)
    def no_sleep(self, monkeypatch):
        monkeypatch.setattr(time, "sleep", lambda seconds: None)

    def test_connection_errors_retried(self):
        calls = Mock(side_effect=[DatabaseConnectionError(), DatabaseConnectionError(), 3])

        @retry_on_transient_errors(max_attempts=3)
        def sweep():
            return calls()

        assert sweep() == 3
        assert calls.call_count == 3

    def test_gives_up_after_max_attempts(self):
        calls = Mock(side_effect=DatabaseConnectionError())

        @retry_on_transient_errors(max_attempts=2)
        def sweep():
            return calls()

        with pytest.raises(DatabaseConnectionError):
            sweep()
        assert calls.call_count == 2

    def test_domain_errors_not_retried(self):
        calls = Mock(side_effect=ValidationError("bad"))

        @retry_on_transient_errors(max_attempts=3)
        def create():
            return calls()

        with pytest.raises(ValidationError):
            create()
        assert calls.call_count == 1


class TestLogging:
    """Test logging helpers."""

    def test_booking_event_logged(self, caplog):
        log_booking_event("CREATED", user_id="user-1", booking_id="b1", details={"room_id": "room-a"})
        assert "BOOKING CREATED | booking_id=b1 | organizer=user-1 | room_id=room-a" in caplog.text

    def test_log_context_binds_extra(self):
        records = []
        handler_id = logger.add(lambda message: records.append(message.record), level="INFO")
        try:
            with log_context(job="sweep"):
                logger.info("inside")
            logger.info("outside")
        finally:
            logger.remove(handler_id)

        assert records[0]["extra"]["job"] == "sweep"
        assert "job" not in records[1]["extra"]

    def test_log_performance_reraises(self, caplog):
        @log_performance("failing_report")
        def report():
            raise ValidationError("bad")

        with pytest.raises(ValidationError):
            report()
        assert "failing_report" in caplog.text
        assert "success=False" in caplog.text
