"""
Errors raised by the room booking core.

Callers can branch on the class:
- ValidationError: the request was malformed; nothing was written
- ConflictError: the room is already taken for part of the range
- InvalidStateError: the booking is already cancelled or completed
- NotFoundError: the booking or room does not exist
- DatabaseError / DatabaseConnectionError: storage failed

``context`` holds the identifiers that go into the logs; ``recoverable``
tells whether retrying the same request can succeed.
"""

from typing import Optional, Any, Dict


class BookingSystemError(Exception):
    """Base of every error the booking core raises."""

    recoverable = True

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(BookingSystemError):
    """
    A range, participant count, title, pattern or query argument is invalid.
    """

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None, **context):
        super().__init__(message, {"field": field, "value": value, **context})
        self.field = field
        self.value = value


class ConflictError(BookingSystemError):
    """
    An active booking of the same room overlaps the requested range.

    ``conflicting`` is the earliest overlapping booking, or ``None`` when the
    storage layer rejected the write and the booking could not be re-read.
    """

    def __init__(self, conflicting: Any = None, message: str = "Time slot already booked", **context):
        super().__init__(
            message,
            {"conflicting_booking_id": getattr(conflicting, "id", None), **context}
        )
        self.conflicting = conflicting


class InvalidStateError(BookingSystemError):
    """The booking's status does not allow ``action``."""

    recoverable = False

    def __init__(self, booking_id: Any, status: Any, action: str, message: Optional[str] = None):
        self.booking_id = booking_id
        self.status = getattr(status, "value", status)
        self.action = action
        if message is None:
            already_cancelled = action == "cancel" and self.status == "cancelled"
            message = (
                "Booking already cancelled" if already_cancelled
                else f"Cannot {action} booking with status '{self.status}'"
            )
        super().__init__(message, {"booking_id": booking_id, "status": self.status, "action": action})


class NotFoundError(BookingSystemError):
    """Lookup of a booking or room by id found nothing."""

    recoverable = False

    def __init__(self, entity: str, identifier: Any):
        super().__init__(f"{entity} not found", {"entity": entity, "identifier": identifier})
        self.entity = entity
        self.identifier = identifier


class DatabaseError(BookingSystemError):
    """
    Storage failure other than an overlap rejection.

    ``error_type`` is "connection", "constraint" or "unknown".
    """

    def __init__(
        self,
        message: str,
        error_type: str = "unknown",
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
        retry_possible: bool = True,
        **context
    ):
        super().__init__(message, {
            "error_type": error_type,
            "operation": operation,
            "original_error": str(original_error) if original_error else None,
            **context
        })
        self.error_type = error_type
        self.operation = operation
        self.original_error = original_error
        self.retry_possible = retry_possible
        self.recoverable = retry_possible


class DatabaseConnectionError(DatabaseError):
    """The database could not be reached or dropped the connection."""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(message, error_type="connection", retry_possible=True, **kwargs)
