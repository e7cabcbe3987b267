"""
Error handling module for the room booking core.

Main Components:
    - exceptions: Exception hierarchy returned to the calling layer
    - handlers: Transaction scoping and retry utilities
    - logging_config: loguru setup and audit logging
"""

from .exceptions import (
    BookingSystemError,
    ValidationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    DatabaseError,
    DatabaseConnectionError,
)

from .handlers import (
    database_operation,
    retry_on_transient_errors,
)

from .logging_config import (
    configure_logging,
    init_logging,
    log_booking_event,
    log_error_with_context,
    log_performance,
    log_context,
)

__all__ = [
    # Exceptions
    "BookingSystemError",
    "ValidationError",
    "ConflictError",
    "InvalidStateError",
    "NotFoundError",
    "DatabaseError",
    "DatabaseConnectionError",

    # Handlers
    "database_operation",
    "retry_on_transient_errors",

    # Logging
    "configure_logging",
    "init_logging",
    "log_booking_event",
    "log_error_with_context",
    "log_performance",
    "log_context",
]
