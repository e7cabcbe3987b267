"""
Centralized error handling utilities for the booking core.

This module provides utilities for:
- Transaction scoping with rollback and error translation
- Retrying transient storage failures
"""
from contextlib import contextmanager
from typing import Iterator

from loguru import logger
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from error_handling.exceptions import (
    BookingSystemError,
    DatabaseError,
    DatabaseConnectionError,
)


@contextmanager
def database_operation(repository, operation: str) -> Iterator[None]:
    """
    Run a unit of work against a repository, rolling back on any failure.

    Domain errors are re-raised unchanged. Storage errors are translated
    so callers only ever see the booking system's exception hierarchy.

    Args:
        repository: Repository exposing ``rollback()``
        operation: Operation name used in logs and error context

    Raises:
        DatabaseConnectionError: If the connection failed
        DatabaseError: For any other storage failure
    """
    try:
        yield
    except BookingSystemError:
        repository.rollback()
        raise
    except OperationalError as e:
        repository.rollback()
        logger.error(f"Database connection error during {operation}: {e}")
        raise DatabaseConnectionError(
            f"Database operation failed: {e}",
            operation=operation,
            original_error=e
        )
    except SQLAlchemyError as e:
        repository.rollback()
        logger.error(f"Database error during {operation}: {e}")
        raise DatabaseError(
            f"Unexpected database error during {operation}: {e}",
            operation=operation,
            original_error=e
        )


def retry_on_transient_errors(max_attempts: int = 3, max_wait: float = 10.0):
    """
    Decorator retrying a callable when the database connection is flaky.

    Only ``DatabaseConnectionError`` is retried; domain errors and other
    database errors propagate on the first attempt.

    Args:
        max_attempts: Maximum number of attempts including the first one
        max_wait: Upper bound of the exponential backoff in seconds
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=max_wait),
        retry=retry_if_exception_type(DatabaseConnectionError),
        reraise=True,
    )
