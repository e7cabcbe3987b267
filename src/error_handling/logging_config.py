"""
loguru setup for the booking core.

Three kinds of records are emitted:
- regular application logs (console, plus rotating files outside tests)
- the booking audit trail, bound with ``category="BOOKING"`` and routed to
  its own long-retention file
- timings of reporting queries, bound with ``category="PERFORMANCE"``
"""
import functools
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional
from loguru import logger

FORMATS = {
    "simple": "<level>{level: <8}</level> | <level>{message}</level>",
    "detailed": (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "{extra} | <level>{message}</level>"
    ),
}

# Per-environment defaults: level, whether files are written, format, rotation, retention
PROFILES: Dict[str, Dict[str, Any]] = {
    "production": {"level": "INFO", "log_dir": "logs", "format_type": "detailed",
                   "rotation": "100 MB", "retention": "90 days"},
    "development": {"level": "DEBUG", "log_dir": "logs", "format_type": "detailed",
                    "rotation": "50 MB", "retention": "7 days"},
    "test": {"level": "WARNING", "log_dir": None, "format_type": "simple",
             "rotation": None, "retention": None},
}


def _is_audit(record) -> bool:
    return record["extra"].get("category") == "BOOKING"


def configure_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = "logs",
    format_type: str = "detailed",
    rotation: Optional[str] = "100 MB",
    retention: Optional[str] = "30 days"
) -> None:
    """
    Replace loguru's default handler with the booking core's sinks.

    Args:
        log_level: Minimum level of the console and application file sinks
        log_dir: Directory of the file sinks; ``None`` logs to the console only
        format_type: "simple" or "detailed"
        rotation: Size or age at which application files rotate
        retention: How long rotated application files are kept
    """
    logger.remove()
    fmt = FORMATS.get(format_type, FORMATS["detailed"])

    logger.add(sys.stderr, format=fmt, level=log_level, colorize=True, diagnose=False)

    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)

        logger.add(
            directory / "room_booking_{time:YYYY-MM-DD}.log",
            format=fmt,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            filter=lambda record: not _is_audit(record),
            diagnose=False
        )
        logger.add(
            directory / "bookings_audit_{time:YYYY-MM-DD}.log",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {extra[event]} | {message}",
            level="INFO",
            rotation="1 day",
            retention="1 year",
            compression="zip",
            filter=_is_audit
        )

    logger.debug(f"Logging configured: level={log_level}, files={log_dir or 'off'}, format={format_type}")


def init_logging(environment: str = "development", log_level: Optional[str] = None) -> None:
    """
    Configure logging from an environment profile.

    Unknown environments fall back to the development profile.

    Args:
        environment: "development", "production" or "test"
        log_level: Overrides the profile's level
    """
    profile = dict(PROFILES.get(environment, PROFILES["development"]))
    level = log_level or profile.pop("level")
    profile.pop("level", None)
    configure_logging(log_level=level, **profile)
    logger.info(f"Logging initialized for {environment} environment")


def log_booking_event(
    event_type: str,
    user_id: Optional[str] = None,
    booking_id: Optional[str] = None,
    details: Optional[dict] = None
) -> None:
    """
    Write one audit record for a booking state change.

    Args:
        event_type: "CREATED", "UPDATED", "CANCELLED" or "COMPLETED"
        user_id: Organizer of the booking, when known
        booking_id: Booking identifier
        details: Extra fields such as room or range
    """
    fields = " ".join(f"{key}={value}" for key, value in (details or {}).items())
    logger.bind(category="BOOKING", event=event_type, booking_id=booking_id).info(
        f"BOOKING {event_type} | booking_id={booking_id} | organizer={user_id}"
        + (f" | {fields}" if fields else "")
    )


def log_error_with_context(error: Exception, context: dict, severity: str = "ERROR") -> None:
    """
    Log a handled exception with the identifiers needed to investigate it.

    Args:
        error: The exception
        context: Identifiers bound to the record (booking id, operation, ...)
        severity: loguru level name
    """
    logger.bind(category="ERROR", **context).log(
        severity,
        f"{type(error).__name__} during {context.get('operation', 'unknown operation')}: {error}"
    )


@contextmanager
def log_context(**context) -> Iterator[None]:
    """
    Bind ``context`` to every record logged inside the block.

    Example:
        with log_context(job="sweep"):
            logger.info("Sweeping expired bookings")
    """
    with logger.contextualize(**context):
        yield


def log_performance(operation_name: Optional[str] = None):
    """
    Decorator timing a reporting query.

    Successful calls are logged at DEBUG, failures at WARNING before the
    exception propagates.

    Example:
        @log_performance("usage_ranking")
        def usage_ranking(self, organization_id):
            ...
    """
    def decorator(func):
        name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - started) * 1000
                logger.bind(category="PERFORMANCE", operation=name).warning(
                    f"{name} failed after {elapsed_ms:.1f}ms: success=False error={type(e).__name__}"
                )
                raise

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.bind(category="PERFORMANCE", operation=name).debug(
                f"{name} took {elapsed_ms:.1f}ms"
            )
            return result

        return wrapper
    return decorator
