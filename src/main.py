"""
Command line entry point for the room booking core.

Commands:
    sweep                         Mark finished bookings as completed
    stats --organization ORG_ID   Print booking counts, occupancy and room usage

Intended to be run from a scheduler (sweep) or by operators (stats).
"""
import argparse
import json
import sys

from loguru import logger
from pydantic import ValidationError as SettingsError

from config import get_settings
from error_handling import (
    BookingSystemError,
    DatabaseConnectionError,
    log_context,
    init_logging,
    retry_on_transient_errors,
)
from models.database import init_db, get_db_session
from services.booking_service import BookingService


def run_sweep(settings) -> int:
    """Run one expiry sweep, retrying when the database is unreachable."""

    @retry_on_transient_errors(max_attempts=3)
    def sweep() -> int:
        with get_db_session() as session:
            return BookingService.from_settings(session, settings).sweep_expired()

    with log_context(job="sweep"):
        completed = sweep()
        logger.info(f"Sweep finished: {completed} booking(s) completed")
    return completed


def run_stats(settings, organization_id: str) -> dict:
    """Collect the dashboard figures of one organization."""
    with get_db_session() as session:
        service = BookingService.from_settings(session, settings)
        return {
            "counts": service.get_booking_counts(organization_id=organization_id).model_dump(),
            "totals": service.get_total_stats(organization_id).model_dump(),
            "occupancy": [r.model_dump() for r in service.get_occupancy_rate_by_day_of_week(organization_id)],
            "most_used": [u.model_dump() for u in service.get_room_usage(organization_id)],
            "least_used": [u.model_dump() for u in service.get_room_usage(organization_id, least_used=True)],
            "trend": service.get_booking_trend(organization_id).model_dump(),
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Room booking core maintenance commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("sweep", help="Mark finished bookings as completed")

    stats = subparsers.add_parser("stats", help="Print booking statistics of an organization")
    stats.add_argument("--organization", required=True, help="Organization identifier")

    return parser


def main(argv=None) -> int:
    """
    Main entry point for the booking core commands.
    """
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except SettingsError as e:
        logger.error(f"Invalid configuration: {e}")
        logger.error("Please check DATABASE_URL and the booking settings in the .env file")
        return 2

    init_logging(settings.environment, settings.log_level)
    init_db(settings.database_url)

    try:
        if args.command == "sweep":
            run_sweep(settings)
        else:
            print(json.dumps(run_stats(settings, args.organization), indent=2))
        return 0

    except DatabaseConnectionError as e:
        logger.error(f"Database unreachable: {e}")
        return 2

    except BookingSystemError as e:
        logger.error(f"{args.command} failed: {e.message}")
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
