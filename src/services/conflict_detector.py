"""
ConflictDetector - finds active bookings that would overlap a candidate range.
"""
from typing import Optional

from loguru import logger

from models.database import Booking
from models.time_range import TimeRange
from repositories.booking_repository import BookingRepository


class ConflictDetector:
    """
    Pure query over a room's active bookings.

    A ``None`` result is not a guarantee on its own: two writers can both see
    no conflict. The storage layer backs the check (row lock plus exclusion
    constraint) and its rejections surface as the same ``ConflictError``.
    """

    def __init__(self, bookings: BookingRepository):
        self.bookings = bookings

    def find_conflict(
        self,
        room_id: str,
        time_range: TimeRange,
        exclude_id: Optional[str] = None
    ) -> Optional[Booking]:
        """
        Return the active booking of ``room_id`` that overlaps ``time_range``.

        Args:
            room_id: Room to check
            time_range: Candidate range
            exclude_id: Booking to ignore, used when a booking moves its own range

        Returns:
            The overlapping booking with the earliest start, or None
        """
        overlapping = self.bookings.find_overlapping_active(room_id, time_range, exclude_id)
        if not overlapping:
            return None

        if len(overlapping) > 1:
            logger.warning(
                f"Room {room_id} has {len(overlapping)} overlapping active bookings "
                f"for {time_range}: {[b.id for b in overlapping]}"
            )
        return min(overlapping, key=lambda b: (b.started_at, b.id))
