"""
BookingLifecycleManager - creates, updates, cancels and expires bookings.

Every state transition is an explicit command returning the resulting
booking (or a count) or raising one of the booking system's errors:
- ValidationError: malformed input, detected before anything is written
- ConflictError: an overlapping active booking exists in the room
- InvalidStateError: the booking is already cancelled or completed
- NotFoundError: the room or booking does not exist
"""
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from error_handling.exceptions import (
    ValidationError,
    ConflictError,
    InvalidStateError,
    DatabaseError,
)
from error_handling.handlers import database_operation
from error_handling.logging_config import log_booking_event, log_error_with_context
from models.database import Booking, BookingStatus, is_overlap_violation
from models.time_range import TimeRange
from repositories.booking_repository import BookingRepository
from repositories.room_repository import RoomRepository
from services.conflict_detector import ConflictDetector

Clock = Callable[[], datetime]


class BookingLifecycleManager:
    """
    Enforces the booking invariants on every write.

    Status only moves forward: ``active -> cancelled`` (caller triggered) or
    ``active -> completed`` (expiry sweep). Both transitions are conditional
    updates, so concurrent cancels and sweeps never double-apply.
    """

    def __init__(
        self,
        bookings: BookingRepository,
        rooms: RoomRepository,
        conflict_detector: Optional[ConflictDetector] = None,
        clock: Clock = datetime.now
    ):
        """
        Args:
            bookings: Booking persistence
            rooms: Room lookups, used for existence checks and row locks
            conflict_detector: Overlap query, defaults to one over ``bookings``
            clock: Source of the current time
        """
        self.bookings = bookings
        self.rooms = rooms
        self.conflict_detector = conflict_detector or ConflictDetector(bookings)
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # ==========================================================================
    # Validation
    # ==========================================================================

    @staticmethod
    def _validate_schedule(time_range: TimeRange, now: datetime) -> None:
        if time_range.start < now:
            raise ValidationError(
                "Cannot create booking in the past",
                field="started_at",
                value=time_range.start,
                now=now
            )

    @staticmethod
    def _validate_participants_count(participants_count: Optional[int]) -> None:
        if participants_count is None or participants_count < 1:
            raise ValidationError(
                "Participants count must be at least 1",
                field="participants_count",
                value=participants_count
            )

    @staticmethod
    def _validate_title(title: Optional[str]) -> None:
        if title is None or not title.strip():
            raise ValidationError("Title cannot be blank", field="title", value=title)

    # ==========================================================================
    # Commands
    # ==========================================================================

    def create(
        self,
        title: str,
        room_id: str,
        organizer_id: str,
        time_range: TimeRange,
        participants_count: int,
        is_private: bool = False,
        participant_ids: Optional[List[str]] = None
    ) -> Booking:
        """
        Create an active booking.

        Validation order: range ordering (enforced by ``TimeRange``), start not
        in the past, participants count, title. Then the room row is locked
        and checked for conflicts before the insert.

        Returns:
            The persisted booking

        Raises:
            ValidationError: If the input is malformed
            NotFoundError: If the room does not exist
            ConflictError: If an active booking of the room overlaps the range
            DatabaseError: If the storage layer fails
        """
        now = self._clock()
        self._validate_schedule(time_range, now)
        self._validate_participants_count(participants_count)
        self._validate_title(title)

        with database_operation(self.bookings, "create_booking"):
            self.rooms.get(room_id, for_update=True)

            conflict = self.conflict_detector.find_conflict(room_id, time_range)
            if conflict is not None:
                raise ConflictError(conflict, room_id=room_id, requested_range=str(time_range))

            booking = Booking(
                title=title.strip(),
                room_id=room_id,
                organizer_id=organizer_id,
                participants_count=participants_count,
                is_private=is_private,
                started_at=time_range.start,
                ended_at=time_range.end,
                status=BookingStatus.ACTIVE,
                created_at=now,
            )
            booking.set_participants(participant_ids or [])
            self._persist(booking, room_id, time_range)

        log_booking_event(
            "CREATED",
            user_id=organizer_id,
            booking_id=booking.id,
            details={"room_id": room_id, "range": str(time_range)}
        )
        return booking

    def update(
        self,
        booking: Booking,
        title: Optional[str] = None,
        room_id: Optional[str] = None,
        time_range: Optional[TimeRange] = None,
        participants_count: Optional[int] = None,
        is_private: Optional[bool] = None,
        participant_ids: Optional[List[str]] = None
    ) -> Booking:
        """
        Update an active booking. ``None`` arguments leave fields unchanged.

        Moving the booking to another room or range re-runs the create
        validations and the conflict check, ignoring the booking itself.

        Raises:
            InvalidStateError: If the booking is cancelled or completed
            ValidationError: If a changed field is malformed
            ConflictError: If the new slot overlaps another active booking
        """
        if not booking.is_active:
            raise InvalidStateError(booking.id, booking.status, "update")

        now = self._clock()
        target_room = room_id if room_id is not None else booking.room_id
        target_range = time_range if time_range is not None else booking.time_range
        rescheduled = target_room != booking.room_id or target_range != booking.time_range

        if rescheduled:
            self._validate_schedule(target_range, now)
        if participants_count is not None:
            self._validate_participants_count(participants_count)
        if title is not None:
            self._validate_title(title)

        with database_operation(self.bookings, "update_booking"):
            if rescheduled:
                self.rooms.get(target_room, for_update=True)
                conflict = self.conflict_detector.find_conflict(
                    target_room, target_range, exclude_id=booking.id
                )
                if conflict is not None:
                    raise ConflictError(
                        conflict,
                        room_id=target_room,
                        requested_range=str(target_range),
                        booking_id=booking.id
                    )
                booking.room_id = target_room
                booking.started_at = target_range.start
                booking.ended_at = target_range.end

            if title is not None:
                booking.title = title.strip()
            if participants_count is not None:
                booking.participants_count = participants_count
            if is_private is not None:
                booking.is_private = is_private
            if participant_ids is not None:
                booking.set_participants(participant_ids)

            booking.updated_at = now
            self._persist(booking, target_room, target_range, exclude_id=booking.id)

        log_booking_event(
            "UPDATED",
            user_id=booking.organizer_id,
            booking_id=booking.id,
            details={"room_id": target_room, "range": str(target_range), "rescheduled": rescheduled}
        )
        return booking

    def cancel(self, booking: Booking, now: Optional[datetime] = None) -> Booking:
        """
        Cancel an active booking.

        Raises:
            InvalidStateError: If the booking is not active; its state is left unchanged
        """
        now = now or self._clock()
        if not booking.is_active:
            raise InvalidStateError(booking.id, booking.status, "cancel")

        with database_operation(self.bookings, "cancel_booking"):
            changed = self.bookings.transition_status(
                booking.id, BookingStatus.ACTIVE, BookingStatus.CANCELLED, now
            )
            if not changed:
                # Lost a race against another cancel or the expiry sweep
                self.bookings.refresh(booking)
                raise InvalidStateError(booking.id, booking.status, "cancel")
            self.bookings.commit()

        log_booking_event(
            "CANCELLED",
            user_id=booking.organizer_id,
            booking_id=booking.id,
            details={"cancelled_at": now.isoformat()}
        )
        return booking

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """
        Mark every active booking with ``ended_at <= now`` as completed.

        Safe to run repeatedly and concurrently: only bookings still active at
        the moment of the update are counted. A booking whose update fails is
        logged and skipped; the rest of the batch continues.

        Returns:
            Number of bookings this call moved to ``completed``
        """
        now = now or self._clock()

        with database_operation(self.bookings, "find_expired_bookings"):
            candidate_ids = self.bookings.find_expired_active_ids(now)

        completed = 0
        for booking_id in candidate_ids:
            try:
                changed = self.bookings.transition_status(
                    booking_id, BookingStatus.ACTIVE, BookingStatus.COMPLETED, now
                )
                self.bookings.commit()
            except SQLAlchemyError as e:
                self.bookings.rollback()
                log_error_with_context(
                    e,
                    {"booking_id": booking_id, "operation": "sweep_expired"},
                    severity="WARNING"
                )
                continue

            if changed:
                completed += 1
                log_booking_event(
                    "COMPLETED",
                    booking_id=booking_id,
                    details={"swept_at": now.isoformat()}
                )

        if completed:
            logger.info(f"Expiry sweep completed {completed} of {len(candidate_ids)} expired booking(s)")
        return completed

    def cancel_room_bookings(self, room_id: str, now: Optional[datetime] = None) -> int:
        """
        Cancel the active bookings of a room that is being removed.

        Bookings that already ended are left for the expiry sweep.

        Returns:
            Number of bookings cancelled
        """
        now = now or self._clock()

        with database_operation(self.bookings, "cancel_room_bookings"):
            affected = self.bookings.find_active_for_room(room_id, ending_after=now)
            cancelled = [
                booking for booking in affected
                if self.bookings.transition_status(
                    booking.id, BookingStatus.ACTIVE, BookingStatus.CANCELLED, now
                )
            ]
            self.bookings.commit()

        for booking in cancelled:
            log_booking_event(
                "CANCELLED",
                user_id=booking.organizer_id,
                booking_id=booking.id,
                details={"reason": "room_removed", "room_id": room_id}
            )
        return len(cancelled)

    # ==========================================================================
    # Persistence
    # ==========================================================================

    def _persist(
        self,
        booking: Booking,
        room_id: str,
        time_range: TimeRange,
        exclude_id: Optional[str] = None
    ) -> None:
        """
        Flush and commit a booking, mapping storage overlap rejections to ConflictError.
        """
        try:
            self.bookings.save(booking)
            self.bookings.commit()
        except IntegrityError as e:
            self.bookings.rollback()
            if not is_overlap_violation(e):
                raise DatabaseError(
                    f"Database constraint violation: {e.orig if e.orig is not None else e}",
                    error_type="constraint",
                    operation="save_booking",
                    original_error=e,
                    retry_possible=False
                )

            logger.warning(
                f"Storage rejected overlapping booking for room {room_id} {time_range}"
            )
            conflict = self.conflict_detector.find_conflict(room_id, time_range, exclude_id)
            raise ConflictError(
                conflict,
                room_id=room_id,
                requested_range=str(time_range),
                detected_by="storage"
            )
