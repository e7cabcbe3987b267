"""
Booking persistence.

``BookingRepository`` is the contract the booking core depends on;
``SqlAlchemyBookingRepository`` implements it on a SQLAlchemy session.
The repository is the authority for the no-overlap guarantee under
concurrent writers: on PostgreSQL the ``bookings`` table carries an
exclusion constraint that rejects a second overlapping active booking.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, inspect, or_
from sqlalchemy.orm import Session

from error_handling.exceptions import NotFoundError
from models.database import Booking, BookingParticipant, BookingStatus, Room
from models.time_range import TimeRange


class BookingRepository(ABC):
    """Abstract repository for the Booking aggregate."""

    @abstractmethod
    def get(self, booking_id: str) -> Booking:
        """Return the booking or raise ``NotFoundError``."""
        raise NotImplementedError

    @abstractmethod
    def find_overlapping_active(
        self,
        room_id: str,
        time_range: TimeRange,
        exclude_id: Optional[str] = None
    ) -> List[Booking]:
        """Active bookings of a room overlapping ``time_range``, earliest start first."""
        raise NotImplementedError

    @abstractmethod
    def find_all(self) -> List[Booking]:
        raise NotImplementedError

    @abstractmethod
    def find_for_user(self, user_id: str) -> List[Booking]:
        """Bookings organized by or including the user, ordered by start."""
        raise NotImplementedError

    @abstractmethod
    def find_by_organization(self, organization_id: str) -> List[Booking]:
        raise NotImplementedError

    @abstractmethod
    def find_active_for_room(self, room_id: str, ending_after: Optional[datetime] = None) -> List[Booking]:
        raise NotImplementedError

    @abstractmethod
    def find_expired_active_ids(self, now: datetime) -> List[str]:
        """Identifiers of active bookings with ``ended_at <= now``."""
        raise NotImplementedError

    @abstractmethod
    def count_by_status(
        self,
        organizer_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> Dict[BookingStatus, int]:
        raise NotImplementedError

    @abstractmethod
    def transition_status(
        self,
        booking_id: str,
        from_status: BookingStatus,
        to_status: BookingStatus,
        now: datetime
    ) -> bool:
        """
        Atomically move a booking from one status to another.

        Returns False if the booking was no longer in ``from_status``.
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, booking: Booking) -> None:
        """Stage the booking and flush it so storage constraints are checked."""
        raise NotImplementedError

    @abstractmethod
    def commit(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def refresh(self, booking: Booking) -> None:
        """Reload the booking from storage."""
        raise NotImplementedError


class SqlAlchemyBookingRepository(BookingRepository):
    """Booking repository backed by a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, booking_id: str) -> Booking:
        booking = self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def find_overlapping_active(
        self,
        room_id: str,
        time_range: TimeRange,
        exclude_id: Optional[str] = None
    ) -> List[Booking]:
        query = self.session.query(Booking).filter(
            Booking.room_id == room_id,
            Booking.status == BookingStatus.ACTIVE,
            Booking.started_at < time_range.end,
            Booking.ended_at > time_range.start,
        )
        if exclude_id is not None:
            query = query.filter(Booking.id != exclude_id)
        return query.order_by(Booking.started_at, Booking.id).all()

    def find_all(self) -> List[Booking]:
        return self.session.query(Booking).order_by(Booking.started_at).all()

    def find_for_user(self, user_id: str) -> List[Booking]:
        return (
            self.session.query(Booking)
            .filter(
                or_(
                    Booking.organizer_id == user_id,
                    Booking.participants.any(BookingParticipant.user_id == user_id),
                )
            )
            .order_by(Booking.started_at)
            .all()
        )

    def find_by_organization(self, organization_id: str) -> List[Booking]:
        return (
            self.session.query(Booking)
            .join(Room, Booking.room_id == Room.id)
            .filter(Room.organization_id == organization_id)
            .order_by(Booking.started_at)
            .all()
        )

    def find_active_for_room(self, room_id: str, ending_after: Optional[datetime] = None) -> List[Booking]:
        query = self.session.query(Booking).filter(
            Booking.room_id == room_id,
            Booking.status == BookingStatus.ACTIVE,
        )
        if ending_after is not None:
            query = query.filter(Booking.ended_at > ending_after)
        return query.order_by(Booking.started_at).all()

    def find_expired_active_ids(self, now: datetime) -> List[str]:
        rows = (
            self.session.query(Booking.id)
            .filter(
                Booking.status == BookingStatus.ACTIVE,
                Booking.ended_at <= now,
            )
            .order_by(Booking.ended_at, Booking.id)
            .all()
        )
        return [row.id for row in rows]

    def count_by_status(
        self,
        organizer_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> Dict[BookingStatus, int]:
        query = self.session.query(Booking.status, func.count(Booking.id))
        if organizer_id is not None:
            query = query.filter(Booking.organizer_id == organizer_id)
        if organization_id is not None:
            query = query.join(Room, Booking.room_id == Room.id).filter(
                Room.organization_id == organization_id
            )
        return {BookingStatus(status): count for status, count in query.group_by(Booking.status).all()}

    def transition_status(
        self,
        booking_id: str,
        from_status: BookingStatus,
        to_status: BookingStatus,
        now: datetime
    ) -> bool:
        changed = (
            self.session.query(Booking)
            .filter(Booking.id == booking_id, Booking.status == from_status)
            .update(
                {Booking.status: to_status, Booking.updated_at: now},
                synchronize_session="fetch",
            )
        )
        if changed:
            # Loaded instances would otherwise keep the pre-update updated_at
            key = inspect(Booking).identity_key_from_primary_key((booking_id,))
            instance = self.session.identity_map.get(key)
            if instance is not None:
                self.session.refresh(instance)
        return changed > 0

    def save(self, booking: Booking) -> None:
        self.session.add(booking)
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def refresh(self, booking: Booking) -> None:
        self.session.refresh(booking)
