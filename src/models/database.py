"""
SQLAlchemy database models and session management for the room booking core.
"""
import enum
import os
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, List, Optional

from loguru import logger
from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    CheckConstraint,
    DDL,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, relationship, Session, sessionmaker

from .time_range import TimeRange

# Create declarative base
Base = declarative_base()

# Database engine and session factory (initialized by init_db)
engine: Engine | None = None
SessionLocal: sessionmaker | None = None

# Storage-level guarantee that two active bookings of a room never overlap
OVERLAP_CONSTRAINT_NAME = "ex_booking_room_active_overlap"


def _new_id() -> str:
    return str(uuid.uuid4())


class BookingStatus(str, enum.Enum):
    """Booking lifecycle states. ``cancelled`` and ``completed`` are terminal."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Room(Base):
    """
    Read model of a room owned by the room management service.

    The booking core only reads its identity and organization.
    """
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=_new_id)
    organization_id = Column(String(36), nullable=False)
    name = Column(String(255), nullable=False)

    __table_args__ = (
        Index("ix_room_organization", "organization_id"),
    )

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, name='{self.name}', organization_id={self.organization_id})>"


class BookingParticipant(Base):
    """Participant of a booking, referenced by user identifier only."""
    __tablename__ = "booking_participants"

    booking_id = Column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(String(36), primary_key=True)

    def __repr__(self) -> str:
        return f"<BookingParticipant(booking_id={self.booking_id}, user_id={self.user_id})>"


class Booking(Base):
    """
    Booking model representing a reservation of a room for a time range.
    """
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False)
    organizer_id = Column(String(36), nullable=False)
    participants_count = Column(Integer, nullable=False)
    is_private = Column(Boolean, nullable=False, default=False)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=False)
    status = Column(
        Enum(
            BookingStatus,
            name="booking_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=BookingStatus.ACTIVE,
    )
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True)

    participants = relationship(
        BookingParticipant,
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=BookingParticipant.user_id,
    )

    __table_args__ = (
        CheckConstraint("participants_count >= 1", name="ck_booking_participants_count"),
        CheckConstraint("ended_at > started_at", name="ck_booking_time_order"),
        # Conflict lookups: active bookings of a room ordered by start
        Index("ix_booking_room_status_start", "room_id", "status", "started_at"),
        Index("ix_booking_organizer", "organizer_id"),
    )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.started_at, self.ended_at)

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.ACTIVE

    @property
    def participant_ids(self) -> List[str]:
        return [p.user_id for p in self.participants]

    def set_participants(self, user_ids: List[str]) -> None:
        """
        Replace the participant set.

        Rows that are kept are left untouched so the flush never deletes and
        re-inserts the same primary key.
        """
        wanted = list(dict.fromkeys(user_ids))
        for participant in list(self.participants):
            if participant.user_id not in wanted:
                self.participants.remove(participant)
        existing = set(self.participant_ids)
        for user_id in wanted:
            if user_id not in existing:
                self.participants.append(BookingParticipant(user_id=user_id))

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, room_id={self.room_id}, title='{self.title}', "
            f"started_at={self.started_at}, ended_at={self.ended_at}, "
            f"status='{getattr(self.status, 'value', self.status)}')>"
        )


# PostgreSQL only: the exclusion constraint backing the no-overlap invariant
event.listen(
    Booking.__table__,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {OVERLAP_CONSTRAINT_NAME} "
        "EXCLUDE USING gist ("
        "room_id WITH =, "
        "tsrange(started_at, ended_at, '[)') WITH &&"
        ") WHERE (status = 'active')"
    ).execute_if(dialect="postgresql"),
)


def is_overlap_violation(error: IntegrityError) -> bool:
    """Check whether an integrity error comes from the overlap exclusion constraint."""
    error_msg = str(error.orig) if getattr(error, "orig", None) is not None else str(error)
    return OVERLAP_CONSTRAINT_NAME in error_msg


def get_database_url() -> str:
    """
    Get database URL from environment variables.

    Returns:
        Database connection string

    Raises:
        ValueError: If DATABASE_URL is not set
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError(
            "DATABASE_URL environment variable is not set. "
            "Please set it to your PostgreSQL connection string."
        )
    return database_url


def init_db(database_url: Optional[str] = None) -> Engine:
    """
    Initialize database engine and session factory.

    Args:
        database_url: Optional database connection string. If not provided,
                     will use DATABASE_URL environment variable.

    Returns:
        SQLAlchemy Engine instance
    """
    global engine, SessionLocal

    if database_url is None:
        database_url = get_database_url()

    engine_kwargs = {"echo": False, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        engine_kwargs.update(pool_size=5, max_overflow=10)

    engine = create_engine(database_url, **engine_kwargs)

    SessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )

    logger.debug(f"Database engine initialized for {engine.url.get_backend_name()}")
    return engine


def create_tables() -> None:
    """
    Create all tables in the database.

    Raises:
        RuntimeError: If database engine is not initialized
    """
    if engine is None:
        raise RuntimeError("Database engine not initialized. Call init_db() first.")

    Base.metadata.create_all(bind=engine)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        SQLAlchemy Session instance

    Example:
        with get_db_session() as session:
            booking = session.query(Booking).first()

    Raises:
        RuntimeError: If session factory is not initialized
    """
    if SessionLocal is None:
        raise RuntimeError("Session factory not initialized. Call init_db() first.")

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
