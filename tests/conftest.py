"""
Pytest configuration and shared fixtures.
"""
import sys
from pathlib import Path
from datetime import datetime, time, timedelta
from typing import Generator, List
import pytest
from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from models.database import Base, Booking, BookingStatus, Room
from services.booking_service import BookingService

# Wednesday 2025-03-12 09:00; every test runs against this frozen instant
NOW = datetime(2025, 3, 12, 9, 0)

ORGANIZATION_ID = "org-1"
ORGANIZER_ID = "user-1"


class FrozenClock:
    """Callable clock returning a fixed instant that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def at(days: int, hour: int, minute: int = 0) -> datetime:
    """Datetime ``days`` after NOW's date at ``hour:minute``."""
    return datetime.combine(NOW.date() + timedelta(days=days), time(hour, minute))


@pytest.fixture(autouse=True)
def propagate_loguru(caplog):
    """
    Route loguru records into caplog so tests can assert on log output.
    """
    handler_id = logger.add(caplog.handler, format="{message}", level="DEBUG")
    yield caplog
    logger.remove(handler_id)


@pytest.fixture(scope="function")
def db_engine():
    """
    Create a test database engine with all tables.
    Each test gets a fresh in-memory database.
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create a database session configured like the application's.
    """
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture(scope="function")
def rooms(db_session: Session) -> List[Room]:
    """
    Three rooms of one organization plus one room of another organization.
    """
    created = [
        Room(id="room-a", organization_id=ORGANIZATION_ID, name="Alpha"),
        Room(id="room-b", organization_id=ORGANIZATION_ID, name="Bravo"),
        Room(id="room-c", organization_id=ORGANIZATION_ID, name="Charlie"),
        Room(id="room-x", organization_id="org-2", name="Elsewhere"),
    ]
    db_session.add_all(created)
    db_session.commit()
    return created


@pytest.fixture(scope="function")
def room(rooms: List[Room]) -> Room:
    return rooms[0]


@pytest.fixture(scope="function")
def booking_service(db_session: Session, clock: FrozenClock, rooms) -> BookingService:
    """
    Create a BookingService instance on the frozen clock.
    """
    return BookingService(db_session, clock=clock)


@pytest.fixture(scope="function")
def make_booking(db_session: Session):
    """
    Insert a booking row directly, bypassing the lifecycle rules.

    Used to set up history (past or completed bookings) that the
    service would refuse to create.
    """
    def _make(
        room_id: str,
        started_at: datetime,
        ended_at: datetime,
        status: BookingStatus = BookingStatus.ACTIVE,
        created_at: datetime = NOW,
        organizer_id: str = ORGANIZER_ID,
        title: str = "Seeded booking",
    ) -> Booking:
        booking = Booking(
            title=title,
            room_id=room_id,
            organizer_id=organizer_id,
            participants_count=2,
            is_private=False,
            started_at=started_at,
            ended_at=ended_at,
            status=status,
            created_at=created_at,
        )
        db_session.add(booking)
        db_session.commit()
        return booking

    return _make
