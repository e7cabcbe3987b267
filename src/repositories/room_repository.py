"""
Read access to rooms owned by the room management service.
"""
from abc import ABC, abstractmethod
from typing import List

from sqlalchemy.orm import Session

from error_handling.exceptions import NotFoundError
from models.database import Room


class RoomRepository(ABC):
    """Abstract repository for room lookups."""

    @abstractmethod
    def get(self, room_id: str, for_update: bool = False) -> Room:
        """
        Return the room or raise ``NotFoundError``.

        With ``for_update`` the room row stays locked until the transaction
        ends, serializing concurrent writers of the same room.
        """
        raise NotImplementedError

    @abstractmethod
    def find_by_organization(self, organization_id: str) -> List[Room]:
        raise NotImplementedError


class SqlAlchemyRoomRepository(RoomRepository):
    """Room repository backed by a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, room_id: str, for_update: bool = False) -> Room:
        query = self.session.query(Room).filter(Room.id == room_id)
        if for_update:
            query = query.with_for_update()
        room = query.first()
        if room is None:
            raise NotFoundError("Room", room_id)
        return room

    def find_by_organization(self, organization_id: str) -> List[Room]:
        return (
            self.session.query(Room)
            .filter(Room.organization_id == organization_id)
            .order_by(Room.id)
            .all()
        )
