"""
Authorization predicates for booking changes.

The booking core does not authenticate anyone; callers resolve the actor
and ask these predicates before issuing a command.
"""
from models.database import Booking


def can_cancel(booking: Booking, actor_id: str, is_admin: bool = False) -> bool:
    """The organizer or an organization admin may cancel a booking."""
    return is_admin or booking.organizer_id == actor_id


def can_edit(booking: Booking, actor_id: str, is_admin: bool = False) -> bool:
    """Only active bookings are editable, by their organizer or an admin."""
    return booking.is_active and (is_admin or booking.organizer_id == actor_id)
