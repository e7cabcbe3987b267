"""
Services package - Booking business logic.
"""
from .conflict_detector import ConflictDetector
from .lifecycle import BookingLifecycleManager
from .recurring import RecurringBookingGenerator
from .analytics import OccupancyAnalytics
from .policies import can_cancel, can_edit
from .booking_service import BookingService

__all__ = [
    "BookingService",
    "BookingLifecycleManager",
    "ConflictDetector",
    "RecurringBookingGenerator",
    "OccupancyAnalytics",
    "can_cancel",
    "can_edit",
]
