"""
Domain layer - Pure business logic without external dependencies.
"""

from .dashboard import DashboardReport, build_dashboard
from .models import (
    Profile,
    Reservation,
    ReservationStatus,
    Service,
    SlotView,
    UserType,
    WeeklySlot,
)
from .policies import ModificationPolicy
from .slot_calculator import SlotCalculator
from .template_builder import build_weekly_slots, generate_slot_times

__all__ = [
    "DashboardReport",
    "ModificationPolicy",
    "Profile",
    "Reservation",
    "ReservationStatus",
    "Service",
    "SlotCalculator",
    "SlotView",
    "UserType",
    "WeeklySlot",
    "build_dashboard",
    "build_weekly_slots",
    "generate_slot_times",
]
