"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .accounts import AccountService
from .admin import AdminService
from .booking import BookingService
from .protocols import AuthClientProtocol, AuthEvent, SignUpResult, StoreProtocol
from .session import SessionManager

__all__ = [
    "AccountService",
    "AdminService",
    "AuthClientProtocol",
    "AuthEvent",
    "BookingService",
    "SessionManager",
    "SignUpResult",
    "StoreProtocol",
]
