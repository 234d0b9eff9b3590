"""
Domain-specific exception hierarchy for the barbershop booking client.
"""


class BarberbookError(Exception):
    """Base class for all application-level errors."""


class StoreError(BarberbookError):
    """Raised when the remote store cannot be queried or returns an error."""


class NotFoundError(StoreError):
    """Raised when a requested row does not exist."""


class AuthenticationError(BarberbookError):
    """Raised when authentication fails or no user is signed in."""


class PermissionDeniedError(BarberbookError):
    """Raised when the signed-in user lacks the required role."""


class ValidationError(BarberbookError):
    """Raised when local input is rejected before any remote call."""


class ModificationNotAllowedError(BarberbookError):
    """Raised when a reservation may no longer be edited or cancelled."""


class SlotUnavailableError(BarberbookError):
    """Raised when the requested slot is occupied or not offered."""
