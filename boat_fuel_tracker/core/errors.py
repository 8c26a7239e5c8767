"""
Error taxonomy for fuel tracking operations.

Every failure surfaced by the core is one of these types.
"""


class FuelTrackerError(Exception):
    """Base class for all domain errors."""


class ValidationError(FuelTrackerError):
    """Raised when input is rejected before any store mutation."""


class NotFoundError(FuelTrackerError):
    """Raised when an operation targets an unknown identifier."""


class ForbiddenError(FuelTrackerError):
    """Raised when the acting identity may not touch the target user's data."""

    def __init__(self, message: str, user_id: str, target_user_id: str):
        super().__init__(message)
        self.user_id = user_id
        self.target_user_id = target_user_id


class StorageError(FuelTrackerError):
    """Raised when the underlying store fails. Never retried automatically."""
