from __future__ import annotations


class PolicyDeskError(Exception):
    """Base exception with user-friendly message."""
    pass


class ConfigError(PolicyDeskError):
    pass


class ValidationError(PolicyDeskError):
    """A required field is missing or a record has the wrong shape."""
    pass


class InvalidTransitionError(PolicyDeskError):
    pass


class PermissionDeniedError(InvalidTransitionError):
    pass


class PersistenceError(PolicyDeskError):
    pass


class AuthenticationError(PersistenceError):
    pass


class NotificationError(PolicyDeskError):
    pass
