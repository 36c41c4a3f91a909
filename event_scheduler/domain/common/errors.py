from __future__ import annotations


class DomainError(Exception):
    """Base for errors raised by the task domain. Message is user-facing."""


class ValidationError(DomainError):
    pass


class NotFoundError(DomainError):
    pass


class InvalidTransitionError(DomainError):
    pass


class InvalidIntervalError(DomainError):
    """Recurrence asked for an interval it cannot advance. A programming error, not user input."""


class NotificationSchedulingError(DomainError):
    """Reminder could not be registered or cancelled. Never rolls back a transition."""


class StoreDataError(DomainError):
    """A persisted row does not deserialize into a valid Task/HistoryEntry."""
