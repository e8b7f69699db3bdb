"""Custom exception hierarchy for the Chorely package."""

from __future__ import annotations


class ChorelyError(Exception):
    """Base class for all Chorely specific errors."""


class DuplicateUserError(ChorelyError):
    """Raised when a user id or login is already taken."""


class UserNotFoundError(ChorelyError):
    """Raised when a user lookup fails."""


class TemplateNotFoundError(ChorelyError):
    """Raised when a task template lookup fails."""


class TemplateUnavailableError(ChorelyError):
    """Raised when a template cannot be picked by a user on a given day."""


class TaskInstanceNotFoundError(ChorelyError):
    """Raised when a task instance lookup fails."""


class InvalidTransitionError(ChorelyError):
    """Raised when a task instance is asked to leave a terminal state."""


class InvalidQuotaError(ChorelyError):
    """Raised when a daily quota falls outside the supported range."""


class AuthenticationError(ChorelyError):
    """Raised when a login attempt is rejected."""


__all__ = [
    "AuthenticationError",
    "ChorelyError",
    "DuplicateUserError",
    "InvalidQuotaError",
    "InvalidTransitionError",
    "TaskInstanceNotFoundError",
    "TemplateNotFoundError",
    "TemplateUnavailableError",
    "UserNotFoundError",
]
