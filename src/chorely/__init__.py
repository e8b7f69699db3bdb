"""Chorely package for tracking a household's daily chores."""

from .exceptions import (
    AuthenticationError,
    ChorelyError,
    DuplicateUserError,
    InvalidQuotaError,
    InvalidTransitionError,
    TaskInstanceNotFoundError,
    TemplateNotFoundError,
    TemplateUnavailableError,
    UserNotFoundError,
)
from .models import (
    CalendarDay,
    CalendarMonth,
    CalendarSlot,
    DailyQuota,
    DaySummary,
    MonthStatsReport,
    SlotStatus,
    TaskInstance,
    TaskStatus,
    TaskTemplate,
    User,
    UserMonthStats,
    UserRole,
)
from .ops import HealthMonitor, StructuredLogger
from .service import ChoreTracker
from .store import MemoryStore, TaskStore
from .tasks import Weekday

__all__ = [
    "AuthenticationError",
    "CalendarDay",
    "CalendarMonth",
    "CalendarSlot",
    "ChoreTracker",
    "ChorelyError",
    "DailyQuota",
    "DaySummary",
    "DuplicateUserError",
    "HealthMonitor",
    "InvalidQuotaError",
    "InvalidTransitionError",
    "MemoryStore",
    "MonthStatsReport",
    "SlotStatus",
    "StructuredLogger",
    "TaskInstance",
    "TaskInstanceNotFoundError",
    "TaskStatus",
    "TaskStore",
    "TaskTemplate",
    "TemplateNotFoundError",
    "TemplateUnavailableError",
    "User",
    "UserMonthStats",
    "UserNotFoundError",
    "UserRole",
    "Weekday",
]
