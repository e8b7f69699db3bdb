"""Domain models used by the Chorely package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class UserRole(str, Enum):
    """Roles a family member can hold."""

    PARENT = "parent"
    CHILD = "child"


class TaskStatus(str, Enum):
    """Lifecycle states of a task instance."""

    PENDING = "pending"
    DONE = "done"
    MOVED = "moved"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.PENDING


class SlotStatus(str, Enum):
    """Display state of a single calendar quota slot."""

    DONE = "done"
    PENDING = "pending"
    MOVED = "moved"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(slots=True)
class User:
    """A family member who can sign in."""

    id: str
    name: str
    login: str
    role: UserRole = UserRole.CHILD

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", UserRole(self.role))

    @property
    def is_parent(self) -> bool:
        return self.role is UserRole.PARENT


@dataclass(slots=True)
class TaskTemplate:
    """Reusable definition of a chore that can be assigned to users."""

    id: str
    title: str
    condition: Optional[str] = None
    active: bool = True
    assigned_user_ids: List[str] = field(default_factory=list)

    def is_assigned_to(self, user_id: str) -> bool:
        return user_id in self.assigned_user_ids


@dataclass(slots=True)
class DailyQuota:
    """Number of tasks a user must finish on a weekday (0 = Sunday)."""

    user_id: str
    weekday: int
    tasks_required: int


@dataclass(slots=True)
class TaskInstance:
    """One dated, user-specific occurrence of a template."""

    id: str
    user_id: str
    template_id: str
    date: str
    status: TaskStatus = TaskStatus.PENDING
    move_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", TaskStatus(self.status))

    @property
    def day(self) -> date:
        return date.fromisoformat(self.date)

    @property
    def is_carried(self) -> bool:
        """True for a pending instance that arrived by a move from an earlier day."""

        return self.status is TaskStatus.PENDING and self.move_count > 0


@dataclass(slots=True)
class DaySummary:
    """Snapshot of a user's progress on one day."""

    user_id: str
    day: date
    tasks_required: int
    picked: int
    done: int
    pending: int
    moved: int

    @property
    def completion_text(self) -> str:
        return f"{self.done}/{self.tasks_required}"


@dataclass(slots=True)
class CalendarSlot:
    """One cell inside a calendar day, either a quota slot or a carried task."""

    status: SlotStatus
    title: str = ""
    carried: bool = False


@dataclass(slots=True)
class CalendarDay:
    """Aggregated calendar information for a single date."""

    day: date
    required: int
    done: int = 0
    pending: int = 0
    moved: int = 0
    carried: int = 0
    is_today: bool = False
    is_past: bool = False
    before_history: bool = False
    slots: List[CalendarSlot] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.before_history or self.required == 0


@dataclass(slots=True)
class CalendarMonth:
    """Month grid for one user laid out Sunday-first."""

    user_id: str
    year: int
    month: int
    leading_blanks: int
    days: List[CalendarDay] = field(default_factory=list)
    total_moves: int = 0


@dataclass(slots=True)
class UserMonthStats:
    """Monthly completion figures for one user."""

    user: User
    tasks_required_total: int
    tasks_done_total: int
    moves_total: int

    @property
    def completion_rate(self) -> float:
        if self.tasks_required_total <= 0:
            return 0.0
        return self.tasks_done_total / self.tasks_required_total * 100

    @property
    def rate_band(self) -> str:
        rate = self.completion_rate
        if rate >= 80:
            return "good"
        if rate >= 50:
            return "warning"
        return "poor"


@dataclass(slots=True)
class MonthStatsReport:
    """Statistics for every user with a non-zero quota in a month."""

    year: int
    month: int
    entries: List[UserMonthStats] = field(default_factory=list)
    champion: Optional[UserMonthStats] = None
    outsider: Optional[UserMonthStats] = None


__all__ = [
    "CalendarDay",
    "CalendarMonth",
    "CalendarSlot",
    "DailyQuota",
    "DaySummary",
    "MonthStatsReport",
    "SlotStatus",
    "TaskInstance",
    "TaskStatus",
    "TaskTemplate",
    "User",
    "UserMonthStats",
    "UserRole",
]
