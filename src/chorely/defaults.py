"""Starter household used when the datastore is empty."""

from __future__ import annotations

from typing import Tuple

from .models import DailyQuota, TaskTemplate, User, UserRole
from .tasks import Weekday

DEFAULT_USERS: Tuple[User, ...] = (
    User(id="rodion", name="Rodion", login="Rodion", role=UserRole.PARENT),
    User(id="nani", name="Nani", login="Nani", role=UserRole.CHILD),
    User(id="roman", name="Roman", login="Roman", role=UserRole.CHILD),
    User(id="rolan", name="Rolan", login="Rolan", role=UserRole.CHILD),
)

_CHILDREN = ("nani", "roman", "rolan")

DEFAULT_TEMPLATES: Tuple[TaskTemplate, ...] = (
    TaskTemplate(id="english", title="English", assigned_user_ids=["rodion"]),
    TaskTemplate(id="pe", title="Exercise", assigned_user_ids=["rodion", *_CHILDREN]),
    TaskTemplate(id="reading", title="Reading", assigned_user_ids=list(_CHILDREN)),
    TaskTemplate(id="math", title="Math", assigned_user_ids=list(_CHILDREN)),
)

DEFAULT_WEEKLY_PLAN = {
    Weekday.MONDAY: 1,
    Weekday.TUESDAY: 3,
    Weekday.WEDNESDAY: 2,
    Weekday.THURSDAY: 3,
    Weekday.FRIDAY: 1,
    Weekday.SATURDAY: 3,
    Weekday.SUNDAY: 2,
}

DEFAULT_QUOTAS: Tuple[DailyQuota, ...] = tuple(
    DailyQuota(user_id=user_id, weekday=int(weekday), tasks_required=required)
    for user_id in _CHILDREN
    for weekday, required in DEFAULT_WEEKLY_PLAN.items()
)

__all__ = ["DEFAULT_QUOTAS", "DEFAULT_TEMPLATES", "DEFAULT_USERS", "DEFAULT_WEEKLY_PLAN"]
