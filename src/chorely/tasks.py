"""Task instance lifecycle rules and weekday helpers for Chorely."""

from __future__ import annotations

from datetime import date, timedelta
from enum import IntEnum
from typing import Iterable, List, Sequence
from uuid import uuid4

from .exceptions import InvalidQuotaError, InvalidTransitionError, TemplateUnavailableError
from .models import DailyQuota, TaskInstance, TaskStatus, TaskTemplate

MIN_TASKS_PER_DAY = 0
MAX_TASKS_PER_DAY = 3


class Weekday(IntEnum):
    """Quota weekday numbering, Sunday first."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_date(cls, day: date) -> "Weekday":
        return cls(day.isoweekday() % 7)

    @property
    def label(self) -> str:
        return self.name.capitalize()


def day_key(day: date) -> str:
    return day.isoformat()


def next_day(day_str: str) -> str:
    return (date.fromisoformat(day_str) + timedelta(days=1)).isoformat()


def validate_weekday(weekday: int) -> int:
    try:
        return int(Weekday(int(weekday)))
    except (TypeError, ValueError) as exc:
        raise InvalidQuotaError(f"Weekday must be between 0 and 6, got {weekday!r}.") from exc


def validate_tasks_required(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuotaError(f"Tasks required must be an integer, got {value!r}.")
    if not MIN_TASKS_PER_DAY <= value <= MAX_TASKS_PER_DAY:
        raise InvalidQuotaError(
            f"Tasks required must be between {MIN_TASKS_PER_DAY} and {MAX_TASKS_PER_DAY}, got {value}."
        )
    return value


def clamp_tasks_required(raw: object) -> int:
    """Coerce raw form input into the supported quota range."""

    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return MIN_TASKS_PER_DAY
    return max(MIN_TASKS_PER_DAY, min(MAX_TASKS_PER_DAY, value))


def quota_for(quotas: Iterable[DailyQuota], user_id: str, weekday: int) -> int:
    for quota in quotas:
        if quota.user_id == user_id and quota.weekday == weekday:
            return quota.tasks_required
    return 0


def instances_on(instances: Iterable[TaskInstance], user_id: str, day_str: str) -> List[TaskInstance]:
    return [inst for inst in instances if inst.user_id == user_id and inst.date == day_str]


def available_templates(templates: Iterable[TaskTemplate], user_id: str) -> List[TaskTemplate]:
    return [tpl for tpl in templates if tpl.active and tpl.is_assigned_to(user_id)]


def unused_templates(
    templates: Iterable[TaskTemplate],
    day_instances: Sequence[TaskInstance],
    user_id: str,
) -> List[TaskTemplate]:
    taken = {inst.template_id for inst in day_instances}
    return [tpl for tpl in available_templates(templates, user_id) if tpl.id not in taken]


def new_instance(user_id: str, template_id: str, day_str: str, *, move_count: int = 0) -> TaskInstance:
    return TaskInstance(
        id=str(uuid4()),
        user_id=user_id,
        template_id=template_id,
        date=day_str,
        status=TaskStatus.PENDING,
        move_count=move_count,
    )


def pick_template(
    template: TaskTemplate,
    user_id: str,
    day_str: str,
    day_instances: Sequence[TaskInstance],
) -> TaskInstance:
    """Create a pending instance of ``template`` for ``user_id`` on ``day_str``."""

    if not template.active:
        raise TemplateUnavailableError(f"Task '{template.title}' is not active.")
    if not template.is_assigned_to(user_id):
        raise TemplateUnavailableError(f"Task '{template.title}' is not assigned to this user.")
    if any(inst.template_id == template.id for inst in day_instances):
        raise TemplateUnavailableError(f"Task '{template.title}' is already planned for {day_str}.")
    return new_instance(user_id, template.id, day_str)


def _require_pending(instance: TaskInstance, action: str) -> None:
    if instance.status is not TaskStatus.PENDING:
        raise InvalidTransitionError(
            f"Cannot {action} task {instance.id}: status is already {instance.status.value}."
        )


def mark_done(instance: TaskInstance) -> TaskInstance:
    _require_pending(instance, "complete")
    instance.status = TaskStatus.DONE
    return instance


def move_to_next_day(
    instance: TaskInstance,
    next_day_instances: Sequence[TaskInstance] = (),
) -> tuple[TaskInstance, TaskInstance]:
    """Close ``instance`` as moved and return it with its carried follow-up.

    The follow-up is a new pending instance on the next calendar day that
    carries the incremented move count.  ``next_day_instances`` are the
    user's instances on that day; the move is refused when the same template
    is already there.
    """

    _require_pending(instance, "move")
    target = next_day(instance.date)
    if any(inst.template_id == instance.template_id for inst in next_day_instances):
        raise TemplateUnavailableError(f"This task is already planned for {target}.")
    instance.status = TaskStatus.MOVED
    instance.move_count += 1
    carried = new_instance(
        instance.user_id,
        instance.template_id,
        target,
        move_count=instance.move_count,
    )
    return instance, carried


__all__ = [
    "MAX_TASKS_PER_DAY",
    "MIN_TASKS_PER_DAY",
    "Weekday",
    "available_templates",
    "clamp_tasks_required",
    "day_key",
    "instances_on",
    "mark_done",
    "move_to_next_day",
    "new_instance",
    "next_day",
    "pick_template",
    "quota_for",
    "unused_templates",
    "validate_tasks_required",
    "validate_weekday",
]
