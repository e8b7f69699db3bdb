"""Date-bucketed aggregation behind the Today, Calendar and Statistics screens."""

from __future__ import annotations

import calendar
from datetime import date
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

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
    User,
    UserMonthStats,
)
from .tasks import Weekday, instances_on, quota_for

UNKNOWN_TASK_TITLE = "Unknown task"

_REGULAR_ORDER = {TaskStatus.DONE: 0, TaskStatus.PENDING: 1, TaskStatus.MOVED: 2}


def month_days(year: int, month: int) -> Iterator[date]:
    _, last = calendar.monthrange(year, month)
    for day_number in range(1, last + 1):
        yield date(year, month, day_number)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def parse_month(raw: Optional[str], fallback: date) -> tuple[int, int]:
    """Parse ``YYYY-MM``; anything unparsable falls back to ``fallback``'s month."""

    if raw:
        try:
            year_raw, month_raw = raw.strip().split("-", 1)
            year, month = int(year_raw), int(month_raw)
            if 1 <= month <= 12 and year >= 1:
                return year, month
        except ValueError:
            pass
    return fallback.year, fallback.month


def _count(instances: Iterable[TaskInstance], status: TaskStatus) -> int:
    return sum(1 for inst in instances if inst.status is status)


def day_summary(
    user_id: str,
    day: date,
    quotas: Iterable[DailyQuota],
    instances: Iterable[TaskInstance],
) -> DaySummary:
    todays = instances_on(instances, user_id, day.isoformat())
    return DaySummary(
        user_id=user_id,
        day=day,
        tasks_required=quota_for(quotas, user_id, int(Weekday.from_date(day))),
        picked=len(todays),
        done=_count(todays, TaskStatus.DONE),
        pending=_count(todays, TaskStatus.PENDING),
        moved=_count(todays, TaskStatus.MOVED),
    )


def _title(titles: Mapping[str, str], template_id: str) -> str:
    return titles.get(template_id) or UNKNOWN_TASK_TITLE


def _build_slots(
    info: CalendarDay,
    day_instances: Sequence[TaskInstance],
    titles: Mapping[str, str],
) -> List[CalendarSlot]:
    if info.before_history:
        return []
    carried = [inst for inst in day_instances if inst.is_carried]
    regular = sorted(
        (inst for inst in day_instances if not inst.is_carried),
        key=lambda inst: _REGULAR_ORDER[inst.status],
    )
    slots: List[CalendarSlot] = []
    for index in range(info.required):
        if index < len(regular):
            inst = regular[index]
            slots.append(CalendarSlot(status=SlotStatus(inst.status.value), title=_title(titles, inst.template_id)))
        elif info.is_past:
            slots.append(CalendarSlot(status=SlotStatus.FAILED))
        else:
            slots.append(CalendarSlot(status=SlotStatus.EMPTY))
    for inst in carried:
        slots.append(CalendarSlot(status=SlotStatus.PENDING, title=_title(titles, inst.template_id), carried=True))
    return slots


def calendar_month(
    user_id: str,
    year: int,
    month: int,
    *,
    today: date,
    history_start: date,
    quotas: Iterable[DailyQuota],
    instances: Iterable[TaskInstance],
    titles: Mapping[str, str],
) -> CalendarMonth:
    """Lay out one month of a user's tasks, Sunday-first."""

    quota_list = [q for q in quotas if q.user_id == user_id]
    by_day: Dict[str, List[TaskInstance]] = {}
    for inst in instances:
        if inst.user_id != user_id:
            continue
        inst_day = inst.day
        if inst_day.year == year and inst_day.month == month:
            by_day.setdefault(inst.date, []).append(inst)

    first = date(year, month, 1)
    grid = CalendarMonth(
        user_id=user_id,
        year=year,
        month=month,
        leading_blanks=int(Weekday.from_date(first)),
    )
    for day in month_days(year, month):
        required = quota_for(quota_list, user_id, int(Weekday.from_date(day)))
        day_instances = by_day.get(day.isoformat(), [])
        info = CalendarDay(
            day=day,
            required=required,
            is_today=day == today,
            is_past=day < today,
            before_history=day < history_start,
        )
        if not info.before_history:
            info.done = _count(day_instances, TaskStatus.DONE)
            info.pending = _count(day_instances, TaskStatus.PENDING)
            info.moved = _count(day_instances, TaskStatus.MOVED)
            info.carried = sum(1 for inst in day_instances if inst.is_carried)
        info.slots = _build_slots(info, day_instances, titles)
        if info.before_history:
            info.required = 0
        grid.days.append(info)
    grid.total_moves = sum(_count(items, TaskStatus.MOVED) for items in by_day.values())
    return grid


def user_month_stats(
    user: User,
    year: int,
    month: int,
    quotas: Iterable[DailyQuota],
    instances: Iterable[TaskInstance],
) -> UserMonthStats:
    user_quotas = [q for q in quotas if q.user_id == user.id]
    required = sum(quota_for(user_quotas, user.id, int(Weekday.from_date(day))) for day in month_days(year, month))
    in_month = [
        inst
        for inst in instances
        if inst.user_id == user.id and inst.day.year == year and inst.day.month == month
    ]
    return UserMonthStats(
        user=user,
        tasks_required_total=required,
        tasks_done_total=_count(in_month, TaskStatus.DONE),
        moves_total=_count(in_month, TaskStatus.MOVED),
    )


def month_stats(
    users: Iterable[User],
    year: int,
    month: int,
    quotas: Sequence[DailyQuota],
    instances: Sequence[TaskInstance],
) -> MonthStatsReport:
    """Build the monthly report; users without any quota in the month are left out."""

    entries = [user_month_stats(user, year, month, quotas, instances) for user in users]
    entries = [entry for entry in entries if entry.tasks_required_total > 0]
    report = MonthStatsReport(year=year, month=month, entries=entries)
    if entries:
        champion = outsider = entries[0]
        for entry in entries[1:]:
            if entry.completion_rate > champion.completion_rate:
                champion = entry
            if entry.completion_rate < outsider.completion_rate:
                outsider = entry
        report.champion = champion
        report.outsider = outsider
    return report


__all__ = [
    "UNKNOWN_TASK_TITLE",
    "calendar_month",
    "day_summary",
    "month_days",
    "month_stats",
    "parse_month",
    "shift_month",
    "user_month_stats",
]
