from datetime import date

from chorely.models import DailyQuota, SlotStatus, TaskInstance, TaskStatus, User, UserRole
from chorely.service import ChoreTracker
from chorely.stats import UNKNOWN_TASK_TITLE, calendar_month, month_stats, parse_month, shift_month
from chorely.tasks import Weekday

HISTORY_START = date(2024, 11, 26)


def _instance(inst_id: str, day: str, status: TaskStatus, template_id: str = "reading", move_count: int = 0):
    return TaskInstance(
        id=inst_id,
        user_id="ava",
        template_id=template_id,
        date=day,
        status=status,
        move_count=move_count,
    )


def _day(grid, day_number: int):
    return grid.days[day_number - 1]


def test_month_helpers() -> None:
    assert shift_month(2024, 12, 1) == (2025, 1)
    assert shift_month(2024, 1, -1) == (2023, 12)
    assert parse_month("2024-12", date(2025, 3, 4)) == (2024, 12)
    assert parse_month("2024-13", date(2025, 3, 4)) == (2025, 3)
    assert parse_month("garbage", date(2025, 3, 4)) == (2025, 3)
    assert parse_month(None, date(2025, 3, 4)) == (2025, 3)


def test_calendar_fills_slots_in_status_order() -> None:
    quotas = [DailyQuota("ava", int(Weekday.MONDAY), 3)]
    instances = [
        _instance("a", "2024-12-02", TaskStatus.MOVED, "math", move_count=1),
        _instance("b", "2024-12-02", TaskStatus.PENDING, "pe"),
        _instance("c", "2024-12-02", TaskStatus.DONE, "reading"),
    ]
    grid = calendar_month(
        "ava",
        2024,
        12,
        today=date(2024, 12, 20),
        history_start=HISTORY_START,
        quotas=quotas,
        instances=instances,
        titles={"reading": "Reading", "pe": "Exercise"},
    )

    monday = _day(grid, 2)
    assert monday.required == 3
    assert monday.done == 1
    assert [slot.status for slot in monday.slots] == [SlotStatus.DONE, SlotStatus.PENDING, SlotStatus.MOVED]
    assert [slot.title for slot in monday.slots] == ["Reading", "Exercise", UNKNOWN_TASK_TITLE]
    assert grid.total_moves == 1
    # December 2024 starts on a Sunday.
    assert grid.leading_blanks == 0
    assert len(grid.days) == 31


def test_calendar_marks_unfilled_past_slots_failed() -> None:
    quotas = [DailyQuota("ava", int(Weekday.MONDAY), 2), DailyQuota("ava", int(Weekday.TUESDAY), 1)]
    instances = [_instance("a", "2024-12-02", TaskStatus.DONE)]
    grid = calendar_month(
        "ava",
        2024,
        12,
        today=date(2024, 12, 9),
        history_start=HISTORY_START,
        quotas=quotas,
        instances=instances,
        titles={"reading": "Reading"},
    )

    assert [slot.status for slot in _day(grid, 2).slots] == [SlotStatus.DONE, SlotStatus.FAILED]
    assert [slot.status for slot in _day(grid, 3).slots] == [SlotStatus.FAILED]
    # Today and future days show open slots instead of failures.
    assert [slot.status for slot in _day(grid, 9).slots] == [SlotStatus.EMPTY, SlotStatus.EMPTY]
    assert _day(grid, 9).is_today
    assert [slot.status for slot in _day(grid, 10).slots] == [SlotStatus.EMPTY]
    # Wednesday has no quota.
    assert _day(grid, 4).slots == []
    assert _day(grid, 4).is_empty


def test_carried_tasks_render_beyond_quota() -> None:
    quotas = [DailyQuota("ava", int(Weekday.TUESDAY), 1)]
    instances = [
        _instance("a", "2024-12-03", TaskStatus.DONE, "math"),
        _instance("b", "2024-12-03", TaskStatus.PENDING, "reading", move_count=1),
    ]
    grid = calendar_month(
        "ava",
        2024,
        12,
        today=date(2024, 12, 20),
        history_start=HISTORY_START,
        quotas=quotas,
        instances=instances,
        titles={"reading": "Reading", "math": "Math"},
    )

    tuesday = _day(grid, 3)
    assert tuesday.carried == 1
    assert len(tuesday.slots) == 2
    assert tuesday.slots[0].status is SlotStatus.DONE
    assert tuesday.slots[1].carried
    assert tuesday.slots[1].title == "Reading"


def test_days_before_history_have_no_slots() -> None:
    quotas = [DailyQuota("ava", weekday, 2) for weekday in range(7)]
    instances = [_instance("a", "2024-11-20", TaskStatus.DONE)]
    grid = calendar_month(
        "ava",
        2024,
        11,
        today=date(2024, 12, 20),
        history_start=HISTORY_START,
        quotas=quotas,
        instances=instances,
        titles={},
    )

    early = _day(grid, 20)
    assert early.before_history
    assert early.required == 0
    assert early.done == 0
    assert early.slots == []
    assert _day(grid, 25).before_history
    assert not _day(grid, 26).before_history
    assert [slot.status for slot in _day(grid, 26).slots] == [SlotStatus.FAILED, SlotStatus.FAILED]
    # November 2024 starts on a Friday.
    assert grid.leading_blanks == 5


def test_month_stats_rates_and_highlights() -> None:
    users = [
        User("ava", "Ava", "ava", UserRole.CHILD),
        User("ben", "Ben", "ben", UserRole.CHILD),
        User("mom", "Mom", "mom", UserRole.PARENT),
    ]
    # December 2024 has five Mondays.
    quotas = [DailyQuota("ava", int(Weekday.MONDAY), 1), DailyQuota("ben", int(Weekday.MONDAY), 2)]
    instances = [
        TaskInstance("1", "ava", "reading", "2024-12-02", TaskStatus.DONE),
        TaskInstance("2", "ava", "reading", "2024-12-09", TaskStatus.DONE),
        TaskInstance("3", "ava", "reading", "2024-12-16", TaskStatus.DONE),
        TaskInstance("4", "ava", "reading", "2024-12-23", TaskStatus.DONE),
        TaskInstance("5", "ben", "reading", "2024-12-02", TaskStatus.DONE),
        TaskInstance("6", "ben", "math", "2024-12-02", TaskStatus.MOVED, 1),
        TaskInstance("7", "ben", "math", "2024-11-30", TaskStatus.DONE),
    ]

    report = month_stats(users, 2024, 12, quotas, instances)

    assert [entry.user.id for entry in report.entries] == ["ava", "ben"]
    ava, ben = report.entries
    assert ava.tasks_required_total == 5
    assert ava.tasks_done_total == 4
    assert ava.completion_rate == 80.0
    assert ava.rate_band == "good"
    assert ben.tasks_required_total == 10
    assert ben.tasks_done_total == 1
    assert ben.moves_total == 1
    assert ben.rate_band == "poor"
    assert report.champion is ava
    assert report.outsider is ben


def test_month_stats_ties_keep_first_user() -> None:
    users = [User("ava", "Ava", "ava"), User("ben", "Ben", "ben")]
    quotas = [DailyQuota("ava", int(Weekday.MONDAY), 1), DailyQuota("ben", int(Weekday.MONDAY), 1)]

    report = month_stats(users, 2024, 12, quotas, [])

    assert report.champion.user.id == "ava"
    assert report.outsider.user.id == "ava"


def test_month_stats_without_quotas_is_empty() -> None:
    report = month_stats([User("ava", "Ava", "ava")], 2024, 12, [], [])

    assert report.entries == []
    assert report.champion is None
    assert report.outsider is None


def test_tracker_calendar_uses_template_titles() -> None:
    tracker = ChoreTracker()
    tracker.create_user("ava", "Ava", "ava")
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    tracker.set_quota("ava", Weekday.MONDAY, 1)
    instance = tracker.pick_task("ava", reading.id, date(2024, 12, 2))
    tracker.mark_done(instance.id)

    grid = tracker.calendar_month("ava", 2024, 12, today=date(2024, 12, 3), history_start=HISTORY_START)

    assert _day(grid, 2).slots[0].title == "Reading"
    assert _day(grid, 2).slots[0].status is SlotStatus.DONE


def test_carried_tasks_on_days_without_quota_are_counted() -> None:
    quotas = [DailyQuota("ava", int(Weekday.MONDAY), 1)]
    instances = [
        _instance("a", "2024-12-02", TaskStatus.MOVED, "reading", move_count=1),
        _instance("b", "2024-12-03", TaskStatus.PENDING, "reading", move_count=1),
    ]
    grid = calendar_month(
        "ava",
        2024,
        12,
        today=date(2024, 12, 20),
        history_start=HISTORY_START,
        quotas=quotas,
        instances=instances,
        titles={"reading": "Reading"},
    )

    tuesday = _day(grid, 3)
    assert tuesday.required == 0
    assert tuesday.carried == 1
    assert tuesday.pending == 1
    assert [slot.carried for slot in tuesday.slots] == [True]
