from dataclasses import replace
from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, delete, select

from chorely.exceptions import InvalidTransitionError, TemplateUnavailableError
from chorely.models import TaskStatus, UserRole
from chorely.service import ChoreTracker
from chorely.tasks import Weekday
from chorely.webapp import (
    DailyQuotaRecord,
    SqlStore,
    TaskInstanceRecord,
    TaskTemplateRecord,
    TemplateAssignment,
    UserRecord,
    engine,
    run_migrations,
)

MONDAY = date(2024, 12, 2)


@pytest.fixture(autouse=True)
def clean_database() -> None:
    run_migrations()
    with Session(engine) as session:
        for model in (TaskInstanceRecord, DailyQuotaRecord, TemplateAssignment, TaskTemplateRecord, UserRecord):
            session.exec(delete(model))
        session.commit()


@pytest.fixture()
def tracker() -> ChoreTracker:
    tracker = ChoreTracker(SqlStore(engine))
    tracker.create_user("ava", "Ava", "ava")
    tracker.create_user("mom", "Mom", "mom", UserRole.PARENT)
    return tracker


def test_users_round_trip(tracker: ChoreTracker) -> None:
    store = tracker.store

    assert [user.id for user in store.list_users()] == ["ava", "mom"]
    mom = store.get_user("mom")
    assert mom is not None and mom.role is UserRole.PARENT
    assert store.get_user("ghost") is None

    tracker.update_user("ava", name="Ava B", login="avab")
    stored = store.get_user("ava")
    assert stored.name == "Ava B"
    assert stored.login == "avab"


def test_template_assignments_are_replaced_on_update(tracker: ChoreTracker) -> None:
    template = tracker.create_template("Reading", condition="20 pages", assigned_user_ids=["ava"])

    tracker.toggle_template_assignment(template.id, "mom")
    tracker.toggle_template_assignment(template.id, "ava")
    tracker.toggle_template_active(template.id)

    stored = tracker.get_template(template.id)
    assert stored.assigned_user_ids == ["mom"]
    assert stored.active is False
    assert stored.condition == "20 pages"
    with Session(engine) as session:
        rows = session.exec(select(TemplateAssignment)).all()
    assert [(row.task_template_id, row.user_id) for row in rows] == [(template.id, "mom")]


def test_quota_upsert_keeps_one_row_per_weekday(tracker: ChoreTracker) -> None:
    tracker.set_quota("ava", Weekday.MONDAY, 1)
    tracker.set_quota("ava", Weekday.MONDAY, 3)
    tracker.set_quota("ava", Weekday.FRIDAY, 2)

    assert tracker.quota_table() == {("ava", 1): 3, ("ava", 5): 2}
    with Session(engine) as session:
        rows = session.exec(select(DailyQuotaRecord).where(DailyQuotaRecord.user_id == "ava")).all()
    assert len(rows) == 2


def test_instances_persist_status_and_moves(tracker: ChoreTracker) -> None:
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    math = tracker.create_template("Math", assigned_user_ids=["ava"])
    first = tracker.pick_task("ava", reading.id, MONDAY)
    second = tracker.pick_task("ava", math.id, MONDAY)

    tracker.mark_done(first.id)
    moved, carried = tracker.move_to_next_day(second.id)

    assert tracker.get_instance(first.id).status is TaskStatus.DONE
    assert tracker.get_instance(moved.id).status is TaskStatus.MOVED
    stored_carried = tracker.get_instance(carried.id)
    assert stored_carried.date == "2024-12-03"
    assert stored_carried.move_count == 1
    assert [inst.date for inst in tracker.list_instances()][0] == "2024-12-03"
    with pytest.raises(InvalidTransitionError):
        tracker.mark_done(moved.id)


def test_delete_user_cascades_in_database(tracker: ChoreTracker) -> None:
    reading = tracker.create_template("Reading", assigned_user_ids=["ava", "mom"])
    tracker.set_quota("ava", Weekday.MONDAY, 2)
    tracker.pick_task("ava", reading.id, MONDAY)
    tracker.pick_task("mom", reading.id, MONDAY)

    tracker.delete_user("ava")

    with Session(engine) as session:
        assert session.get(UserRecord, "ava") is None
        assert session.exec(select(DailyQuotaRecord).where(DailyQuotaRecord.user_id == "ava")).all() == []
        assert session.exec(select(TaskInstanceRecord).where(TaskInstanceRecord.user_id == "ava")).all() == []
        assert session.exec(select(TemplateAssignment).where(TemplateAssignment.user_id == "ava")).all() == []
    assert tracker.get_template(reading.id).assigned_user_ids == ["mom"]


def test_clear_task_instances_counts_rows(tracker: ChoreTracker) -> None:
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    tracker.pick_task("ava", reading.id, MONDAY)
    tracker.pick_task("ava", reading.id, date(2024, 12, 3))

    assert tracker.clear_task_instances() == 2
    assert tracker.list_instances() == []
    assert tracker.clear_task_instances() == 0


def test_seed_defaults_into_empty_database() -> None:
    tracker = ChoreTracker(SqlStore(engine))

    assert tracker.seed_defaults() is True
    assert tracker.seed_defaults() is False
    assert {user.id for user in tracker.list_users()} == {"rodion", "nani", "roman", "rolan"}
    assert tracker.quota_for("roman", Weekday.SATURDAY) == 3
    assert tracker.get_template("pe").assigned_user_ids == ["rodion", "nani", "roman", "rolan"]


def test_maintenance_command_clears_instances(tracker: ChoreTracker, capsys) -> None:
    from chorely.webapp import maintenance

    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    tracker.pick_task("ava", reading.id, MONDAY)

    assert maintenance.main(["--yes"], tracker=tracker) == 0
    assert "Removed 1 task instance(s)." in capsys.readouterr().out
    assert tracker.list_instances() == []
    assert [user.id for user in tracker.list_users()] == ["ava", "mom"]


def test_move_refused_when_next_day_already_has_template(tracker: ChoreTracker) -> None:
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    monday = tracker.pick_task("ava", reading.id, MONDAY)
    tracker.pick_task("ava", reading.id, date(2024, 12, 3))

    with pytest.raises(TemplateUnavailableError):
        tracker.move_to_next_day(monday.id)

    assert tracker.get_instance(monday.id).status is TaskStatus.PENDING
    with Session(engine) as session:
        rows = session.exec(
            select(TaskInstanceRecord).where(
                TaskInstanceRecord.user_id == "ava",
                TaskInstanceRecord.date == "2024-12-03",
            )
        ).all()
    assert len(rows) == 1


def test_database_rejects_duplicate_template_on_same_day(tracker: ChoreTracker) -> None:
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    first = tracker.pick_task("ava", reading.id, MONDAY)
    duplicate = replace(first, id="duplicate")

    with pytest.raises(IntegrityError):
        tracker.store.add_instance(duplicate)
    assert [inst.id for inst in tracker.list_instances()] == [first.id]


def test_move_instance_writes_both_rows_in_one_commit(tracker: ChoreTracker, monkeypatch) -> None:
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    instance = tracker.pick_task("ava", reading.id, MONDAY)
    store = tracker.store

    def broken_add_row(_session, _instance):
        raise OperationalError("INSERT INTO task_instances", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store, "_add_instance_row", broken_add_row)
    with pytest.raises(OperationalError):
        tracker.move_to_next_day(instance.id)

    stored = store.get_instance(instance.id)
    assert stored.status is TaskStatus.PENDING
    assert stored.move_count == 0
    assert len(store.list_instances()) == 1
