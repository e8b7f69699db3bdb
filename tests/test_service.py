from datetime import date

import pytest

from chorely.exceptions import (
    AuthenticationError,
    ChorelyError,
    DuplicateUserError,
    InvalidQuotaError,
    InvalidTransitionError,
    TaskInstanceNotFoundError,
    TemplateUnavailableError,
    UserNotFoundError,
)
from chorely.models import TaskStatus, UserRole
from chorely.service import ChoreTracker
from chorely.tasks import Weekday, clamp_tasks_required

MONDAY = date(2024, 12, 2)


def make_tracker() -> ChoreTracker:
    tracker = ChoreTracker()
    tracker.create_user("ava", "Ava", "ava", UserRole.CHILD)
    tracker.create_user("mom", "Mom", "mom", UserRole.PARENT)
    return tracker


def test_create_and_lookup_users() -> None:
    tracker = make_tracker()

    assert [user.id for user in tracker.list_users()] == ["ava", "mom"]
    assert tracker.get_user("mom").is_parent
    assert not tracker.get_user("ava").is_parent

    with pytest.raises(DuplicateUserError):
        tracker.create_user("ava", "Other", "other")
    with pytest.raises(DuplicateUserError):
        tracker.create_user("ben", "Ben", "ava")
    with pytest.raises(UserNotFoundError):
        tracker.get_user("nobody")
    with pytest.raises(ChorelyError):
        tracker.create_user("ben", "Ben", "ben", role="grandparent")


def test_authenticate_checks_password_before_login() -> None:
    tracker = make_tracker()

    assert tracker.authenticate("ava", "1234").id == "ava"
    assert tracker.authenticate("  ava ", "1234").id == "ava"

    with pytest.raises(AuthenticationError, match="Invalid password"):
        tracker.authenticate("nobody", "0000")
    with pytest.raises(AuthenticationError, match="User not found"):
        tracker.authenticate("nobody", "1234")
    assert tracker.logger.tail(1)[0]["event"] == "login_rejected"


def test_custom_password() -> None:
    tracker = ChoreTracker(password="secret")
    tracker.create_user("ava", "Ava", "ava")

    assert tracker.check_password("secret")
    assert not tracker.check_password("1234")
    assert tracker.authenticate("ava", "secret").id == "ava"


def test_update_user_rejects_taken_login() -> None:
    tracker = make_tracker()

    updated = tracker.update_user("ava", name="Ava B", role="parent")
    assert updated.name == "Ava B"
    assert tracker.get_user("ava").role is UserRole.PARENT

    with pytest.raises(DuplicateUserError):
        tracker.update_user("ava", login="mom")


def test_template_lifecycle() -> None:
    tracker = make_tracker()

    template = tracker.create_template("Reading", condition="20 pages", assigned_user_ids=["ava"])
    assert template.active
    assert template.condition == "20 pages"
    assert [tpl.id for tpl in tracker.available_templates("ava")] == [template.id]
    assert tracker.available_templates("mom") == []

    tracker.toggle_template_assignment(template.id, "mom")
    assert tracker.get_template(template.id).assigned_user_ids == ["ava", "mom"]
    tracker.toggle_template_assignment(template.id, "ava")
    assert tracker.get_template(template.id).assigned_user_ids == ["mom"]

    tracker.toggle_template_active(template.id)
    assert tracker.get_template(template.id).active is False
    assert tracker.available_templates("mom") == []

    tracker.update_template(template.id, title="Reading aloud", condition="")
    stored = tracker.get_template(template.id)
    assert stored.title == "Reading aloud"
    assert stored.condition is None

    with pytest.raises(UserNotFoundError):
        tracker.create_template("Math", assigned_user_ids=["ghost"])
    with pytest.raises(ChorelyError):
        tracker.create_template("   ")


def test_set_quota_validates_range() -> None:
    tracker = make_tracker()

    tracker.set_quota("ava", Weekday.MONDAY, 3)
    tracker.set_quota("ava", Weekday.MONDAY, 2)
    assert tracker.quota_for("ava", Weekday.MONDAY) == 2
    assert tracker.quota_for("ava", Weekday.TUESDAY) == 0
    assert len(tracker.quotas_for_user("ava")) == 1

    with pytest.raises(InvalidQuotaError):
        tracker.set_quota("ava", Weekday.MONDAY, 4)
    with pytest.raises(InvalidQuotaError):
        tracker.set_quota("ava", Weekday.MONDAY, -1)
    with pytest.raises(InvalidQuotaError):
        tracker.set_quota("ava", 7, 1)
    with pytest.raises(UserNotFoundError):
        tracker.set_quota("ghost", Weekday.MONDAY, 1)


def test_clamp_tasks_required_handles_form_input() -> None:
    assert clamp_tasks_required("2") == 2
    assert clamp_tasks_required("9") == 3
    assert clamp_tasks_required("-4") == 0
    assert clamp_tasks_required("abc") == 0
    assert clamp_tasks_required(None) == 0


def test_weekday_numbering_starts_on_sunday() -> None:
    assert Weekday.from_date(date(2024, 12, 1)) is Weekday.SUNDAY
    assert Weekday.from_date(MONDAY) is Weekday.MONDAY
    assert Weekday.from_date(date(2024, 12, 7)) is Weekday.SATURDAY


def test_pick_and_complete_tasks_updates_summary() -> None:
    tracker = make_tracker()
    tracker.set_quota("ava", Weekday.MONDAY, 3)
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    math = tracker.create_template("Math", assigned_user_ids=["ava"])
    pe = tracker.create_template("Exercise", assigned_user_ids=["ava"])

    first = tracker.pick_task("ava", reading.id, MONDAY)
    second = tracker.pick_task("ava", math.id, MONDAY)
    tracker.pick_task("ava", pe.id, MONDAY)
    tracker.mark_done(first.id)
    tracker.mark_done(second.id)

    summary = tracker.day_summary("ava", MONDAY)
    assert summary.tasks_required == 3
    assert summary.picked == 3
    assert summary.done == 2
    assert summary.completion_text == "2/3"
    assert tracker.unused_templates("ava", MONDAY) == []


def test_pick_rejects_duplicates_and_unassigned_templates() -> None:
    tracker = make_tracker()
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])

    tracker.pick_task("ava", reading.id, MONDAY)
    with pytest.raises(TemplateUnavailableError):
        tracker.pick_task("ava", reading.id, MONDAY)
    with pytest.raises(TemplateUnavailableError):
        tracker.pick_task("mom", reading.id, MONDAY)

    tracker.toggle_template_active(reading.id)
    with pytest.raises(TemplateUnavailableError):
        tracker.pick_task("ava", reading.id, date(2024, 12, 3))


def test_move_to_next_day_carries_incremented_move_count() -> None:
    tracker = make_tracker()
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    instance = tracker.pick_task("ava", reading.id, MONDAY)

    moved, carried = tracker.move_to_next_day(instance.id)

    assert moved.status is TaskStatus.MOVED
    assert moved.move_count == 1
    assert carried.status is TaskStatus.PENDING
    assert carried.date == "2024-12-03"
    assert carried.move_count == 1
    assert carried.is_carried
    assert tracker.get_instance(instance.id).status is TaskStatus.MOVED

    _, carried_again = tracker.move_to_next_day(carried.id)
    assert carried_again.date == "2024-12-04"
    assert carried_again.move_count == 2


def test_terminal_instances_cannot_transition() -> None:
    tracker = make_tracker()
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    instance = tracker.pick_task("ava", reading.id, MONDAY)
    tracker.mark_done(instance.id)

    with pytest.raises(InvalidTransitionError):
        tracker.mark_done(instance.id)
    with pytest.raises(InvalidTransitionError):
        tracker.move_to_next_day(instance.id)
    with pytest.raises(TaskInstanceNotFoundError):
        tracker.mark_done("missing")


def test_delete_user_cascades() -> None:
    tracker = make_tracker()
    reading = tracker.create_template("Reading", assigned_user_ids=["ava", "mom"])
    tracker.set_quota("ava", Weekday.MONDAY, 1)
    tracker.pick_task("ava", reading.id, MONDAY)
    tracker.pick_task("mom", reading.id, MONDAY)

    tracker.delete_user("ava")

    assert [user.id for user in tracker.list_users()] == ["mom"]
    assert tracker.quotas_for_user("ava") == []
    assert all(inst.user_id == "mom" for inst in tracker.list_instances())
    assert tracker.get_template(reading.id).assigned_user_ids == ["mom"]
    with pytest.raises(UserNotFoundError):
        tracker.delete_user("ava")


def test_clear_task_instances_keeps_configuration() -> None:
    tracker = make_tracker()
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    tracker.set_quota("ava", Weekday.MONDAY, 1)
    tracker.pick_task("ava", reading.id, MONDAY)
    tracker.pick_task("ava", reading.id, date(2024, 12, 3))

    assert tracker.clear_task_instances() == 2
    assert tracker.list_instances() == []
    assert len(tracker.list_templates()) == 1
    assert tracker.quota_for("ava", Weekday.MONDAY) == 1


def test_seed_defaults_only_on_empty_store() -> None:
    tracker = ChoreTracker()

    assert tracker.seed_defaults() is True
    users = {user.id: user for user in tracker.list_users()}
    assert set(users) == {"rodion", "nani", "roman", "rolan"}
    assert users["rodion"].is_parent
    assert tracker.quota_for("nani", Weekday.TUESDAY) == 3
    assert tracker.quota_for("rodion", Weekday.TUESDAY) == 0
    assert {tpl.id for tpl in tracker.available_templates("rodion")} == {"english", "pe"}

    assert tracker.seed_defaults() is False
    assert len(tracker.list_users()) == 4


def test_state_changes_are_logged() -> None:
    tracker = make_tracker()
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    instance = tracker.pick_task("ava", reading.id, MONDAY)
    tracker.mark_done(instance.id)

    events = [entry["event"] for entry in tracker.logger.tail(10)]
    assert events[-3:] == ["template_created", "task_picked", "task_done"]


def test_move_refused_when_template_already_planned_next_day() -> None:
    tracker = make_tracker()
    reading = tracker.create_template("Reading", assigned_user_ids=["ava"])
    monday = tracker.pick_task("ava", reading.id, MONDAY)
    tracker.pick_task("ava", reading.id, date(2024, 12, 3))

    with pytest.raises(TemplateUnavailableError):
        tracker.move_to_next_day(monday.id)

    assert tracker.get_instance(monday.id).status is TaskStatus.PENDING
    assert tracker.get_instance(monday.id).move_count == 0
    assert len(tracker.instances_for("ava", date(2024, 12, 3))) == 1


def test_set_quota_rejects_missing_weekday() -> None:
    tracker = make_tracker()

    with pytest.raises(InvalidQuotaError):
        tracker.set_quota("ava", None, 1)
    assert tracker.quotas_for_user("ava") == []
