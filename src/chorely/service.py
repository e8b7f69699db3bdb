"""High level service coordinating users, templates, quotas and task instances."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from . import stats, tasks
from .defaults import DEFAULT_QUOTAS, DEFAULT_TEMPLATES, DEFAULT_USERS
from .exceptions import (
    AuthenticationError,
    ChorelyError,
    DuplicateUserError,
    TaskInstanceNotFoundError,
    TemplateNotFoundError,
    UserNotFoundError,
)
from .models import (
    CalendarMonth,
    DailyQuota,
    DaySummary,
    MonthStatsReport,
    TaskInstance,
    TaskTemplate,
    User,
    UserRole,
)
from .ops import StructuredLogger
from .store import MemoryStore, TaskStore

DEFAULT_PASSWORD = "1234"


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class ChoreTracker:
    """Manage a household's chores on top of a :class:`~chorely.store.TaskStore`."""

    __slots__ = ("_store", "_logger", "_password")

    def __init__(
        self,
        store: Optional[TaskStore] = None,
        *,
        password: str = DEFAULT_PASSWORD,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._store: TaskStore = store if store is not None else MemoryStore()
        self._logger = logger or StructuredLogger()
        self._password = password

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------
    def check_password(self, password: str) -> bool:
        return (password or "") == self._password

    def authenticate(self, login: str, password: str) -> User:
        if not self.check_password(password):
            self._logger.log("login_rejected", level="warning", login=login, reason="password")
            raise AuthenticationError("Invalid password")
        wanted = _clean(login)
        for user in self._store.list_users():
            if user.login == wanted:
                self._logger.log("login", user=user.id)
                return user
        self._logger.log("login_rejected", level="warning", login=login, reason="unknown_login")
        raise AuthenticationError("User not found")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        return self._store.list_users()

    def get_user(self, user_id: str) -> User:
        user = self._store.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User '{user_id}' does not exist.")
        return user

    def _ensure_login_free(self, login: str, *, ignore_id: Optional[str] = None) -> None:
        for user in self._store.list_users():
            if user.login == login and user.id != ignore_id:
                raise DuplicateUserError(f"Login '{login}' is already taken.")

    def create_user(self, user_id: str, name: str, login: str, role: UserRole | str = UserRole.CHILD) -> User:
        user_id, name, login = _clean(user_id), _clean(name), _clean(login)
        if not user_id or not name or not login:
            raise ChorelyError("User id, name and login are required.")
        try:
            role = UserRole(role)
        except ValueError as exc:
            raise ChorelyError(f"Unknown role '{role}'.") from exc
        if self._store.get_user(user_id) is not None:
            raise DuplicateUserError(f"User '{user_id}' already exists.")
        self._ensure_login_free(login)
        user = User(id=user_id, name=name, login=login, role=role)
        self._store.add_user(user)
        self._logger.log("user_created", user=user_id, role=role.value)
        return user

    def update_user(
        self,
        user_id: str,
        *,
        name: Optional[str] = None,
        login: Optional[str] = None,
        role: UserRole | str | None = None,
    ) -> User:
        user = self.get_user(user_id)
        if name is not None:
            if not _clean(name):
                raise ChorelyError("Name cannot be blank.")
            user.name = _clean(name)
        if login is not None:
            login = _clean(login)
            if not login:
                raise ChorelyError("Login cannot be blank.")
            self._ensure_login_free(login, ignore_id=user_id)
            user.login = login
        if role is not None:
            try:
                user.role = UserRole(role)
            except ValueError as exc:
                raise ChorelyError(f"Unknown role '{role}'.") from exc
        self._store.update_user(user)
        self._logger.log("user_updated", user=user_id)
        return user

    def delete_user(self, user_id: str) -> None:
        """Remove a user together with their quotas, task instances and assignments."""

        self.get_user(user_id)
        self._store.delete_user(user_id)
        self._logger.log("user_deleted", user=user_id)

    # ------------------------------------------------------------------
    # Task templates
    # ------------------------------------------------------------------
    def list_templates(self) -> List[TaskTemplate]:
        return self._store.list_templates()

    def get_template(self, template_id: str) -> TaskTemplate:
        template = self._store.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Task template '{template_id}' does not exist.")
        return template

    def template_titles(self) -> Dict[str, str]:
        return {template.id: template.title for template in self._store.list_templates()}

    def _checked_user_ids(self, user_ids: Iterable[str]) -> List[str]:
        known = {user.id for user in self._store.list_users()}
        cleaned: List[str] = []
        for user_id in user_ids:
            if user_id not in known:
                raise UserNotFoundError(f"User '{user_id}' does not exist.")
            if user_id not in cleaned:
                cleaned.append(user_id)
        return cleaned

    def create_template(
        self,
        title: str,
        *,
        condition: Optional[str] = None,
        assigned_user_ids: Sequence[str] = (),
        active: bool = True,
        template_id: Optional[str] = None,
    ) -> TaskTemplate:
        title = _clean(title)
        if not title:
            raise ChorelyError("Task title is required.")
        template = TaskTemplate(
            id=_clean(template_id) or str(uuid4()),
            title=title,
            condition=_clean(condition) or None,
            active=active,
            assigned_user_ids=self._checked_user_ids(assigned_user_ids),
        )
        if self._store.get_template(template.id) is not None:
            raise ChorelyError(f"Task template '{template.id}' already exists.")
        self._store.add_template(template)
        self._logger.log("template_created", template=template.id, title=title)
        return template

    def update_template(
        self,
        template_id: str,
        *,
        title: Optional[str] = None,
        condition: Optional[str] = None,
        active: Optional[bool] = None,
        assigned_user_ids: Optional[Sequence[str]] = None,
    ) -> TaskTemplate:
        template = self.get_template(template_id)
        if title is not None:
            if not _clean(title):
                raise ChorelyError("Task title is required.")
            template.title = _clean(title)
        if condition is not None:
            template.condition = _clean(condition) or None
        if active is not None:
            template.active = bool(active)
        if assigned_user_ids is not None:
            template.assigned_user_ids = self._checked_user_ids(assigned_user_ids)
        self._store.update_template(template)
        self._logger.log("template_updated", template=template_id)
        return template

    def toggle_template_active(self, template_id: str) -> TaskTemplate:
        template = self.get_template(template_id)
        return self.update_template(template_id, active=not template.active)

    def toggle_template_assignment(self, template_id: str, user_id: str) -> TaskTemplate:
        template = self.get_template(template_id)
        if template.is_assigned_to(user_id):
            assigned = [uid for uid in template.assigned_user_ids if uid != user_id]
        else:
            assigned = [*template.assigned_user_ids, user_id]
        return self.update_template(template_id, assigned_user_ids=assigned)

    # ------------------------------------------------------------------
    # Daily quotas
    # ------------------------------------------------------------------
    def list_quotas(self) -> List[DailyQuota]:
        return self._store.list_quotas()

    def quotas_for_user(self, user_id: str) -> List[DailyQuota]:
        return sorted(
            (quota for quota in self._store.list_quotas() if quota.user_id == user_id),
            key=lambda quota: quota.weekday,
        )

    def quota_for(self, user_id: str, weekday: int) -> int:
        return tasks.quota_for(self._store.list_quotas(), user_id, weekday)

    def quota_table(self) -> Dict[Tuple[str, int], int]:
        return {(quota.user_id, quota.weekday): quota.tasks_required for quota in self._store.list_quotas()}

    def set_quota(self, user_id: str, weekday: int, tasks_required: int) -> DailyQuota:
        self.get_user(user_id)
        quota = DailyQuota(
            user_id=user_id,
            weekday=tasks.validate_weekday(weekday),
            tasks_required=tasks.validate_tasks_required(tasks_required),
        )
        self._store.upsert_quota(quota)
        self._logger.log("quota_set", user=user_id, weekday=quota.weekday, required=quota.tasks_required)
        return quota

    # ------------------------------------------------------------------
    # Task instances
    # ------------------------------------------------------------------
    def list_instances(self) -> List[TaskInstance]:
        return self._store.list_instances()

    def get_instance(self, instance_id: str) -> TaskInstance:
        instance = self._store.get_instance(instance_id)
        if instance is None:
            raise TaskInstanceNotFoundError(f"Task '{instance_id}' does not exist.")
        return instance

    def instances_for(self, user_id: str, day: date) -> List[TaskInstance]:
        return tasks.instances_on(self._store.list_instances(), user_id, tasks.day_key(day))

    def available_templates(self, user_id: str) -> List[TaskTemplate]:
        return tasks.available_templates(self._store.list_templates(), user_id)

    def unused_templates(self, user_id: str, day: date) -> List[TaskTemplate]:
        return tasks.unused_templates(self._store.list_templates(), self.instances_for(user_id, day), user_id)

    def pick_task(self, user_id: str, template_id: str, day: date) -> TaskInstance:
        self.get_user(user_id)
        template = self.get_template(template_id)
        instance = tasks.pick_template(template, user_id, tasks.day_key(day), self.instances_for(user_id, day))
        self._store.add_instance(instance)
        self._logger.log("task_picked", user=user_id, template=template_id, date=instance.date, task=instance.id)
        return instance

    def mark_done(self, instance_id: str) -> TaskInstance:
        instance = tasks.mark_done(self.get_instance(instance_id))
        self._store.update_instance(instance)
        self._logger.log("task_done", user=instance.user_id, task=instance_id, date=instance.date)
        return instance

    def move_to_next_day(self, instance_id: str) -> Tuple[TaskInstance, TaskInstance]:
        instance = self.get_instance(instance_id)
        next_day_instances = tasks.instances_on(
            self._store.list_instances(), instance.user_id, tasks.next_day(instance.date)
        )
        moved, carried = tasks.move_to_next_day(instance, next_day_instances)
        self._store.move_instance(moved, carried)
        self._logger.log(
            "task_moved",
            user=moved.user_id,
            task=instance_id,
            carried_task=carried.id,
            to_date=carried.date,
            move_count=carried.move_count,
        )
        return moved, carried

    def clear_task_instances(self) -> int:
        removed = self._store.delete_all_instances()
        self._logger.log("tasks_cleared", removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def day_summary(self, user_id: str, day: date) -> DaySummary:
        return stats.day_summary(user_id, day, self._store.list_quotas(), self._store.list_instances())

    def calendar_month(
        self,
        user_id: str,
        year: int,
        month: int,
        *,
        today: date,
        history_start: date,
        titles: Optional[Mapping[str, str]] = None,
    ) -> CalendarMonth:
        return stats.calendar_month(
            user_id,
            year,
            month,
            today=today,
            history_start=history_start,
            quotas=self._store.list_quotas(),
            instances=self._store.list_instances(),
            titles=titles if titles is not None else self.template_titles(),
        )

    def month_stats(self, year: int, month: int) -> MonthStatsReport:
        return stats.month_stats(
            self._store.list_users(),
            year,
            month,
            self._store.list_quotas(),
            self._store.list_instances(),
        )

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------
    def seed_defaults(self) -> bool:
        """Populate the starter household when no users exist yet."""

        if self._store.list_users():
            return False
        for user in DEFAULT_USERS:
            self._store.add_user(replace(user))
        for template in DEFAULT_TEMPLATES:
            self._store.add_template(replace(template, assigned_user_ids=list(template.assigned_user_ids)))
        for quota in DEFAULT_QUOTAS:
            self._store.upsert_quota(replace(quota))
        self._logger.log("defaults_seeded", users=len(DEFAULT_USERS), templates=len(DEFAULT_TEMPLATES))
        return True


__all__ = ["ChoreTracker", "DEFAULT_PASSWORD"]
