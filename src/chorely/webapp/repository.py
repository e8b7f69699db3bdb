"""SQL-backed :class:`~chorely.store.TaskStore` built on SQLModel sessions."""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import Session, desc, select

from ..models import DailyQuota, TaskInstance, TaskTemplate, User
from .persistence import (
    DailyQuotaRecord,
    TaskInstanceRecord,
    TaskTemplateRecord,
    TemplateAssignment,
    UserRecord,
    engine as default_engine,
)


def _to_user(row: UserRecord) -> User:
    return User(id=row.id, name=row.name, login=row.login, role=row.role)


def _to_instance(row: TaskInstanceRecord) -> TaskInstance:
    return TaskInstance(
        id=row.id,
        user_id=row.user_id,
        template_id=row.template_id,
        date=row.date,
        status=row.status,
        move_count=row.move_count or 0,
    )


class SqlStore:
    """Persist the Chorely collections in the SQLite database."""

    def __init__(self, engine: Optional[Engine] = None) -> None:
        self.engine = engine if engine is not None else default_engine

    # Users ---------------------------------------------------------------
    def list_users(self) -> List[User]:
        with Session(self.engine) as session:
            rows = session.exec(select(UserRecord).order_by(UserRecord.name)).all()
            return [_to_user(row) for row in rows]

    def get_user(self, user_id: str) -> Optional[User]:
        with Session(self.engine) as session:
            row = session.get(UserRecord, user_id)
            return _to_user(row) if row else None

    def add_user(self, user: User) -> None:
        with Session(self.engine) as session:
            session.add(UserRecord(id=user.id, name=user.name, login=user.login, role=user.role.value))
            session.commit()

    def update_user(self, user: User) -> None:
        with Session(self.engine) as session:
            row = session.get(UserRecord, user.id)
            if row is None:
                return
            row.name = user.name
            row.login = user.login
            row.role = user.role.value
            session.add(row)
            session.commit()

    def delete_user(self, user_id: str) -> None:
        with Session(self.engine) as session:
            session.exec(delete(TemplateAssignment).where(TemplateAssignment.user_id == user_id))
            session.exec(delete(DailyQuotaRecord).where(DailyQuotaRecord.user_id == user_id))
            session.exec(delete(TaskInstanceRecord).where(TaskInstanceRecord.user_id == user_id))
            row = session.get(UserRecord, user_id)
            if row:
                session.delete(row)
            session.commit()

    # Templates -----------------------------------------------------------
    def _assignments(self, session: Session) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = defaultdict(list)
        rows = session.exec(select(TemplateAssignment).order_by(TemplateAssignment.id)).all()
        for row in rows:
            grouped[row.task_template_id].append(row.user_id)
        return grouped

    def list_templates(self) -> List[TaskTemplate]:
        with Session(self.engine) as session:
            rows = session.exec(select(TaskTemplateRecord).order_by(TaskTemplateRecord.title)).all()
            assigned = self._assignments(session)
            return [
                TaskTemplate(
                    id=row.id,
                    title=row.title,
                    condition=row.condition or None,
                    active=row.active,
                    assigned_user_ids=list(assigned.get(row.id, [])),
                )
                for row in rows
            ]

    def get_template(self, template_id: str) -> Optional[TaskTemplate]:
        with Session(self.engine) as session:
            row = session.get(TaskTemplateRecord, template_id)
            if row is None:
                return None
            user_ids = session.exec(
                select(TemplateAssignment.user_id)
                .where(TemplateAssignment.task_template_id == template_id)
                .order_by(TemplateAssignment.id)
            ).all()
            return TaskTemplate(
                id=row.id,
                title=row.title,
                condition=row.condition or None,
                active=row.active,
                assigned_user_ids=list(user_ids),
            )

    def _replace_assignments(self, session: Session, template: TaskTemplate) -> None:
        session.exec(delete(TemplateAssignment).where(TemplateAssignment.task_template_id == template.id))
        for user_id in template.assigned_user_ids:
            session.add(TemplateAssignment(task_template_id=template.id, user_id=user_id))

    def add_template(self, template: TaskTemplate) -> None:
        with Session(self.engine) as session:
            session.add(
                TaskTemplateRecord(
                    id=template.id,
                    title=template.title,
                    condition=template.condition,
                    active=template.active,
                )
            )
            self._replace_assignments(session, template)
            session.commit()

    def update_template(self, template: TaskTemplate) -> None:
        with Session(self.engine) as session:
            row = session.get(TaskTemplateRecord, template.id)
            if row is None:
                return
            row.title = template.title
            row.condition = template.condition
            row.active = template.active
            session.add(row)
            self._replace_assignments(session, template)
            session.commit()

    # Quotas --------------------------------------------------------------
    def list_quotas(self) -> List[DailyQuota]:
        with Session(self.engine) as session:
            rows = session.exec(select(DailyQuotaRecord)).all()
            return [
                DailyQuota(user_id=row.user_id, weekday=row.weekday, tasks_required=row.tasks_required)
                for row in rows
            ]

    def upsert_quota(self, quota: DailyQuota) -> None:
        with Session(self.engine) as session:
            row = session.exec(
                select(DailyQuotaRecord).where(
                    DailyQuotaRecord.user_id == quota.user_id,
                    DailyQuotaRecord.weekday == quota.weekday,
                )
            ).first()
            if row:
                row.tasks_required = quota.tasks_required
            else:
                row = DailyQuotaRecord(
                    user_id=quota.user_id,
                    weekday=quota.weekday,
                    tasks_required=quota.tasks_required,
                )
            session.add(row)
            session.commit()

    # Instances -----------------------------------------------------------
    def list_instances(self) -> List[TaskInstance]:
        with Session(self.engine) as session:
            rows = session.exec(select(TaskInstanceRecord).order_by(desc(TaskInstanceRecord.date))).all()
            return [_to_instance(row) for row in rows]

    def get_instance(self, instance_id: str) -> Optional[TaskInstance]:
        with Session(self.engine) as session:
            row = session.get(TaskInstanceRecord, instance_id)
            return _to_instance(row) if row else None

    def _add_instance_row(self, session: Session, instance: TaskInstance) -> None:
        session.add(
            TaskInstanceRecord(
                id=instance.id,
                user_id=instance.user_id,
                template_id=instance.template_id,
                date=instance.date,
                status=instance.status.value,
                move_count=instance.move_count,
            )
        )

    def _update_instance_row(self, session: Session, instance: TaskInstance) -> bool:
        row = session.get(TaskInstanceRecord, instance.id)
        if row is None:
            return False
        row.status = instance.status.value
        row.move_count = instance.move_count
        row.date = instance.date
        session.add(row)
        return True

    def add_instance(self, instance: TaskInstance) -> None:
        with Session(self.engine) as session:
            self._add_instance_row(session, instance)
            session.commit()

    def update_instance(self, instance: TaskInstance) -> None:
        with Session(self.engine) as session:
            if self._update_instance_row(session, instance):
                session.commit()

    def move_instance(self, moved: TaskInstance, carried: TaskInstance) -> None:
        # Both rows land in one commit; a failure leaves the original pending.
        with Session(self.engine) as session:
            self._update_instance_row(session, moved)
            self._add_instance_row(session, carried)
            session.commit()

    def delete_all_instances(self) -> int:
        with Session(self.engine) as session:
            ids = session.exec(select(TaskInstanceRecord.id)).all()
            session.exec(delete(TaskInstanceRecord))
            session.commit()
            return len(ids)


__all__ = ["SqlStore"]
