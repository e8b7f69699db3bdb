"""Storage contract for Chorely and an in-memory implementation."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional, Protocol, Tuple

from .models import DailyQuota, TaskInstance, TaskTemplate, User


class TaskStore(Protocol):
    """Request/response datastore holding the four Chorely collections.

    Reads return detached copies; callers persist changes with the matching
    ``update_*`` call.
    """

    def list_users(self) -> List[User]: ...
    def get_user(self, user_id: str) -> Optional[User]: ...
    def add_user(self, user: User) -> None: ...
    def update_user(self, user: User) -> None: ...
    def delete_user(self, user_id: str) -> None: ...

    def list_templates(self) -> List[TaskTemplate]: ...
    def get_template(self, template_id: str) -> Optional[TaskTemplate]: ...
    def add_template(self, template: TaskTemplate) -> None: ...
    def update_template(self, template: TaskTemplate) -> None: ...

    def list_quotas(self) -> List[DailyQuota]: ...
    def upsert_quota(self, quota: DailyQuota) -> None: ...

    def list_instances(self) -> List[TaskInstance]: ...
    def get_instance(self, instance_id: str) -> Optional[TaskInstance]: ...
    def add_instance(self, instance: TaskInstance) -> None: ...
    def update_instance(self, instance: TaskInstance) -> None: ...
    def move_instance(self, moved: TaskInstance, carried: TaskInstance) -> None: ...
    def delete_all_instances(self) -> int: ...


def _copy_template(template: TaskTemplate) -> TaskTemplate:
    return replace(template, assigned_user_ids=list(template.assigned_user_ids))


class MemoryStore:
    """Keep every collection in process memory; used by tests and scripts."""

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._templates: Dict[str, TaskTemplate] = {}
        self._quotas: Dict[Tuple[str, int], DailyQuota] = {}
        self._instances: Dict[str, TaskInstance] = {}

    # Users ---------------------------------------------------------------
    def list_users(self) -> List[User]:
        return sorted((replace(user) for user in self._users.values()), key=lambda user: user.name)

    def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return replace(user) if user else None

    def add_user(self, user: User) -> None:
        self._users[user.id] = replace(user)

    def update_user(self, user: User) -> None:
        self._users[user.id] = replace(user)

    def delete_user(self, user_id: str) -> None:
        for template in self._templates.values():
            if user_id in template.assigned_user_ids:
                template.assigned_user_ids = [uid for uid in template.assigned_user_ids if uid != user_id]
        for key in [key for key in self._quotas if key[0] == user_id]:
            del self._quotas[key]
        for inst_id in [inst.id for inst in self._instances.values() if inst.user_id == user_id]:
            del self._instances[inst_id]
        self._users.pop(user_id, None)

    # Templates -----------------------------------------------------------
    def list_templates(self) -> List[TaskTemplate]:
        return sorted((_copy_template(tpl) for tpl in self._templates.values()), key=lambda tpl: tpl.title)

    def get_template(self, template_id: str) -> Optional[TaskTemplate]:
        template = self._templates.get(template_id)
        return _copy_template(template) if template else None

    def add_template(self, template: TaskTemplate) -> None:
        self._templates[template.id] = _copy_template(template)

    def update_template(self, template: TaskTemplate) -> None:
        self._templates[template.id] = _copy_template(template)

    # Quotas --------------------------------------------------------------
    def list_quotas(self) -> List[DailyQuota]:
        return [replace(quota) for quota in self._quotas.values()]

    def upsert_quota(self, quota: DailyQuota) -> None:
        self._quotas[(quota.user_id, quota.weekday)] = replace(quota)

    # Instances -----------------------------------------------------------
    def list_instances(self) -> List[TaskInstance]:
        return sorted(
            (replace(inst) for inst in self._instances.values()),
            key=lambda inst: inst.date,
            reverse=True,
        )

    def get_instance(self, instance_id: str) -> Optional[TaskInstance]:
        inst = self._instances.get(instance_id)
        return replace(inst) if inst else None

    def add_instance(self, instance: TaskInstance) -> None:
        self._instances[instance.id] = replace(instance)

    def update_instance(self, instance: TaskInstance) -> None:
        self._instances[instance.id] = replace(instance)

    def move_instance(self, moved: TaskInstance, carried: TaskInstance) -> None:
        self._instances.update({moved.id: replace(moved), carried.id: replace(carried)})

    def delete_all_instances(self) -> int:
        removed = len(self._instances)
        self._instances.clear()
        return removed


__all__ = ["MemoryStore", "TaskStore"]
