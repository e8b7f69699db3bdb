"""Chorely web application package.

The SQLModel tables and the SQL store import eagerly; the FastAPI
application is loaded on first attribute access so maintenance scripts can
use the database without building the app.
"""
from __future__ import annotations

from importlib import import_module
from types import ModuleType
from typing import Any, List

from . import persistence
from .repository import SqlStore

_IMPL_MODULE: ModuleType | None = None

__all__: List[str] = [*getattr(persistence, "__all__", ()), "SqlStore"]


def _load_impl() -> ModuleType:
    global _IMPL_MODULE
    if _IMPL_MODULE is not None:
        return _IMPL_MODULE
    module = import_module(".application", __name__)
    _IMPL_MODULE = module
    __all__.extend(name for name in getattr(module, "__all__", ()) if name not in __all__)
    return module


def __getattr__(name: str) -> Any:
    if hasattr(persistence, name):
        return getattr(persistence, name)
    if name.startswith("__"):
        raise AttributeError(name)
    return getattr(_load_impl(), name)


def __dir__() -> List[str]:
    return sorted(set(globals()) | set(__all__) | set(dir(_load_impl())))
