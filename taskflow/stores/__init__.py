"""Dual-backend stores: remote service when signed in, local store otherwise.

Usage:
    from taskflow.stores import AuthStore, TaskStore

    auth = AuthStore(gateway, local)
    tasks = TaskStore(gateway, local, auth)
    result = await tasks.list_tasks()
"""

from ._base import AuthCapability, DualBackendStore, Routed
from .auth import AuthStore, PasswordHasher, Pbkdf2Hasher
from .profile import DEFAULT_PREFERENCES, ProfileStore
from .tasks import TaskStore

__all__ = [
    "AuthCapability",
    "AuthStore",
    "DEFAULT_PREFERENCES",
    "DualBackendStore",
    "PasswordHasher",
    "Pbkdf2Hasher",
    "ProfileStore",
    "Routed",
    "TaskStore",
]
