"""
TaskFlow — resilient data-access layer for the TaskFlow task manager.

Reads go through a TTL cache, identical concurrent requests share one
network exchange, and failed requests are retried with linear backoff.
Every domain store (tasks, profile, authentication) uses the remote service
while the user is signed in and falls back to a local persistent store when
they are not or when the service fails.

Basic Usage:
    import asyncio
    from taskflow import TaskflowClient

    async def main():
        async with TaskflowClient() as client:
            await client.auth.login("ana@example.com", "secret")
            result = await client.tasks.list_tasks()
            if result:
                for task in result.data:
                    print(task.title)

    asyncio.run(main())

Gateway Only:
    from taskflow import RemoteGateway

    async with RemoteGateway("http://localhost:3000/api") as gateway:
        templates = await gateway.search_templates("meeting")
"""

__version__ = "1.0.0"

from .client import TaskflowClient
from .config import TaskflowConfig
from .errors import (
    LocalStoreCorruptionError,
    RemoteRejectedError,
    TaskflowError,
    TransportError,
)
from .gateway import (
    CatalogRefresher,
    InFlightTracker,
    RemoteGateway,
    RequestOptions,
    TTLCache,
    make_request_key,
)
from .storage import FileKeyValueBackend, LocalStore, MemoryKeyValueBackend
from .stores import AuthStore, Pbkdf2Hasher, ProfileStore, Routed, TaskStore
from .types import (
    Backend,
    Result,
    Session,
    Task,
    TaskPriority,
    TaskStatus,
    UserProfile,
)
from .utils import GatewayMetrics, RetryConfig, setup_logging, with_retry

__all__ = [
    "__version__",
    # Client
    "TaskflowClient",
    "TaskflowConfig",
    # Types
    "Backend",
    "Result",
    "Session",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "UserProfile",
    # Gateway
    "CatalogRefresher",
    "InFlightTracker",
    "RemoteGateway",
    "RequestOptions",
    "TTLCache",
    "make_request_key",
    # Storage and stores
    "FileKeyValueBackend",
    "LocalStore",
    "MemoryKeyValueBackend",
    "AuthStore",
    "Pbkdf2Hasher",
    "ProfileStore",
    "Routed",
    "TaskStore",
    # Errors
    "LocalStoreCorruptionError",
    "RemoteRejectedError",
    "TaskflowError",
    "TransportError",
    # Utilities
    "GatewayMetrics",
    "RetryConfig",
    "setup_logging",
    "with_retry",
]
