"""
TaskFlow client: one gateway, one local store and the three domain stores.

Replaces process-wide singletons with an explicit object that owns the
shared cache and in-flight tracker.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from .config import TaskflowConfig
from .gateway import CatalogRefresher, RemoteGateway, TTLCache
from .storage import FileKeyValueBackend, KeyValueBackend, LocalStore
from .stores import AuthStore, PasswordHasher, ProfileStore, TaskStore
from .utils.metrics import GatewayMetrics
from .utils.retry import RetryConfig

logger = logging.getLogger(__name__)


class TaskflowClient:
    """
    Entry point for applications.

    Usage (async):
        async with TaskflowClient.from_config("config.yaml") as client:
            await client.auth.login("ana@example.com", "secret")
            result = await client.tasks.list_tasks()

    Args:
        config: Configuration (defaults apply when omitted)
        backend: Key/value backend for the local store (files under
            ``config.data_dir`` by default)
        transport: httpx transport for the gateway, e.g. ``httpx.MockTransport``
        hasher: Password hasher for the local user registry
    """

    def __init__(
        self,
        config: Optional[TaskflowConfig] = None,
        backend: Optional[KeyValueBackend] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        hasher: Optional[PasswordHasher] = None,
        **gateway_kwargs: Any,
    ):
        self.config = config or TaskflowConfig()
        self._metrics = GatewayMetrics(
            enabled=self.config.metrics_enabled,
            backend_type=self.config.metrics_type,
            port=self.config.metrics_port,
        )

        self.gateway = RemoteGateway(
            self.config.base_url,
            self.config.data_url,
            timeout=float(self.config.timeout),
            retry=RetryConfig(
                max_attempts=self.config.retry_attempts,
                base_delay_ms=self.config.retry_delay_ms,
            ),
            cache=TTLCache(
                timeout_ms=self.config.cache_timeout_ms,
                max_size=self.config.cache_max_size,
            ),
            cache_enabled=self.config.cache_enabled,
            metrics=self._metrics,
            transport=transport,
            **gateway_kwargs,
        )

        if backend is None:
            backend = FileKeyValueBackend(self.config.get_data_dir())
        self.local = LocalStore(backend)

        self.auth = AuthStore(self.gateway, self.local, hasher=hasher, metrics=self._metrics)
        self.tasks = TaskStore(self.gateway, self.local, self.auth, self._metrics)
        self.profile = ProfileStore(self.gateway, self.local, self.auth, self._metrics)

        self._refresher: Optional[CatalogRefresher] = None
        if self.config.refresh_interval > 0:
            self._refresher = CatalogRefresher(self.gateway, self.config.refresh_interval)
        logger.debug(f"TaskflowClient ready (environment: {self.config.environment}, api: {self.config.base_url})")

    @classmethod
    def from_config(cls, config_path: Union[str, Path], **kwargs: Any) -> "TaskflowClient":
        """
        Create a client from a YAML configuration file.

        Args:
            config_path: Path to YAML config file
            **kwargs: Passed through to the constructor

        Returns:
            Configured TaskflowClient instance
        """
        return cls(config=TaskflowConfig.load(str(config_path)), **kwargs)

    @property
    def refresher(self) -> Optional[CatalogRefresher]:
        return self._refresher

    async def start(self) -> None:
        """Start the metrics endpoint and background catalog refresh, if configured."""
        self._metrics.start_server()
        if self._refresher is not None:
            self._refresher.start()

    async def aclose(self) -> None:
        if self._refresher is not None:
            await self._refresher.stop()
        await self.gateway.aclose()

    async def __aenter__(self) -> "TaskflowClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def metrics(self) -> Dict[str, Any]:
        """Counters and histograms collected by the gateway and the stores."""
        return self._metrics.get_all()

    def status(self) -> Dict[str, Any]:
        """Snapshot for diagnostics: session, cache and metrics."""
        user = self.auth.current_user()
        return {
            "environment": self.config.environment,
            "authenticated": self.auth.is_authenticated(),
            "user": user.email if user else None,
            "cache": self.gateway.cache_stats(),
            "metrics": self.metrics(),
        }
