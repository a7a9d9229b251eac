"""Periodic background refresh of the cached catalog documents."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

if TYPE_CHECKING:
    from .remote import RemoteGateway

logger = logging.getLogger(__name__)


class CatalogRefresher:
    """Re-fetches categories, templates and statistics every ``interval`` seconds.

    Usage:
        refresher = CatalogRefresher(gateway, interval=600)
        refresher.start()
        ...
        await refresher.stop()
    """

    def __init__(
        self,
        gateway: "RemoteGateway",
        interval: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be greater than 0")
        self._gateway = gateway
        self._interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._runs = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def runs(self) -> int:
        return self._runs

    async def refresh_once(self) -> dict[str, bool]:
        """Refresh every catalog document; returns per-document success."""
        from .remote import CATALOG_DOCUMENTS

        outcome = {}
        for key in CATALOG_DOCUMENTS:
            outcome[key] = await self._gateway.refresh_catalog(key)
        self._runs += 1
        return outcome

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.debug(f"Started catalog refresh task (interval: {self._interval}s)")

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _loop(self) -> None:
        while True:
            try:
                await self._sleep(self._interval)
                outcome = await self.refresh_once()
                failed = [k for k, ok in outcome.items() if not ok]
                if failed:
                    logger.warning(f"Catalog refresh incomplete: {', '.join(failed)}")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Catalog refresh error: {e}")
