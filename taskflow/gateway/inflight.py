"""In-flight request tracking — collapses concurrent identical requests."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Mapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def make_request_key(url: str, options: Mapping[str, Any] | None = None) -> str:
    """Stable dedup key for ``url`` plus call options.

    Options are serialized with sorted keys, so two calls whose options
    differ only in key order collapse into one.
    """
    canonical = json.dumps(options or {}, sort_keys=True, separators=(",", ":"), default=str)
    return f"{url}-{canonical}"


class InFlightTracker:
    """At most one outstanding call per key; later callers join it.

    The registration is dropped by a done-callback on the shared task, so it
    is released on every exit path (result, exception, cancellation) before
    any waiting caller resumes.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task] = {}
        self._joins = 0

    def __contains__(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def joins(self) -> int:
        """How many callers were served by an already running call."""
        return self._joins

    async def dedupe(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is not None:
            self._joins += 1
            logger.debug(f"Joining in-flight request {key}")
        else:
            task = asyncio.ensure_future(producer())
            self._pending[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))

        # Shielded so one caller giving up does not cancel the others' call.
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
