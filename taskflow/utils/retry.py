"""Retry logic for remote calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import RemoteRejectedError, TaskflowError
from ..types import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    The delay before attempt ``n + 1`` is ``base_delay_ms * n`` (linear).
    """
    max_attempts: int = 3
    base_delay_ms: int = 1000
    retryable_errors: tuple = (
        TaskflowError,
        asyncio.TimeoutError,
        ConnectionError,
        OSError,
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt``."""
        return self.base_delay_ms * attempt / 1000.0


async def with_retry(
    attempt: Callable[[int], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Result:
    """
    Run ``attempt(n)`` until it succeeds or attempts are exhausted.

    Args:
        attempt: Async callable receiving the 1-based attempt number
        config: Retry configuration
        on_retry: Optional callback called before each retry (attempt_num, exception)
        sleep: Awaitable delay function (injectable for tests)

    Returns:
        ``Result.ok(value)`` on success, otherwise a failure carrying the
        last error message. Never raises.
    """
    if config is None:
        config = RetryConfig()

    last_exc: Optional[Exception] = None

    for n in range(1, config.max_attempts + 1):
        try:
            value = await attempt(n)
            return Result.ok(value)
        except config.retryable_errors as exc:
            last_exc = exc
            if n == config.max_attempts:
                logger.warning(f"All {config.max_attempts} attempts failed: {exc}")
                break

            delay = config.delay_for(n)
            logger.debug(f"Attempt {n} failed: {exc}, retrying in {delay:.1f}s")
            if on_retry:
                on_retry(n, exc)
            await sleep(delay)
        except Exception as exc:
            logger.warning(f"Attempt {n} failed with non-retryable error: {exc!r}")
            return Result.fail(str(exc) or type(exc).__name__)

    status_code = last_exc.status_code if isinstance(last_exc, RemoteRejectedError) else None
    return Result.fail(str(last_exc) or type(last_exc).__name__, status_code=status_code)
