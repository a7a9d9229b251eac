"""Dual-backend routing shared by the task, profile and auth stores.

Every operation is decided independently:

1. If the operation needs a session and none is present, go local.
2. Otherwise call the remote path. Success -> the remote result is the outcome.
3. Any remote failure (transport, rejection, undecodable payload) -> run the
   local path and use its result instead.

``_route`` returns a ``Routed`` value naming the path that produced the
result, so each domain store consumes one shape instead of repeating
try/except fallbacks.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

from ..errors import LocalStoreCorruptionError, TaskflowError, TransportError
from ..gateway.remote import RemoteGateway
from ..storage.local import LocalStore, namespace_key
from ..types import Backend, Result
from ..utils.metrics import GatewayMetrics

logger = logging.getLogger(__name__)

# Remote callables get the bearer token (None for session-less calls).
RemoteCall = Callable[[Optional[str]], Awaitable[Result]]
LocalCall = Callable[[], Result]

# Statuses that mean the stored credential is no longer accepted.
_CREDENTIAL_REJECTED = (401, 403)


def payload_field(data: Any, name: str) -> Any:
    """``data[name]`` from a decoded response body (None when absent).

    Raises:
        TransportError: If the body is not a JSON object.
    """
    if not isinstance(data, dict):
        raise TransportError(f"expected a JSON object with '{name}', got {type(data).__name__}")
    return data.get(name)


class AuthCapability(Protocol):
    """What a store needs to know about the current session."""

    def is_authenticated(self) -> bool:
        """True when a remote credential is present."""
        ...

    def current_credential(self) -> Optional[str]:
        ...

    def current_user_id(self) -> Optional[str]:
        ...

    def invalidate_credential(self) -> None:
        """Drop a credential the remote service rejected."""
        ...


@dataclass
class Routed:
    """Outcome of one routed operation."""
    backend: Backend
    result: Result
    remote_error: Optional[str] = None

    @property
    def fell_back(self) -> bool:
        return self.backend is Backend.LOCAL and self.remote_error is not None


class DualBackendStore:
    """Base class for stores that prefer the remote service and fall back locally."""

    domain = "store"

    def __init__(
        self,
        gateway: RemoteGateway,
        local: LocalStore,
        auth: AuthCapability,
        metrics: Optional[GatewayMetrics] = None,
    ):
        self._gateway = gateway
        self._local = local
        self._auth = auth
        self._metrics = metrics or gateway.metrics

    @property
    def gateway(self) -> RemoteGateway:
        return self._gateway

    @property
    def local(self) -> LocalStore:
        return self._local

    def _namespace(self, prefix: Optional[str] = None) -> str:
        return namespace_key(prefix or self.domain, self._auth.current_user_id())

    async def _route(
        self,
        operation: str,
        remote: Optional[RemoteCall],
        local: LocalCall,
        require_session: bool = True,
    ) -> Routed:
        remote_error: Optional[str] = None

        use_remote = remote is not None and (not require_session or self._auth.is_authenticated())
        if use_remote:
            token = self._auth.current_credential() if require_session else None
            try:
                result = await remote(token)
            except (TaskflowError, ValueError, KeyError, TypeError) as exc:
                result = Result.fail(f"Malformed response: {exc}")

            if result:
                return Routed(Backend.REMOTE, result)

            remote_error = result.error
            if require_session and result.status_code in _CREDENTIAL_REJECTED:
                logger.warning(f"Credential rejected by remote service ({result.status_code})")
                self._auth.invalidate_credential()
            logger.warning(f"{self.domain}.{operation}: remote failed ({remote_error}), using local store")
            self._metrics.record_fallback(self.domain)

        try:
            result = local()
        except LocalStoreCorruptionError as exc:
            result = Result.fail(str(exc))
        return Routed(Backend.LOCAL, result, remote_error)
