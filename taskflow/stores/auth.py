"""Authentication store.

Owns the current session and answers the capability question every other
store asks before choosing a path. Remote login/registration yields a bearer
token; when the service is unreachable the local user registry is used and
the resulting session has no token, so it never unlocks the remote path.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import re
import secrets
import time
import uuid
from typing import Any, Dict, List, Optional, Protocol

from ..errors import LocalStoreCorruptionError
from ..gateway.remote import RemoteGateway, RequestOptions
from ..storage.local import LocalStore
from ..types import Result, Session, UserProfile, utc_now_iso
from ..utils.metrics import GatewayMetrics
from ._base import DualBackendStore, payload_field

logger = logging.getLogger(__name__)

USERS_KEY = "users"
TOKEN_KEY = "taskflow_token"
USER_KEY = "taskflow_user"

# A token is "expiring soon" inside this window.
EXPIRY_WINDOW_SECONDS = 60 * 60

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class PasswordHasher(Protocol):
    """Hashes and verifies passwords for the local user registry."""

    def hash(self, password: str) -> str:
        ...

    def verify(self, password: str, encoded: str) -> bool:
        ...


class Pbkdf2Hasher:
    """PBKDF2-SHA256 hasher, encoded as ``pbkdf2_sha256$<iterations>$<salt>$<hash>``."""

    algorithm = "pbkdf2_sha256"

    def __init__(self, iterations: int = 260_000):
        self.iterations = iterations

    def _derive(self, password: str, salt: str, iterations: int) -> str:
        digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
        return base64.b64encode(digest).decode("ascii")

    def hash(self, password: str) -> str:
        salt = secrets.token_hex(16)
        return f"{self.algorithm}${self.iterations}${salt}${self._derive(password, salt, self.iterations)}"

    def verify(self, password: str, encoded: str) -> bool:
        try:
            algorithm, iterations, salt, expected = encoded.split("$", 3)
            rounds = int(iterations)
        except (AttributeError, ValueError):
            return False
        if algorithm != self.algorithm:
            return False
        return hmac.compare_digest(self._derive(password, salt, rounds), expected)


def validate_registration(name: str, email: str, password: str, confirm_password: str) -> List[str]:
    """Problems with a registration form; empty when it is acceptable."""
    errors = []
    name = (name or "").strip()
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        errors.append(f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")
    if not EMAIL_RE.match(email or ""):
        errors.append("Invalid email address")
    if not password:
        errors.append("Password is required")
    elif password != confirm_password:
        errors.append("Passwords do not match")
    return errors


def token_expiry(token: str) -> Optional[float]:
    """``exp`` claim of a JWT as a Unix timestamp, or None when unreadable."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError):
        return None
    exp = claims.get("exp") if isinstance(claims, dict) else None
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


def _registry_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Check a registry entry decodes as a user; keep the raw record (it holds the hash)."""
    UserProfile.from_dict(record)
    return record


class AuthStore(DualBackendStore):
    """Session owner and ``AuthCapability`` for the other stores.

    Args:
        gateway: Remote gateway.
        local: Local store holding the user registry and the saved session.
        hasher: Password hasher for the local registry.
        metrics: Metrics sink (defaults to the gateway's).
    """

    domain = "auth"

    def __init__(
        self,
        gateway: RemoteGateway,
        local: LocalStore,
        hasher: Optional[PasswordHasher] = None,
        metrics: Optional[GatewayMetrics] = None,
    ):
        super().__init__(gateway, local, self, metrics)
        self._hasher = hasher or Pbkdf2Hasher()
        self._session: Optional[Session] = None
        self._restore_session()

    # === Capability ===

    def is_authenticated(self) -> bool:
        return self._session is not None and self._session.is_remote

    def current_credential(self) -> Optional[str]:
        return self._session.token if self._session else None

    def current_user(self) -> Optional[UserProfile]:
        return self._session.user if self._session else None

    def current_user_id(self) -> Optional[str]:
        return self._session.user.id if self._session else None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def invalidate_credential(self) -> None:
        """Forget a token the service rejected; the user stays signed in locally."""
        if self._session is None:
            return
        self._session.token = None
        self._local.remove(TOKEN_KEY)

    # === Session persistence ===

    def _restore_session(self) -> None:
        try:
            user = self._local.read_entity(USER_KEY, UserProfile.from_dict)
            token = self._local.read_text(TOKEN_KEY) if user is not None else None
        except LocalStoreCorruptionError as exc:
            logger.error(f"Saved session not restored: {exc}")
            return
        if user is None:
            return
        self._session = Session(user=user, token=token or None)
        logger.debug(f"Restored session for {user.email} (remote={self._session.is_remote})")

    def _start_session(self, user: UserProfile, token: Optional[str]) -> Session:
        self._session = Session(user=user, token=token)
        self._local.write_record(USER_KEY, user.to_dict())
        if token:
            self._local.write_text(TOKEN_KEY, token)
        else:
            self._local.remove(TOKEN_KEY)
        return self._session

    def _end_session(self) -> None:
        self._session = None
        self._local.remove(TOKEN_KEY)
        self._local.remove(USER_KEY)

    def replace_user(self, user: UserProfile) -> None:
        """Swap in an updated user record for the current session."""
        if self._session is None:
            return
        self._session.user = user
        self._local.write_record(USER_KEY, user.to_dict())

    # === Local user registry ===

    def _users(self) -> List[Dict[str, Any]]:
        return self._local.read_entities(USERS_KEY, _registry_record)

    def _find_user(self, users: List[Dict[str, Any]], email: str) -> Optional[Dict[str, Any]]:
        wanted = email.strip().lower()
        for record in users:
            if str(record.get("email", "")).lower() == wanted:
                return record
        return None

    def _local_register(self, name: str, email: str, password: str) -> Result:
        users = self._users()
        if self._find_user(users, email) is not None:
            return Result.fail("Email already registered", status_code=409)
        now = utc_now_iso()
        record = {
            "id": uuid.uuid4().hex,
            "name": name.strip(),
            "email": email.strip().lower(),
            "role": "user",
            "passwordHash": self._hasher.hash(password),
            "createdAt": now,
            "lastLogin": now,
        }
        self._local.write_collection(USERS_KEY, users + [record])
        return Result.ok(self._start_session(UserProfile.from_dict(record), None))

    def _local_login(self, email: str, password: str) -> Result:
        users = self._users()
        record = self._find_user(users, email)
        if record is None or not self._hasher.verify(password, record.get("passwordHash", "")):
            return Result.fail("Invalid email or password", status_code=401)
        record["lastLogin"] = utc_now_iso()
        self._local.write_collection(USERS_KEY, users)
        return Result.ok(self._start_session(UserProfile.from_dict(record), None))

    def update_local_user(self, user: UserProfile) -> None:
        """Copy profile fields into the registry entry for ``user``, if any."""
        users = self._users()
        for record in users:
            if record.get("id") == user.id:
                record.update(name=user.name, email=user.email, avatar=user.avatar)
                self._local.write_collection(USERS_KEY, users)
                return

    def change_local_password(self, current: str, new: str) -> Result:
        """Change the current user's password in the local registry."""
        user_id = self.current_user_id()
        if user_id is None:
            return Result.fail("Not authenticated", status_code=401)
        users = self._users()
        for record in users:
            if record.get("id") == user_id:
                if not self._hasher.verify(current, record.get("passwordHash", "")):
                    return Result.fail("Current password is incorrect", status_code=400)
                record["passwordHash"] = self._hasher.hash(new)
                self._local.write_collection(USERS_KEY, users)
                return Result.ok({"message": "Password changed successfully"})
        return Result.fail("User not found in local registry", status_code=404)

    # === Remote path ===

    def _session_from_payload(self, data: Any) -> Session:
        if not isinstance(data, dict) or not isinstance(data.get("token"), str):
            raise ValueError("auth response has no token")
        return self._start_session(UserProfile.from_dict(data.get("user")), data["token"])

    # === Public operations ===

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        confirm_password: Optional[str] = None,
    ) -> Result:
        """Create an account and sign in. ``data`` is the new ``Session``."""
        if confirm_password is None:
            confirm_password = password
        problems = validate_registration(name, email, password, confirm_password)
        if problems:
            return Result.fail("; ".join(problems), status_code=400)

        body = {
            "name": name.strip(),
            "email": email.strip(),
            "password": password,
            "confirmPassword": confirm_password,
        }

        async def remote(_token: Optional[str]) -> Result:
            result = await self._gateway.mutate_resource("POST", "/auth/register", body=body)
            if not result:
                return result
            return Result.ok(self._session_from_payload(result.data))

        routed = await self._route(
            "register",
            remote,
            lambda: self._local_register(name, email, password),
            require_session=False,
        )
        if routed.result:
            logger.info(f"Registered {email} ({routed.backend.value})")
        return routed.result

    async def login(self, email: str, password: str) -> Result:
        """Sign in. ``data`` is the new ``Session``."""
        if not email or not password:
            return Result.fail("Email and password are required", status_code=400)

        async def remote(_token: Optional[str]) -> Result:
            result = await self._gateway.mutate_resource(
                "POST", "/auth/login", body={"email": email, "password": password}
            )
            if not result:
                return result
            return Result.ok(self._session_from_payload(result.data))

        routed = await self._route(
            "login",
            remote,
            lambda: self._local_login(email, password),
            require_session=False,
        )
        if routed.result:
            logger.info(f"Logged in as {email} ({routed.backend.value})")
        return routed.result

    async def logout(self) -> Result:
        """End the session. The remote call is best effort; local state is always cleared."""
        if self.is_authenticated():
            result = await self._gateway.mutate_resource(
                "POST", "/auth/logout", token=self.current_credential()
            )
            if not result:
                logger.warning(f"Remote logout failed: {result.error}")
        self._end_session()
        return Result.ok(None)

    async def current_user_info(self) -> Result:
        """The signed-in user, re-read from the service when possible."""
        async def remote(token: Optional[str]) -> Result:
            result = await self._gateway.fetch_resource("/auth/me", RequestOptions(token=token))
            if not result:
                return result
            user = UserProfile.from_dict(payload_field(result.data, "user"))
            self.replace_user(user)
            return Result.ok(user)

        def local() -> Result:
            user = self.current_user()
            if user is None:
                return Result.fail("Not authenticated", status_code=401)
            return Result.ok(user)

        routed = await self._route("me", remote, local)
        return routed.result

    def is_token_expiring_soon(self, now: Optional[float] = None) -> bool:
        """True when the bearer token expires within the next hour.

        Tokens without a readable ``exp`` claim report False.
        """
        token = self.current_credential()
        if not token:
            return False
        expiry = token_expiry(token)
        if expiry is None:
            return False
        now = time.time() if now is None else now
        return expiry - now < EXPIRY_WINDOW_SECONDS

    async def refresh_token_if_needed(self, now: Optional[float] = None) -> bool:
        """Re-validate an expiring token against the service.

        Returns True while the session is usable; a failed re-validation
        logs the user out and returns False.
        """
        if not self.is_authenticated():
            return False
        if not self.is_token_expiring_soon(now):
            return True
        result = await self._gateway.fetch_resource(
            "/auth/me", RequestOptions(token=self.current_credential())
        )
        if result:
            return True
        logger.warning(f"Token re-validation failed ({result.error}), logging out")
        await self.logout()
        return False
