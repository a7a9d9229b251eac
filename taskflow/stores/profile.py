"""Profile store: user profile, preferences and password changes."""

import logging
from typing import Any, Dict, Optional

from ..errors import LocalStoreCorruptionError
from ..gateway.remote import RemoteGateway, RequestOptions
from ..storage.local import LocalStore
from ..types import Result, UserProfile
from ..utils.metrics import GatewayMetrics
from ._base import DualBackendStore, payload_field
from .auth import NAME_MAX_LENGTH, NAME_MIN_LENGTH, EMAIL_RE, AuthStore

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "theme": "light",
    "language": "es",
    "notify_tasks": True,
    "notify_due": True,
}

_PROFILE_FIELDS = ("name", "email", "avatar")


def _check_profile_changes(changes: Dict[str, Any]) -> Optional[str]:
    unknown = set(changes) - set(_PROFILE_FIELDS)
    if unknown:
        return f"Unknown profile field(s): {', '.join(sorted(unknown))}"
    if "name" in changes:
        name = str(changes["name"] or "").strip()
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            return f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
    if "email" in changes and not EMAIL_RE.match(str(changes["email"] or "")):
        return "Invalid email address"
    return None


class ProfileStore(DualBackendStore):
    """Profile of the signed-in user.

    ``profile`` holds the last profile returned by either path.
    Preferences are kept in the local store only.
    """

    domain = "profile"

    def __init__(
        self,
        gateway: RemoteGateway,
        local: LocalStore,
        auth: AuthStore,
        metrics: Optional[GatewayMetrics] = None,
    ):
        super().__init__(gateway, local, auth, metrics)
        self._auth_store = auth
        self.profile: Optional[UserProfile] = None

    def _local_profile(self) -> Optional[UserProfile]:
        profile = self._local.read_entity(self._namespace(), UserProfile.from_dict)
        if profile is not None:
            return profile
        return self._auth_store.current_user()

    async def get_profile(self) -> Result:
        async def remote(token: Optional[str]) -> Result:
            result = await self._gateway.fetch_resource("/users/profile", RequestOptions(token=token))
            if not result:
                return result
            return Result.ok(UserProfile.from_dict(payload_field(result.data, "user")))

        def local() -> Result:
            profile = self._local_profile()
            if profile is None:
                return Result.fail("Not authenticated", status_code=401)
            return Result.ok(profile)

        routed = await self._route("get", remote, local)
        if routed.result:
            self.profile = routed.result.data
        return routed.result

    async def update_profile(self, changes: Dict[str, Any]) -> Result:
        """Update name, email or avatar. ``data`` is the updated ``UserProfile``."""
        problem = _check_profile_changes(changes)
        if problem:
            return Result.fail(problem, status_code=400)

        async def remote(token: Optional[str]) -> Result:
            result = await self._gateway.mutate_resource("PUT", "/users/profile", body=changes, token=token)
            if not result:
                return result
            user = UserProfile.from_dict(payload_field(result.data, "user"))
            self._auth_store.replace_user(user)
            return Result.ok(user)

        def local() -> Result:
            current = self._local_profile()
            if current is None:
                return Result.fail("Not authenticated", status_code=401)
            record = current.to_dict()
            record.update(changes)
            user = UserProfile.from_dict(record)
            self._local.write_record(self._namespace(), user.to_dict())
            self._auth_store.update_local_user(user)
            self._auth_store.replace_user(user)
            return Result.ok(user)

        routed = await self._route("update", remote, local)
        if routed.result:
            self.profile = routed.result.data
        return routed.result

    def get_preferences(self) -> Result:
        try:
            stored = self._local.read_record(self._namespace("preferences")) or {}
        except LocalStoreCorruptionError as exc:
            logger.warning(f"Preferences unreadable: {exc}")
            return Result.fail(str(exc))
        return Result.ok({**DEFAULT_PREFERENCES, **stored})

    def update_preferences(self, changes: Dict[str, Any]) -> Result:
        unknown = set(changes) - set(DEFAULT_PREFERENCES)
        if unknown:
            return Result.fail(f"Unknown preference(s): {', '.join(sorted(unknown))}", status_code=400)
        current = self.get_preferences()
        if not current:
            return current
        merged = {**current.data, **changes}
        self._local.write_record(self._namespace("preferences"), merged)
        return Result.ok(merged)

    async def change_password(
        self,
        current_password: str,
        new_password: str,
        confirm_password: Optional[str] = None,
    ) -> Result:
        if confirm_password is None:
            confirm_password = new_password
        if not current_password or not new_password:
            return Result.fail("Current and new password are required", status_code=400)
        if new_password != confirm_password:
            return Result.fail("Passwords do not match", status_code=400)

        body = {
            "currentPassword": current_password,
            "newPassword": new_password,
            "confirmPassword": confirm_password,
        }

        async def remote(token: Optional[str]) -> Result:
            return await self._gateway.mutate_resource(
                "POST", "/auth/change-password", body=body, token=token
            )

        routed = await self._route(
            "change_password",
            remote,
            lambda: self._auth_store.change_local_password(current_password, new_password),
        )
        return routed.result
