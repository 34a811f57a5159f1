"""
Users API.

Wraps the /users endpoints and provides UserDirectory, a per-request
id -> display name cache used to label leave requests.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from leave_portal.clients.base import BackendClient
from leave_portal.core.exceptions import AuthenticationExpiredError, PortalError
from leave_portal.schemas.auth import User
from leave_portal.services.mapping import map_list, map_user

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown User"


class UsersApi:
    """Client for user profiles."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def list_users(self) -> list[User]:
        payload = await self._backend.get("/users")
        return map_list(payload, map_user)

    async def get_user(self, user_id: str) -> User:
        payload = await self._backend.get(f"/users/{user_id}")
        return map_user(payload or {})

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> User:
        """PATCH /users/{id} with the changed fields only."""
        payload = await self._backend.patch(f"/users/{user_id}", json=changes)
        return map_user(payload or {})


class UserDirectory:
    """
    Resolves user ids to display names.

    Lookups are cached for the lifetime of the instance. A failed lookup is
    cached as "Unknown User" so it is not retried on the same page.
    """

    def __init__(self, users: UsersApi) -> None:
        self._users = users
        self._names: dict[str, str] = {}

    def name(self, user_id: str) -> str:
        return self._names.get(user_id, UNKNOWN_USER)

    async def _fetch(self, user_id: str) -> None:
        try:
            user = await self._users.get_user(user_id)
        except AuthenticationExpiredError:
            raise
        except PortalError as e:
            logger.warning(f"Failed to fetch user {user_id}: {e.message}")
            self._names[user_id] = UNKNOWN_USER
            return
        self._names[user_id] = user.full_name or user.email or UNKNOWN_USER

    async def resolve(self, user_ids: Iterable[str]) -> dict[str, str]:
        """
        Look up every id not yet cached, concurrently.

        Returns:
            Mapping of each requested id to its display name.
        """
        unique_ids = list(dict.fromkeys(uid for uid in user_ids if uid))
        missing = [uid for uid in unique_ids if uid not in self._names]
        if missing:
            await asyncio.gather(*(self._fetch(uid) for uid in missing))
        return {uid: self._names[uid] for uid in unique_ids}
