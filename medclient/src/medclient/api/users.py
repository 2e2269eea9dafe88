from __future__ import annotations

from typing import Any, Optional

from .base import ResourceApi


class UsersApi(ResourceApi):
    async def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        """Return ``{"users": [...], "pagination": {...}}``."""
        params = {"search": search, "role": role, "page": page, "limit": limit}
        return self._data(await self.client.get("/users", params=params))

    async def update_role(self, user_id: str, role: str) -> None:
        await self.client.put(f"/users/{user_id}/role", {"role": role})

    async def set_blocked(self, user_id: str, is_blocked: bool) -> None:
        await self.client.put(f"/users/{user_id}/status", {"isBlocked": is_blocked})

    async def delete_user(self, user_id: str) -> None:
        await self.client.delete(f"/users/{user_id}")
