from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..models import User
from .base import ResourceApi


class AdminApi(ResourceApi):
    """Admin panel endpoints.  All of them require an ``ADMIN`` session."""

    async def get_stats(self) -> Dict[str, Any]:
        return self._data(await self.client.get("/admin/stats"))

    async def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[User]:
        params = {"search": search, "role": role, "page": page, "limit": limit}
        data = self._data(await self.client.get("/admin/users", params=params))
        if isinstance(data, dict):
            data = data.get("users", [])
        return [User.model_validate(item) for item in data or []]

    async def get_user(self, user_id: str) -> User:
        return User.model_validate(self._data(await self.client.get(f"/admin/users/{user_id}")))

    async def create_user(self, user: Dict[str, Any]) -> User:
        return User.model_validate(self._data(await self.client.post("/admin/users", user)))

    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> User:
        return User.model_validate(self._data(await self.client.put(f"/admin/users/{user_id}", changes)))

    async def delete_user(self, user_id: str) -> None:
        await self.client.delete(f"/admin/users/{user_id}")

    async def update_user_role(self, user_id: str, role: str) -> Any:
        return self._data(await self.client.put(f"/admin/users/{user_id}/role", {"role": role}))

    async def set_user_blocked(self, user_id: str, is_blocked: bool) -> Any:
        return self._data(await self.client.put(f"/admin/users/{user_id}/status", {"isBlocked": is_blocked}))

    async def broadcast_notification(self, title: str, message: str, role: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"title": title, "message": message}
        if role:
            payload["role"] = role
        await self.client.post("/admin/notifications/broadcast", payload)

    async def verify_doctor(self, doctor_id: str, verified: bool = True) -> None:
        await self.client.put(f"/admin/doctors/{doctor_id}/verify", {"verified": verified})
