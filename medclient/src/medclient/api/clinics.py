from __future__ import annotations

from typing import Any, Dict, Optional

from .base import ResourceApi


class ClinicsApi(ResourceApi):
    async def list_clinics(
        self,
        search: Optional[str] = None,
        city: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = {"search": search, "city": city, "page": page, "limit": limit}
        return self._data(await self.client.get("/clinics", params=params))

    async def get_clinic(self, clinic_id: str) -> Any:
        return self._data(await self.client.get(f"/clinics/{clinic_id}"))

    async def create_clinic(self, clinic: Dict[str, Any]) -> Any:
        return self._data(await self.client.post("/clinics", clinic))

    async def update_clinic(self, clinic_id: str, changes: Dict[str, Any]) -> Any:
        return self._data(await self.client.put(f"/clinics/{clinic_id}", changes))

    async def delete_clinic(self, clinic_id: str) -> None:
        await self.client.delete(f"/clinics/{clinic_id}")

    async def create_review(self, clinic_id: str, rating: int, comment: Optional[str] = None) -> Any:
        review: Dict[str, Any] = {"rating": rating}
        if comment is not None:
            review["comment"] = comment
        return self._data(await self.client.post(f"/clinics/{clinic_id}/reviews", review))
