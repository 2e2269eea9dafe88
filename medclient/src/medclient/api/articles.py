from __future__ import annotations

from typing import Any, Dict, Optional

from .base import ResourceApi


class ArticlesApi(ResourceApi):
    async def list_articles(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params = {"search": search, "category": category, "page": page, "limit": limit}
        return self._data(await self.client.get("/articles", params=params))

    async def get_article(self, article_id: str) -> Any:
        return self._data(await self.client.get(f"/articles/{article_id}"))

    async def create_article(self, article: Dict[str, Any]) -> Any:
        return self._data(await self.client.post("/articles", article))

    async def update_article(self, article_id: str, changes: Dict[str, Any]) -> Any:
        return self._data(await self.client.put(f"/articles/{article_id}", changes))

    async def delete_article(self, article_id: str) -> None:
        await self.client.delete(f"/articles/{article_id}")
