"""
Article comments.

Comment pages are cached per article and page for the cache TTL.  Any
mutation drops every cached comment page, since a new reply or like
can move comments between pages.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..cache import CacheService
from .base import ResourceApi

if TYPE_CHECKING:
    from ..client import ApiClient

logger = logging.getLogger(__name__)

COMMENTS_CACHE_PREFIX = "cache_comments_"


class CommentsApi(ResourceApi):
    def __init__(self, client: "ApiClient", cache: Optional[CacheService] = None) -> None:
        super().__init__(client)
        if cache is None:
            cache = CacheService(client.cache.storage, ttl=client.cache.ttl, prefix=COMMENTS_CACHE_PREFIX)
        self.cache = cache

    async def get_article_comments(self, article_id: str, page: int = 1) -> Any:
        key = f"{article_id}_{page}"
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        response = await self.client.get(f"/articles/{article_id}/comments", params={"page": page})
        data = self._data(response)
        if data is not None:
            await self.cache.set(key, data)
        return data

    async def create_comment(self, article_id: str, content: str, parent_comment_id: Optional[str] = None) -> Any:
        payload: Dict[str, Any] = {"content": content}
        if parent_comment_id:
            payload["parentCommentId"] = parent_comment_id
        response = await self.client.post(f"/articles/{article_id}/comments", payload)
        await self._invalidate()
        return self._data(response)

    async def update_comment(self, comment_id: str, content: str) -> Any:
        response = await self.client.put(f"/articles/comments/{comment_id}", {"content": content})
        await self._invalidate()
        return self._data(response)

    async def delete_comment(self, comment_id: str) -> None:
        await self.client.delete(f"/articles/comments/{comment_id}")
        await self._invalidate()

    async def like_comment(self, comment_id: str) -> Any:
        response = await self.client.post(f"/articles/comments/{comment_id}/like")
        await self._invalidate()
        return self._data(response)

    async def _invalidate(self) -> None:
        await self.cache.clear()
        logger.debug("Dropped cached comment pages")
