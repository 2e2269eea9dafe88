"""
Time-expiring cache over the key-value storage.

Entries are stored as JSON ``{"data", "timestamp", "expiry"}`` under
``cache_``-prefixed keys, so the cache can share a storage backend
with the token store and :meth:`CacheService.clear` never touches
anything it did not write.

The cache is advisory: a storage failure is logged and treated as a
miss.  There is no locking beyond what the storage backend does; when
two writers race on a key the last one wins, which is fine for
idempotent GET results.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .storage import BaseStorage, MemoryStorage

logger = logging.getLogger(__name__)

CACHE_PREFIX = "cache_"
DEFAULT_TTL = 5 * 60.0


class CacheService:
    def __init__(
        self,
        storage: Optional[BaseStorage] = None,
        *,
        ttl: float = DEFAULT_TTL,
        prefix: str = CACHE_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.ttl = ttl
        self.prefix = prefix
        self.clock = clock

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or ``None`` if absent or expired."""
        storage_key = self._key(key)
        try:
            raw = await self.storage.get_item(storage_key)
            if raw is None:
                return None
            entry = json.loads(raw)
            age = self.clock() - float(entry["timestamp"])
            if age >= float(entry.get("expiry", self.ttl)):
                logger.debug("Cache entry %s expired %.1fs ago", key, age - float(entry.get("expiry", self.ttl)))
                await self.storage.remove_item(storage_key)
                return None
            return entry.get("data")
        except Exception as exc:
            logger.error("Cache get error for %s: %s", key, exc)
            return None

    async def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        entry = {
            "data": data,
            "timestamp": self.clock(),
            "expiry": self.ttl if ttl is None else ttl,
        }
        try:
            await self.storage.set_item(self._key(key), json.dumps(entry))
        except Exception as exc:
            logger.error("Cache set error for %s: %s", key, exc)

    async def remove(self, key: str) -> None:
        try:
            await self.storage.remove_item(self._key(key))
        except Exception as exc:
            logger.error("Cache remove error for %s: %s", key, exc)

    async def _cache_keys(self) -> List[str]:
        keys = await self.storage.get_all_keys()
        return [k for k in keys if k.startswith(self.prefix)]

    async def clear(self) -> None:
        """Remove every cache entry; other keys in the storage are kept."""
        try:
            keys = await self._cache_keys()
            if keys:
                await self.storage.multi_remove(keys)
            logger.debug("Cleared %d cache entries", len(keys))
        except Exception as exc:
            logger.error("Cache clear error: %s", exc)

    async def keys(self) -> List[str]:
        try:
            return [k[len(self.prefix):] for k in await self._cache_keys()]
        except Exception as exc:
            logger.error("Cache keys error: %s", exc)
            return []

    async def stats(self) -> Dict[str, int]:
        """Count entries and their serialised size in characters."""
        item_count = 0
        total_size = 0
        try:
            for key in await self._cache_keys():
                raw = await self.storage.get_item(key)
                if raw:
                    item_count += 1
                    total_size += len(raw)
        except Exception as exc:
            logger.error("Cache stats error: %s", exc)
        return {"item_count": item_count, "total_size": total_size}
