"""
Key-value persistence backends.

The token store and the response cache both sit on top of a small
string-to-string storage interface.  Two implementations are provided:
an in-memory mapping for tests and short-lived processes, and a JSON
file for anything that should survive a restart.  Both serialise
access with an asyncio lock so that a read never observes a half
written value.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class BaseStorage:
    """Abstract asynchronous key-value storage."""

    async def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def remove_item(self, key: str) -> None:
        raise NotImplementedError

    async def multi_remove(self, keys: Iterable[str]) -> None:
        raise NotImplementedError

    async def get_all_keys(self) -> List[str]:
        raise NotImplementedError


class MemoryStorage(BaseStorage):
    """Keep items in a dictionary guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get_item(self, key: str) -> Optional[str]:
        async with self._lock:
            return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            self._items[key] = value

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            self._items.pop(key, None)

    async def multi_remove(self, keys: Iterable[str]) -> None:
        async with self._lock:
            for key in keys:
                self._items.pop(key, None)

    async def get_all_keys(self) -> List[str]:
        async with self._lock:
            return list(self._items)


class JsonFileStorage(BaseStorage):
    """Persist items as a single JSON object on disk.

    Every operation reads and rewrites the whole file in a worker
    thread, so this backend suits the handful of keys a client keeps
    (tokens, user payload, cached listings), not bulk data.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        if not os.path.exists(self.path):
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self._write_file({})
        self._lock = asyncio.Lock()

    def _read_file(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            logger.warning("Storage file %s is corrupt, starting empty: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_file(self, data: Dict[str, str]) -> None:
        # Readers only ever see a complete file.
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".medclient-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    async def _load(self) -> Dict[str, str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_file)

    async def _save(self, data: Dict[str, str]) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_file, data)

    async def get_item(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await self._load()
            return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            data = await self._load()
            data[key] = value
            await self._save(data)

    async def remove_item(self, key: str) -> None:
        await self.multi_remove([key])

    async def multi_remove(self, keys: Iterable[str]) -> None:
        async with self._lock:
            data = await self._load()
            for key in keys:
                data.pop(key, None)
            await self._save(data)

    async def get_all_keys(self) -> List[str]:
        async with self._lock:
            data = await self._load()
            return list(data)
