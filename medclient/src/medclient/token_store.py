"""
Token store.

Persists the access token, the refresh token and the signed-in user
payload on top of a :class:`~medclient.storage.BaseStorage` backend.
The rest of the client only ever talks to tokens through this class;
nothing else keeps a copy beyond a single request cycle.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from .models import Credentials, UserData
from .storage import BaseStorage, MemoryStorage

logger = logging.getLogger(__name__)

USER_DATA_KEY = "@user_data"
AUTH_TOKEN_KEY = "@auth_token"
REFRESH_TOKEN_KEY = "@refresh_token"


class TokenStore:
    """Read and write session credentials."""

    def __init__(self, storage: Optional[BaseStorage] = None) -> None:
        self.storage = storage if storage is not None else MemoryStorage()

    async def get_token(self) -> Optional[str]:
        return await self.storage.get_item(AUTH_TOKEN_KEY)

    async def save_token(self, token: str) -> None:
        if not token:
            raise ValueError("Refusing to store an empty access token")
        await self.storage.set_item(AUTH_TOKEN_KEY, token)

    async def get_refresh_token(self) -> Optional[str]:
        return await self.storage.get_item(REFRESH_TOKEN_KEY)

    async def save_refresh_token(self, token: str) -> None:
        if not token:
            raise ValueError("Refusing to store an empty refresh token")
        await self.storage.set_item(REFRESH_TOKEN_KEY, token)

    async def get_credentials(self) -> Optional[Credentials]:
        """Return the stored token pair, or ``None`` when signed out."""
        token = await self.get_token()
        if not token:
            return None
        return Credentials(access_token=token, refresh_token=await self.get_refresh_token())

    async def save_user_data(self, user_data: UserData) -> None:
        """Store the user payload and the tokens that came with it."""
        await self.storage.set_item(
            USER_DATA_KEY, json.dumps(user_data.model_dump(mode="json", by_alias=True))
        )
        await self.save_token(user_data.token)
        if user_data.refresh_token:
            await self.save_refresh_token(user_data.refresh_token)

    async def get_user_data(self) -> Optional[UserData]:
        raw = await self.storage.get_item(USER_DATA_KEY)
        if not raw:
            return None
        try:
            return UserData.model_validate_json(raw)
        except ValueError as exc:
            logger.warning("Discarding unreadable user data: %s", exc)
            return None

    async def is_logged_in(self) -> bool:
        return bool(await self.get_token())

    async def clear_tokens(self) -> None:
        await self.storage.multi_remove([AUTH_TOKEN_KEY, REFRESH_TOKEN_KEY])

    async def clear_user_data(self) -> None:
        """Forget the user payload and both tokens."""
        await self.storage.multi_remove([USER_DATA_KEY, AUTH_TOKEN_KEY, REFRESH_TOKEN_KEY])
        logger.info("Cleared stored user data")
