"""
Refresh endpoint caller.

:class:`TokenRefresher` exchanges the stored refresh token for a new
token pair.  It talks to the transport directly so the call is neither
decorated with the (expired) bearer token nor routed back through the
401 handling that triggered it.  Network errors and 5xx answers are
retried with exponential backoff; any other rejection is final.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .config import MAX_BACKOFF
from .errors import AuthError, HttpError, is_transient
from .models import TokenPair, error_fields, parse_token_pair
from .token_store import TokenStore
from .transport import ApiResponse, BaseTransport, RequestDescriptor

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"


class TokenRefresher:
    def __init__(
        self,
        transport: BaseTransport,
        token_store: TokenStore,
        *,
        path: str = REFRESH_PATH,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: Optional[float] = None,
    ) -> None:
        self.transport = transport
        self.token_store = token_store
        self.path = path
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    async def __call__(self) -> TokenPair:
        refresh_token = await self.token_store.get_refresh_token()
        if not refresh_token:
            logger.warning("No refresh token stored; cannot refresh session")
            raise AuthError("Refresh token is missing", code="missing_refresh_token", status=401)

        response: Optional[ApiResponse] = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, max=MAX_BACKOFF),
            retry=retry_if_exception(is_transient),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("Retrying token refresh (attempt %d)", attempt.retry_state.attempt_number)
                response = await self._post(refresh_token)
        assert response is not None
        return self._parse(response)

    async def _post(self, refresh_token: str) -> ApiResponse:
        request = RequestDescriptor(
            "POST",
            self.path,
            json={"refreshToken": refresh_token},
            timeout=self.timeout,
        )
        response = await self.transport.send(request)
        if response.ok:
            return response
        if response.status >= 500 or response.status == 429:
            raise HttpError.from_response(response)
        fields = error_fields(response.data)
        raise AuthError(
            fields.get("message") or "Token refresh was rejected",
            code=fields.get("code") or "refresh_rejected",
            status=response.status,
            details=fields.get("details"),
        )

    @staticmethod
    def _parse(response: ApiResponse) -> TokenPair:
        try:
            return parse_token_pair(response.data)
        except ValidationError as exc:
            logger.error("Malformed refresh response: %s", str(exc)[:200])
            raise AuthError("Malformed response from refresh endpoint", code="invalid_response", status=500) from exc
