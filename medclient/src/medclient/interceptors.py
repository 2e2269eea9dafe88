"""
Request and response interceptors.

Interceptors are small async callables that run around every transport
call.  Request interceptors may mutate the outgoing
:class:`~medclient.transport.RequestDescriptor`; response interceptors
receive the :class:`~medclient.transport.ApiResponse` and either return
a (possibly different) response or raise.

Two interceptors are always installed by :class:`~medclient.client.ApiClient`:

* :class:`BearerTokenInterceptor` attaches the stored access token.
* :class:`UnauthorizedInterceptor` turns a first 401 into a token
  refresh plus replay, and every other non-2xx into
  :class:`~medclient.errors.HttpError`.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from .errors import HttpError
from .refresh import RefreshCoordinator, Replay
from .token_store import TokenStore
from .transport import ApiResponse, RequestDescriptor

logger = logging.getLogger(__name__)

RequestInterceptor = Callable[[RequestDescriptor], Awaitable[None]]
ResponseInterceptor = Callable[[ApiResponse, Replay], Awaitable[ApiResponse]]


class BearerTokenInterceptor:
    """Set ``Authorization: Bearer <token>`` when a token is stored.

    Errors raised while reading the token propagate, aborting the
    request rather than sending it unauthenticated.
    """

    def __init__(self, token_store: TokenStore) -> None:
        self.token_store = token_store

    async def __call__(self, request: RequestDescriptor) -> None:
        token = await self.token_store.get_token()
        if token:
            request.authorize(token)


class UnauthorizedInterceptor:
    def __init__(self, coordinator: RefreshCoordinator) -> None:
        self.coordinator = coordinator

    async def __call__(self, response: ApiResponse, replay: Replay) -> ApiResponse:
        if response.ok:
            return response
        request = response.request
        if (
            response.status == 401
            and request is not None
            and request.allow_refresh
            and not request.retried
        ):
            return await self.coordinator.handle_unauthorized(request, replay)
        if response.status == 401 and request is not None and request.retried:
            logger.warning("%s rejected again after token refresh", request.describe())
        raise HttpError.from_response(response)


class InterceptorPipeline:
    """Ordered request and response interceptors."""

    def __init__(
        self,
        request_interceptors: Optional[List[RequestInterceptor]] = None,
        response_interceptors: Optional[List[ResponseInterceptor]] = None,
    ) -> None:
        self.request_interceptors = list(request_interceptors or [])
        self.response_interceptors = list(response_interceptors or [])

    async def before_request(self, request: RequestDescriptor) -> None:
        for interceptor in self.request_interceptors:
            await interceptor(request)

    async def after_response(self, response: ApiResponse, replay: Replay) -> ApiResponse:
        for interceptor in self.response_interceptors:
            response = await interceptor(response, replay)
        return response
