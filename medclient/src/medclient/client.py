"""
Authenticated API client.

:class:`ApiClient` is the surface the rest of an application uses:
``get``/``post``/``put``/``delete`` return an
:class:`~medclient.transport.ApiResponse` or raise an
:class:`~medclient.errors.ApiError`.  Each call runs through the
interceptor pipeline (bearer token in, 401 recovery out), is retried
with exponential backoff on transient failures, and is timed into the
client's Prometheus registry.  GET results can optionally be cached.

Example::

    async with build_client() as client:
        resp = await client.get("/articles", params={"page": 1})
        articles = resp.data
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .cache import CacheService
from .config import MAX_BACKOFF, ClientSettings
from .errors import ApiError, HttpError, NetworkError, ServerUnreachableError, is_transient
from .interceptors import BearerTokenInterceptor, InterceptorPipeline, UnauthorizedInterceptor
from .metrics import ApiMetrics
from .refresh import AuthFailedCallback, Refresher, RefreshCoordinator
from .refresher import TokenRefresher
from .storage import BaseStorage, JsonFileStorage, MemoryStorage
from .token_store import TokenStore
from .transport import AiohttpTransport, ApiResponse, BaseTransport, RequestDescriptor

logger = logging.getLogger(__name__)


class ApiClient:
    """HTTP client with bearer auth, single-flight token refresh and retries."""

    def __init__(
        self,
        transport: BaseTransport,
        token_store: TokenStore,
        *,
        refresher: Optional[Refresher] = None,
        cache: Optional[CacheService] = None,
        metrics: Optional[ApiMetrics] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        refresh_timeout: Optional[float] = 60.0,
        diagnose_connection: bool = True,
        on_auth_failed: Optional[AuthFailedCallback] = None,
    ) -> None:
        """
        Args:
            transport: Executes requests.
            token_store: Source of the bearer token and sink for refreshed ones.
            refresher: Refresh endpoint caller.  Defaults to a
                :class:`TokenRefresher` on the same transport.
            cache: Cache used by ``get(..., cache_key=...)``.  Defaults to
                one sharing the token store's storage.
            metrics: Metrics sink; a private registry is created if omitted.
            max_retries: Extra attempts for network errors, 5xx and 429.
            retry_delay: Base of the exponential backoff, in seconds.
            refresh_timeout: Upper bound on one token refresh, in seconds,
                covering every retry of the refresh call.
            diagnose_connection: Probe the server after a network failure
                and raise :class:`ServerUnreachableError` if it is down.
            on_auth_failed: Notified when a token refresh fails.
        """
        self.transport = transport
        self.token_store = token_store
        self.metrics = metrics if metrics is not None else ApiMetrics()
        self.cache = cache if cache is not None else CacheService(token_store.storage)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.diagnose_connection = diagnose_connection
        if refresher is None:
            refresher = TokenRefresher(
                transport, token_store, max_retries=max_retries, retry_delay=retry_delay
            )
        self.coordinator = RefreshCoordinator(
            token_store,
            refresher,
            timeout=refresh_timeout,
            metrics=self.metrics,
            on_auth_failed=on_auth_failed,
        )
        self.pipeline = InterceptorPipeline(
            request_interceptors=[BearerTokenInterceptor(token_store)],
            response_interceptors=[UnauthorizedInterceptor(self.coordinator)],
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.coordinator.aclose()
        await self.transport.close()

    async def _dispatch(self, request: RequestDescriptor, *, intercept_request: bool = True) -> ApiResponse:
        if intercept_request:
            await self.pipeline.before_request(request)
        logger.debug("-> %s%s", request.describe(), " (replay)" if request.retried else "")
        response = await self.transport.send(request)
        logger.debug("<- %s %d", request.describe(), response.status)
        return await self.pipeline.after_response(response, self._replay)

    async def _replay(self, request: RequestDescriptor) -> ApiResponse:
        # The coordinator has already set the header for the replay.
        return await self._dispatch(request, intercept_request=False)

    async def _send_with_retries(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        json: Any,
        headers: Optional[Dict[str, str]],
        timeout: Optional[float],
        allow_refresh: bool,
    ) -> ApiResponse:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, max=MAX_BACKOFF),
            retry=retry_if_exception(is_transient),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("Retrying %s %s (attempt %d)", method, url, attempt.retry_state.attempt_number)
                request = RequestDescriptor(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=dict(headers or {}),
                    timeout=timeout,
                    allow_refresh=allow_refresh,
                )
                return await self._dispatch(request)
        raise RuntimeError("retry loop exited without a result")  # pragma: no cover

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        allow_refresh: bool = True,
    ) -> ApiResponse:
        """Send one request and return its 2xx response.

        Pass ``allow_refresh=False`` for endpoints where a 401 means bad
        credentials rather than an expired session.
        """
        method = method.upper()
        started = time.monotonic()
        try:
            response = await self._send_with_retries(
                method, url, params, json, headers, timeout, allow_refresh
            )
        except ApiError as exc:
            elapsed = time.monotonic() - started
            if isinstance(exc, HttpError):
                self.metrics.record_call(method, exc.status, elapsed)
            self.metrics.record_error(method, exc.kind.value)
            logger.error("API error on %s %s: %s (%s)", method, url, exc.message[:200], exc.code)
            if (
                isinstance(exc, NetworkError)
                and not isinstance(exc, ServerUnreachableError)
                and self.diagnose_connection
            ):
                diagnosis = await self.transport.probe()
                if not diagnosis.reachable:
                    raise ServerUnreachableError(diagnosis) from exc
            raise
        self.metrics.record_call(method, response.status, time.monotonic() - started)
        return response

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        cache_key: Optional[str] = None,
        cache_ttl: Optional[float] = None,
        force_refresh: bool = False,
        **kwargs: Any,
    ) -> ApiResponse:
        """GET ``url``; with ``cache_key`` serve and store through the cache."""
        if cache_key and not force_refresh:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for %s", cache_key)
                return ApiResponse(status=200, data=cached, headers={"X-Cache": "HIT"})
        response = await self.request("GET", url, params=params, **kwargs)
        if cache_key and response.data is not None:
            await self.cache.set(cache_key, response.data, ttl=cache_ttl)
        return response

    async def post(self, url: str, json: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("POST", url, json=json, **kwargs)

    async def put(self, url: str, json: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("PUT", url, json=json, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> ApiResponse:
        return await self.request("DELETE", url, **kwargs)

    async def batch_get(self, urls: Iterable[str]) -> List[ApiResponse]:
        """GET several URLs concurrently; the first failure is raised."""
        return list(await asyncio.gather(*(self.get(url) for url in urls)))

    async def refresh_token(self) -> str:
        """Renew the access token now, sharing any refresh already running."""
        return await self.coordinator.refresh()

    async def clear_cache(self, key: Optional[str] = None) -> None:
        if key:
            await self.cache.remove(key)
        else:
            await self.cache.clear()


def build_storage(settings: ClientSettings) -> BaseStorage:
    if settings.storage_path:
        return JsonFileStorage(settings.storage_path)
    return MemoryStorage()


def build_client(settings: Optional[ClientSettings] = None, **overrides: Any) -> ApiClient:
    """Wire an :class:`ApiClient` from settings (``ClientSettings.from_env()`` by default)."""
    settings = settings or ClientSettings.from_env()
    if settings.refresh_timeout < settings.refresh_budget():
        logger.warning(
            "Refresh timeout %.1fs is shorter than %.1fs of refresh retries; later attempts will be cut off",
            settings.refresh_timeout,
            settings.refresh_budget(),
        )
    storage = build_storage(settings)
    token_store = TokenStore(storage)
    transport = AiohttpTransport(settings.api_url, timeout=settings.timeout)
    refresher = TokenRefresher(
        transport,
        token_store,
        path=settings.refresh_path,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
    )
    options: Dict[str, Any] = {
        "refresher": refresher,
        "cache": CacheService(storage, ttl=settings.cache_ttl),
        "max_retries": settings.max_retries,
        "retry_delay": settings.retry_delay,
        "refresh_timeout": settings.refresh_timeout,
        "diagnose_connection": settings.diagnose_connection,
    }
    options.update(overrides)
    logger.info("API client configured for %s", settings.api_url)
    return ApiClient(transport, token_store, **options)
