"""
HTTP transport.

This module defines the request and response value types passed
through the interceptor pipeline and an aiohttp-backed transport that
executes them.  The transport does not interpret status codes: every
HTTP answer, 401 included, comes back as an :class:`ApiResponse` so
that the response interceptor can decide what to do with it.  Only
failures that produce no HTTP answer at all are raised, as
:class:`~medclient.errors.NetworkError`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from .errors import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


@dataclass
class RequestDescriptor:
    """Everything needed to (re)issue one logical request."""

    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    # Set once the request has been replayed after a token refresh.
    retried: bool = False
    # Credential endpoints (login, register, ...) answer 401 for bad
    # input; those must not trigger a refresh.
    allow_refresh: bool = True
    # Access token the request was last sent with.
    sent_token: Optional[str] = None

    def authorize(self, token: str) -> None:
        self.headers["Authorization"] = f"Bearer {token}"
        self.sent_token = token

    def describe(self) -> str:
        return f"{self.method} {self.url}"


@dataclass
class ApiResponse:
    status: int
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    request: Optional[RequestDescriptor] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class ConnectionDiagnosis:
    """Outcome of a best-effort reachability probe."""

    url: str
    reachable: bool
    status: Optional[int] = None
    latency: Optional[float] = None
    reason: str = ""

    @property
    def message(self) -> str:
        if self.reachable:
            latency_ms = (self.latency or 0.0) * 1000
            return f"Server at {self.url} responded with HTTP {self.status} in {latency_ms:.0f} ms"
        return (
            f"Cannot reach the server at {self.url}: {self.reason}. "
            "Check that the server is running and that this device can reach its network."
        )


class BaseTransport:
    """Abstract transport.  Subclasses must implement ``send`` and ``probe``."""

    async def send(self, request: RequestDescriptor) -> ApiResponse:
        raise NotImplementedError

    async def probe(self) -> ConnectionDiagnosis:
        raise NotImplementedError

    async def close(self) -> None:
        return None


def _clean_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    """Drop unset query values and render the rest as strings."""
    if not params:
        return None
    cleaned: Dict[str, str] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = str(value)
    return cleaned or None


class AiohttpTransport(BaseTransport):
    """Send requests through a shared :class:`aiohttp.ClientSession`."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        probe_timeout: float = 5.0,
    ) -> None:
        """
        Args:
            base_url: API root, e.g. ``http://localhost:5000/api``.
            timeout: Default total timeout per request, in seconds.
            headers: Extra default headers merged over ``DEFAULT_HEADERS``.
            probe_timeout: Timeout used by :meth:`probe`.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self.headers,
            )
        return self._session

    @staticmethod
    async def _read_body(resp: aiohttp.ClientResponse) -> Any:
        if resp.content_type == "application/json":
            try:
                return await resp.json()
            except (aiohttp.ContentTypeError, ValueError):
                logger.debug("Malformed JSON body from %s", resp.url)
        text = await resp.text()
        return text or None

    async def send(self, request: RequestDescriptor) -> ApiResponse:
        session = self._get_session()
        kwargs: Dict[str, Any] = {"headers": request.headers}
        params = _clean_params(request.params)
        if params:
            kwargs["params"] = params
        if request.json is not None:
            kwargs["json"] = request.json
        if request.timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=request.timeout)
        url = self.build_url(request.url)
        try:
            async with session.request(request.method, url, **kwargs) as resp:
                data = await self._read_body(resp)
                return ApiResponse(
                    status=resp.status,
                    data=data,
                    headers=dict(resp.headers),
                    request=request,
                )
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"Request timed out: {request.describe()}", code="TIMEOUT") from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Network error on {request.describe()}: {exc}") from exc

    async def probe(self) -> ConnectionDiagnosis:
        """Check whether the API server answers at all.

        Any HTTP status counts as reachable; only a failure to obtain a
        response marks the server unreachable.
        """
        session = self._get_session()
        started = time.monotonic()
        try:
            async with session.get(
                self.base_url, timeout=aiohttp.ClientTimeout(total=self.probe_timeout)
            ) as resp:
                return ConnectionDiagnosis(
                    url=self.base_url,
                    reachable=True,
                    status=resp.status,
                    latency=time.monotonic() - started,
                )
        except asyncio.TimeoutError:
            reason = f"no answer within {self.probe_timeout:g}s"
        except aiohttp.ClientConnectorError as exc:
            reason = f"connection failed ({exc.os_error or exc})"
        except aiohttp.ClientError as exc:
            reason = str(exc) or type(exc).__name__
        logger.warning("Connectivity probe failed for %s: %s", self.base_url, reason)
        return ConnectionDiagnosis(url=self.base_url, reachable=False, reason=reason)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
