"""Scripted in-memory backend for testing.

:class:`FakeBackend` implements the transport interface and behaves
like a tiny version of the real API: protected paths require
``Authorization: Bearer <current access token>``, ``/auth/refresh``
exchanges the current refresh token for a new pair, and everything
else answers from a route table.  Every request is recorded in
``sent`` as ``(method, url, authorization)`` so tests can assert on
replays and headers.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple, Union

from medclient.transport import ApiResponse, BaseTransport, ConnectionDiagnosis, RequestDescriptor

Outcome = Union[BaseException, Tuple[int, Any]]

PUBLIC_PATHS = {
    "/auth/login",
    "/auth/register",
    "/auth/check-email",
    "/auth/forgot-password",
    "/auth/reset-password",
}


class FakeBackend(BaseTransport):
    def __init__(self, access_token: Optional[str] = "T1", refresh_token: str = "R1") -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.generation = 1
        self.routes: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.queued: Dict[Tuple[str, str], List[Outcome]] = {}
        self.sent: List[Tuple[str, str, Optional[str]]] = []
        self.refresh_bodies: List[Any] = []
        self.refresh_calls = 0
        # Set to an unset asyncio.Event to hold refresh calls open.
        self.refresh_gate: Optional[asyncio.Event] = None
        # Queue of outcomes served by /auth/refresh before the normal exchange.
        self.refresh_outcomes: List[Outcome] = []
        self.probe_calls = 0
        self.probe_result = ConnectionDiagnosis(url="http://fake", reachable=True, status=200, latency=0.001)
        self.closed = False

    def expire(self) -> None:
        """Reject every access token until the next refresh."""
        self.access_token = None

    def route(self, method: str, url: str, status: int = 200, data: Any = None) -> None:
        self.routes[(method.upper(), url)] = (status, data)

    def queue(self, method: str, url: str, *outcomes: Outcome) -> None:
        """Serve ``outcomes`` (exceptions or ``(status, body)``) before the route."""
        self.queued.setdefault((method.upper(), url), []).extend(outcomes)

    def sent_to(self, url: str) -> List[Optional[str]]:
        return [auth for _, sent_url, auth in self.sent if sent_url == url]

    @staticmethod
    def _respond(request: RequestDescriptor, status: int, data: Any) -> ApiResponse:
        return ApiResponse(status=status, data=data, headers={}, request=request)

    @staticmethod
    def _serve(request: RequestDescriptor, outcome: Outcome) -> ApiResponse:
        if isinstance(outcome, BaseException):
            raise outcome
        status, data = outcome
        return FakeBackend._respond(request, status, data)

    async def send(self, request: RequestDescriptor) -> ApiResponse:
        auth = request.headers.get("Authorization")
        self.sent.append((request.method, request.url, auth))
        await asyncio.sleep(0)
        if request.url == "/auth/refresh":
            return await self._refresh(request)
        pending = self.queued.get((request.method, request.url))
        if pending:
            return self._serve(request, pending.pop(0))
        if request.url not in PUBLIC_PATHS and (
            self.access_token is None or auth != f"Bearer {self.access_token}"
        ):
            return self._respond(request, 401, {"success": False, "message": "Token expired", "code": "token_expired"})
        status, data = self.routes.get(
            (request.method, request.url),
            (200, {"success": True, "data": {"path": request.url}}),
        )
        return self._respond(request, status, data)

    async def _refresh(self, request: RequestDescriptor) -> ApiResponse:
        self.refresh_calls += 1
        self.refresh_bodies.append(request.json)
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if self.refresh_outcomes:
            return self._serve(request, self.refresh_outcomes.pop(0))
        if (request.json or {}).get("refreshToken") != self.refresh_token:
            return self._respond(request, 401, {"message": "Invalid refresh token", "code": "invalid_refresh_token"})
        self.generation += 1
        self.access_token = f"T{self.generation}"
        self.refresh_token = f"R{self.generation}"
        return self._respond(
            request,
            200,
            {"success": True, "data": {"token": self.access_token, "refreshToken": self.refresh_token}},
        )

    async def probe(self) -> ConnectionDiagnosis:
        self.probe_calls += 1
        return self.probe_result

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def settle(condition, attempts: int = 200) -> None:
    """Yield to the loop until ``condition()`` holds."""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")
