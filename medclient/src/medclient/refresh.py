"""
Single-flight token refresh.

When several requests fail with 401 at about the same time only one
refresh call may reach the server.  :class:`RefreshCoordinator` owns
the refresh state (the ``is_refreshing`` flag, the queue of waiting
requests and the refresh task) for one client:

* the first caller flips ``is_refreshing`` on and starts the refresh as
  a task owned by the coordinator;
* every caller arriving while the flag is on parks a future in the
  queue and waits;
* when the refresh settles the queue is flushed with the same outcome
  for everybody (the new token, or the refresh error) and the task
  turns the flag off.

The triggering caller awaits the task through :func:`asyncio.shield`,
so cancelling it abandons only its own request; the refresh and every
other waiter carry on.  Only :meth:`RefreshCoordinator.aclose` cancels
the refresh itself.

A refresh that fails with any :class:`~medclient.errors.ApiError`
surfaces as :class:`~medclient.errors.AuthError` so that it is never
mistaken for a retryable network failure.  ``on_auth_failed`` is only
told about refreshes the server actually rejected; network failures,
5xx answers and timeouts say nothing about the session.

State is only read and written between awaits, which is all the mutual
exclusion a single asyncio event loop needs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from .errors import ApiError, AuthError
from .metrics import ApiMetrics
from .models import TokenPair
from .token_store import TokenStore
from .transport import ApiResponse, RequestDescriptor

logger = logging.getLogger(__name__)

Refresher = Callable[[], Awaitable[TokenPair]]
Replay = Callable[[RequestDescriptor], Awaitable[ApiResponse]]
AuthFailedCallback = Callable[[BaseException], None]


@dataclass
class PendingRequest:
    """A request parked until the in-flight refresh settles."""

    future: "asyncio.Future[str]"
    request: Optional[RequestDescriptor] = None


class RefreshCoordinator:
    def __init__(
        self,
        token_store: TokenStore,
        refresher: Refresher,
        *,
        timeout: Optional[float] = 60.0,
        metrics: Optional[ApiMetrics] = None,
        on_auth_failed: Optional[AuthFailedCallback] = None,
    ) -> None:
        """
        Args:
            token_store: Where the new tokens are persisted.
            refresher: Coroutine function calling the refresh endpoint.
            timeout: Upper bound on one refresh, retries included, in
                seconds.  ``None`` waits forever.
            metrics: Optional metrics sink.
            on_auth_failed: Called once when the server rejects a refresh,
                with the error every waiting request receives.  The
                coordinator itself never signs the user out.
        """
        self.token_store = token_store
        self.refresher = refresher
        self.timeout = timeout
        self.metrics = metrics
        self.on_auth_failed = on_auth_failed
        self.is_refreshing = False
        self._pending: List[PendingRequest] = []
        self._task: Optional["asyncio.Task[str]"] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def handle_unauthorized(self, request: RequestDescriptor, replay: Replay) -> ApiResponse:
        """Recover ``request`` from a 401 and return the replayed response.

        Raises the refresh error if the session cannot be renewed.
        """
        current = await self.token_store.get_token()
        # No awaits from here until the refresh is joined or started.
        if (
            not self.is_refreshing
            and current
            and request.sent_token
            and current != request.sent_token
        ):
            logger.debug("%s was sent with a superseded token; replaying", request.describe())
            token = current
        else:
            token = await self.refresh(request)
        request.retried = True
        request.authorize(token)
        return await replay(request)

    async def refresh(self, request: Optional[RequestDescriptor] = None) -> str:
        """Return a fresh access token, joining a refresh already in flight."""
        if self.is_refreshing:
            return await self._wait_for_refresh(request)
        self.is_refreshing = True
        self._task = asyncio.get_running_loop().create_task(self._refresh_task())
        self._task.add_done_callback(self._collect)
        return await asyncio.shield(self._task)

    async def aclose(self) -> None:
        """Cancel an in-flight refresh; its waiters get ``refresh_cancelled``."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _refresh_task(self) -> str:
        try:
            return await self._run_refresh()
        finally:
            self.is_refreshing = False
            self._task = None

    @staticmethod
    def _collect(task: "asyncio.Task[str]") -> None:
        # The trigger may have been cancelled; the waiters already got the error.
        if not task.cancelled():
            task.exception()

    async def _run_refresh(self) -> str:
        logger.info("Refreshing access token")
        try:
            if self.timeout is not None:
                pair = await asyncio.wait_for(self.refresher(), timeout=self.timeout)
            else:
                pair = await self.refresher()
            await self.token_store.save_token(pair.token)
            if pair.refresh_token:
                await self.token_store.save_refresh_token(pair.refresh_token)
        except asyncio.TimeoutError:
            error = AuthError(
                f"Token refresh did not complete within {self.timeout:g}s",
                code="refresh_timeout",
                status=0,
            )
            self._fail(error, outcome="timeout")
            raise error from None
        except asyncio.CancelledError:
            logger.warning("Token refresh cancelled; rejecting %d queued request(s)", len(self._pending))
            self._reject_pending(AuthError("Token refresh was cancelled", code="refresh_cancelled", status=0))
            raise
        except AuthError as exc:
            self._fail(exc, outcome="rejected", notify=True)
            raise
        except ApiError as exc:
            # Transient failures were already retried by the refresher.
            error = AuthError(
                f"Token refresh failed: {exc.message}",
                code="refresh_failed",
                status=exc.status,
                details={"cause": exc.code},
            )
            self._fail(error, outcome="failure")
            raise error from exc
        except Exception as exc:
            self._fail(exc, outcome="failure")
            raise
        logger.info("Token refreshed; releasing %d queued request(s)", len(self._pending))
        if self.metrics:
            self.metrics.record_refresh("success")
        self._resolve_pending(pair.token)
        return pair.token

    async def _wait_for_refresh(self, request: Optional[RequestDescriptor]) -> str:
        future: "asyncio.Future[str]" = asyncio.get_running_loop().create_future()
        self._pending.append(PendingRequest(future, request))
        self._update_gauge()
        logger.debug(
            "Queued %s behind in-flight refresh", request.describe() if request else "caller"
        )
        try:
            return await future
        finally:
            self._pending = [p for p in self._pending if p.future is not future]
            self._update_gauge()

    def _resolve_pending(self, token: str) -> None:
        pending, self._pending = self._pending, []
        for entry in pending:
            if not entry.future.done():
                entry.future.set_result(token)
        self._update_gauge()

    def _reject_pending(self, error: BaseException) -> None:
        pending, self._pending = self._pending, []
        for entry in pending:
            if not entry.future.done():
                entry.future.set_exception(error)
        self._update_gauge()

    def _fail(self, error: BaseException, *, outcome: str, notify: bool = False) -> None:
        code = error.code if isinstance(error, ApiError) else type(error).__name__
        logger.warning("Token refresh failed (%s); rejecting %d queued request(s)", code, len(self._pending))
        if self.metrics:
            self.metrics.record_refresh(outcome)
        self._reject_pending(error)
        if notify and self.on_auth_failed is not None:
            try:
                self.on_auth_failed(error)
            except Exception:
                logger.exception("on_auth_failed callback raised")

    def _update_gauge(self) -> None:
        if self.metrics:
            self.metrics.pending.set(len(self._pending))
