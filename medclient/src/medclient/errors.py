"""
Error types raised by the client.

Every failure surfaces as a subclass of :class:`ApiError` whose
``kind`` tag tells callers which branch they are on without
inspecting attributes:

* ``ErrorKind.NETWORK`` - the request never produced an HTTP response
  (connection refused, DNS failure, timeout).
* ``ErrorKind.HTTP`` - the server answered with a non-2xx status.
* ``ErrorKind.AUTH`` - the session could not be (re)authenticated.
  Codes ``refresh_failed``, ``refresh_timeout`` and ``refresh_cancelled``
  mean the refresh could not complete and may be tried again; any other
  code means the server rejected the session and the user must sign in
  again.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from .models import error_fields

if TYPE_CHECKING:
    from .transport import ApiResponse, ConnectionDiagnosis


class ErrorKind(str, enum.Enum):
    NETWORK = "network"
    HTTP = "http"
    AUTH = "auth"


class ApiError(Exception):
    """Base class for all client errors."""

    kind: ErrorKind = ErrorKind.HTTP
    is_connection_error = False

    def __init__(
        self,
        message: str,
        *,
        status: int = 0,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details or {}

    def as_dict(self) -> Dict[str, Any]:
        """Render the error in the shape presented to end users."""
        return {
            "kind": self.kind.value,
            "status": self.status,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, code={self.code!r}, message={self.message!r})"


class NetworkError(ApiError):
    """The transport could not complete the request."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str = "No response from server", *, code: str = "NETWORK_ERROR") -> None:
        super().__init__(message, status=0, code=code)


class ServerUnreachableError(NetworkError):
    """A network failure after which the API server was judged unreachable.

    The classification comes from a best-effort probe and may be wrong;
    ``diagnosis`` carries the probe's human-readable explanation.
    """

    is_connection_error = True

    def __init__(self, diagnosis: "ConnectionDiagnosis") -> None:
        super().__init__(diagnosis.message, code="CONNECTION_ERROR")
        self.diagnosis = diagnosis
        self.details = {"url": diagnosis.url, "reason": diagnosis.reason}


class HttpError(ApiError):
    """Non-2xx response."""

    kind = ErrorKind.HTTP

    def __init__(self, status: int, body: Any = None, *, method: str = "", url: str = "") -> None:
        fields = error_fields(body)
        super().__init__(
            fields.get("message") or f"HTTP Error {status}",
            status=status,
            code=fields.get("code") or f"HTTP_{status}",
            details=fields.get("details") or (body if isinstance(body, dict) else {}),
        )
        self.body = body
        self.method = method
        self.url = url

    @classmethod
    def from_response(cls, response: "ApiResponse") -> "HttpError":
        request = response.request
        return cls(
            response.status,
            response.data,
            method=request.method if request else "",
            url=request.url if request else "",
        )


class AuthError(ApiError):
    """Authentication could not be established or renewed."""

    kind = ErrorKind.AUTH

    def __init__(
        self,
        message: str,
        *,
        code: str = "unknown",
        status: int = 401,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status=status, code=code, details=details)


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth retrying: network errors, 5xx and 429."""
    if isinstance(exc, NetworkError):
        return True
    if isinstance(exc, HttpError):
        return exc.status >= 500 or exc.status == 429
    return False
