"""
Client configuration.

Settings are read from the environment.  For every variable ``NAME`` a
companion ``NAME_FILE`` may point at a file whose contents are used
instead; the file takes precedence.  This lets deployments mount
values (for example a long-lived refresh token for a service account)
as files rather than exporting them.

Recognised variables
--------------------

``MEDCLIENT_API_URL``
    API root.  Default ``http://localhost:5000/api``.
``MEDCLIENT_TIMEOUT``
    Per-request timeout in seconds.  Default ``10``.
``MEDCLIENT_REFRESH_TIMEOUT``
    Upper bound on one token refresh, retries included.  Default ``60``,
    which covers four attempts of ``MEDCLIENT_TIMEOUT`` plus backoff.
``MEDCLIENT_REFRESH_PATH``
    Refresh endpoint path.  Default ``/auth/refresh``.
``MEDCLIENT_MAX_RETRIES`` / ``MEDCLIENT_RETRY_DELAY``
    Retry budget for transient failures and the backoff base in
    seconds.  Defaults ``3`` and ``1.0``.
``MEDCLIENT_CACHE_TTL``
    Lifetime of cached GET results in seconds.  Default ``300``.
``MEDCLIENT_STORAGE_PATH``
    JSON file for tokens and cache.  Unset means in-memory storage.
``MEDCLIENT_DIAGNOSE_CONNECTION``
    Probe the server after network failures.  Default ``true``.
``LOG_LEVEL``
    Root logging level used by :func:`configure_logging`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

TRUE_VALUES = {"true", "1", "yes", "on"}
# Longest single backoff between retries, in seconds.
MAX_BACKOFF = 8.0


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """Return ``name`` from ``{name}_FILE`` or the environment."""
    file_path = os.getenv(f"{name}_FILE")
    if file_path:
        try:
            return Path(file_path).read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.warning("Cannot read %s_FILE (%s): %s", name, file_path, exc)
    value = os.getenv(name)
    return value if value not in (None, "") else default


class ClientSettings(BaseModel):
    api_url: str = "http://localhost:5000/api"
    timeout: float = Field(10.0, gt=0)
    refresh_timeout: float = Field(60.0, gt=0)
    refresh_path: str = "/auth/refresh"
    max_retries: int = Field(3, ge=0)
    retry_delay: float = Field(1.0, ge=0)
    cache_ttl: float = Field(300.0, gt=0)
    storage_path: Optional[str] = None
    diagnose_connection: bool = True

    @classmethod
    def from_env(cls) -> "ClientSettings":
        defaults = cls()
        return cls(
            api_url=get_setting("MEDCLIENT_API_URL", defaults.api_url),
            timeout=get_setting("MEDCLIENT_TIMEOUT", str(defaults.timeout)),
            refresh_timeout=get_setting("MEDCLIENT_REFRESH_TIMEOUT", str(defaults.refresh_timeout)),
            refresh_path=get_setting("MEDCLIENT_REFRESH_PATH", defaults.refresh_path),
            max_retries=get_setting("MEDCLIENT_MAX_RETRIES", str(defaults.max_retries)),
            retry_delay=get_setting("MEDCLIENT_RETRY_DELAY", str(defaults.retry_delay)),
            cache_ttl=get_setting("MEDCLIENT_CACHE_TTL", str(defaults.cache_ttl)),
            storage_path=get_setting("MEDCLIENT_STORAGE_PATH"),
            diagnose_connection=(get_setting("MEDCLIENT_DIAGNOSE_CONNECTION", "true") or "").lower()
            in TRUE_VALUES,
        )

    def refresh_budget(self) -> float:
        """Worst-case seconds for a refresh whose every attempt hangs until ``timeout``."""
        backoff = sum(min(self.retry_delay * 2**n, MAX_BACKOFF) for n in range(self.max_retries))
        return self.timeout * (self.max_retries + 1) + backoff


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or os.environ.get("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
