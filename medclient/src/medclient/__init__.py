"""
Asynchronous client for the medical-services directory REST API.

The core is :class:`~medclient.client.ApiClient`: every request carries
the stored bearer token, and when the server answers 401 exactly one
token refresh runs no matter how many requests failed at once.  Every
waiting request is then replayed with the new token, or rejected with
the refresh error.  :class:`~medclient.api.MedApi` adds typed facades
on top.
"""

from .api import MedApi  # noqa: F401
from .cache import CacheService  # noqa: F401
from .client import ApiClient, build_client  # noqa: F401
from .config import ClientSettings, configure_logging  # noqa: F401
from .errors import (  # noqa: F401
    ApiError,
    AuthError,
    ErrorKind,
    HttpError,
    NetworkError,
    ServerUnreachableError,
)
from .refresh import RefreshCoordinator  # noqa: F401
from .storage import JsonFileStorage, MemoryStorage  # noqa: F401
from .token_store import TokenStore  # noqa: F401
from .transport import AiohttpTransport, ApiResponse, RequestDescriptor  # noqa: F401

__version__ = "0.1.0"
