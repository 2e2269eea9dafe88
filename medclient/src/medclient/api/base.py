"""Shared plumbing for the resource facades."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..models import unwrap_envelope
from ..transport import ApiResponse

if TYPE_CHECKING:
    from ..client import ApiClient


class ResourceApi:
    """Base class for a facade over one group of endpoints."""

    def __init__(self, client: "ApiClient") -> None:
        self.client = client

    @staticmethod
    def _data(response: ApiResponse) -> Any:
        return unwrap_envelope(response.data)
