"""
Typed facades over the backend's REST endpoints.

Each facade builds paths and query strings and delegates to
:class:`~medclient.client.ApiClient`; authentication, refresh, retries
and error mapping all happen there.  :class:`MedApi` bundles one of
each around a single client.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .admin import AdminApi
from .articles import ArticlesApi
from .auth import AuthApi
from .clinics import ClinicsApi
from .comments import CommentsApi
from .users import UsersApi

if TYPE_CHECKING:
    from ..client import ApiClient


class MedApi:
    def __init__(self, client: "ApiClient") -> None:
        self.client = client
        self.auth = AuthApi(client)
        self.users = UsersApi(client)
        self.articles = ArticlesApi(client)
        self.clinics = ClinicsApi(client)
        self.comments = CommentsApi(client)
        self.admin = AdminApi(client)


__all__ = [
    "AdminApi",
    "ArticlesApi",
    "AuthApi",
    "ClinicsApi",
    "CommentsApi",
    "MedApi",
    "UsersApi",
]
