"""
Session endpoints.

Login and registration persist the returned user payload and token pair
in the client's token store.  Their requests are sent with
``allow_refresh=False``: a 401 there means wrong credentials, not an
expired session.  Server rejections are re-raised as
:class:`~medclient.errors.AuthError` carrying the server's message and
code; network failures propagate unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..errors import AuthError, HttpError
from ..models import User, UserData, error_fields, unwrap_envelope
from .base import ResourceApi

logger = logging.getLogger(__name__)


def _rejected(exc: HttpError, fallback: str) -> AuthError:
    fields = error_fields(exc.body)
    return AuthError(
        fields.get("message") or fallback,
        code=fields.get("code") or "unknown",
        status=exc.status,
        details=fields.get("details"),
    )


def _invalid_response(what: str) -> AuthError:
    return AuthError(f"Malformed {what} response from server", code="invalid_response", status=500)


class AuthApi(ResourceApi):
    async def login(self, email: str, password: str) -> UserData:
        logger.info("Logging in %s", email)
        try:
            response = await self.client.post(
                "/auth/login", {"email": email, "password": password}, allow_refresh=False
            )
        except HttpError as exc:
            raise _rejected(exc, "Login failed") from exc
        return await self._start_session(response.data, "login")

    async def register(self, email: str, password: str, **profile: Any) -> UserData:
        """Create an account and sign in.

        Extra keyword arguments (``firstName``, ``lastName``, ``role``, ...)
        are sent as-is.
        """
        payload: Dict[str, Any] = {"email": email, "password": password, **profile}
        logger.info("Registering %s", email)
        try:
            response = await self.client.post("/auth/register", payload, allow_refresh=False)
        except HttpError as exc:
            raise _rejected(exc, "Registration failed") from exc
        return await self._start_session(response.data, "registration")

    async def _start_session(self, body: Any, what: str) -> UserData:
        try:
            user_data = UserData.model_validate(unwrap_envelope(body))
        except ValidationError as exc:
            logger.error("Unexpected %s response: %s", what, str(exc)[:200])
            raise _invalid_response(what) from exc
        await self.client.token_store.save_user_data(user_data)
        await self.client.clear_cache()
        logger.info("Signed in as %s (%s)", user_data.user.email, user_data.user.role)
        return user_data

    async def logout(self) -> None:
        """Forget the session locally.  The backend keeps no logout state."""
        await self.client.token_store.clear_user_data()
        await self.client.clear_cache()

    async def verify_token(self) -> bool:
        """Return whether the stored session is still accepted.

        Rejections yield ``False``; network errors are raised, since they
        say nothing about the token.
        """
        try:
            response = await self.client.get("/auth/verify")
        except (HttpError, AuthError) as exc:
            logger.info("Token verification failed: %s", exc.code)
            return False
        body = response.data
        if isinstance(body, dict) and "success" in body:
            return bool(body["success"])
        return True

    async def get_current_user(self) -> User:
        try:
            response = await self.client.get("/auth/me")
        except HttpError as exc:
            raise _rejected(exc, "Could not load the current user") from exc
        data = self._data(response)
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        try:
            return User.model_validate(data)
        except ValidationError as exc:
            raise _invalid_response("current user") from exc

    async def check_email_exists(self, email: str) -> bool:
        try:
            response = await self.client.post("/auth/check-email", {"email": email}, allow_refresh=False)
        except HttpError as exc:
            logger.warning("Email check failed: %s", exc.code)
            return False
        data = self._data(response)
        return bool(isinstance(data, dict) and data.get("exists"))

    async def forgot_password(self, email: str) -> str:
        return await self._password_request("/auth/forgot-password", {"email": email})

    async def reset_password(self, token: str, password: str) -> str:
        return await self._password_request("/auth/reset-password", {"token": token, "password": password})

    async def _password_request(self, path: str, payload: Dict[str, Any]) -> str:
        try:
            response = await self.client.post(path, payload, allow_refresh=False)
        except HttpError as exc:
            raise _rejected(exc, "Password request failed") from exc
        data = self._data(response)
        message: Optional[str] = data.get("message") if isinstance(data, dict) else None
        if not message:
            raise _invalid_response("password")
        return message
