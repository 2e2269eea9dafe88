"""
Pydantic models for the payloads the client persists or receives.

The backend speaks camelCase JSON; fields are declared in snake_case
with aliases so both spellings are accepted on input and
``model_dump(by_alias=True)`` reproduces the wire format.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Credentials(BaseModel):
    """Access and refresh tokens as held by the token store."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = Field(None, description="Unix timestamp")


class TokenPair(BaseModel):
    """Body returned by the refresh endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")
    email: str
    role: Literal["ADMIN", "DOCTOR", "PATIENT"] = "PATIENT"
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    is_blocked: bool = Field(False, alias="isBlocked")
    verified: bool = False
    avatar: Optional[str] = None


class UserData(BaseModel):
    """Signed-in user together with the tokens issued for the session."""

    model_config = ConfigDict(populate_by_name=True)

    user: User
    token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


def unwrap_envelope(body: Any) -> Any:
    """Return the ``data`` member of a ``{"success": ..., "data": ...}`` body.

    Bodies without the envelope are returned unchanged.
    """
    if isinstance(body, dict) and "data" in body and isinstance(body["data"], dict):
        return body["data"]
    return body


def parse_token_pair(body: Any) -> TokenPair:
    """Validate a refresh response, enveloped or bare.

    Raises:
        pydantic.ValidationError: if no usable ``token`` is present.
    """
    return TokenPair.model_validate(unwrap_envelope(body))


def error_fields(body: Any) -> Dict[str, Any]:
    """Pick ``message``/``code``/``details`` out of an error body."""
    if not isinstance(body, dict):
        return {}
    fields: Dict[str, Any] = {}
    message = body.get("message") or body.get("error")
    if isinstance(message, str):
        fields["message"] = message
    if isinstance(body.get("code"), str):
        fields["code"] = body["code"]
    if body.get("details") is not None:
        fields["details"] = body["details"]
    return fields
