"""
API response models for the account service REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two with the
from_* factory methods.

Every success body is an envelope with a human-readable `message` and, where
there is something to return, a `data` field. Every error body is
{"error": "<message>"}.

Request bodies are not modelled here. Routes accept the raw JSON object and
the services validate it (auth/validators.py), so input errors come back as
400 with the first failing rule's message.
"""

from datetime import datetime
from typing import Annotated, Any, Optional

from fastapi import Body
from pydantic import BaseModel, ConfigDict

from auth.models import Role, User

# Raw JSON object body. None when the request has no body.
JsonBody = Annotated[Optional[dict[str, Any]], Body()]

# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """The full user record, as stored.

    Includes the password hash and OTP fields: profile consumers rely on the
    complete row. The plaintext password is never part of it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    firebase_id: Optional[str] = None
    google_id: Optional[str] = None
    image: Optional[str] = None
    role_id: int
    phone_number: Optional[str] = None
    password: str
    otp_code: Optional[str] = None
    otp_expiration: Optional[datetime] = None
    is_verified: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            firebase_id=user.firebase_id,
            google_id=user.google_id,
            image=user.image,
            role_id=user.role_id,
            phone_number=user.phone_number,
            password=user.password,
            otp_code=user.otp_code,
            otp_expiration=user.otp_expiration,
            is_verified=user.is_verified,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class RoleResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    role_name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_role(cls, role: Role) -> "RoleResponse":
        return cls(id=role.id, role_name=role.role_name, created_at=role.created_at, updated_at=role.updated_at)


class SignInData(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse
    access_token: str
    refresh_token: str


class AccessTokenData(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class UserEnvelope(MessageResponse):
    data: UserResponse


class SignInEnvelope(MessageResponse):
    data: SignInData


class AccessTokenEnvelope(MessageResponse):
    data: AccessTokenData


class RoleEnvelope(MessageResponse):
    data: RoleResponse


class RoleListEnvelope(MessageResponse):
    data: list[RoleResponse]


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx produced by the service."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
