"""
auth/validators.py -- Input validation for account flows.

Each flow has a pydantic schema. validate() runs a raw mapping (usually a JSON
request body) through a schema and returns a ValidationResult holding either
the parsed model or the message of the FIRST failing rule. Services call
.unwrap(), which raises core.errors.ValidationError (HTTP 400) on failure.

Messages are looked up by (field, pydantic error type) in the schema's
`messages` table so clients see stable, human-written text instead of
pydantic's default wording. Fields are declared in the order their rules
should be reported.

None values are treated the same as absent keys.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Annotated, ClassVar, Generic, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic import ValidationError as SchemaError
from pydantic_core import PydanticCustomError

from core.errors import ValidationError

PASSWORD_POLICY_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "one number, and one special character."
)

_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^a-zA-Z\d]).+$")


def _check_password_policy(value: str) -> str:
    if not _PASSWORD_RE.fullmatch(value):
        raise PydanticCustomError("password_policy", PASSWORD_POLICY_MESSAGE)
    return value


# Length bounds run before the character-class check, so a short password
# reports the length rule first.
PolicyPassword = Annotated[str, Field(min_length=8, max_length=255), AfterValidator(_check_password_policy)]
RequiredStr = Annotated[str, Field(min_length=1, max_length=255)]

_EMAIL_MESSAGES = {
    ("email", "missing"): "Email is required",
    ("email", "value_error"): "Email format is invalid",
    ("email", "string_type"): "Email format is invalid",
}

_POLICY_PASSWORD_MESSAGES = {
    ("password", "missing"): "Password is required.",
    ("password", "string_too_short"): "Password must have at least 8 characters.",
    ("password", "string_too_long"): "Password must have at most 255 characters.",
    ("password", "password_policy"): PASSWORD_POLICY_MESSAGE,
}


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

T = TypeVar("T", bound="_Schema")


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    """Either a parsed value or an error message, never both."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the parsed value or raise ValidationError with the message."""
        if self.error is not None:
            raise ValidationError(self.error)
        return self.value


def validate(schema: type[T], data: Mapping | None) -> ValidationResult[T]:
    """Validate `data` against `schema` and report the first failure."""
    if not isinstance(data, Mapping):
        return ValidationResult(error="Request body must be a JSON object")
    present = {key: value for key, value in data.items() if value is not None}
    try:
        return ValidationResult(value=schema.model_validate(present))
    except SchemaError as exc:
        first = exc.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else ""
        message = schema.messages.get((field, first["type"]))
        return ValidationResult(error=message or f"{field}: {first['msg']}")


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    messages: ClassVar[dict[tuple[str, str], str]] = {}


class SignUpInput(_Schema):
    first_name: RequiredStr
    last_name: RequiredStr
    email: EmailStr
    password: PolicyPassword
    phone_number: Optional[str] = Field(default=None, max_length=32)
    image: Optional[str] = None
    firebase_id: Optional[str] = None
    google_id: Optional[str] = None

    messages: ClassVar[dict[tuple[str, str], str]] = {
        ("first_name", "missing"): "First name is required",
        ("first_name", "string_too_short"): "First name should at least minimum 1 character",
        ("last_name", "missing"): "Last name is required",
        ("last_name", "string_too_short"): "Last name should at least minimum 1 character",
        **_EMAIL_MESSAGES,
        **_POLICY_PASSWORD_MESSAGES,
    }


class SignInInput(_Schema):
    email: EmailStr
    password: RequiredStr
    device_id: RequiredStr
    device_name: str = "Unknown Device"
    device_model: str = "Unknown Model"

    messages: ClassVar[dict[tuple[str, str], str]] = {
        **_EMAIL_MESSAGES,
        ("password", "missing"): "Password is required.",
        ("password", "string_too_short"): "Password is required.",
        ("device_id", "missing"): "Device ID is required",
        ("device_id", "string_too_short"): "Device ID is required",
        ("device_id", "string_type"): "Device ID must be a string",
    }


class SignOutInput(_Schema):
    device_id: RequiredStr

    messages: ClassVar[dict[tuple[str, str], str]] = {
        ("device_id", "missing"): "Device ID is required",
        ("device_id", "string_too_short"): "Device ID is required",
        ("device_id", "string_type"): "Device ID must be a string",
    }


class RefreshTokenInput(_Schema):
    user_id: RequiredStr
    device_id: RequiredStr
    refresh_token: Annotated[str, Field(min_length=1, max_length=512)]

    messages: ClassVar[dict[tuple[str, str], str]] = {
        ("user_id", "missing"): "User ID is required",
        ("user_id", "string_too_short"): "User ID is required",
        ("user_id", "string_type"): "User ID must be a string",
        ("device_id", "missing"): "Device ID is required",
        ("device_id", "string_too_short"): "Device ID is required",
        ("device_id", "string_type"): "Device ID must be a string",
        ("refresh_token", "missing"): "Refresh token is required",
        ("refresh_token", "string_too_short"): "Refresh token is required",
        ("refresh_token", "string_type"): "Refresh token must be a string",
    }


class EmailInput(_Schema):
    email: EmailStr

    messages: ClassVar[dict[tuple[str, str], str]] = dict(_EMAIL_MESSAGES)


class VerifyOtpInput(_Schema):
    email: EmailStr
    otp_code: RequiredStr

    messages: ClassVar[dict[tuple[str, str], str]] = {
        **_EMAIL_MESSAGES,
        ("otp_code", "missing"): "OTP code is required",
        ("otp_code", "string_too_short"): "OTP code is required",
        ("otp_code", "string_type"): "OTP code must be a string",
    }


class PasswordInput(_Schema):
    password: PolicyPassword

    messages: ClassVar[dict[tuple[str, str], str]] = dict(_POLICY_PASSWORD_MESSAGES)


class ResetPasswordInput(_Schema):
    email: EmailStr
    password: PolicyPassword

    messages: ClassVar[dict[tuple[str, str], str]] = {**_EMAIL_MESSAGES, **_POLICY_PASSWORD_MESSAGES}


class RoleInput(_Schema):
    role_name: Annotated[str, Field(min_length=1, max_length=45)]

    messages: ClassVar[dict[tuple[str, str], str]] = {
        ("role_name", "missing"): "Role name is required",
        ("role_name", "string_too_short"): "Role name is required",
        ("role_name", "string_too_long"): "Role name must have at most 45 characters",
    }
