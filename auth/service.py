"""
auth/service.py -- Sign-up, sign-in, sign-out, token refresh and direct reset.

AuthService orchestrates the store, the token/hash primitives in auth/tokens.py
and the notifier. It holds no per-request state: every call re-reads the rows
it needs, so two requests never act on a stale copy of the same user.

Errors are raised as core.errors types and rendered by the HTTP layer:
  ValidationError     400 -- first failing input rule
  AuthenticationError 401 -- bad credentials, unusable refresh token
  TokenError          401 -- access token failed verification (propagated as-is)
  NotFoundError       404 -- unknown user, or no session for the device
  ConflictError       409 -- email already registered

Security:
  [C1] sign_in() runs bcrypt whether or not the email exists and returns the
       same message for both failures, so neither timing nor wording reveals
       which emails are registered.
  bcrypt runs in a worker thread (asyncio.to_thread) so hashing does not stall
  the event loop for other requests.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

from auth.models import Session, User
from auth.notifier import Notifier
from auth.store import UserStore
from auth.tokens import create_token, decode_token, generate_otp, hash_password, verify_password_or_dummy
from auth.validators import (
    RefreshTokenInput,
    ResetPasswordInput,
    SignInInput,
    SignOutInput,
    SignUpInput,
    validate,
)
from core.config import Settings
from core.errors import AuthenticationError, ConflictError, NotFoundError

logger = logging.getLogger("accounts.auth")

INVALID_CREDENTIALS = "Email or password is invalid"


@dataclass
class SignInResult:
    user: User
    access_token: str
    refresh_token: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def issue_otp(settings: Settings) -> tuple[str, datetime]:
    """Return a fresh (code, expiration) pair."""
    return generate_otp(settings.otp_length), utcnow() + timedelta(seconds=settings.otp_expire_seconds)


def user_from_access_token(store: UserStore, settings: Settings, access_token: str) -> User:
    """Verify an access token and load the user it names.

    TokenError from decode_token() propagates unchanged.
    """
    payload = decode_token(access_token, settings.access_token_secret)
    user = store.get_by_id(payload["userId"])
    if user is None:
        raise NotFoundError("User not found")
    return user


class AuthService:
    def __init__(self, store: UserStore, settings: Settings, notifier: Notifier) -> None:
        self.store = store
        self.settings = settings
        self.notifier = notifier

    async def sign_up(self, user_data: Mapping) -> User:
        """Register an unverified user and email them a verification code.

        The email is dispatched in the background; this call neither waits for
        it nor fails because of it.
        """
        data = validate(SignUpInput, user_data).unwrap()

        if self.store.get_by_email(data.email) is not None:
            raise ConflictError(f"Email {data.email} already exists")

        role = self.store.get_role_by_name(self.settings.default_role)
        if role is None:
            raise NotFoundError(f"Role {self.settings.default_role} not found")

        otp_code, otp_expiration = issue_otp(self.settings)
        password_hash = await asyncio.to_thread(hash_password, data.password, self.settings.bcrypt_rounds)

        try:
            user_id = self.store.create_user(
                User(
                    email=data.email,
                    first_name=data.first_name,
                    last_name=data.last_name,
                    password=password_hash,
                    role_id=role.id,
                    phone_number=data.phone_number,
                    image=data.image,
                    firebase_id=data.firebase_id,
                    google_id=data.google_id,
                    otp_code=otp_code,
                    otp_expiration=otp_expiration,
                    is_verified=False,
                )
            )
        except IntegrityError as exc:
            # A concurrent sign-up for the same address won the insert.
            raise ConflictError(f"Email {data.email} already exists") from exc

        self.notifier.send_otp(data.email, data.first_name, otp_code, self.settings.otp_expire_seconds // 60)
        logger.info("User %s signed up", user_id)
        return self.store.get_by_id(user_id)

    async def sign_in(
        self,
        credentials: Mapping,
        device_id: str | None,
        device_name: str | None = None,
        device_model: str | None = None,
    ) -> SignInResult:
        """Check credentials, mint an access/refresh pair, and bind the refresh token to the device.

        Signing in again on a device that already has a session replaces its
        token, metadata and expiry rather than adding a second row.
        """
        data = validate(
            SignInInput,
            {**credentials, "device_id": device_id, "device_name": device_name, "device_model": device_model},
        ).unwrap()

        user = self.store.get_by_email(data.email)
        matches = await asyncio.to_thread(
            verify_password_or_dummy, data.password, user.password if user is not None else None
        )
        if user is None or not matches:
            raise AuthenticationError(INVALID_CREDENTIALS)

        access_token = create_token(
            user.id, self.settings.access_token_secret, self.settings.access_token_expire_seconds
        )
        refresh_token = create_token(
            user.id, self.settings.refresh_token_secret, self.settings.refresh_token_expire_seconds
        )
        self.store.upsert_session(
            Session(
                user_id=user.id,
                device_id=data.device_id,
                device_name=data.device_name,
                device_model=data.device_model,
                refresh_token=refresh_token,
                refresh_token_expiration=utcnow() + timedelta(seconds=self.settings.refresh_token_expire_seconds),
            )
        )
        logger.info("User %s signed in on device %s", user.id, data.device_id)
        return SignInResult(user=user, access_token=access_token, refresh_token=refresh_token)

    async def sign_out(self, access_token: str, device_id: str | None) -> None:
        """Delete the session for one device.

        Not idempotent: signing out a device that has no session raises
        NotFoundError.
        """
        data = validate(SignOutInput, {"device_id": device_id}).unwrap()
        user = user_from_access_token(self.store, self.settings, access_token)
        if not self.store.delete_session(user.id, data.device_id):
            raise NotFoundError("Refresh token not found")
        logger.info("User %s signed out of device %s", user.id, data.device_id)

    async def refresh_token(self, user_id: str | None, device_id: str | None, refresh_token: str | None) -> str:
        """Mint a new access token from a device's stored refresh token.

        The supplied token must equal the stored one exactly and the stored
        expiry must not have passed. The refresh token itself is not rotated.
        """
        data = validate(
            RefreshTokenInput, {"user_id": user_id, "device_id": device_id, "refresh_token": refresh_token}
        ).unwrap()
        user = self.store.get_by_id(data.user_id)
        if user is None:
            raise NotFoundError("User not found")

        session = self.store.get_session(user.id, data.device_id)
        if session is None or not hmac.compare_digest(session.refresh_token.encode(), data.refresh_token.encode()):
            raise AuthenticationError("Invalid refresh token")
        if session.refresh_token_expiration < utcnow():
            raise AuthenticationError("Refresh token has expired")

        return create_token(user.id, self.settings.access_token_secret, self.settings.access_token_expire_seconds)

    async def reset_password(self, email: str, new_password: str) -> bool:
        """Replace a user's password without any OTP or token check.

        Trusted path only -- reachable from the admin CLI, not over HTTP.
        """
        data = validate(ResetPasswordInput, {"email": email, "password": new_password}).unwrap()
        if self.store.get_by_email(data.email) is None:
            raise NotFoundError("User not found")
        password_hash = await asyncio.to_thread(hash_password, data.password, self.settings.bcrypt_rounds)
        updated = self.store.update_password_by_email(data.email, password_hash)
        logger.info("Password reset for %s", data.email)
        return updated
