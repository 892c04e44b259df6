"""
auth/account.py -- OTP verification, password update and profile lookup.

AccountService works on a user who is identified either by email (OTP flows)
or by an access token (password update, profile).

OTP lifecycle per user:
  unverified --send_otp--> pending --verify_otp ok--> verified
  pending --wrong code--> pending
  pending --expired--> pending (caller must request a new code)

A successful verification sets is_verified and clears the code ("") and its
expiry together, so the same code can never be consumed twice. Nothing here
ever sets is_verified back to False.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
from collections.abc import Mapping

from auth.models import User
from auth.notifier import Notifier
from auth.service import issue_otp, utcnow, user_from_access_token
from auth.store import UserStore
from auth.tokens import hash_password
from auth.validators import EmailInput, PasswordInput, VerifyOtpInput, validate
from core.config import Settings
from core.errors import NotFoundError, ValidationError

logger = logging.getLogger("accounts.account")


class AccountService:
    def __init__(self, store: UserStore, settings: Settings, notifier: Notifier) -> None:
        self.store = store
        self.settings = settings
        self.notifier = notifier

    async def send_otp(self, email: str | None) -> None:
        """Issue a fresh code, replacing any pending one, and email it in the background."""
        data = validate(EmailInput, {"email": email}).unwrap()
        user = self.store.get_by_email(data.email)
        if user is None:
            raise NotFoundError("User not found")

        otp_code, otp_expiration = issue_otp(self.settings)
        self.store.update_user(user.id, otp_code=otp_code, otp_expiration=otp_expiration)
        self.notifier.send_otp(user.email, user.first_name, otp_code, self.settings.otp_expire_seconds // 60)
        logger.info("OTP issued for user %s", user.id)

    async def verify_otp(self, email: str | None, otp_code: str | None) -> User:
        """Consume a pending code. The match is exact, with no trimming or case folding."""
        data = validate(VerifyOtpInput, {"email": email, "otp_code": otp_code}).unwrap()
        user = self.store.get_by_email(data.email)
        if user is None:
            raise NotFoundError("User not found")

        if not user.otp_code or not hmac.compare_digest(user.otp_code.encode(), data.otp_code.encode()):
            raise ValidationError("Invalid OTP code")
        if user.otp_expiration is None or user.otp_expiration < utcnow():
            raise ValidationError("OTP code has expired")

        self.store.update_user(user.id, is_verified=True, otp_code="", otp_expiration=None)
        logger.info("User %s verified", user.id)
        return self.store.get_by_id(user.id)

    async def update_password(self, access_token: str | None, new_password_data: Mapping) -> User:
        """Set a new password for the token's owner.

        The password policy is checked before the token is looked at, so a
        weak password is reported as 400 even when the token is also bad.
        """
        data = validate(PasswordInput, new_password_data).unwrap()
        user = user_from_access_token(self.store, self.settings, access_token)
        password_hash = await asyncio.to_thread(hash_password, data.password, self.settings.bcrypt_rounds)
        self.store.update_user(user.id, password=password_hash)
        logger.info("Password updated for user %s", user.id)
        return self.store.get_by_id(user.id)

    async def get_user_profile(self, access_token: str | None) -> User:
        return user_from_access_token(self.store, self.settings, access_token)
