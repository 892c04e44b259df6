"""
auth/tokens.py -- JWT, password hashing, and OTP utilities.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens carry the same
       {"userId": ...} claim but are signed with different secrets and
       lifetimes, so a refresh token can never pass as an access token.
       Each token also carries a random jti, which keeps two tokens minted in
       the same second for the same user distinct. decode_token() raises
       TokenError on any failure; services let it propagate unchanged.

  Passwords: bcrypt directly. The _DUMMY_HASH constant enables timing
       equalization in sign-in so response time does not reveal whether an
       email is registered [C1].

  OTP: secrets.choice over the ten digits. Leading zeros are kept, so the
       code is always exactly `length` characters.

Secrets and lifetimes are passed in by the caller (from the injected
Settings). This module never reads configuration itself.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.errors import TokenError

_ALGORITHM = "HS256"
_BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = 10) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes. Inputs are capped at 255 characters
    by the validators, so longer ones are cut here rather than rejected.
    """
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database -- treat as a mismatch.
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load. Sign-in verifies against it when the email is
# unknown so both failure paths pay the same bcrypt cost.
_DUMMY_HASH: str = hash_password("accounts_timing_dummy")


def verify_password_or_dummy(plain: str, hashed: str | None) -> bool:
    """Verify against `hashed`, or burn the same bcrypt work and return False."""
    if hashed is None:
        verify_password(plain, _DUMMY_HASH)
        return False
    return verify_password(plain, hashed)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_token(user_id: str, secret: str, expire_seconds: int) -> str:
    """Encode a signed JWT carrying the user ID.

    Args:
        user_id:        The user's UUID, stored as the userId claim.
        secret:         Signing key (access or refresh secret).
        expire_seconds: Token lifetime in seconds.
    """
    expire = datetime.now(timezone.utc) + timedelta(seconds=expire_seconds)
    payload = {
        "userId": user_id,
        "exp": expire,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_token(token: str, secret: str) -> dict:
    """Decode and verify a JWT. Returns the payload dict.

    Raises:
        TokenError: "Token has expired" past exp, "Invalid token" for any other
            failure (bad signature, malformed token, missing userId claim).
    """
    if not isinstance(token, str) or not token:
        raise TokenError("Invalid token")
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenError("Token has expired") from exc
    except JWTError as exc:
        raise TokenError("Invalid token") from exc
    if not payload.get("userId"):
        raise TokenError("Invalid token")
    return payload


# ---------------------------------------------------------------------------
# OTP generation
# ---------------------------------------------------------------------------


def generate_otp(length: int = 6) -> str:
    """Return a random numeric code of exactly `length` digits."""
    return "".join(secrets.choice(string.digits) for _ in range(length))
