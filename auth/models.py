"""
auth/models.py -- Domain dataclasses for account entities.

Pattern: Data class (pure data container, zero logic). The store owns the
mapping to and from table rows; services and routes do the work.

Timestamps are timezone-aware UTC datetimes in memory. The store persists
them as ISO 8601 strings.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Role:
    role_name: str
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class User:
    """A registered account.

    password always holds a bcrypt hash, never the plaintext.

    otp_code / otp_expiration are written together when a code is issued.
    After a successful verification otp_code is "" and otp_expiration is None.
    A user who never requested a code has otp_code None.

    firebase_id / google_id are references to external identities. They are
    persisted but no flow in this service reads them.
    """

    email: str
    first_name: str
    last_name: str
    password: str
    role_id: int
    id: str | None = None
    firebase_id: str | None = None
    google_id: str | None = None
    phone_number: str | None = None
    image: str | None = None
    otp_code: str | None = None
    otp_expiration: datetime | None = None
    is_verified: bool = False
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Session:
    """One refresh token bound to one (user, device) pair.

    The store guarantees at most one row per (user_id, device_id). Signing in
    again on the same device replaces refresh_token, the device metadata and
    refresh_token_expiration in place.
    """

    user_id: str
    device_id: str
    device_name: str
    device_model: str
    refresh_token: str
    refresh_token_expiration: datetime
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
