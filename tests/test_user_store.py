"""
tests/test_user_store.py -- Unit tests for UserStore (SQLAlchemy Core repository).

Coverage:
  - default roles seeded once, idempotent across re-opens
  - role create / duplicate / delete
  - user round-trip including timezone-aware otp_expiration
  - email uniqueness enforced by the schema
  - session upsert: one row per (user, device), id and created_at kept
  - foreign keys: roles in use cannot be deleted, sessions need a real user
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Session, User
from auth.store import DEFAULT_ROLES, UserStore


def _user(store: UserStore, email: str = "ada@example.com") -> User:
    return User(
        email=email,
        first_name="Ada",
        last_name="Lovelace",
        password="$2b$04$hash",
        role_id=store.get_role_by_name("user").id,
        otp_code="123456",
        otp_expiration=datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


def _session(user_id: str, device_id: str = "device-1", token: str = "rt-1", **overrides) -> Session:
    values = {
        "user_id": user_id,
        "device_id": device_id,
        "device_name": "Pixel",
        "device_model": "Pixel 8",
        "refresh_token": token,
        "refresh_token_expiration": datetime.now(timezone.utc) + timedelta(days=7),
    }
    values.update(overrides)
    return Session(**values)


class TestRoles:
    def test_default_roles_seeded(self, store: UserStore) -> None:
        assert [r.role_name for r in store.list_roles()] == list(DEFAULT_ROLES)

    def test_seeding_is_idempotent(self, store: UserStore) -> None:
        url = str(store.engine.url)
        again = UserStore(url)
        try:
            assert len(again.list_roles()) == len(DEFAULT_ROLES)
        finally:
            again.close()

    def test_duplicate_role_raises(self, store: UserStore) -> None:
        with pytest.raises(IntegrityError):
            store.create_role("admin")

    def test_create_and_delete(self, store: UserStore) -> None:
        role_id = store.create_role("auditor")
        assert store.get_role(role_id).role_name == "auditor"
        assert store.delete_role(role_id) is True
        assert store.get_role(role_id) is None
        assert store.delete_role(role_id) is False

    def test_delete_role_in_use_raises(self, store: UserStore) -> None:
        store.create_user(_user(store))
        role_id = store.get_role_by_name("user").id
        with pytest.raises(IntegrityError):
            store.delete_role(role_id)
        assert store.get_role(role_id).role_name == "user"


class TestUsers:
    def test_round_trip(self, store: UserStore) -> None:
        user_id = store.create_user(_user(store))
        user = store.get_by_id(user_id)
        assert user.email == "ada@example.com"
        assert user.is_verified is False
        assert user.otp_expiration == datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert user.created_at and user.updated_at
        assert store.get_by_email("ada@example.com").id == user_id

    def test_email_unique(self, store: UserStore) -> None:
        store.create_user(_user(store))
        with pytest.raises(IntegrityError):
            store.create_user(_user(store))

    def test_update_user_converts_fields(self, store: UserStore) -> None:
        user_id = store.create_user(_user(store))
        assert store.update_user(user_id, is_verified=True, otp_code="", otp_expiration=None) is True
        user = store.get_by_id(user_id)
        assert user.is_verified is True
        assert user.otp_code == ""
        assert user.otp_expiration is None

    def test_update_unknown_user(self, store: UserStore) -> None:
        assert store.update_user("missing", otp_code="1") is False

    def test_update_password_by_email(self, store: UserStore) -> None:
        user_id = store.create_user(_user(store))
        assert store.update_password_by_email("ada@example.com", "$2b$04$other") is True
        assert store.get_by_id(user_id).password == "$2b$04$other"
        assert store.update_password_by_email("nobody@example.com", "x") is False


class TestSessions:
    def test_upsert_keeps_one_row_per_device(self, store: UserStore) -> None:
        user_id = store.create_user(_user(store))
        store.upsert_session(_session(user_id, token="rt-1"))
        first = store.get_session(user_id, "device-1")

        store.upsert_session(_session(user_id, token="rt-2", device_name="Pixel (work)"))
        sessions = store.list_sessions(user_id)
        assert len(sessions) == 1
        assert sessions[0].id == first.id
        assert sessions[0].created_at == first.created_at
        assert sessions[0].refresh_token == "rt-2"
        assert sessions[0].device_name == "Pixel (work)"

    def test_devices_are_independent(self, store: UserStore) -> None:
        user_id = store.create_user(_user(store))
        store.upsert_session(_session(user_id, "phone", "rt-phone"))
        store.upsert_session(_session(user_id, "laptop", "rt-laptop"))
        assert store.delete_session(user_id, "phone") is True
        assert store.delete_session(user_id, "phone") is False
        assert store.get_session(user_id, "laptop").refresh_token == "rt-laptop"

    def test_expiration_is_timezone_aware(self, store: UserStore) -> None:
        user_id = store.create_user(_user(store))
        store.upsert_session(_session(user_id))
        assert store.get_session(user_id, "device-1").refresh_token_expiration.tzinfo is not None

    def test_session_for_unknown_user_raises(self, store: UserStore) -> None:
        with pytest.raises(IntegrityError):
            store.upsert_session(_session("no-such-user"))
        assert store.list_sessions("no-such-user") == []
