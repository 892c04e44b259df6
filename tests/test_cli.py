"""
tests/test_cli.py -- Tests for the admin CLI in main.py.

Each test points the CLI at its own shared-memory database via --database-url
and keeps a store open on the same URL so the in-memory DB outlives the
CLI's own connection.
"""

from __future__ import annotations

import itertools

import pytest

from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password, verify_password
from main import main

_counter = itertools.count()


@pytest.fixture
def db_url():
    url = f"sqlite:///file:test_cli_{next(_counter)}?mode=memory&cache=shared&uri=true"
    keeper = UserStore(url)
    yield url
    keeper.close()


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 2
    assert "usage" in capsys.readouterr().out.lower()


def test_init_db_lists_default_roles(db_url: str, capsys) -> None:
    assert main(["--database-url", db_url, "init-db"]) == 0
    out = capsys.readouterr().out
    assert "admin, internal-moderator, user" in out


def test_create_role(db_url: str, capsys) -> None:
    assert main(["--database-url", db_url, "create-role", "auditor"]) == 0
    assert main(["--database-url", db_url, "create-role", "auditor"]) == 1
    assert "Role auditor already exists" in capsys.readouterr().out


def test_reset_password(db_url: str, capsys) -> None:
    store = UserStore(db_url)
    try:
        store.create_user(
            User(
                email="ops@example.com",
                first_name="Ops",
                last_name="Team",
                password=hash_password("Old!Passw0rd", rounds=4),
                role_id=store.get_role_by_name("admin").id,
            )
        )
        assert main(["--database-url", db_url, "reset-password", "ops@example.com", "N3w!Passw0rd"]) == 0
        assert verify_password("N3w!Passw0rd", store.get_by_email("ops@example.com").password)
    finally:
        store.close()


def test_reset_password_unknown_user(db_url: str, capsys) -> None:
    assert main(["--database-url", db_url, "reset-password", "nobody@example.com", "N3w!Passw0rd"]) == 1
    assert "User not found" in capsys.readouterr().out


def test_reset_password_policy(db_url: str, capsys) -> None:
    assert main(["--database-url", db_url, "reset-password", "nobody@example.com", "weakpass"]) == 1
    assert "Password must contain" in capsys.readouterr().out
