"""
auth/store.py -- SQLAlchemy Core persistence layer for account entities.

Pattern: Repository + Data Mapper.
UserStore is the repository for users, sessions (per-device refresh tokens)
and roles; the _row_to_* functions are the mappers. Services and routes never
touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Sessions:
  UNIQUE(user_id, device_id) is enforced in SQL and upsert_session() writes
  with INSERT ... ON CONFLICT DO UPDATE, so two concurrent sign-ins from the
  same device can never leave two rows behind. Only SQLite and PostgreSQL
  support that statement through SQLAlchemy; other dialects are rejected at
  construction time.

Timestamps are stored as ISO 8601 strings (UTC).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, UniqueConstraint, create_engine, event, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from auth.models import Role, Session, User

DEFAULT_ROLES = ("admin", "internal-moderator", "user")

_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role_name", String(45), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("firebase_id", String(255)),
    Column("google_id", String(255)),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255), nullable=False),
    Column("image", Text),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    Column("phone_number", String(32)),
    Column("password", String(255), nullable=False),  # bcrypt hash
    Column("otp_code", String(16)),
    Column("otp_expiration", String(32)),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("refresh_token", String(512), nullable=False, unique=True),
    Column("device_id", String(100), nullable=False),
    Column("device_name", String(100), nullable=False),
    Column("device_model", String(100), nullable=False),
    Column("refresh_token_expiration", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("user_id", "device_id", name="uq_refresh_tokens_user_device"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    # Rows written by other tools may lack an offset; they are UTC by contract.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User, Session and Role entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        role = store.get_role_by_name("user")
        user_id = store.create_user(User(email=..., password=hash_password(...), role_id=role.id, ...))
        store.close()
    """

    def __init__(self, db_url: str = "sqlite:///./accounts.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if self.engine.dialect.name not in _UPSERT_INSERTS:
            raise ValueError(f"Unsupported database dialect: {self.engine.dialect.name!r}")
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)
        self._ensure_default_roles()

    def _ensure_default_roles(self) -> None:
        """Seed the built-in roles if they are not present.

        Idempotent -- safe to call on every startup. Existing roles, including
        ones an operator created by hand, are left untouched.
        """
        with self.engine.connect() as conn:
            existing = {row.role_name for row in conn.execute(select(_roles.c.role_name))}
            now = _now_iso()
            for name in DEFAULT_ROLES:
                if name not in existing:
                    conn.execute(_roles.insert().values(role_name=name, created_at=now, updated_at=now))
            conn.commit()

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(select(1)).scalar() == 1

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(self, role_name: str) -> int:
        """Insert a role and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the name already exists.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_roles.insert().values(role_name=role_name, created_at=now, updated_at=now))
            conn.commit()
            return result.inserted_primary_key[0]

    def get_role(self, role_id: int) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    def get_role_by_name(self, role_name: str) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.role_name == role_name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def list_roles(self) -> list[Role]:
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.id)).fetchall()
        return [_row_to_role(r) for r in rows]

    def delete_role(self, role_id: int) -> bool:
        """Delete a role. Returns True if a row was removed.

        Raises sqlalchemy.exc.IntegrityError while users still reference it.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_roles.delete().where(_roles.c.id == role_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated UUID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Services check for duplicates first, so this only fires when two
        sign-ups for the same address race each other.
        """
        user_id = user.id or str(uuid.uuid4())
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    firebase_id=user.firebase_id,
                    google_id=user.google_id,
                    email=user.email,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    image=user.image,
                    role_id=user.role_id,
                    phone_number=user.phone_number,
                    password=user.password,
                    otp_code=user.otp_code,
                    otp_expiration=_to_iso(user.otp_expiration),
                    is_verified=1 if user.is_verified else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: password, otp_code, otp_expiration, is_verified,
        first_name, last_name, phone_number, image. otp_expiration is passed as
        a datetime (or None) and is_verified as bool; both are converted for
        storage here.

        Returns True if a row was updated, False if user_id was not found.
        """
        if "otp_expiration" in fields:
            fields["otp_expiration"] = _to_iso(fields["otp_expiration"])
        if "is_verified" in fields:
            fields["is_verified"] = 1 if fields["is_verified"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_password_by_email(self, email: str, password_hash: str) -> bool:
        """Replace the stored hash for the user with this email."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.email == email).values(password=password_hash, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar() or 0

    # ------------------------------------------------------------------
    # Sessions (per-device refresh tokens)
    # ------------------------------------------------------------------

    def upsert_session(self, session: Session) -> None:
        """Insert the session, or replace token, device metadata and expiry in place.

        The existing row keeps its id and created_at, so a device that signs in
        repeatedly is always represented by the same row.
        """
        now = _now_iso()
        insert = _UPSERT_INSERTS[self.engine.dialect.name]
        stmt = insert(_refresh_tokens).values(
            id=session.id or str(uuid.uuid4()),
            user_id=session.user_id,
            refresh_token=session.refresh_token,
            device_id=session.device_id,
            device_name=session.device_name,
            device_model=session.device_model,
            refresh_token_expiration=_to_iso(session.refresh_token_expiration),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "device_id"],
            set_={
                "refresh_token": stmt.excluded.refresh_token,
                "device_name": stmt.excluded.device_name,
                "device_model": stmt.excluded.device_model,
                "refresh_token_expiration": stmt.excluded.refresh_token_expiration,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with self.engine.connect() as conn:
            conn.execute(stmt)
            conn.commit()

    def get_session(self, user_id: str, device_id: str) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _refresh_tokens.select().where(
                    (_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.device_id == device_id)
                )
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def list_sessions(self, user_id: str) -> list[Session]:
        """Return every device session for a user, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _refresh_tokens.select()
                .where(_refresh_tokens.c.user_id == user_id)
                .order_by(_refresh_tokens.c.created_at)
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    def delete_session(self, user_id: str, device_id: str) -> bool:
        """Delete the session for one device. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.device_id == device_id)
                )
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        role_name=row.role_name,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        firebase_id=row.firebase_id,
        google_id=row.google_id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        image=row.image,
        role_id=row.role_id,
        phone_number=row.phone_number,
        password=row.password,
        otp_code=row.otp_code,
        otp_expiration=_from_iso(row.otp_expiration),
        is_verified=bool(row.is_verified),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        refresh_token=row.refresh_token,
        device_id=row.device_id,
        device_name=row.device_name,
        device_model=row.device_model,
        refresh_token_expiration=_from_iso(row.refresh_token_expiration),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
