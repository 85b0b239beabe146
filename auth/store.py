"""
auth/store.py -- SQLAlchemy Core persistence layer for membership entities.

Pattern: Repository + Data Mapper (same as catalog/store.py).
UserStore is the repository; _row_to_user / _row_to_role are the mappers.
The membership service never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(username) on users and UNIQUE(user_id, role_id) on user_roles are
  the source of truth for uniqueness. Callers may pre-check, but a concurrent
  writer can still slip between check and insert; the constraint then raises
  sqlalchemy.exc.IntegrityError, which the membership service translates.

DB path: auth/homecinema_auth.db unless AUTH_DB_URL is set.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Engine

from auth.models import Role, User, UserRole

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'homecinema_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(100), nullable=False, unique=True),
    Column("email", String(200), nullable=False),
    Column("salt", String(64), nullable=False),
    Column("hashed_password", String(200), nullable=False),
    Column("is_locked", Integer, nullable=False, server_default="0"),
    Column("date_created", String(32), nullable=False),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False, unique=True),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    UniqueConstraint("user_id", "role_id", name="uq_user_role"),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
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


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User, Role and UserRole entities.

    Usage:
        store = UserStore()
        store.ensure_roles(["Admin"])
        uid = store.create_user(User(username="alice", email="a@x.com", salt=s, hashed_password=h))
        store.add_user_roles([UserRole(uid, 1)])
        roles = store.get_roles_for_username("alice")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    email=user.email,
                    salt=user.salt,
                    hashed_password=user.hashed_password,
                    is_locked=1 if user.is_locked else 0,
                    date_created=user.date_created or _now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def set_locked(self, user_id: int, locked: bool) -> bool:
        """Set the lock flag. Returns True if a row was updated, False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(is_locked=1 if locked else 0))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def get_role(self, role_id: int) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    def list_roles(self) -> list[Role]:
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.id)).fetchall()
        return [_row_to_role(r) for r in rows]

    def ensure_roles(self, names: list[str]) -> list[Role]:
        """Create any missing roles, in order, and return all requested roles.

        Idempotent -- safe to call on every startup. Roles are reference data;
        existing rows are never renamed or deleted here.
        """
        with self.engine.begin() as conn:
            existing = {row.name for row in conn.execute(select(_roles.c.name))}
            for name in names:
                if name not in existing:
                    conn.execute(_roles.insert().values(name=name))
                    existing.add(name)
            rows = conn.execute(_roles.select().where(_roles.c.name.in_(names)).order_by(_roles.c.id)).fetchall()
        return [_row_to_role(r) for r in rows]

    # ------------------------------------------------------------------
    # User <-> role associations
    # ------------------------------------------------------------------

    def add_user_roles(self, links: list[UserRole]) -> None:
        """Write each user-role link in one transaction.

        Either every association is written or none is. Raises IntegrityError
        if a pair already exists or a foreign key does not resolve.
        """
        if not links:
            return
        with self.engine.begin() as conn:
            conn.execute(_user_roles.insert(), [{"user_id": link.user_id, "role_id": link.role_id} for link in links])

    def get_roles_for_username(self, username: str) -> set[Role]:
        """Return the distinct roles held by username via an explicit join.

        An unknown username simply matches no rows.
        """
        query = (
            select(_roles.c.id, _roles.c.name)
            .select_from(
                _users.join(_user_roles, _users.c.id == _user_roles.c.user_id).join(
                    _roles, _roles.c.id == _user_roles.c.role_id
                )
            )
            .where(_users.c.username == username)
            .distinct()
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return {_row_to_role(r) for r in rows}

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        salt=row.salt,
        hashed_password=row.hashed_password,
        is_locked=bool(row.is_locked),
        date_created=row.date_created,
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name)
