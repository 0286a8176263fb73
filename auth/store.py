"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as banners/store.py).
UserStore and RevocationStore are the repositories; _row_to_user /
_row_to_revocation are the mappers. Account and token code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  users.username and users.email carry UNIQUE constraints, so a concurrent
  duplicate registration that slips past the pre-insert lookup still fails
  with IntegrityError, which create_user()/update_user() turn into
  DuplicateResource.

  revoked_tokens.token is UNIQUE; insert_if_absent() relies on it for
  idempotent logout.

Expiry:
  revoked_tokens.expires_at is stored as integer epoch seconds (the token's
  own exp claim). exists_by_token() ignores rows already past expires_at, and
  purge_expired() deletes them. The API lifespan runs purge_expired() on a
  timer; nothing on the request path sweeps.

Layer rule: no imports from api/ or banners/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import DEFAULT_ROLE, RevocationEntry, User
from core.db import make_engine, store_errors
from core.errors import DuplicateResource

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=DEFAULT_ROLE),
    Column("created_at", String(32), nullable=False),
)

_revoked_tokens = Table(
    "revoked_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", Text, nullable=False, unique=True),
    Column("expires_at", Integer, nullable=False, index=True),  # epoch seconds
    Column("revoked_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _epoch(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///bannerboard.db")
        uid = store.create_user(User(username="alice", email="a@x.com", hashed_password=hash_password("pw")))
        user = store.find_by_username_or_email(username="alice")
        store.close()
    """

    def __init__(self, db_url: str, timeout: float = 5.0, engine: Engine | None = None) -> None:
        self.engine: Engine = engine or make_engine(db_url, timeout)
        with store_errors("users.create_table"):
            _metadata.create_all(self.engine, tables=[_users])

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned ID.

        Raises DuplicateResource if the username or email is already taken.
        """
        try:
            with store_errors("users.insert"), self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        email=user.email,
                        hashed_password=user.hashed_password,
                        role=user.role,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateResource() from exc

    def get_by_id(self, user_id: int) -> User | None:
        with store_errors("users.get_by_id"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_username_or_email(
        self,
        username: str | None = None,
        email: str | None = None,
        exclude_id: int | None = None,
    ) -> User | None:
        """Return the first user whose username or email matches.

        exclude_id skips one record, so an update can check for collisions
        without matching the user being updated. Returns None if neither
        argument is given.
        """
        clauses = []
        if username:
            clauses.append(_users.c.username == username)
        if email:
            clauses.append(_users.c.email == email)
        if not clauses:
            return None
        query = _users.select().where(or_(*clauses))
        if exclude_id is not None:
            query = query.where(_users.c.id != exclude_id)
        with store_errors("users.find"), self.engine.connect() as conn:
            row = conn.execute(query.order_by(_users.c.id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by username. Admin-only operation."""
        with store_errors("users.list"), self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: username, email, hashed_password, role. Hashing is the
        caller's job -- this method stores what it is given.

        Returns True if a row was updated, False if user_id was not found.
        Raises DuplicateResource on a username/email collision.
        """
        try:
            with store_errors("users.update"), self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateResource() from exc
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Outstanding tokens for the user stay cryptographically valid; they fail
        verification at the subject lookup instead.
        """
        with store_errors("users.delete"), self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Revocation store (token blacklist)
# ---------------------------------------------------------------------------


class RevocationStore:
    """Repository for revoked session tokens, keyed by the exact token string."""

    def __init__(self, db_url: str, timeout: float = 5.0, engine: Engine | None = None) -> None:
        self.engine: Engine = engine or make_engine(db_url, timeout)
        with store_errors("revoked_tokens.create_table"):
            _metadata.create_all(self.engine, tables=[_revoked_tokens])

    def insert_if_absent(self, token: str, expires_at: datetime, revoked_at: datetime | None = None) -> bool:
        """Blacklist a token. Returns True if inserted, False if already present."""
        revoked_at = revoked_at or datetime.now(timezone.utc)
        try:
            with store_errors("revoked_tokens.insert"), self.engine.connect() as conn:
                conn.execute(
                    _revoked_tokens.insert().values(
                        token=token,
                        expires_at=_epoch(expires_at),
                        revoked_at=revoked_at.isoformat(),
                    )
                )
                conn.commit()
        except IntegrityError:
            return False
        return True

    def exists_by_token(self, token: str, now: datetime | None = None) -> bool:
        """Return True if the token is blacklisted and the entry has not expired."""
        cutoff = _epoch(now or datetime.now(timezone.utc))
        with store_errors("revoked_tokens.exists"), self.engine.connect() as conn:
            row = conn.execute(
                select(_revoked_tokens.c.id)
                .where((_revoked_tokens.c.token == token) & (_revoked_tokens.c.expires_at > cutoff))
            ).fetchone()
        return row is not None

    def get(self, token: str) -> RevocationEntry | None:
        """Return the raw entry for a token, expired or not."""
        with store_errors("revoked_tokens.get"), self.engine.connect() as conn:
            row = conn.execute(_revoked_tokens.select().where(_revoked_tokens.c.token == token)).fetchone()
        return _row_to_revocation(row) if row is not None else None

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete every entry whose token has expired. Returns rows removed."""
        cutoff = _epoch(now or datetime.now(timezone.utc))
        with store_errors("revoked_tokens.purge"), self.engine.connect() as conn:
            result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.expires_at <= cutoff))
            conn.commit()
        return result.rowcount

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
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
    )


def _row_to_revocation(row) -> RevocationEntry:
    return RevocationEntry(
        id=row.id,
        token=row.token,
        expires_at=datetime.fromtimestamp(row.expires_at, tz=timezone.utc),
        revoked_at=datetime.fromisoformat(row.revoked_at),
    )
