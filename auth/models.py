"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
account operations do the work; these own the domain shape.

Layer rule: no imports from api/ or banners/.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

ROLES: tuple[str, ...] = ("user", "admin", "moderator")
DEFAULT_ROLE = "user"


@dataclass
class User:
    """A registered account.

    hashed_password is a bcrypt hash and is None only on the public projection
    returned by public(); stores always persist a hash.
    """

    username: str
    email: str
    role: str = DEFAULT_ROLE  # "user", "admin", "moderator"
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None

    def public(self) -> User:
        """Return a copy without the password hash."""
        return replace(self, hashed_password=None)


@dataclass
class RevocationEntry:
    """A blacklisted session token.

    expires_at is copied from the token's own exp claim, so the entry never
    outlives the token it revokes.
    """

    token: str
    expires_at: datetime
    revoked_at: datetime | None = None
    id: int | None = None


@dataclass(frozen=True)
class AuthContext:
    """Identity produced by token verification and threaded into later steps."""

    user: User
    token: str
    expires_at: datetime
