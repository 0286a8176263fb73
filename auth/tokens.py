"""
auth/tokens.py -- Session token issue, verification and revocation.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), iat, exp and a
       random jti. The jti makes every issued token string unique, so logging
       out one session never blacklists another session of the same user that
       happened to be issued in the same second.

  Configuration is injected: TokenIssuer and TokenVerifier receive an
       AuthConfig built by the app at startup. Nothing here reads settings
       or secrets at import time, which keeps tests free to build their own
       config with a fixed clock.

  Verification order is fixed: presence, blacklist, signature, expiry,
       subject. The blacklist is consulted before the signature so a revoked
       token is rejected uniformly even while it is still cryptographically
       valid. python-jose's own exp check is switched off so that expiry is
       judged against the injected clock and reported as TokenExpired rather
       than lumped in with bad signatures.

  Revocation lifetime is derived from the token's own exp claim, not from
       the configured TTL. If the TTL changes, blacklist entries follow the
       tokens they revoke.

Layer rule: no imports from api/ or banners/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt
from jose.exceptions import JOSEError

from auth.models import AuthContext, RevocationEntry
from core.errors import InternalFailure, MalformedToken, MissingToken, SubjectNotFound, TokenExpired, TokenRevoked

if TYPE_CHECKING:
    from auth.store import RevocationStore, UserStore
    from core.config import Settings

logger = logging.getLogger("bannerboard.auth")

_ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuthConfig:
    """Everything the token layer needs, passed in explicitly."""

    secret_key: str
    token_ttl_seconds: int = DEFAULT_TTL_SECONDS
    bcrypt_rounds: int = 12
    algorithm: str = _ALGORITHM
    clock: Callable[[], datetime] = field(default=_utcnow, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthConfig:
        return cls(
            secret_key=settings.secret_key,
            token_ttl_seconds=settings.token_expire_seconds,
            bcrypt_rounds=settings.bcrypt_rounds,
        )


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------


class TokenIssuer:
    def __init__(self, config: AuthConfig) -> None:
        self.config = config

    def issue(self, user_id: int) -> str:
        """Return a signed token for user_id expiring exactly one TTL from now."""
        issued_at = int(self.config.clock().timestamp())
        claims = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + self.config.token_ttl_seconds,
            "jti": secrets.token_hex(16),
        }
        try:
            return jwt.encode(claims, self.config.secret_key, algorithm=self.config.algorithm)
        except JOSEError as exc:
            raise InternalFailure(detail="sign") from exc

    def expires_in(self) -> int:
        return self.config.token_ttl_seconds


# ---------------------------------------------------------------------------
# Verify
# ---------------------------------------------------------------------------


class TokenVerifier:
    """Turns a presented token string into an AuthContext or raises.

    Usage:
        verifier = TokenVerifier(config, user_store, revocation_store)
        context = verifier.verify(token)      # AuthContext
        context.user.role                     # "user" | "admin" | "moderator"
    """

    def __init__(self, config: AuthConfig, users: UserStore, revocations: RevocationStore) -> None:
        self.config = config
        self.users = users
        self.revocations = revocations

    def verify(self, token: str | None) -> AuthContext:
        if not token:
            raise MissingToken()

        now = self.config.clock()
        if self.revocations.exists_by_token(token, now):
            raise TokenRevoked()

        subject, expires_at = self._decode(token)
        if now >= expires_at:
            raise TokenExpired()

        user = self.users.get_by_id(subject)
        if user is None:
            raise SubjectNotFound()
        return AuthContext(user=user.public(), token=token, expires_at=expires_at)

    def _decode(self, token: str) -> tuple[int, datetime]:
        try:
            claims = jwt.decode(
                token,
                self.config.secret_key,
                algorithms=[self.config.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise MalformedToken() from exc
        try:
            subject = int(claims["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedToken(detail="sub") from exc
        return subject, _expiry_of(claims)


# ---------------------------------------------------------------------------
# Revoke
# ---------------------------------------------------------------------------


def revoke_token(token: str | None, revocations: RevocationStore, config: AuthConfig | None = None) -> RevocationEntry:
    """Blacklist a token until its own expiry.

    The token's signature and expiry are not checked -- an expired token can
    still be revoked. A token with no decodable exp cannot be safely bounded
    and is rejected with MalformedToken without touching the store.

    Revoking the same token twice stores nothing new and returns the
    original entry.
    """
    if not token:
        raise MissingToken()
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise MalformedToken(detail="exp") from exc
    expires_at = _expiry_of(claims)

    clock = config.clock if config is not None else _utcnow
    revoked_at = clock()
    if revocations.insert_if_absent(token, expires_at, revoked_at=revoked_at):
        return RevocationEntry(token=token, expires_at=expires_at, revoked_at=revoked_at)

    logger.info("Token already revoked (expires %s)", expires_at.isoformat())
    existing = revocations.get(token)
    if existing is None:
        # Purged between the insert attempt and the lookup; it had expired.
        return RevocationEntry(token=token, expires_at=expires_at, revoked_at=revoked_at)
    return existing


def _expiry_of(claims: dict) -> datetime:
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise MalformedToken(detail="exp")
    try:
        return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=int(exp))
    except OverflowError as exc:
        raise MalformedToken(detail="exp") from exc
