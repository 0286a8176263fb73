"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

bcrypt only reads the first 72 bytes of its input and bcrypt >= 5 raises on
longer input. accounts.py rejects such passwords as InvalidInput before they
get here.

Failures inside bcrypt (unreadable stored hash, bad salt) raise HashingError.
They are never reported as a mismatch: a corrupted hash column must show up
as a server fault, not as "wrong password".
"""

from __future__ import annotations

import bcrypt

from core.errors import HashingError

MAX_PASSWORD_BYTES = 72
DEFAULT_ROUNDS = 12


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    try:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")
    except ValueError as exc:
        raise HashingError(detail="hash") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError as exc:
        raise HashingError(detail="verify") from exc
