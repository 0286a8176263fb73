"""
auth/accounts.py -- Account operations: register, authenticate, update, delete.

These functions own the business rules around the credential store so route
handlers stay thin. They raise core.errors exceptions; the API layer maps
them to HTTP responses.

Hashing rule: a password is hashed on insert and whenever the password field
is supplied on update. Updating any other field never re-hashes.

Timing: authenticate_user() always runs bcrypt, against a dummy hash when the
login matches no user, so response time does not reveal which usernames or
emails exist.

Layer rule: no imports from api/ or banners/.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

from auth.access import check_can_delete, check_can_update
from auth.models import DEFAULT_ROLE, ROLES, User
from auth.passwords import DEFAULT_ROUNDS, MAX_PASSWORD_BYTES, hash_password, verify_password
from auth.store import UserStore
from core.errors import BadCredentials, DuplicateResource, Forbidden, InvalidInput, NotFound

logger = logging.getLogger("bannerboard.auth")

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"
_EMAIL_RE = re.compile(EMAIL_PATTERN)


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    return hash_password("bannerboard_timing_dummy", rounds=rounds)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _clean_username(username: str) -> str:
    username = (username or "").strip()
    if not username or len(username) > 255:
        raise InvalidInput("Username must be between 1 and 255 characters.")
    return username


def _clean_email(email: str) -> str:
    email = (email or "").strip()
    if len(email) > 255 or not _EMAIL_RE.match(email):
        raise InvalidInput("Please enter a valid email address.")
    return email


def _check_password(password: str) -> str:
    if not password:
        raise InvalidInput("Password is required.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidInput(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    return password


def _check_role(role: str) -> str:
    if role not in ROLES:
        raise InvalidInput(f"Role must be one of: {', '.join(ROLES)}.")
    return role


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def register_user(
    store: UserStore,
    username: str,
    email: str,
    password: str,
    role: str | None = None,
    rounds: int = DEFAULT_ROUNDS,
) -> User:
    """Create a new account with the default role and return its public view.

    Self-registration cannot pick an elevated role; admins promote accounts
    afterwards through update_user().
    """
    username = _clean_username(username)
    email = _clean_email(email)
    _check_password(password)
    role = _check_role(role or DEFAULT_ROLE)
    if role != DEFAULT_ROLE:
        raise Forbidden("Only an admin can assign roles.", reason="role_change")

    if store.find_by_username_or_email(username=username, email=email) is not None:
        raise DuplicateResource()

    user_id = store.create_user(
        User(
            username=username,
            email=email,
            role=role,
            hashed_password=hash_password(password, rounds=rounds),
        )
    )
    created = store.get_by_id(user_id)
    if created is None:
        raise NotFound("User not found after write.")
    logger.info("Registered user id=%s", user_id)
    return created.public()


def authenticate_user(store: UserStore, login: str, password: str, rounds: int = DEFAULT_ROUNDS) -> User:
    """Return the public user matching login (username or email) and password.

    Raises BadCredentials for an unknown login and a wrong password alike.
    A password longer than bcrypt's 72-byte input can never have been set,
    so it fails the same way, after the same amount of bcrypt work.
    """
    password = password or ""
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        verify_password(raw[:MAX_PASSWORD_BYTES].decode("utf-8", "ignore"), _dummy_hash(rounds))
        raise BadCredentials()

    login = (login or "").strip()
    user = store.find_by_username_or_email(username=login, email=login) if login else None
    if user is None or user.hashed_password is None:
        # Equalize timing -- do NOT return before running bcrypt
        verify_password(password, _dummy_hash(rounds))
        raise BadCredentials()
    if not verify_password(password, user.hashed_password):
        logger.info("Failed login for user id=%s", user.id)
        raise BadCredentials()
    return user.public()


def update_user(
    store: UserStore,
    actor: User,
    target_id: int,
    *,
    username: str | None = None,
    email: str | None = None,
    password: str | None = None,
    role: str | None = None,
    rounds: int = DEFAULT_ROUNDS,
) -> User:
    """Apply a partial update to target_id on behalf of actor.

    Permission is checked before the target is loaded, so a non-admin probing
    other ids gets Forbidden whether or not the id exists.
    """
    requested = {
        name: value
        for name, value in (("username", username), ("email", email), ("password", password), ("role", role))
        if value is not None
    }
    if not requested:
        raise InvalidInput("No fields to update.")
    check_can_update(actor, target_id, requested)

    if store.get_by_id(target_id) is None:
        raise NotFound("User not found.")

    fields: dict = {}
    if username is not None:
        fields["username"] = _clean_username(username)
    if email is not None:
        fields["email"] = _clean_email(email)
    if role is not None:
        fields["role"] = _check_role(role)
    if password is not None:
        _check_password(password)

    if "username" in fields or "email" in fields:
        clash = store.find_by_username_or_email(
            username=fields.get("username"),
            email=fields.get("email"),
            exclude_id=target_id,
        )
        if clash is not None:
            raise DuplicateResource()

    if password is not None:
        fields["hashed_password"] = hash_password(password, rounds=rounds)

    if not store.update_user(target_id, **fields):
        raise NotFound("User not found.")
    updated = store.get_by_id(target_id)
    if updated is None:
        raise NotFound("User not found.")
    if "role" in fields:
        logger.info("User id=%s set role of user id=%s to %s", actor.id, target_id, fields["role"])
    return updated.public()


def delete_user(store: UserStore, actor: User, target_id: int) -> None:
    check_can_delete(actor, target_id)
    if not store.delete_user(target_id):
        raise NotFound("User not found.")
    logger.info("User id=%s deleted user id=%s", actor.id, target_id)
