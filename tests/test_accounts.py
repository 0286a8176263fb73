"""Unit tests for auth/accounts.py -- register, authenticate, update, delete.

Covers:
- registration defaults to role "user", hashes the password, hides the hash
- duplicate username or email -> DuplicateResource (both orders)
- self-registration cannot pick an elevated role
- login by username or by email; wrong password and unknown login look alike
- updates re-hash only when a password is supplied
- update/delete permission rules and NotFound
"""

from __future__ import annotations

import pytest
from conftest import TEST_ROUNDS, make_user

from auth.accounts import authenticate_user, delete_user, register_user, update_user
from auth.passwords import verify_password
from auth.store import UserStore
from core.errors import BadCredentials, DuplicateResource, Forbidden, InvalidInput, NotFound


def _register(store: UserStore, username: str = "alice", email: str = "a@x.com", password: str = "pw123", **kw):
    return register_user(store, username, email, password, rounds=TEST_ROUNDS, **kw)


class TestRegister:
    def test_defaults_and_hash(self, user_store: UserStore) -> None:
        user = _register(user_store)
        assert user.role == "user"
        assert user.hashed_password is None
        assert user.created_at

        stored = user_store.get_by_id(user.id)
        assert stored.hashed_password != "pw123"
        assert verify_password("pw123", stored.hashed_password)

    def test_input_is_trimmed(self, user_store: UserStore) -> None:
        user = _register(user_store, username="  bob ", email=" b@x.com ")
        assert (user.username, user.email) == ("bob", "b@x.com")

    def test_same_email_different_username_is_duplicate(self, user_store: UserStore) -> None:
        _register(user_store, username="alice", email="a@x.com")
        with pytest.raises(DuplicateResource):
            _register(user_store, username="alice2", email="a@x.com")
        with pytest.raises(DuplicateResource):
            _register(user_store, username="alice3", email="a@x.com")

    def test_same_username_is_duplicate(self, user_store: UserStore) -> None:
        _register(user_store, username="alice", email="a@x.com")
        with pytest.raises(DuplicateResource):
            _register(user_store, username="alice", email="other@x.com")

    @pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "a @b.com"])
    def test_invalid_email(self, user_store: UserStore, email: str) -> None:
        with pytest.raises(InvalidInput):
            _register(user_store, email=email)

    def test_empty_username_or_password(self, user_store: UserStore) -> None:
        with pytest.raises(InvalidInput):
            _register(user_store, username="   ")
        with pytest.raises(InvalidInput):
            _register(user_store, password="")

    def test_overlong_password_rejected(self, user_store: UserStore) -> None:
        with pytest.raises(InvalidInput):
            _register(user_store, password="x" * 73)

    def test_elevated_role_refused(self, user_store: UserStore) -> None:
        with pytest.raises(Forbidden) as excinfo:
            _register(user_store, role="admin")
        assert excinfo.value.reason == "role_change"
        assert user_store.find_by_username_or_email(username="alice") is None

    def test_unknown_role_is_invalid(self, user_store: UserStore) -> None:
        with pytest.raises(InvalidInput):
            _register(user_store, role="superuser")


class TestAuthenticate:
    def test_login_by_username_and_by_email(self, user_store: UserStore) -> None:
        created = _register(user_store)
        assert authenticate_user(user_store, "alice", "pw123", rounds=TEST_ROUNDS).id == created.id
        assert authenticate_user(user_store, "a@x.com", "pw123", rounds=TEST_ROUNDS).id == created.id

    def test_authenticated_user_has_no_hash(self, user_store: UserStore) -> None:
        _register(user_store)
        assert authenticate_user(user_store, "alice", "pw123", rounds=TEST_ROUNDS).hashed_password is None

    @pytest.mark.parametrize("login,password", [("alice", "wrong"), ("nobody", "pw123"), ("", "pw123")])
    def test_bad_credentials(self, user_store: UserStore, login: str, password: str) -> None:
        _register(user_store)
        with pytest.raises(BadCredentials):
            authenticate_user(user_store, login, password, rounds=TEST_ROUNDS)

    @pytest.mark.parametrize("login", ["alice", "nobody"])
    @pytest.mark.parametrize("password", ["x" * 100, "密" * 30])
    def test_overlong_password_is_bad_credentials(self, user_store: UserStore, login: str, password: str) -> None:
        """Passwords past bcrypt's 72-byte input fail as credentials, known login or not."""
        _register(user_store)
        with pytest.raises(BadCredentials):
            authenticate_user(user_store, login, password, rounds=TEST_ROUNDS)


class TestUpdate:
    def test_profile_change_keeps_hash(self, user_store: UserStore) -> None:
        user = make_user(user_store, "alice")
        before = user_store.get_by_id(user.id).hashed_password
        updated = update_user(user_store, user, user.id, email="new@x.com", rounds=TEST_ROUNDS)
        assert updated.email == "new@x.com"
        assert user_store.get_by_id(user.id).hashed_password == before

    def test_password_change_rehashes(self, user_store: UserStore) -> None:
        user = make_user(user_store, "alice")
        update_user(user_store, user, user.id, password="newpass", rounds=TEST_ROUNDS)
        stored = user_store.get_by_id(user.id).hashed_password
        assert verify_password("newpass", stored)
        assert not verify_password("pw123", stored)

    def test_user_cannot_change_role(self, user_store: UserStore) -> None:
        user = make_user(user_store, "alice")
        with pytest.raises(Forbidden):
            update_user(user_store, user, user.id, role="admin", rounds=TEST_ROUNDS)
        assert user_store.get_by_id(user.id).role == "user"

    def test_user_cannot_update_other(self, user_store: UserStore) -> None:
        alice = make_user(user_store, "alice")
        bob = make_user(user_store, "bob")
        with pytest.raises(Forbidden):
            update_user(user_store, alice, bob.id, email="x@x.com", rounds=TEST_ROUNDS)

    def test_admin_promotes_user(self, user_store: UserStore) -> None:
        admin = make_user(user_store, "root", role="admin")
        alice = make_user(user_store, "alice")
        assert update_user(user_store, admin, alice.id, role="moderator", rounds=TEST_ROUNDS).role == "moderator"

    def test_collision_is_duplicate(self, user_store: UserStore) -> None:
        alice = make_user(user_store, "alice")
        make_user(user_store, "bob")
        with pytest.raises(DuplicateResource):
            update_user(user_store, alice, alice.id, email="bob@example.com", rounds=TEST_ROUNDS)

    def test_keeping_own_email_is_not_a_collision(self, user_store: UserStore) -> None:
        alice = make_user(user_store, "alice")
        update_user(user_store, alice, alice.id, email="alice@example.com", rounds=TEST_ROUNDS)

    def test_empty_update(self, user_store: UserStore) -> None:
        alice = make_user(user_store, "alice")
        with pytest.raises(InvalidInput):
            update_user(user_store, alice, alice.id, rounds=TEST_ROUNDS)

    def test_missing_target(self, user_store: UserStore) -> None:
        admin = make_user(user_store, "root", role="admin")
        with pytest.raises(NotFound):
            update_user(user_store, admin, 999, email="x@x.com", rounds=TEST_ROUNDS)


class TestDelete:
    def test_admin_deletes_user(self, user_store: UserStore) -> None:
        admin = make_user(user_store, "root", role="admin")
        alice = make_user(user_store, "alice")
        delete_user(user_store, admin, alice.id)
        assert user_store.get_by_id(alice.id) is None

    def test_admin_cannot_delete_self(self, user_store: UserStore) -> None:
        admin = make_user(user_store, "root", role="admin")
        with pytest.raises(Forbidden) as excinfo:
            delete_user(user_store, admin, admin.id)
        assert excinfo.value.reason == "self_delete"
        assert user_store.get_by_id(admin.id) is not None

    def test_missing_target(self, user_store: UserStore) -> None:
        admin = make_user(user_store, "root", role="admin")
        with pytest.raises(NotFound):
            delete_user(user_store, admin, 999)
