"""Unit tests for auth/access.py -- role gate and self-action rules."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from auth.access import authorize, check_can_delete, check_can_update, require_role
from auth.models import AuthContext, User
from core.errors import Forbidden, Unauthenticated


def _user(role: str, uid: int = 1) -> User:
    return User(username=f"{role}{uid}", email=f"{role}{uid}@example.com", role=role, id=uid)


def _context(user: User) -> AuthContext:
    return AuthContext(user=user, token="t", expires_at=datetime.now(timezone.utc))


class TestAuthorize:
    @pytest.mark.parametrize("role", ["user", "admin", "moderator"])
    def test_empty_roles_means_any_authenticated_user(self, role: str) -> None:
        assert authorize(_user(role), ()) is True

    def test_role_membership(self) -> None:
        assert authorize(_user("admin"), ["admin"]) is True
        assert authorize(_user("moderator"), ["admin", "moderator"]) is True
        assert authorize(_user("user"), ["admin"]) is False


class TestRequireRole:
    def test_no_identity_is_unauthenticated_not_forbidden(self) -> None:
        with pytest.raises(Unauthenticated):
            require_role(None, ["admin"])

    def test_user_rejected_from_admin_operation(self) -> None:
        with pytest.raises(Forbidden) as excinfo:
            require_role(_context(_user("user")), ["admin"])
        assert excinfo.value.reason == "role"
        assert excinfo.value.status_code == 403

    def test_admin_accepted(self) -> None:
        admin = _user("admin")
        assert require_role(_context(admin), ["admin"]) is admin


class TestSelfActionRules:
    def test_user_may_update_own_profile_fields(self) -> None:
        check_can_update(_user("user", 5), 5, {"username", "email", "password"})

    def test_user_may_not_update_someone_else(self) -> None:
        with pytest.raises(Forbidden) as excinfo:
            check_can_update(_user("user", 5), 6, {"email"})
        assert excinfo.value.reason == "not_owner"

    def test_user_may_not_change_own_role(self) -> None:
        with pytest.raises(Forbidden) as excinfo:
            check_can_update(_user("moderator", 5), 5, {"role"})
        assert excinfo.value.reason == "role_change"

    def test_admin_may_update_anyone_including_role(self) -> None:
        check_can_update(_user("admin", 1), 9, {"role", "email"})

    def test_admin_self_delete_is_forbidden_with_distinct_reason(self) -> None:
        with pytest.raises(Forbidden) as excinfo:
            check_can_delete(_user("admin", 1), 1)
        assert excinfo.value.reason == "self_delete"

    def test_non_admin_cannot_delete(self) -> None:
        with pytest.raises(Forbidden) as excinfo:
            check_can_delete(_user("moderator", 2), 3)
        assert excinfo.value.reason == "role"

    def test_admin_deletes_other(self) -> None:
        check_can_delete(_user("admin", 1), 2)
