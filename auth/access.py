"""
auth/access.py -- Role-based access control.

authorize() is the pure predicate. require_role() wraps it with the two
distinct failures: no verified identity at all (Unauthenticated, 401) versus
an identity with the wrong role (Forbidden, 403).

check_can_update() and check_can_delete() layer the self-action rules for
user management on top:
  - anyone may update their own username, email and password;
  - only an admin may update another account or change any role;
  - only an admin may delete an account, and never their own through this path.

Layer rule: no imports from api/ or banners/.
"""

from __future__ import annotations

from collections.abc import Collection

from auth.models import AuthContext, User
from core.errors import Forbidden, Unauthenticated

ADMIN = "admin"


def authorize(user: User, allowed_roles: Collection[str] = ()) -> bool:
    """Return True if user's role is allowed. An empty collection allows any role."""
    return not allowed_roles or user.role in allowed_roles


def require_role(context: AuthContext | None, allowed_roles: Collection[str] = ()) -> User:
    """Return the context's user if authorized, raise otherwise."""
    if context is None:
        raise Unauthenticated()
    if not authorize(context.user, allowed_roles):
        raise Forbidden(
            f"Forbidden: User role '{context.user.role}' is not authorized to access this route.",
            reason="role",
        )
    return context.user


def check_can_update(actor: User, target_id: int, changes: Collection[str]) -> None:
    """Raise Forbidden if actor may not apply `changes` (field names) to target_id."""
    if actor.role == ADMIN:
        return
    if actor.id != target_id:
        raise Forbidden("You can only update your own account.", reason="not_owner")
    if "role" in changes:
        raise Forbidden("Only an admin can change roles.", reason="role_change")


def check_can_delete(actor: User, target_id: int) -> None:
    if actor.role != ADMIN:
        raise Forbidden("Only an admin can delete accounts.", reason="role")
    if actor.id == target_id:
        raise Forbidden("Admins cannot delete their own account.", reason="self_delete")
