"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The token is read from the Authorization: Bearer <token> header only. A
missing header or any other scheme is MissingToken.

get_auth_context() runs the full verification chain and returns the
AuthContext. The context is what later steps receive -- nothing is written
onto the request object.

require_roles(*roles) is the single composable check each protected route
uses: verify the token, then authorize the role. With no roles it only
requires authentication.

Errors are raised as core.errors exceptions; api/main.py maps them to 401/403.

Layer rule: no imports from api/ or banners/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.access import require_role
from auth.models import AuthContext, User
from auth.tokens import TokenVerifier


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an Authorization header value, or None."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def get_auth_context(request: Request) -> AuthContext:
    """Verify the request's bearer token. Raises on any verification failure.

    Use as a FastAPI dependency:
        @router.post("/auth/logout")
        def route(context: AuthContext = Depends(get_auth_context)): ...
    """
    verifier: TokenVerifier = request.app.state.token_verifier
    return verifier.verify(bearer_token(request.headers.get("Authorization")))


def require_roles(*roles: str) -> Callable[[AuthContext], User]:
    """Build a dependency that verifies the token, then checks the role.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(user: User = Depends(require_roles("admin"))): ...
    """

    def dependency(context: AuthContext = Depends(get_auth_context)) -> User:
        return require_role(context, roles)

    return dependency


get_current_user = require_roles()
require_admin = require_roles("admin")
