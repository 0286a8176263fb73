"""
api/routes/v1/auth.py -- Authentication and user management REST endpoints.

Routes:
  POST   /api/v1/auth/register      -- create account (role "user"); returns a token
  POST   /api/v1/auth/login         -- username-or-email + password; returns a token
  POST   /api/v1/auth/logout        -- blacklist the presented token (requires auth)
  GET    /api/v1/auth/profile       -- current user (requires auth)
  GET    /api/v1/auth/users         -- list all users (admin only)
  PUT    /api/v1/auth/users/{id}    -- update own account, or any account as admin
  DELETE /api/v1/auth/users/{id}    -- delete another account (admin only)

Handlers are thin: verification and role checks come from auth.dependencies,
business rules from auth.accounts. Errors propagate as core.errors exceptions
and api/main.py renders them.

Security:
  POST /login and /register are rate-limited per IP.
  authenticate_user() equalizes timing -- use it, never inline the lookup.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RowId,
    TokenResponse,
    UserResponse,
    UserUpdate,
)
from auth.accounts import authenticate_user, delete_user, register_user, update_user
from auth.dependencies import get_auth_context, get_current_user, require_admin
from auth.models import AuthContext, User
from auth.store import RevocationStore, UserStore
from auth.tokens import AuthConfig, TokenIssuer, revoke_token

logger = logging.getLogger("bannerboard.api.auth")

# Auth policy:
# - POST   /auth/register:     public
# - POST   /auth/login:        public
# - POST   /auth/logout:       requires auth (get_auth_context)
# - GET    /auth/profile:      requires auth (get_current_user)
# - GET    /auth/users:        requires admin (require_admin)
# - PUT    /auth/users/{id}:   requires auth; ownership and role rules in accounts.update_user
# - DELETE /auth/users/{id}:   requires admin; self-delete refused in accounts.delete_user
router = APIRouter()


def _token_response(request: Request, user: User, status_code: int) -> JSONResponse:
    issuer: TokenIssuer = request.app.state.token_issuer
    body = TokenResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        access_token=issuer.issue(user.id),
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=issuer.expires_in(),
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(register_limit)
@router.post("/auth/register", response_model=TokenResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and log it in.

    Duplicate username or email -> 409 duplicate_resource. Asking for any role
    other than "user" -> 403 forbidden (reason role_change).
    """
    config: AuthConfig = request.app.state.auth_config
    user = register_user(
        request.app.state.user_store,
        body.username,
        body.email,
        body.password,
        role=body.role.value if body.role else None,
        rounds=config.bcrypt_rounds,
    )
    return _token_response(request, user, 201)


@limiter.limit(login_limit)
@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username or email plus password; return a token.

    Wrong login and wrong password produce the same bad_credentials error.
    """
    config: AuthConfig = request.app.state.auth_config
    user = authenticate_user(request.app.state.user_store, body.login, body.password, rounds=config.bcrypt_rounds)
    return _token_response(request, user, 200)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, context: AuthContext = Depends(get_auth_context)) -> MessageResponse:
    """Blacklist the presented token until its own expiry."""
    revocations: RevocationStore = request.app.state.revocation_store
    revoke_token(context.token, revocations, request.app.state.auth_config)
    logger.info("User id=%s logged out", context.user.id)
    return MessageResponse(message="Logged out successfully")


@router.get("/auth/profile", response_model=UserResponse)
def profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_user(current_user)


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(request: Request, current_user: User = Depends(require_admin)) -> list[UserResponse]:
    """List all user accounts. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u.public()) for u in user_store.list_users()]


@router.put("/auth/users/{user_id}", response_model=UserResponse)
def update_account(
    request: Request,
    user_id: RowId,
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Update username, email, password or role.

    Users may change their own non-role fields. Admins may change anything on
    any account. Only a supplied password is re-hashed.
    """
    config: AuthConfig = request.app.state.auth_config
    updated = update_user(
        request.app.state.user_store,
        current_user,
        user_id,
        username=body.username,
        email=body.email,
        password=body.password,
        role=body.role.value if body.role else None,
        rounds=config.bcrypt_rounds,
    )
    return UserResponse.from_user(updated)


@router.delete("/auth/users/{user_id}", response_model=MessageResponse)
def delete_account(request: Request, user_id: RowId, current_user: User = Depends(require_admin)) -> MessageResponse:
    """Delete another user's account. Admin only; admins cannot delete themselves here."""
    delete_user(request.app.state.user_store, current_user, user_id)
    return MessageResponse(message="User deleted successfully")
