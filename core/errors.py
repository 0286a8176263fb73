"""
core/errors.py -- Error taxonomy shared by auth/, banners/ and api/.

Every error carries a stable machine-readable `code` and the HTTP status it
maps to. Domain code raises these; api/main.py turns them into the standard
error envelope with a single exception handler, so no route builds error
responses by hand.

Families:
  AuthenticationError  -- who are you? (401)
  AuthorizationError   -- you may not do this (403)
  ResourceError        -- the thing is missing, duplicated or invalid (4xx)
  InfrastructureError  -- the store or a crypto primitive failed (5xx)

Layer rule: core/ is the kernel. No imports from api/, auth/, or banners/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthenticationError(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required."


class MissingToken(AuthenticationError):
    code = "missing_token"
    default_message = "Not authorized, no token."


class TokenRevoked(AuthenticationError):
    code = "token_revoked"
    default_message = "Not authorized, token has been logged out."


class MalformedToken(AuthenticationError):
    code = "malformed_token"
    default_message = "Not authorized, invalid token."


class TokenExpired(AuthenticationError):
    code = "token_expired"
    default_message = "Not authorized, token expired."


class SubjectNotFound(AuthenticationError):
    code = "subject_not_found"
    default_message = "Not authorized, user no longer exists."


class Unauthenticated(AuthenticationError):
    """No verified identity was present when an authorization check ran."""


class BadCredentials(AuthenticationError):
    code = "bad_credentials"
    default_message = "Invalid username, email or password."


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden."


class Forbidden(AuthorizationError):
    """Role mismatch or a self-action restriction.

    `reason` distinguishes the cases for callers and is echoed as the error
    detail: "role", "not_owner", "role_change", "self_delete".
    """

    def __init__(self, message: str | None = None, *, reason: str = "role") -> None:
        super().__init__(message, detail=reason)
        self.reason = reason


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class ResourceError(AppError):
    status_code = 400
    code = "invalid_input"
    default_message = "Invalid request."


class InvalidInput(ResourceError):
    pass


class NotFound(ResourceError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class DuplicateResource(ResourceError):
    status_code = 409
    code = "duplicate_resource"
    default_message = "User with that username or email already exists."


class PayloadTooLarge(ResourceError):
    status_code = 413
    code = "file_too_large"
    default_message = "Uploaded file is too large."


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class InfrastructureError(AppError):
    pass


class StoreUnavailable(InfrastructureError):
    status_code = 503
    code = "store_unavailable"
    default_message = "The data store is unavailable."


class HashingError(InfrastructureError):
    """bcrypt failed or a stored hash is unreadable. Never a "no match"."""


class InternalFailure(InfrastructureError):
    pass
