"""
API request and response models for BannerBoard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
banners/models.py, which own the internal domain representation. Route
handlers map between the two.

Field constraints here are the first line of validation (422 on failure).
auth/accounts.py re-checks the same rules so the domain layer is safe to call
without going through HTTP.
"""

from enum import Enum
from typing import Annotated, Optional

from fastapi import Path
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from auth.accounts import EMAIL_PATTERN
from auth.models import User
from banners.models import Banner

# SQLite INTEGER is a signed 64-bit value; larger ids overflow in the driver.
MAX_ROW_ID = 2**63 - 1

# Path parameter type for user and banner ids.
RowId = Annotated[int, Path(ge=1, le=MAX_ROW_ID)]

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"
    moderator = "moderator"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=255)
    role: Optional[RoleEnum] = None


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    `login` matches either username or email. Clients may also send it as
    `email` or `username`.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    login: str = Field(
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("login", "email", "username"),
    )
    password: str = Field(min_length=1, max_length=255)


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/auth/users/{id}. Every field is optional."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)
    role: Optional[RoleEnum] = None


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    role: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            created_at=user.created_at or "",
        )


class TokenResponse(BaseModel):
    """Response for register and login: the user plus a fresh session token."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    role: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Banners
# ---------------------------------------------------------------------------


class BannerResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str]
    image_url: str
    link: Optional[str]
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_banner(cls, banner: Banner) -> "BannerResponse":
        return cls(
            id=banner.id,
            title=banner.title,
            description=banner.description,
            image_url=banner.image_url,
            link=banner.link,
            is_active=banner.is_active,
            created_at=banner.created_at,
            updated_at=banner.updated_at,
        )


class BannerMutationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    banner: BannerResponse


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
