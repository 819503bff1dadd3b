"""
API request and response models for the Acquisitions REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Pydantic is the input validator: a request body that fails these models never
reaches a route handler. FastAPI raises RequestValidationError, which
api/main.py turns into a per-field error list.
"""

from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, StringConstraints

from auth.models import User, normalize_email

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# email-validator checks the format (and the 254-character RFC limit); the
# after-validator lower-cases so lookups are case-insensitive.
_Email = Annotated[EmailStr, BeforeValidator(_strip), AfterValidator(normalize_email)]

_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/auth/sign-up."""

    name: _Name
    email: _Email
    # Passwords are taken verbatim: no stripping.
    password: str = Field(min_length=8, max_length=128)
    role: RoleEnum = RoleEnum.user


class SigninRequest(BaseModel):
    """Request body for POST /api/auth/sign-in."""

    email: _Email
    password: str = Field(min_length=8, max_length=128)


class UserUpdate(BaseModel):
    """Request body for PATCH /api/users/{id}. All fields optional."""

    name: Optional[_Name] = None
    email: Optional[_Email] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    role: Optional[RoleEnum] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public projection of a user. There is no password field to leak."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: RoleEnum
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(**user.public())


class AuthResponse(BaseModel):
    """Response for sign-up and sign-in."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class FieldError(BaseModel):
    """One invalid input field."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[list[FieldError]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    timestamp: str
    uptime: float
    version: str
    components: dict[str, str] = Field(default_factory=dict)
