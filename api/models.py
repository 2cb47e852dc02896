"""
API request and response models for BloodLink REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
audit/models.py, which own the internal domain representation. Route handlers
map between the two.

Request models are the validation boundary: malformed input is rejected with
422 before any auth logic runs.
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from audit.models import AuditCategory, AuditEntry
from auth.models import SELF_REGISTRABLE_ROLES, BloodType, Role, User
from auth.passwords import PASSWORD_MAX_BYTES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"

PASSWORD_MIN = 6
PASSWORD_MAX = 64


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


def _check_password_bytes(value: str) -> str:
    # bcrypt works on bytes: 64 characters of non-ASCII text can exceed its limit.
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded")
    return value


class _ProfileFields(BaseModel):
    """Optional contact fields shared by registration, admin create and profile update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    phone_number: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    address: Optional[str] = Field(default=None, min_length=5, max_length=255)
    district: Optional[str] = Field(default=None, min_length=2, max_length=100)
    city: Optional[str] = Field(default=None, min_length=2, max_length=100)
    blood_type: Optional[BloodType] = None


class RegisterRequest(_ProfileFields):
    """Request body for POST /api/v1/auth/register.

    Only donor and recipient may self-register; staff and admin accounts are
    created by an admin through POST /api/v1/users.
    """

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)
    name: str = Field(min_length=2, max_length=100)
    role: Role = Role.DONOR

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @field_validator("role")
    @classmethod
    def self_registrable(cls, value: Role) -> Role:
        if value not in SELF_REGISTRABLE_ROLES:
            raise ValueError("role must be one of: donor, recipient")
        return value


class UserCreate(_ProfileFields):
    """Request body for POST /api/v1/users (admin only). Any role is allowed."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)
    name: str = Field(min_length=2, max_length=100)
    role: Role

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255)
    # min_length=1 so short guesses still get a 401, not a 422.
    password: str = Field(min_length=1, max_length=PASSWORD_MAX)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class ProfileUpdate(_ProfileFields):
    """Request body for PUT /api/v1/auth/profile.

    extra="forbid": email and role are not part of the self-service surface,
    and sending them is an error rather than a silent no-op.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/users/{id} (admin only)."""

    model_config = ConfigDict(extra="forbid")

    role: Optional[Role] = None
    last_donation: Optional[date] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public user view. An allow-list: hashed_password has no field here."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    role: Role
    phone_number: Optional[str] = None
    address: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    blood_type: Optional[BloodType] = None
    last_donation: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            phone_number=user.phone_number,
            address=user.address,
            district=user.district,
            city=user.city,
            blood_type=user.blood_type,
            last_donation=user.last_donation,
        )


class AuthResponse(BaseModel):
    """Response for register and login: the public user view plus a bearer token."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_in: int


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    category: AuditCategory
    message: str
    actor_id: Optional[int] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: str

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryResponse":
        return cls(
            id=entry.id,
            category=entry.category,
            message=entry.message,
            actor_id=entry.actor_id,
            metadata=entry.metadata,
            timestamp=entry.timestamp or "",
        )


class ErrorDetail(BaseModel):
    """Inner error object used in all error responses."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope: {"error": {...}}."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
