"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Field shape rules (login length, email format, password length) are left to
the domain validation policy so that failures come back as field-scoped 400s.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.domain.accounts import ROLE_USER, PublicAccount


class RegisterRequest(BaseModel):
    """Request model for self-service registration."""

    login: str = Field(..., description="3-20 characters: letters, digits, _ . @ -")
    email: str
    password: str = Field(..., description="User password (min 8 characters)")
    first_name: str | None = None
    last_name: str | None = None
    lang_key: str | None = Field(None, description="Language tag; unsupported values fall back to the default")


class AccountResponse(BaseModel):
    """Public projection of an account."""

    id: int | None
    login: str
    email: str
    first_name: str | None
    last_name: str | None
    lang_key: str
    authorities: list[str]
    activated: bool
    register_date: datetime | None

    @classmethod
    def from_account(cls, account: PublicAccount) -> "AccountResponse":
        return cls(
            id=account.id,
            login=account.login,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            lang_key=account.lang_key,
            authorities=sorted(account.authorities),
            activated=account.activated,
            register_date=account.register_date,
        )


class ActivateRequest(BaseModel):
    """Request model for account activation."""

    key: str = Field(..., description="Activation key received by email")


class ResetPasswordInitRequest(BaseModel):
    """Request model for starting a password reset."""

    email_or_login: str


class ResetPasswordFinishRequest(BaseModel):
    """Request model for completing a password reset."""

    key: str = Field(..., description="Reset key received by email")
    new_password: str


class ChangePasswordRequest(BaseModel):
    """Request model for changing the caller's own password."""

    new_password: str


class ProfileUpdateRequest(BaseModel):
    """
    Request model for profile updates.

    Unknown fields are accepted and handed to the service, whose profile
    filter drops them. Only first_name, last_name, email and lang_key are
    ever applied.
    """

    model_config = ConfigDict(extra="allow")

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    lang_key: str | None = None


class AccountCreateRequest(BaseModel):
    """Request model for administrative account creation."""

    login: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    lang_key: str | None = None
    authorities: list[str] = Field(default_factory=lambda: [ROLE_USER])


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class FieldError(BaseModel):
    """Field-scoped error detail."""

    field: str
    reason: str


class FieldErrorResponse(BaseModel):
    """Error response carrying the offending field."""

    detail: FieldError


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
