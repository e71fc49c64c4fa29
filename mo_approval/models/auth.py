"""Auth request and response models with validation."""

import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mo_approval.models.user import PublicUser, SessionUser, UserRole

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Email address is not valid")
    return v


class LoginRequest(BaseModel):
    """Login credentials for authentication.

    Attributes:
        user_id: Account identifier (``userId`` on the wire)
        password: Plain-text password
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    """Request to change the current user's password."""

    model_config = ConfigDict(populate_by_name=True)

    old_password: str = Field(..., alias="oldPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=1)

    @field_validator("new_password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Password cannot be empty or whitespace only")
        return v


class CreateUserRequest(BaseModel):
    """Registration or admin request to create a user.

    Attributes:
        user_id: New account identifier (``userId`` on the wire)
        password: Plain-text password (hashed before storage)
        name: Display name
        email: Contact email
        role: Optional role; the store defaults to ``user``
        plant: Optional plant code; defaults differ per endpoint
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=1, max_length=255)
    role: Optional[UserRole] = None
    plant: Optional[str] = None

    @field_validator("user_id")
    @classmethod
    def user_id_no_whitespace(cls, v: str) -> str:
        """Reject identifiers containing whitespace."""
        if re.search(r"\s", v):
            raise ValueError("User ID cannot contain whitespace")
        return v

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Password cannot be empty or whitespace only")
        return v

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        return _check_email(v)


class UpdateUserRequest(BaseModel):
    """Admin request to update an existing user.

    All fields are optional; only provided fields are updated.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    role: Optional[UserRole] = None
    plant: Optional[str] = None
    active: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=1)

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Password cannot be empty or whitespace only")
        return v

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v)


# ---------------------------------------------------------------------------
# Results returned by the session authenticator
# ---------------------------------------------------------------------------


class AuthResult(BaseModel):
    """Outcome of a login attempt."""

    success: bool
    token: Optional[str] = None
    user: Optional[SessionUser] = None
    error: Optional[str] = None


class TokenVerification(BaseModel):
    """Outcome of resolving a bearer token."""

    valid: bool
    user: Optional[SessionUser] = None
    error: Optional[str] = None


class OperationResult(BaseModel):
    """Outcome of an operation that returns no payload."""

    success: bool
    error: Optional[str] = None


class UserResult(OperationResult):
    """Outcome of an operation that returns a single user."""

    user: Optional[PublicUser] = None


class UserListResult(OperationResult):
    """Outcome of listing users."""

    users: List[PublicUser] = Field(default_factory=list)


class MeResponse(BaseModel):
    """Response for ``GET /auth/me``."""

    success: bool = True
    user: SessionUser
