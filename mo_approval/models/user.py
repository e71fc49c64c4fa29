"""User account and session models.

Field aliases follow the camelCase keys of the users file and the JSON API;
Python code uses the snake_case attribute names.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Roles a user account can hold."""

    ADMIN = "admin"
    APPROVER = "approver"
    USER = "user"


class PublicUser(BaseModel):
    """A user account as returned to API callers (no password hash)."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    name: str = ""
    email: str = ""
    role: UserRole = UserRole.USER
    plant: str = "ALL"
    active: bool = True
    created_at: datetime = Field(alias="createdAt")
    last_login: Optional[datetime] = Field(default=None, alias="lastLogin")


class UserAccount(PublicUser):
    """A stored user account.

    The hash is persisted under the ``password`` key to stay compatible
    with existing users files.
    """

    password_hash: str = Field(alias="password")

    def public(self) -> PublicUser:
        """Return a copy of this account without the password hash."""
        return PublicUser.model_validate(self.model_dump(exclude={"password_hash"}))

    def to_record(self) -> dict:
        """Serialize for the users file."""
        return self.model_dump(mode="json", by_alias=True)


class SessionUser(BaseModel):
    """Snapshot of an account taken at login time."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    name: str = ""
    email: str = ""
    role: UserRole = UserRole.USER
    plant: str = "ALL"
    login_time: datetime = Field(alias="loginTime")


class Session(BaseModel):
    """An active bearer session held in memory."""

    token: str
    user: SessionUser
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        """True if the session has a TTL and it has passed."""
        return self.expires_at is not None and now >= self.expires_at
