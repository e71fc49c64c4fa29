"""Models describing the SAP CSRF token state."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UpstreamCredentials(BaseModel):
    """CSRF token and session cookies to attach to a mutating request."""

    model_config = ConfigDict(frozen=True)

    token: str
    cookies: str


class TokenInfo(BaseModel):
    """Read-only diagnostic snapshot of the cached CSRF token."""

    model_config = ConfigDict(populate_by_name=True)

    has_token: bool = Field(alias="hasToken")
    has_cookies: bool = Field(alias="hasCookies")
    is_valid: bool = Field(alias="isValid")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    expires_in_ms: int = Field(default=0, ge=0, alias="expiresIn")
