"""Exception hierarchy shared by the services.

Services raise these; the API layer decides which HTTP status each one maps
to. None of them carry an HTTP status of their own except the upstream
errors, which keep whatever status the ERP answered with for diagnostics.
"""

from typing import Any, Optional


class MOApprovalError(Exception):
    """Base class for all application errors."""


class HashingError(MOApprovalError):
    """The password hash primitive failed to produce a hash."""


class ComparisonError(MOApprovalError):
    """A stored password hash could not be compared (malformed input)."""


class UserStoreError(MOApprovalError):
    """The users file could not be read or written."""


class DuplicateUserError(MOApprovalError):
    """A user with the same userId already exists."""

    def __init__(self, user_id: str):
        super().__init__(f"User ID '{user_id}' already exists")
        self.user_id = user_id


class UserNotFoundError(MOApprovalError):
    """No user with the given userId exists."""

    def __init__(self, user_id: str):
        super().__init__(f"User '{user_id}' not found")
        self.user_id = user_id


class UpstreamError(MOApprovalError):
    """Base class for failures talking to the SAP system.

    Attributes:
        status_code: HTTP status returned by SAP, or None for transport errors
        details: Parsed response body, when one was available
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class UpstreamTokenFetchError(UpstreamError):
    """The CSRF token endpoint could not be reached or returned no token."""


class UpstreamRequestError(UpstreamError):
    """An OData request failed (network error or non-success status)."""
