"""Models package exports."""

from mo_approval.models.auth import (
    AuthResult,
    ChangePasswordRequest,
    CreateUserRequest,
    LoginRequest,
    OperationResult,
    TokenVerification,
    UpdateUserRequest,
    UserListResult,
    UserResult,
)
from mo_approval.models.upstream import TokenInfo, UpstreamCredentials
from mo_approval.models.user import PublicUser, Session, SessionUser, UserAccount, UserRole

__all__ = [
    "AuthResult",
    "ChangePasswordRequest",
    "CreateUserRequest",
    "LoginRequest",
    "OperationResult",
    "PublicUser",
    "Session",
    "SessionUser",
    "TokenInfo",
    "TokenVerification",
    "UpdateUserRequest",
    "UpstreamCredentials",
    "UserAccount",
    "UserListResult",
    "UserResult",
    "UserRole",
]
