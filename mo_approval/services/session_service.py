"""Session authentication: credential checks and in-memory bearer sessions."""

import asyncio
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog

from mo_approval.exceptions import (
    DuplicateUserError,
    MOApprovalError,
    UserNotFoundError,
)
from mo_approval.models.auth import (
    AuthResult,
    CreateUserRequest,
    OperationResult,
    TokenVerification,
    UserListResult,
    UserResult,
)
from mo_approval.models.user import Session, SessionUser
from mo_approval.services.password_hasher import PasswordHasher
from mo_approval.services.user_store import UserStore

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"
ACCOUNT_DISABLED = "User account is disabled"
AUTHENTICATION_FAILED = "Authentication failed"
NO_TOKEN = "No token provided"
INVALID_SESSION = "Invalid or expired session"
SESSION_NOT_FOUND = "Session not found"
USER_NOT_FOUND = "User not found"
WRONG_CURRENT_PASSWORD = "Current password is incorrect"
DUPLICATE_USER = "User ID already exists"

SESSION_TOKEN_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionAuthenticator:
    """Validates credentials and manages bearer sessions.

    Sessions live in this object's memory only. Construct one per process
    and share it between request handlers.
    """

    def __init__(
        self,
        user_store: UserStore,
        hasher: PasswordHasher,
        session_ttl_seconds: int = 0,
        revoke_sessions_on_password_change: bool = False,
    ):
        self.user_store = user_store
        self.hasher = hasher
        self.session_ttl = (
            timedelta(seconds=session_ttl_seconds) if session_ttl_seconds > 0 else None
        )
        self.revoke_sessions_on_password_change = revoke_sessions_on_password_change
        self._sessions: dict[str, Session] = {}

    @property
    def active_session_count(self) -> int:
        return len(self._sessions)

    async def authenticate(self, user_id: str, password: str) -> AuthResult:
        """Check credentials and open a new session.

        Unknown users and wrong passwords produce the same error message so
        callers cannot tell which userIds exist.
        """
        try:
            user = await self.user_store.find_by_user_id(user_id)

            if user is None:
                logger.info("login_rejected", user_id=user_id, reason="unknown_user")
                return AuthResult(success=False, error=INVALID_CREDENTIALS)

            if not user.active:
                logger.info("login_rejected", user_id=user_id, reason="disabled")
                return AuthResult(success=False, error=ACCOUNT_DISABLED)

            matches = await asyncio.to_thread(
                self.hasher.verify_password, password, user.password_hash
            )
            if not matches:
                logger.info("login_rejected", user_id=user_id, reason="bad_password")
                return AuthResult(success=False, error=INVALID_CREDENTIALS)

            now = _utcnow()
            await self.user_store.touch_last_login(user.user_id, now)
        except MOApprovalError as e:
            logger.error("authentication_error", user_id=user_id, error=str(e))
            return AuthResult(success=False, error=AUTHENTICATION_FAILED)

        token = secrets.token_urlsafe(SESSION_TOKEN_BYTES)
        snapshot = SessionUser(
            user_id=user.user_id,
            name=user.name,
            email=user.email,
            role=user.role,
            plant=user.plant,
            login_time=now,
        )
        self._sessions[token] = Session(
            token=token,
            user=snapshot,
            expires_at=now + self.session_ttl if self.session_ttl else None,
        )

        logger.info("user_logged_in", user_id=user.user_id, role=user.role.value)
        return AuthResult(success=True, token=token, user=snapshot)

    def verify_token(self, token: Optional[str]) -> TokenVerification:
        """Resolve a bearer token to the session snapshot taken at login."""
        if not token:
            return TokenVerification(valid=False, error=NO_TOKEN)

        session = self._sessions.get(token)
        if session is None:
            return TokenVerification(valid=False, error=INVALID_SESSION)

        if session.is_expired(_utcnow()):
            self._sessions.pop(token, None)
            logger.info("session_expired", user_id=session.user.user_id)
            return TokenVerification(valid=False, error=INVALID_SESSION)

        return TokenVerification(valid=True, user=session.user)

    def logout(self, token: Optional[str]) -> OperationResult:
        """Drop a session."""
        session = self._sessions.pop(token, None) if token else None
        if session is None:
            return OperationResult(success=False, error=SESSION_NOT_FOUND)

        logger.info("user_logged_out", user_id=session.user.user_id)
        return OperationResult(success=True)

    def revoke_user_sessions(self, user_id: str, keep: Optional[str] = None) -> int:
        """Drop every session belonging to a user.

        Args:
            user_id: Account whose sessions are dropped
            keep: Optional token to leave in place (the caller's own session)

        Returns:
            Number of sessions removed
        """
        doomed = [
            token
            for token, session in self._sessions.items()
            if session.user.user_id == user_id and token != keep
        ]
        for token in doomed:
            del self._sessions[token]

        if doomed:
            logger.info("user_sessions_revoked", user_id=user_id, count=len(doomed))
        return len(doomed)

    async def change_password(
        self,
        user_id: str,
        old_password: str,
        new_password: str,
        current_token: Optional[str] = None,
    ) -> OperationResult:
        """Change a password after re-checking the current one."""
        try:
            user = await self.user_store.find_by_user_id(user_id)
            if user is None:
                return OperationResult(success=False, error=USER_NOT_FOUND)

            matches = await asyncio.to_thread(
                self.hasher.verify_password, old_password, user.password_hash
            )
            if not matches:
                logger.info("password_change_rejected", user_id=user_id)
                return OperationResult(success=False, error=WRONG_CURRENT_PASSWORD)

            await self.user_store.update(user_id, {"password": new_password})
        except UserNotFoundError:
            return OperationResult(success=False, error=USER_NOT_FOUND)
        except MOApprovalError as e:
            logger.error("password_change_error", user_id=user_id, error=str(e))
            return OperationResult(success=False, error="Failed to change password")

        if self.revoke_sessions_on_password_change:
            self.revoke_user_sessions(user_id, keep=current_token)

        logger.info("password_changed", user_id=user_id)
        return OperationResult(success=True)

    # ------------------------------------------------------------------
    # User administration (role checks happen at the API boundary)
    # ------------------------------------------------------------------

    async def get_all_users(self) -> UserListResult:
        """List every account without password hashes."""
        try:
            users = await self.user_store.list_all()
        except MOApprovalError as e:
            logger.error("list_users_error", error=str(e))
            return UserListResult(success=False, error="Failed to get users")
        return UserListResult(success=True, users=[u.public() for u in users])

    async def add_user(
        self, request: CreateUserRequest, default_plant: str = "ALL"
    ) -> UserResult:
        """Create an account from a registration or admin request."""
        try:
            user = await self.user_store.create(
                user_id=request.user_id,
                password=request.password,
                name=request.name,
                email=request.email,
                role=request.role,
                plant=default_plant if request.plant is None else request.plant,
            )
        except DuplicateUserError:
            return UserResult(success=False, error=DUPLICATE_USER)
        except MOApprovalError as e:
            logger.error("add_user_error", user_id=request.user_id, error=str(e))
            return UserResult(success=False, error="Failed to add user")
        return UserResult(success=True, user=user.public())

    async def update_user(self, user_id: str, fields: dict[str, Any]) -> UserResult:
        """Apply a partial update.

        Sessions keep the role they were opened with, so deactivation or a
        role change ends them.
        """
        try:
            user = await self.user_store.update(user_id, fields)
        except UserNotFoundError:
            return UserResult(success=False, error=USER_NOT_FOUND)
        except MOApprovalError as e:
            logger.error("update_user_error", user_id=user_id, error=str(e))
            return UserResult(success=False, error="Failed to update user")

        role_changed = "role" in fields and any(
            s.user.user_id == user_id and s.user.role != user.role
            for s in self._sessions.values()
        )
        if fields.get("active") is False or role_changed:
            self.revoke_user_sessions(user_id)
        return UserResult(success=True, user=user.public())

    async def delete_user(self, user_id: str) -> OperationResult:
        """Remove an account and end its sessions."""
        try:
            await self.user_store.delete(user_id)
        except UserNotFoundError:
            return OperationResult(success=False, error=USER_NOT_FOUND)
        except MOApprovalError as e:
            logger.error("delete_user_error", user_id=user_id, error=str(e))
            return OperationResult(success=False, error="Failed to delete user")

        self.revoke_user_sessions(user_id)
        return OperationResult(success=True)
