"""File-backed store for user accounts.

All accounts live in a single JSON document::

    {"users": [...], "lastUpdated": "2025-01-01T00:00:00Z"}

Every mutation reads the whole document, changes it in memory and writes it
back in full. Mutations are serialized with an asyncio lock and the write
goes through a temporary file so a crash never leaves a half-written file.
"""

import asyncio
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from mo_approval.exceptions import DuplicateUserError, UserNotFoundError, UserStoreError
from mo_approval.models.user import UserAccount, UserRole
from mo_approval.services.password_hasher import PasswordHasher

logger = structlog.get_logger(__name__)

DEFAULT_ADMIN_USER_ID = "admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


class UserStore:
    """Service for user CRUD operations on the users file."""

    def __init__(
        self,
        path: Path | str,
        hasher: PasswordHasher,
        default_admin_password: str = "admin123",
    ):
        self.path = Path(path)
        self.hasher = hasher
        self.default_admin_password = default_admin_password
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _read_document(self) -> dict:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise UserStoreError(f"Failed to read users file: {e}") from e

    def _write_document(self, document: dict) -> None:
        document["lastUpdated"] = _isoformat(_utcnow())
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=".users-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise UserStoreError(f"Failed to write users file: {e}") from e

    async def _load(self) -> tuple[dict, list[UserAccount]]:
        document = await asyncio.to_thread(self._read_document)
        try:
            if not isinstance(document, dict):
                raise TypeError("users file must contain a JSON object")
            users = [UserAccount.model_validate(u) for u in document.get("users") or []]
        except (ValidationError, TypeError, AttributeError) as e:
            raise UserStoreError(f"Failed to read users file: {e}") from e
        return document, users

    async def _save(self, document: dict, users: list[UserAccount]) -> None:
        document["users"] = [u.to_record() for u in users]
        await asyncio.to_thread(self._write_document, document)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ensure_initialized(self) -> bool:
        """Create the users file with a default admin if it does not exist.

        Returns:
            True if the file was created, False if it already existed
        """
        async with self._lock:
            if await asyncio.to_thread(self.path.exists):
                return False

            password_hash = await asyncio.to_thread(
                self.hasher.hash_password, self.default_admin_password
            )
            admin = UserAccount(
                user_id=DEFAULT_ADMIN_USER_ID,
                password_hash=password_hash,
                name="Administrator",
                email="admin@ampl.in",
                role=UserRole.ADMIN,
                plant="ALL",
                active=True,
                created_at=_utcnow(),
                last_login=None,
            )
            try:
                await asyncio.to_thread(
                    self.path.parent.mkdir, parents=True, exist_ok=True
                )
            except OSError as e:
                raise UserStoreError(f"Failed to write users file: {e}") from e
            await self._save({}, [admin])

        logger.info(
            "users_file_created",
            path=str(self.path),
            default_user=DEFAULT_ADMIN_USER_ID,
        )
        return True

    async def find_by_user_id(self, user_id: str) -> Optional[UserAccount]:
        """Get a user by userId (exact match)."""
        _, users = await self._load()
        for user in users:
            if user.user_id == user_id:
                return user
        return None

    async def list_all(self) -> list[UserAccount]:
        """Return all users in insertion order."""
        _, users = await self._load()
        return users

    async def create(
        self,
        user_id: str,
        password: str,
        name: str,
        email: str,
        role: Optional[UserRole] = None,
        plant: Optional[str] = None,
    ) -> UserAccount:
        """Create a new user with a hashed password.

        Raises:
            DuplicateUserError: If the userId is already taken
            UserStoreError: If the users file cannot be read or written
        """
        async with self._lock:
            document, users = await self._load()
            if any(u.user_id == user_id for u in users):
                raise DuplicateUserError(user_id)

            password_hash = await asyncio.to_thread(self.hasher.hash_password, password)
            user = UserAccount(
                user_id=user_id,
                password_hash=password_hash,
                name=name,
                email=email,
                role=role or UserRole.USER,
                plant="ALL" if plant is None else plant,
                active=True,
                created_at=_utcnow(),
                last_login=None,
            )
            users.append(user)
            await self._save(document, users)

        logger.info("user_created", user_id=user_id, role=user.role.value)
        return user

    async def update(self, user_id: str, fields: dict[str, Any]) -> UserAccount:
        """Shallow-merge fields into an existing user.

        A ``password`` entry is hashed before the merge. ``user_id`` cannot
        be changed.

        Raises:
            UserNotFoundError: If no such user exists
        """
        changes = {k: v for k, v in fields.items() if k != "user_id"}

        async with self._lock:
            document, users = await self._load()
            index = next(
                (i for i, u in enumerate(users) if u.user_id == user_id), None
            )
            if index is None:
                raise UserNotFoundError(user_id)

            if changes.get("password"):
                changes["password_hash"] = await asyncio.to_thread(
                    self.hasher.hash_password, changes.pop("password")
                )
            else:
                changes.pop("password", None)

            merged = users[index].model_dump()
            merged.update(changes)
            users[index] = UserAccount.model_validate(merged)
            await self._save(document, users)

        logger.info("user_updated", user_id=user_id, fields=sorted(changes))
        return users[index]

    async def delete(self, user_id: str) -> None:
        """Remove a user entirely.

        Raises:
            UserNotFoundError: If no such user exists
        """
        async with self._lock:
            document, users = await self._load()
            remaining = [u for u in users if u.user_id != user_id]
            if len(remaining) == len(users):
                raise UserNotFoundError(user_id)
            await self._save(document, remaining)

        logger.info("user_deleted", user_id=user_id)

    async def touch_last_login(
        self, user_id: str, timestamp: Optional[datetime] = None
    ) -> None:
        """Record a successful login time."""
        await self.update(user_id, {"last_login": timestamp or _utcnow()})
