"""Password hashing with bcrypt."""

import bcrypt
import structlog

from mo_approval.exceptions import ComparisonError, HashingError

logger = structlog.get_logger(__name__)

# Work factor shared with hashes already present in existing users files.
BCRYPT_ROUNDS = 10


class PasswordHasher:
    """Stateless bcrypt hash/verify helper."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string

        Raises:
            HashingError: If bcrypt fails to produce a hash
        """
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        except (ValueError, TypeError) as e:
            logger.error("password_hash_failed", error=str(e))
            raise HashingError(f"Password hashing failed: {e}") from e
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise

        Raises:
            ComparisonError: If the stored hash is malformed
        """
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                password_hash.encode("utf-8"),
            )
        except (ValueError, TypeError) as e:
            logger.error("password_compare_failed", error=str(e))
            raise ComparisonError(f"Password comparison failed: {e}") from e
