"""Password hashing with passlib's bcrypt scheme."""

import logging
from typing import Optional

from passlib.context import CryptContext

logger = logging.getLogger(__name__)


class PasswordHasher:
    """Hashes and verifies passwords."""

    def __init__(self, rounds: Optional[int] = None):
        """Initialize hasher.

        Args:
            rounds: bcrypt cost factor. Uses passlib's default if not provided.
        """
        settings = {"bcrypt__rounds": rounds} if rounds else {}
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", **settings)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            # Malformed or foreign hash
            logger.warning("Password hash could not be verified")
            return False
