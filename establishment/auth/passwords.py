"""bcrypt password hashing."""

import bcrypt

from establishment.logging_config import get_logger

logger = get_logger(__name__)

# bcrypt only looks at the first 72 bytes; longer input is rejected instead of truncated.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted, slow one-way hashing of passwords."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    @staticmethod
    def is_acceptable(password: str) -> bool:
        return 0 < len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("ascii")

    def verify(self, password: str, password_hash: str) -> bool:
        if not self.is_acceptable(password):
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
        except ValueError as e:
            logger.error(f'Stored password hash cannot be verified: {e}')
            return False
