"""bcrypt password hashing"""

import bcrypt

from ..utils.exceptions import ValidationError

DEFAULT_ROUNDS = 10
# bcrypt only reads the first 72 bytes; newer releases refuse longer input
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted adaptive hashing; the salt and cost live inside the hash string"""

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt; raises ValidationError when it is too long"""
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(encoded, salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash"""
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            # can never match a hash this class produced
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except ValueError:
            # malformed hash
            return False
