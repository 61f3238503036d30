"""Password hashing."""

import bcrypt

from tokenguard.config import get_settings
from tokenguard.errors import PasswordTooLongError

# bcrypt only reads the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """bcrypt-backed password encoder."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def encode(self, plaintext: str) -> str:
        """Hash a password. Raises PasswordTooLongError past ``MAX_PASSWORD_BYTES``."""
        encoded = plaintext.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise PasswordTooLongError()
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def matches(self, plaintext: str, password_hash: str) -> bool:
        # bcrypt rejects inputs over 72 bytes; such a password can never match
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False


_password_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Get singleton password hasher instance."""
    global _password_hasher
    if _password_hasher is None:
        _password_hasher = PasswordHasher(get_settings().BCRYPT_ROUNDS)
    return _password_hasher
