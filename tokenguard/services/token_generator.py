"""Opaque token generation and hashing."""

import base64
import hashlib
import math
import secrets

from tokenguard.config import get_settings


class TokenGenerator:
    """Mints random bearer tokens and the one-way hashes they are stored under."""

    def __init__(self, byte_size: int = 32) -> None:
        self.byte_size = byte_size

    @property
    def token_length(self) -> int:
        """Length of every plaintext token: unpadded base64 of ``byte_size`` bytes."""
        return math.ceil(self.byte_size * 4 / 3)

    def generate_token(self) -> str:
        """Return a URL-safe, unpadded base64 string of ``byte_size`` random bytes."""
        raw = secrets.token_bytes(self.byte_size)
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    def generate_token_hash(self, plaintext: str) -> str:
        """SHA-256 hex digest of the UTF-8 plaintext."""
        return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


_token_generator: TokenGenerator | None = None


def get_token_generator() -> TokenGenerator:
    """Get singleton token generator instance."""
    global _token_generator
    if _token_generator is None:
        _token_generator = TokenGenerator(get_settings().TOKEN_BYTE_SIZE)
    return _token_generator
