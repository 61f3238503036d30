"""Value objects handed out by the token service."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class IssuedToken:
    """Plaintext token as returned to the client, with its expiry instant."""

    plaintext: str
    expiry: datetime

    def __repr__(self) -> str:
        return f"IssuedToken(plaintext='***', expiry={self.expiry!r})"


@dataclass(frozen=True)
class TokenPair:
    """Authentication token plus the refresh token that can rotate it."""

    auth_token: IssuedToken
    refresh_token: IssuedToken


@dataclass(frozen=True)
class Principal:
    """Identity resolved from a valid token."""

    id: int
    username: str
    email: str
    authorities: frozenset[str]
    email_verified: bool

    def has_authority(self, authority: str) -> bool:
        return authority in self.authorities
