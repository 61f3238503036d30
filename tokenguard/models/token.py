"""Token model."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, Interval, String
from sqlalchemy.orm import relationship

from tokenguard.database import Base


class TokenScope(str, enum.Enum):
    """Purpose a token was issued for. Scopes partition the token namespace."""

    ACTIVATION = "ACTIVATION"
    AUTHENTICATION = "AUTHENTICATION"
    REFRESH = "REFRESH"
    PASSWORD_RESET = "PASSWORD_RESET"


class Token(Base):
    """Hashed opaque token. The plaintext is only ever handed to the client."""

    __tablename__ = "token"
    __table_args__ = (Index("ix_token_scope_user_id", "scope", "user_id"),)

    hash = Column(String(64), primary_key=True)
    scope = Column(Enum(TokenScope, name="token_scope"), nullable=False)
    issued_at = Column(DateTime, nullable=False)
    expires_in = Column(Interval, nullable=False)
    # issued_at + expires_in, stored so expired rows can be swept with an indexed query
    expires_at = Column(DateTime, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)

    user = relationship("User", lazy="joined")

    @property
    def expiry(self) -> datetime:
        return self.issued_at + self.expires_in

    def is_expired(self, now: datetime) -> bool:
        """A token is valid strictly before its expiry instant."""
        return now >= self.expiry
