"""User model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, Interval, String
from sqlalchemy.orm import relationship

from tokenguard.database import Base, utc_now
from tokenguard.models.role import user_role


class User(Base):
    """Application user with credential and lockout state."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(256), unique=True, nullable=False, index=True)
    password_hash = Column(String(256), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    pronunciation = Column(String(256), nullable=True)
    pronouns = Column(String(64), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_at = Column(DateTime, nullable=True)
    locked_duration = Column(Interval, nullable=True)
    lock_version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    roles = relationship("Role", secondary=user_role, lazy="selectin")

    __mapper_args__ = {"version_id_col": lock_version}

    @property
    def authorities(self) -> frozenset[str]:
        """Role names plus the names of every privilege those roles grant."""
        names = {role.name for role in self.roles}
        names.update(privilege.name for role in self.roles for privilege in role.privileges)
        return frozenset(names)
