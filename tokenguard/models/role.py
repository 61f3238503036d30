"""Role and privilege models."""

from sqlalchemy import Column, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship

from tokenguard.database import Base

user_role = Table(
    "user_role",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("role.id", ondelete="CASCADE"), primary_key=True),
)

role_privilege = Table(
    "role_privilege",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("role.id", ondelete="CASCADE"), primary_key=True),
    Column("privilege_id", Integer, ForeignKey("privilege.id", ondelete="CASCADE"), primary_key=True),
)


class Privilege(Base):
    """A single named permission, e.g. ``post:write``."""

    __tablename__ = "privilege"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), unique=True, nullable=False)


class Role(Base):
    """A named group of privileges assigned to users."""

    __tablename__ = "role"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), unique=True, nullable=False)

    privileges = relationship("Privilege", secondary=role_privilege, lazy="selectin")
