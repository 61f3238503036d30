"""Pydantic schemas for user endpoints."""

from pydantic import BaseModel, Field, field_validator

from tokenguard.models.user import User
from tokenguard.services.credentials import Principal
from tokenguard.services.passwords import MAX_PASSWORD_BYTES


def validate_password_bytes(value: str) -> str:
    """Reject passwords bcrypt cannot hash. The limit is on UTF-8 bytes, not characters."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


class RegisterRequest(BaseModel):
    username: str = Field(min_length=6, max_length=64)
    email: str = Field(min_length=3, max_length=256, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=8, max_length=72)

    @field_validator("password")
    @classmethod
    def password_bytes(cls, v: str) -> str:
        return validate_password_bytes(v)


class UpdateProfileRequest(BaseModel):
    """Profile changes. Omitted or null fields are left as they are."""

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    pronunciation: str | None = Field(default=None, max_length=256)
    pronouns: str | None = Field(default=None, max_length=64)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    email_verified: bool

    model_config = {"from_attributes": True}


class ProfileResponse(BaseModel):
    """User profile. Other users only see ``id`` and ``username``."""

    id: int
    username: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    pronunciation: str | None = None
    pronouns: str | None = None

    @classmethod
    def for_owner(cls, user: User) -> "ProfileResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            pronunciation=user.pronunciation,
            pronouns=user.pronouns,
        )

    @classmethod
    def for_public(cls, user: User) -> "ProfileResponse":
        return cls(id=user.id, username=user.username)


class PrincipalResponse(BaseModel):
    id: int
    username: str
    email: str
    email_verified: bool
    authorities: list[str]

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            username=principal.username,
            email=principal.email,
            email_verified=principal.email_verified,
            authorities=sorted(principal.authorities),
        )
