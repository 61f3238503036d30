"""Pydantic schemas for token endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from tokenguard.schemas.user import validate_password_bytes
from tokenguard.services.credentials import IssuedToken, TokenPair


class AuthenticationRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=72)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1, max_length=256)


class TokenEmailRequest(BaseModel):
    email: str = Field(min_length=3, max_length=256)


class ActivateRequest(BaseModel):
    activation_token: str = Field(min_length=1, max_length=256)


class ResetPasswordRequest(BaseModel):
    reset_token: str = Field(min_length=1, max_length=256)
    new_password: str = Field(min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_bytes(cls, v: str) -> str:
        return validate_password_bytes(v)


class TokenResponse(BaseModel):
    token: str
    expiry: datetime

    @classmethod
    def from_issued(cls, issued: IssuedToken) -> "TokenResponse":
        return cls(token=issued.plaintext, expiry=issued.expiry)


class TokenPairResponse(BaseModel):
    auth_token: TokenResponse
    refresh_token: TokenResponse

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(
            auth_token=TokenResponse.from_issued(pair.auth_token),
            refresh_token=TokenResponse.from_issued(pair.refresh_token),
        )
