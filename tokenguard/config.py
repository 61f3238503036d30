"""Configuration settings for TokenGuard."""

import os
from datetime import timedelta
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./tokenguard.db")

    # Tokens
    TOKEN_BYTE_SIZE: int = int(os.getenv("TOKEN_BYTE_SIZE", "32"))
    ACTIVATION_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACTIVATION_TOKEN_EXPIRE_MINUTES", str(3 * 24 * 60)))
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("PASSWORD_RESET_TOKEN_EXPIRE_MINUTES", "15"))
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("AUTH_TOKEN_EXPIRE_MINUTES", "60"))
    REFRESH_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_MINUTES", str(30 * 24 * 60)))

    # Account lockout
    ACCOUNT_LOCK_MINUTES: int = int(os.getenv("ACCOUNT_LOCK_MINUTES", "15"))
    MAX_FAILED_LOGIN_ATTEMPTS: int = int(os.getenv("MAX_FAILED_LOGIN_ATTEMPTS", "5"))

    # Passwords
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Application
    APP_BASE_URL: str = os.getenv("APP_BASE_URL", "http://localhost:8000")
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def activation_token_expiry(self) -> timedelta:
        return timedelta(minutes=self.ACTIVATION_TOKEN_EXPIRE_MINUTES)

    @property
    def password_reset_token_expiry(self) -> timedelta:
        return timedelta(minutes=self.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES)

    @property
    def auth_token_expiry(self) -> timedelta:
        return timedelta(minutes=self.AUTH_TOKEN_EXPIRE_MINUTES)

    @property
    def refresh_token_expiry(self) -> timedelta:
        return timedelta(minutes=self.REFRESH_TOKEN_EXPIRE_MINUTES)

    @property
    def account_lock_duration(self) -> timedelta:
        return timedelta(minutes=self.ACCOUNT_LOCK_MINUTES)

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if self.TOKEN_BYTE_SIZE < 16:
            errors.append("TOKEN_BYTE_SIZE below 16 bytes weakens bearer tokens")
        if self.MAX_FAILED_LOGIN_ATTEMPTS < 1:
            errors.append("MAX_FAILED_LOGIN_ATTEMPTS must be at least 1")
        if self.BCRYPT_ROUNDS < 10 and self.APP_ENV == "production":
            errors.append("BCRYPT_ROUNDS below 10 is too weak for production")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
