"""User registration."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tokenguard.database import atomic
from tokenguard.errors import ConflictError, UserNotFoundError
from tokenguard.models.role import Role
from tokenguard.models.user import User
from tokenguard.services.passwords import PasswordHasher, get_password_hasher
from tokenguard.services.token import TokenService, get_token_service
from tokenguard.stores.user import UserStore

logger = logging.getLogger("tokenguard")

DEFAULT_ROLE = "USER"
PROFILE_FIELDS = ("first_name", "last_name", "pronunciation", "pronouns")


class UserService:
    """Creates accounts, sends their activation token and manages profiles."""

    def __init__(self, password_hasher: PasswordHasher, token_service: TokenService) -> None:
        self.password_hasher = password_hasher
        self.token_service = token_service

    def register(self, db: Session, username: str, email: str, password: str) -> User:
        """Create an unverified user and send them an activation token.

        Raises ConflictError if the username or email is already taken.
        """
        users = UserStore(db)
        with atomic(db):
            if users.find_by_username(username) is not None:
                raise ConflictError(f"Username '{username}' is already in use")
            if users.find_by_email(email) is not None:
                raise ConflictError(f"Email '{email}' is already in use")

            user = User(
                username=username.strip(),
                email=email.lower().strip(),
                password_hash=self.password_hasher.encode(password),
                email_verified=False,
            )
            role = db.scalars(select(Role).where(Role.name == DEFAULT_ROLE)).first()
            if role is not None:
                user.roles.append(role)
            try:
                users.save(user)
            except IntegrityError as exc:
                raise ConflictError("Username or email is already in use") from exc

        logger.info("Registered user_id=%s username=%s", user.id, user.username)
        self.token_service.create_activation_token(db, user.email)
        return user

    def get_by_username(self, db: Session, username: str) -> User:
        user = UserStore(db).find_by_username(username)
        if user is None:
            raise UserNotFoundError(f"User with username '{username}' not found")
        return user

    def update_profile(self, db: Session, user_id: int, **changes: str | None) -> User:
        """Apply profile changes to the user. Fields passed as None keep their current value."""
        users = UserStore(db)
        with atomic(db):
            user = users.find_by_id(user_id)
            if user is None:
                raise UserNotFoundError(f"User with id '{user_id}' not found")
            for field in PROFILE_FIELDS:
                value = changes.get(field)
                if value is not None:
                    setattr(user, field, value)
            users.save(user)
        logger.info("Updated profile of user_id=%s", user_id)
        return user


_user_service: UserService | None = None


def get_user_service() -> UserService:
    """Get singleton user service instance."""
    global _user_service
    if _user_service is None:
        _user_service = UserService(get_password_hasher(), get_token_service())
    return _user_service
