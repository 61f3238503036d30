"""Lookup and persistence for user records."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session, lazyload

from tokenguard.models.user import User


class UserStore:
    """User lookups return None when absent and never raise for it."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_id(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)

    def find_by_username(self, username: str) -> User | None:
        return self.db.scalars(select(User).where(User.username == username)).first()

    def find_by_email(self, email: str) -> User | None:
        # Roles load on first access; email lookups rarely need them
        stmt = (
            select(User)
            .options(lazyload(User.roles))
            .where(func.lower(User.email) == email.lower().strip())
        )
        return self.db.scalars(stmt).first()

    def save(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user
