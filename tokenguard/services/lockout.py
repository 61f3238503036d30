"""Failed-login counting and time-boxed account lockout.

Lock state lives on the user row and is evaluated lazily on each login
attempt; nothing sweeps expired locks in the background. The guard only
mutates the user object, persisting is left to the caller's transaction.
"""

from datetime import datetime, timedelta

from tokenguard.models.user import User


class AccountLockGuard:
    """UNLOCKED/LOCKED state machine over ``User`` lock fields."""

    def __init__(self, max_failed_attempts: int, lock_duration: timedelta) -> None:
        self.max_failed_attempts = max_failed_attempts
        self.lock_duration = lock_duration

    def is_locked(self, user: User, now: datetime) -> bool:
        if user.locked_at is None or user.locked_duration is None:
            return False
        return now < user.locked_at + user.locked_duration

    def lock_expired(self, user: User, now: datetime) -> bool:
        """True when the user carries lock fields whose window has elapsed."""
        if user.locked_at is None and user.locked_duration is None:
            return False
        return not self.is_locked(user, now)

    def release(self, user: User) -> None:
        user.failed_login_attempts = 0
        user.locked_at = None
        user.locked_duration = None

    def record_failure(self, user: User, now: datetime) -> bool:
        """Count a wrong password. Returns True if this attempt locked the account."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        if user.failed_login_attempts >= self.max_failed_attempts:
            user.locked_at = now
            user.locked_duration = self.lock_duration
            return True
        return False

    def record_success(self, user: User) -> bool:
        """Clear failure bookkeeping. Returns True if anything had to change."""
        if not user.failed_login_attempts and user.locked_at is None and user.locked_duration is None:
            return False
        self.release(user)
        return True
