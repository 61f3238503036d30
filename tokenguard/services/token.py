"""Token lifecycle: issuance, validation, rotation and revocation.

Every mutating operation is one unit of work on the caller's session (see
``database.atomic``). Plaintext tokens leave this module only inside
``IssuedToken`` values; the store only ever sees their hashes.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from tokenguard.config import Settings, get_settings
from tokenguard.database import atomic, utc_now
from tokenguard.errors import (
    AccountLockedError,
    AlreadyActiveError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenNotFoundError,
    UserNotFoundError,
)
from tokenguard.models.token import Token, TokenScope
from tokenguard.models.user import User
from tokenguard.services.credentials import IssuedToken, Principal, TokenPair
from tokenguard.services.events import (
    ActivationTokenCreated,
    EventPublisher,
    PasswordResetTokenCreated,
    get_event_publisher,
)
from tokenguard.services.lockout import AccountLockGuard
from tokenguard.services.passwords import PasswordHasher, get_password_hasher
from tokenguard.services.token_generator import TokenGenerator, get_token_generator
from tokenguard.stores.token import TokenStore
from tokenguard.stores.user import UserStore

logger = logging.getLogger("tokenguard")

SESSION_SCOPES = frozenset({TokenScope.AUTHENTICATION, TokenScope.REFRESH})


class TokenService:
    """Orchestrates token issuance, validation, rotation and account lockout."""

    def __init__(
        self,
        settings: Settings,
        generator: TokenGenerator,
        password_hasher: PasswordHasher,
        events: EventPublisher,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings
        self.generator = generator
        self.password_hasher = password_hasher
        self.events = events
        self.clock = clock
        self.lock_guard = AccountLockGuard(settings.MAX_FAILED_LOGIN_ATTEMPTS, settings.account_lock_duration)

    # --- Activation ---

    def create_activation_token(self, db: Session, email: str) -> IssuedToken | None:
        """Issue a fresh activation token for the user with this email.

        Returns None for an unknown email without raising, so callers cannot
        tell registered addresses apart.
        """
        with atomic(db):
            issued = self._issue_for_email(db, email, TokenScope.ACTIVATION, self.settings.activation_token_expiry)
        if issued is None:
            return None
        user_email, token = issued
        self.events.publish(ActivationTokenCreated(email=user_email, token=token))
        return token

    def activate_account(self, db: Session, plaintext: str) -> None:
        """Mark the token owner's email as verified and consume all their activation tokens."""
        with atomic(db):
            store = TokenStore(db)
            token = self._validate(store, TokenScope.ACTIVATION, plaintext, self.clock())
            user = token.user
            if user.email_verified:
                raise AlreadyActiveError()

            user.email_verified = True
            UserStore(db).save(user)
            store.delete_by_scope_and_user(TokenScope.ACTIVATION, user.id)
        logger.info("Activated account user_id=%s", user.id)

    # --- Password reset ---

    def create_password_reset_token(self, db: Session, email: str) -> IssuedToken | None:
        """Issue a fresh password reset token. Unknown emails yield None, as for activation."""
        with atomic(db):
            issued = self._issue_for_email(
                db, email, TokenScope.PASSWORD_RESET, self.settings.password_reset_token_expiry
            )
        if issued is None:
            return None
        user_email, token = issued
        self.events.publish(PasswordResetTokenCreated(email=user_email, token=token))
        return token

    def reset_password(self, db: Session, plaintext: str, new_password: str) -> None:
        """Set a new password and sign the user out everywhere."""
        with atomic(db):
            store = TokenStore(db)
            token = self._validate(store, TokenScope.PASSWORD_RESET, plaintext, self.clock())
            user = token.user
            user.password_hash = self.password_hasher.encode(new_password)
            UserStore(db).save(user)
            store.delete_by_scopes_and_user(SESSION_SCOPES | {TokenScope.PASSWORD_RESET}, user.id)
        logger.info("Password reset for user_id=%s, all sessions revoked", user.id)

    # --- Authentication ---

    def authenticate(self, db: Session, username: str, password: str) -> TokenPair:
        """Check credentials under the lockout rules and issue a new session token pair.

        Failed-attempt and lock bookkeeping is committed before
        InvalidCredentialsError propagates, so it survives the failed login.
        """
        with atomic(db):
            users = UserStore(db)
            user = users.find_by_username(username)
            if user is None:
                raise UserNotFoundError(f"User with username '{username}' not found")

            now = self.clock()
            if self.lock_guard.lock_expired(user, now):
                self.lock_guard.release(user)
                users.save(user)
                db.commit()
                logger.info("Lock window elapsed for user_id=%s, failed attempts reset", user.id)

            if self.lock_guard.is_locked(user, now):
                raise AccountLockedError()

            if not self.password_hasher.matches(password, user.password_hash):
                locked = self.lock_guard.record_failure(user, now)
                users.save(user)
                db.commit()
                if locked:
                    logger.warning(
                        "Locked user_id=%s for %s after %d failed login attempts",
                        user.id,
                        self.settings.account_lock_duration,
                        user.failed_login_attempts,
                    )
                raise InvalidCredentialsError()

            if self.lock_guard.record_success(user):
                users.save(user)

            return self._rotate_session_tokens(TokenStore(db), user, now)

    def refresh(self, db: Session, plaintext: str) -> TokenPair:
        """Trade a refresh token for a new pair. The presented token is consumed."""
        with atomic(db):
            store = TokenStore(db)
            now = self.clock()
            token = self._validate(store, TokenScope.REFRESH, plaintext, now)
            return self._rotate_session_tokens(store, token.user, now)

    def revoke_all_sessions(self, db: Session, user_id: int) -> None:
        """Delete every authentication and refresh token of the user."""
        with atomic(db):
            deleted = TokenStore(db).delete_by_scopes_and_user(SESSION_SCOPES, user_id)
        logger.info("Revoked %d session tokens for user_id=%s", deleted, user_id)

    def resolve_principal(self, db: Session, scope: TokenScope, plaintext: str) -> Principal:
        """Resolve a valid token to the identity and authorities of its owner. Read only."""
        token = self._validate(TokenStore(db), scope, plaintext, self.clock())
        user = token.user
        return Principal(
            id=user.id,
            username=user.username,
            email=user.email,
            authorities=user.authorities,
            email_verified=user.email_verified,
        )

    # --- Housekeeping ---

    def purge_expired_tokens(self, db: Session) -> int:
        """Physically delete expired tokens. Validation never depends on this having run."""
        with atomic(db):
            deleted = TokenStore(db).delete_expired(self.clock())
        if deleted:
            logger.info("Purged %d expired tokens", deleted)
        return deleted

    # --- Internals ---

    def _issue_for_email(
        self, db: Session, email: str, scope: TokenScope, expires_in: timedelta
    ) -> tuple[str, IssuedToken] | None:
        user = UserStore(db).find_by_email(email)
        store = TokenStore(db)
        if user is None:
            # Mirror the found path: same token work and the same DELETE and INSERT round trips
            self.generator.generate_token_hash(self.generator.generate_token())
            store.delete_by_scope_and_user(scope, 0)
            store.save_nothing()
            return None

        store.delete_by_scope_and_user(scope, user.id)
        token = self._create_token(store, user, scope, expires_in, self.clock())
        return user.email, token

    def _rotate_session_tokens(self, store: TokenStore, user: User, now: datetime) -> TokenPair:
        store.delete_by_scopes_and_user(SESSION_SCOPES, user.id)
        auth_token = self._create_token(store, user, TokenScope.AUTHENTICATION, self.settings.auth_token_expiry, now)
        refresh_token = self._create_token(store, user, TokenScope.REFRESH, self.settings.refresh_token_expiry, now)
        return TokenPair(auth_token=auth_token, refresh_token=refresh_token)

    def _create_token(
        self, store: TokenStore, user: User, scope: TokenScope, expires_in: timedelta, now: datetime
    ) -> IssuedToken:
        plaintext = self.generator.generate_token()
        token = Token(
            hash=self.generator.generate_token_hash(plaintext),
            scope=scope,
            issued_at=now,
            expires_in=expires_in,
            expires_at=now + expires_in,
            user_id=user.id,
        )
        store.save(token)
        return IssuedToken(plaintext=plaintext, expiry=token.expiry)

    def _validate(self, store: TokenStore, scope: TokenScope, plaintext: str, now: datetime) -> Token:
        token = store.find_by_scope_and_hash(scope, self.generator.generate_token_hash(plaintext))
        if token is None:
            raise TokenNotFoundError()
        if token.is_expired(now):
            raise TokenExpiredError()
        return token


_token_service: TokenService | None = None


def get_token_service() -> TokenService:
    """Get singleton token service instance."""
    global _token_service
    if _token_service is None:
        _token_service = TokenService(
            settings=get_settings(),
            generator=get_token_generator(),
            password_hasher=get_password_hasher(),
            events=get_event_publisher(),
        )
    return _token_service
