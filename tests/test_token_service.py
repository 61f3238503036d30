"""Tests for token issuance, validation, rotation and account lockout."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tokenguard.database import atomic
from tokenguard.errors import (
    AccountLockedError,
    AlreadyActiveError,
    ConcurrentUpdateError,
    InvalidCredentialsError,
    PasswordTooLongError,
    TokenExpiredError,
    TokenNotFoundError,
    UserNotFoundError,
)
from tokenguard.models.token import Token, TokenScope
from tokenguard.models.user import User
from tokenguard.services.events import ActivationTokenCreated, PasswordResetTokenCreated
from tokenguard.services.token import TokenService


def _scopes(db: Session, user_id: int) -> list[TokenScope]:
    return sorted((t.scope for t in db.query(Token).filter(Token.user_id == user_id)), key=lambda s: s.value)


def _lock_user(db: Session, user: User, failed: int) -> None:
    user.failed_login_attempts = failed
    db.commit()


class TestActivationToken:
    """Tests for activation token issuance and account activation."""

    def test_create_for_known_email(self, db_session, token_service, make_user, clock, published_events):
        """A known email gets a token valid for three days and an event is published."""
        user = make_user(email_verified=False)

        issued = token_service.create_activation_token(db_session, "test@example.com")

        assert issued is not None
        assert len(issued.plaintext) == 43
        assert issued.expiry == clock.now + timedelta(days=3)
        assert _scopes(db_session, user.id) == [TokenScope.ACTIVATION]
        assert published_events == [ActivationTokenCreated(email="test@example.com", token=issued)]

    def test_plaintext_is_not_stored(self, db_session, token_service, make_user):
        """Only the hash of the issued token is persisted."""
        make_user(email_verified=False)
        issued = token_service.create_activation_token(db_session, "test@example.com")

        stored = db_session.query(Token).one()
        assert stored.hash != issued.plaintext
        assert stored.hash == token_service.generator.generate_token_hash(issued.plaintext)

    def test_email_lookup_is_case_insensitive(self, db_session, token_service, make_user):
        make_user(email_verified=False)
        assert token_service.create_activation_token(db_session, "TEST@Example.com") is not None

    def test_new_token_replaces_previous(self, db_session, token_service, make_user):
        """Requesting again invalidates the earlier activation token."""
        make_user(email_verified=False)
        first = token_service.create_activation_token(db_session, "test@example.com")
        second = token_service.create_activation_token(db_session, "test@example.com")

        with pytest.raises(TokenNotFoundError):
            token_service.activate_account(db_session, first.plaintext)
        token_service.activate_account(db_session, second.plaintext)

    def test_unknown_email_returns_none(self, db_session, token_service, published_events):
        """Unknown emails yield None, no error, no rows and no event."""
        assert token_service.create_activation_token(db_session, "unknown@x.com") is None
        assert db_session.query(Token).count() == 0
        assert published_events == []

    def test_unknown_and_known_email_do_the_same_token_work(self, db_session, token_service, make_user):
        """Both paths generate and hash a token, so neither returns noticeably faster."""
        make_user(email_verified=False)
        generator = token_service.generator
        with (
            patch.object(generator, "generate_token", wraps=generator.generate_token) as generate,
            patch.object(generator, "generate_token_hash", wraps=generator.generate_token_hash) as digest,
        ):
            token_service.create_activation_token(db_session, "unknown@x.com")
            assert (generate.call_count, digest.call_count) == (1, 1)
            token_service.create_activation_token(db_session, "test@example.com")
            assert (generate.call_count, digest.call_count) == (2, 2)

    @pytest.mark.parametrize("create", ["create_activation_token", "create_password_reset_token"])
    def test_unknown_and_known_email_issue_the_same_statements(self, db_session, token_service, make_user, create):
        """Both paths make the same database round trips, so timing does not reveal registered emails."""
        make_user(email_verified=False)
        db_session.expire_all()
        statements = []

        def record(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement.split(None, 1)[0].upper())

        engine = db_session.get_bind()
        event.listen(engine, "before_cursor_execute", record)
        try:
            getattr(token_service, create)(db_session, "unknown@x.com")
            unknown = list(statements)
            statements.clear()
            getattr(token_service, create)(db_session, "test@example.com")
            known = list(statements)
        finally:
            event.remove(engine, "before_cursor_execute", record)

        assert unknown == known == ["SELECT", "DELETE", "INSERT"]

    def test_activate_account(self, db_session, token_service, make_user):
        """Activation verifies the email and consumes the activation tokens."""
        user = make_user(email_verified=False)
        issued = token_service.create_activation_token(db_session, "test@example.com")

        token_service.activate_account(db_session, issued.plaintext)

        db_session.expire_all()
        assert user.email_verified is True
        assert _scopes(db_session, user.id) == []

    def test_activate_already_active(self, db_session, token_service, make_user):
        user = make_user(email_verified=True)
        issued = token_service.create_activation_token(db_session, "test@example.com")

        with pytest.raises(AlreadyActiveError):
            token_service.activate_account(db_session, issued.plaintext)
        assert _scopes(db_session, user.id) == [TokenScope.ACTIVATION]

    def test_activate_with_expired_token(self, db_session, token_service, make_user, clock):
        """Three days after issuance the activation token is expired."""
        user = make_user(email_verified=False)
        issued = token_service.create_activation_token(db_session, "test@example.com")
        clock.advance(days=3)

        with pytest.raises(TokenExpiredError):
            token_service.activate_account(db_session, issued.plaintext)
        assert user.email_verified is False

    def test_activate_with_unknown_token(self, db_session, token_service):
        with pytest.raises(TokenNotFoundError):
            token_service.activate_account(db_session, "x" * 43)


class TestPasswordReset:
    """Tests for password reset tokens."""

    def test_create_publishes_event(self, db_session, token_service, test_user, clock, published_events):
        issued = token_service.create_password_reset_token(db_session, "test@example.com")

        assert issued.expiry == clock.now + timedelta(minutes=15)
        assert published_events == [PasswordResetTokenCreated(email="test@example.com", token=issued)]

    def test_unknown_email_returns_none(self, db_session, token_service, published_events):
        assert token_service.create_password_reset_token(db_session, "nobody@example.com") is None
        assert published_events == []

    def test_reset_changes_password_and_revokes_sessions(self, db_session, token_service, test_user):
        """Resetting forces re-login everywhere and consumes the reset token."""
        session_pair = token_service.authenticate(db_session, "testuser", "password123")
        issued = token_service.create_password_reset_token(db_session, "test@example.com")
        token_service.create_activation_token(db_session, "test@example.com")

        token_service.reset_password(db_session, issued.plaintext, "newpassword456")

        assert _scopes(db_session, test_user.id) == [TokenScope.ACTIVATION]
        with pytest.raises(TokenNotFoundError):
            token_service.refresh(db_session, session_pair.refresh_token.plaintext)
        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "password123")
        assert token_service.authenticate(db_session, "testuser", "newpassword456") is not None

    def test_reset_token_is_single_use(self, db_session, token_service, test_user):
        issued = token_service.create_password_reset_token(db_session, "test@example.com")
        token_service.reset_password(db_session, issued.plaintext, "newpassword456")

        with pytest.raises(TokenNotFoundError):
            token_service.reset_password(db_session, issued.plaintext, "anotherpassword")

    def test_expired_reset_token(self, db_session, token_service, test_user, clock):
        """A reset token expires fifteen minutes after issuance and leaves the password alone."""
        issued = token_service.create_password_reset_token(db_session, "test@example.com")
        clock.advance(minutes=15)

        with pytest.raises(TokenExpiredError):
            token_service.reset_password(db_session, issued.plaintext, "newpassword456")
        assert token_service.authenticate(db_session, "testuser", "password123") is not None

    def test_password_over_72_bytes_is_rejected(self, db_session, token_service, test_user):
        """Forty two-byte characters exceed bcrypt's limit; nothing changes and the token stays usable."""
        issued = token_service.create_password_reset_token(db_session, "test@example.com")

        with pytest.raises(PasswordTooLongError):
            token_service.reset_password(db_session, issued.plaintext, "é" * 40)

        token_service.reset_password(db_session, issued.plaintext, "newpassword456")
        assert token_service.authenticate(db_session, "testuser", "newpassword456") is not None


class TestAuthenticate:
    """Tests for username/password authentication."""

    def test_success_issues_token_pair(self, db_session, token_service, test_user, clock):
        """Auth token lives one hour and refresh token thirty days."""
        pair = token_service.authenticate(db_session, "testuser", "password123")

        assert pair.auth_token.expiry == clock.now + timedelta(hours=1)
        assert pair.refresh_token.expiry == clock.now + timedelta(days=30)
        assert pair.auth_token.plaintext != pair.refresh_token.plaintext
        assert _scopes(db_session, test_user.id) == [TokenScope.AUTHENTICATION, TokenScope.REFRESH]

    def test_new_login_revokes_previous_pair(self, db_session, token_service, test_user):
        first = token_service.authenticate(db_session, "testuser", "password123")
        second = token_service.authenticate(db_session, "testuser", "password123")

        with pytest.raises(TokenNotFoundError):
            token_service.resolve_principal(db_session, TokenScope.AUTHENTICATION, first.auth_token.plaintext)
        principal = token_service.resolve_principal(db_session, TokenScope.AUTHENTICATION, second.auth_token.plaintext)
        assert principal.username == "testuser"

    def test_unknown_user(self, db_session, token_service):
        with pytest.raises(UserNotFoundError):
            token_service.authenticate(db_session, "nobody", "password123")

    def test_wrong_password_counts_attempt(self, db_session, token_service, test_user):
        """The failed attempt is persisted even though the call fails."""
        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "wrong")

        db_session.expire_all()
        assert test_user.failed_login_attempts == 1
        assert test_user.locked_at is None
        assert db_session.query(Token).count() == 0

    def test_threshold_minus_one_does_not_lock(self, db_session, token_service, test_user):
        _lock_user(db_session, test_user, 3)

        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "wrong")

        db_session.expire_all()
        assert test_user.failed_login_attempts == 4
        assert test_user.locked_at is None

    def test_fifth_failure_locks_account(self, db_session, token_service, test_user, clock):
        """failed=4, max=5, wrong password: InvalidCredentials and a persisted 15 minute lock."""
        _lock_user(db_session, test_user, 4)

        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "wrong")

        db_session.expire_all()
        assert test_user.failed_login_attempts == 5
        assert test_user.locked_at == clock.now
        assert test_user.locked_duration == timedelta(minutes=15)

    def test_locked_account_skips_password_check(self, db_session, token_service, test_user, clock):
        """While locked, attempts fail with AccountLocked and change nothing."""
        _lock_user(db_session, test_user, 4)
        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "wrong")
        locked_at = clock.now
        clock.advance(minutes=5)

        with patch.object(token_service.password_hasher, "matches") as matches:
            with pytest.raises(AccountLockedError):
                token_service.authenticate(db_session, "testuser", "wrong")
            matches.assert_not_called()

        db_session.expire_all()
        assert test_user.failed_login_attempts == 5
        assert test_user.locked_at == locked_at

    def test_locked_account_rejects_correct_password(self, db_session, token_service, test_user):
        _lock_user(db_session, test_user, 4)
        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "wrong")

        with pytest.raises(AccountLockedError):
            token_service.authenticate(db_session, "testuser", "password123")

    def test_lock_expiry_resets_before_password_check(self, db_session, token_service, test_user, clock):
        """After the window, a wrong password starts counting again from zero."""
        _lock_user(db_session, test_user, 4)
        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "wrong")
        clock.advance(minutes=15)

        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "wrong")

        db_session.expire_all()
        assert test_user.failed_login_attempts == 1
        assert test_user.locked_at is None
        assert test_user.locked_duration is None

    def test_lock_expiry_then_success(self, db_session, token_service, test_user, clock):
        _lock_user(db_session, test_user, 4)
        with pytest.raises(InvalidCredentialsError):
            token_service.authenticate(db_session, "testuser", "wrong")
        clock.advance(minutes=16)

        assert token_service.authenticate(db_session, "testuser", "password123") is not None

        db_session.expire_all()
        assert test_user.failed_login_attempts == 0
        assert test_user.locked_at is None

    def test_success_clears_failed_attempts(self, db_session, token_service, test_user):
        _lock_user(db_session, test_user, 2)

        token_service.authenticate(db_session, "testuser", "password123")

        db_session.expire_all()
        assert test_user.failed_login_attempts == 0


class TestRefresh:
    """Tests for refresh token rotation."""

    def test_refresh_rotates_both_tokens(self, db_session, token_service, test_user, clock):
        """New auth (1h) and refresh (30d) tokens; old ones are both gone."""
        old = token_service.authenticate(db_session, "testuser", "password123")
        clock.advance(minutes=30)

        new = token_service.refresh(db_session, old.refresh_token.plaintext)

        assert new.auth_token.expiry == clock.now + timedelta(hours=1)
        assert new.refresh_token.expiry == clock.now + timedelta(days=30)
        with pytest.raises(TokenNotFoundError):
            token_service.resolve_principal(db_session, TokenScope.AUTHENTICATION, old.auth_token.plaintext)
        assert db_session.query(Token).count() == 2

    def test_old_refresh_token_is_single_use(self, db_session, token_service, test_user):
        old = token_service.authenticate(db_session, "testuser", "password123")
        token_service.refresh(db_session, old.refresh_token.plaintext)

        with pytest.raises(TokenNotFoundError):
            token_service.refresh(db_session, old.refresh_token.plaintext)

    def test_expired_refresh_token(self, db_session, token_service, test_user, clock):
        pair = token_service.authenticate(db_session, "testuser", "password123")
        clock.advance(days=30)

        with pytest.raises(TokenExpiredError):
            token_service.refresh(db_session, pair.refresh_token.plaintext)

    def test_auth_token_is_not_a_refresh_token(self, db_session, token_service, test_user):
        """Scopes partition the namespace."""
        pair = token_service.authenticate(db_session, "testuser", "password123")

        with pytest.raises(TokenNotFoundError):
            token_service.refresh(db_session, pair.auth_token.plaintext)


class TestRevokeAndResolve:
    """Tests for session revocation and principal resolution."""

    def test_revoke_all_sessions(self, db_session, token_service, test_user):
        """Logout removes session tokens and keeps other scopes."""
        token_service.authenticate(db_session, "testuser", "password123")
        token_service.create_password_reset_token(db_session, "test@example.com")

        token_service.revoke_all_sessions(db_session, test_user.id)

        assert _scopes(db_session, test_user.id) == [TokenScope.PASSWORD_RESET]

    def test_revoke_without_sessions_is_noop(self, db_session, token_service, test_user):
        token_service.revoke_all_sessions(db_session, test_user.id)

    def test_resolve_principal_flattens_authorities(self, db_session, token_service, test_user):
        pair = token_service.authenticate(db_session, "testuser", "password123")

        principal = token_service.resolve_principal(db_session, TokenScope.AUTHENTICATION, pair.auth_token.plaintext)

        assert principal.id == test_user.id
        assert principal.email == "test@example.com"
        assert principal.email_verified is True
        assert principal.authorities == frozenset({"USER", "post:write"})

    def test_expiry_boundary(self, db_session, token_service, test_user, clock):
        """Valid one microsecond before issued_at + duration, expired exactly at it."""
        pair = token_service.authenticate(db_session, "testuser", "password123")
        plaintext = pair.auth_token.plaintext

        clock.advance(hours=1, microseconds=-1)
        token_service.resolve_principal(db_session, TokenScope.AUTHENTICATION, plaintext)

        clock.advance(microseconds=1)
        with pytest.raises(TokenExpiredError):
            token_service.resolve_principal(db_session, TokenScope.AUTHENTICATION, plaintext)

    def test_purge_expired_tokens(self, db_session, token_service: TokenService, test_user, clock):
        token_service.authenticate(db_session, "testuser", "password123")
        clock.advance(hours=2)

        assert token_service.purge_expired_tokens(db_session) == 1
        assert _scopes(db_session, test_user.id) == [TokenScope.REFRESH]


class TestAtomic:
    """Tests for the unit-of-work helper."""

    def test_rolls_back_on_error(self, db_session, make_user):
        user = make_user()
        with pytest.raises(RuntimeError):
            with atomic(db_session):
                user.failed_login_attempts = 3
                db_session.flush()
                raise RuntimeError("boom")

        db_session.expire_all()
        assert user.failed_login_attempts == 0

    def test_stale_row_is_a_retryable_conflict(self, db_session):
        with pytest.raises(ConcurrentUpdateError):
            with atomic(db_session):
                raise StaleDataError("row changed")
