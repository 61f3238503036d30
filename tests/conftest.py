"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tokenguard.config import Settings
from tokenguard.database import Base, get_db
from tokenguard.models.role import Privilege, Role
from tokenguard.models.token import Token  # noqa: F401
from tokenguard.models.user import User
from tokenguard.services.events import ActivationTokenCreated, EventPublisher, PasswordResetTokenCreated
from tokenguard.services.passwords import PasswordHasher
from tokenguard.services.token import TokenService, get_token_service
from tokenguard.services.token_generator import TokenGenerator
from tokenguard.services.users import UserService, get_user_service

TEST_PASSWORD = "password123"


class FakeClock:
    """Controllable replacement for ``utc_now``."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 0, 0, 0))


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    """Default token and lockout settings with fast bcrypt."""
    settings = Settings()
    settings.TOKEN_BYTE_SIZE = 32
    settings.ACTIVATION_TOKEN_EXPIRE_MINUTES = 3 * 24 * 60
    settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES = 15
    settings.AUTH_TOKEN_EXPIRE_MINUTES = 60
    settings.REFRESH_TOKEN_EXPIRE_MINUTES = 30 * 24 * 60
    settings.ACCOUNT_LOCK_MINUTES = 15
    settings.MAX_FAILED_LOGIN_ATTEMPTS = 5
    settings.BCRYPT_ROUNDS = 4
    return settings


@pytest.fixture(name="password_hasher")
def password_hasher_fixture(settings: Settings) -> PasswordHasher:
    return PasswordHasher(settings.BCRYPT_ROUNDS)


@pytest.fixture(name="published_events")
def published_events_fixture() -> list:
    return []


@pytest.fixture(name="token_service")
def token_service_fixture(
    settings: Settings, password_hasher: PasswordHasher, clock: FakeClock, published_events: list
) -> TokenService:
    """Token service with inline event delivery recorded into ``published_events``."""
    events = EventPublisher()
    events.subscribe(ActivationTokenCreated, published_events.append)
    events.subscribe(PasswordResetTokenCreated, published_events.append)
    return TokenService(
        settings=settings,
        generator=TokenGenerator(settings.TOKEN_BYTE_SIZE),
        password_hasher=password_hasher,
        events=events,
        clock=clock,
    )


@pytest.fixture(name="client")
def client_fixture(db_session: Session, token_service: TokenService, password_hasher: PasswordHasher):
    """Create a test client with overridden dependencies and disabled rate limiting."""
    from main import app
    from tokenguard.rate_limit import limiter

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_user_service] = lambda: UserService(password_hasher, token_service)
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(db_session: Session, password_hasher: PasswordHasher):
    """Factory that persists a user with a bcrypt hash of ``password``."""

    def _make_user(
        username: str = "testuser",
        email: str = "test@example.com",
        password: str = TEST_PASSWORD,
        email_verified: bool = True,
        roles: list[Role] | None = None,
    ) -> User:
        user = User(
            username=username,
            email=email,
            password_hash=password_hasher.encode(password),
            email_verified=email_verified,
            failed_login_attempts=0,
            roles=roles or [],
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session, make_user) -> User:
    """A verified user holding the USER role with one privilege."""
    role = Role(name="USER", privileges=[Privilege(name="post:write")])
    db_session.add(role)
    db_session.commit()
    return make_user(roles=[role])
