"""Alembic environment configuration."""

from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context
from tokenguard.config import get_settings
from tokenguard.database import Base

# Import all models so they register with Base.metadata
from tokenguard.models.role import Privilege, Role  # noqa: F401
from tokenguard.models.token import Token  # noqa: F401
from tokenguard.models.user import User  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# An explicit sqlalchemy.url (e.g. from the command API) wins over DATABASE_URL
database_url = config.get_main_option("sqlalchemy.url") or get_settings().DATABASE_URL


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = create_engine(
        database_url,
        poolclass=pool.NullPool,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
