"""Alembic environment for the anonboard schema.

The database URL is resolved in this order: `alembic -x db_url=...`, the
`sqlalchemy.url` option in alembic.ini, then `DATABASE_URL` with its async
driver swapped for a blocking one.
"""
from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

import anonboard.models  # noqa: F401  (registers the tables on Base.metadata)
from anonboard.core.settings import settings
from anonboard.db.session import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    return override or config.get_main_option("sqlalchemy.url") or settings.database_url_sync


def _configure(**kwargs) -> None:
    url = kwargs.pop("url", None)
    dialect_name = kwargs.pop("dialect_name")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=dialect_name == "sqlite",
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the configured URL without connecting."""
    url = _database_url()
    _configure(
        url=url,
        dialect_name=url.split(":", 1)[0].split("+", 1)[0],
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a blocking connection."""
    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _configure(connection=connection, dialect_name=connection.dialect.name)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
