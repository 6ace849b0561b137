"""
Alembic environment for the arcade index schema (players, scores, stats).

The target database is the one named in the alembic config; when none is
given it follows STORAGE_PROVIDER, so `alembic upgrade head` migrates the
same database the service will open.
"""
from logging.config import fileConfig
import logging
import os
import sys

from alembic import context
from sqlalchemy import create_engine, pool

# Add the project root to sys.path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from arcade_index.config import DATABASE_URL, SQLITE_PATH, STORAGE_PROVIDER
from arcade_index.db.models import Base

logger = logging.getLogger("alembic.env")

alembic_config = context.config
target_metadata = Base.metadata

if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name, disable_existing_loggers=False)


def database_url() -> str:
    explicit = alembic_config.get_main_option("sqlalchemy.url")
    if explicit:
        return explicit
    if STORAGE_PROVIDER == "sqlite":
        return f"sqlite:///{SQLITE_PATH}"
    if STORAGE_PROVIDER == "postgres":
        return DATABASE_URL
    raise RuntimeError("The memory store has no schema; set STORAGE_PROVIDER to sqlite or postgres")


def migrate_offline(url: str) -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def migrate_online(url: str) -> None:
    # Never log credentials, only the host/database part.
    logger.info(f"Migrating {url.split('@')[-1]}")
    engine = create_engine(url, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                # SQLite cannot ALTER most constraints in place
                render_as_batch=connection.dialect.name == "sqlite",
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    migrate_offline(database_url())
else:
    migrate_online(database_url())
