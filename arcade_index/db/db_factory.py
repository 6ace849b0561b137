import logging
from typing import Optional

from arcade_index import config
from arcade_index.db.db_interface import ArcadeStore
from arcade_index.db.memory_provider import InMemoryStore
from arcade_index.db.postgres_provider import PostgresStore
from arcade_index.db.sqlite_provider import SQLiteStore

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("memory", "sqlite", "postgres")


class DatabaseFactory:
    """Factory for creating storage providers."""

    @staticmethod
    def create_store(provider: Optional[str] = None) -> ArcadeStore:
        """
        Build the store named by ``provider`` (default: ``STORAGE_PROVIDER``).

        The store is returned unconnected; the caller owns its lifecycle and
        must call ``init_db()`` before use and ``close()`` when done.

        Raises:
            ValueError: for an unknown provider name
        """
        provider = (provider or config.STORAGE_PROVIDER).lower()

        if provider == "memory":
            logger.info("Using in-memory store")
            return InMemoryStore()

        if provider == "sqlite":
            logger.info(f"Using SQLite store at {config.SQLITE_PATH}")
            return SQLiteStore(db_path=config.SQLITE_PATH, busy_timeout=config.SQLITE_BUSY_TIMEOUT)

        if provider == "postgres":
            logger.info("Using PostgreSQL store")
            return PostgresStore(
                dsn=config.DATABASE_URL,
                min_connections=config.PG_POOL_MIN,
                max_connections=config.PG_POOL_MAX,
            )

        raise ValueError(
            f"Unknown storage provider {provider!r}; expected one of: {', '.join(SUPPORTED_PROVIDERS)}"
        )
