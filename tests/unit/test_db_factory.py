import pytest
from unittest.mock import patch

from arcade_index.db.db_factory import DatabaseFactory
from arcade_index.db.memory_provider import InMemoryStore
from arcade_index.db.postgres_provider import PostgresStore
from arcade_index.db.sqlite_provider import SQLiteStore


class TestDatabaseFactory:

    def test_memory(self):
        assert isinstance(DatabaseFactory.create_store("memory"), InMemoryStore)

    @patch('arcade_index.db.db_factory.config.SQLITE_PATH', '/tmp/factory_test.db')
    def test_sqlite_uses_configured_path(self):
        store = DatabaseFactory.create_store("SQLite")
        assert isinstance(store, SQLiteStore)
        assert store.db_path == '/tmp/factory_test.db'

    @patch('arcade_index.db.db_factory.config.DATABASE_URL', 'postgresql://u:p@db/arcade')
    def test_postgres_is_not_connected_yet(self):
        store = DatabaseFactory.create_store("postgres")
        assert isinstance(store, PostgresStore)
        assert store.dsn == 'postgresql://u:p@db/arcade'
        assert store._pool is None

    @patch('arcade_index.db.db_factory.config.STORAGE_PROVIDER', 'memory')
    def test_default_from_config(self):
        assert DatabaseFactory.create_store().name == "memory"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            DatabaseFactory.create_store("mongodb")
