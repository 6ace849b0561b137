# Pytest configuration file for the Arcade Aggregation Index test suite
import sys
import os
import pytest

# Add the project root to Python path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from arcade_index.db.memory_provider import InMemoryStore
from arcade_index.db.sqlite_provider import SQLiteStore
from arcade_index.services.aggregation import AggregationEngine
from arcade_index.services.sync_gateway import SyncGateway

TEST_API_KEY = "test-secret-key"


# Configure pytest markers
def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests for isolated components")
    config.addinivalue_line("markers", "integration: Integration tests for multiple components")
    config.addinivalue_line("markers", "slow: Tests that take longer to run")


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Every store-level test runs against both interchangeable stores."""
    if request.param == "memory":
        store = InMemoryStore()
    else:
        store = SQLiteStore(db_path=str(tmp_path / "arcade_test.db"), busy_timeout=30.0)
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def gateway(store):
    return SyncGateway(store)


@pytest.fixture
def engine(store):
    return AggregationEngine(store)
