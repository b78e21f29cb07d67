"""Shared fixtures."""

import pytest

from idp_store.config import DatabaseProvider, SqliteConfig, StoreConfig
from idp_store.dynamodb.memory import InMemoryItemStore
from idp_store.dynamodb.transactions import TransactionCoordinator
from idp_store.mapping.entities import MAPPERS
from idp_store.repositories import create_repositories
from idp_store.repositories.sqlite import SqliteEntityStore

TABLE_PREFIX = "idp"


def new_memory_store() -> InMemoryItemStore:
    """In-memory item store with every entity table created."""
    store = InMemoryItemStore()
    for mapper in MAPPERS.values():
        store.create_table(f"{TABLE_PREFIX}_{mapper.table}")
    return store


@pytest.fixture
async def memory_store():
    """Connected in-memory item store."""
    store = new_memory_store()
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def coordinator(memory_store):
    return TransactionCoordinator(memory_store)


@pytest.fixture
async def sqlite_store(tmp_path):
    """Initialized SQLite store in a temporary directory."""
    store = SqliteEntityStore(
        SqliteConfig(path=str(tmp_path / "idp.db"), wal_mode=False),
        MAPPERS.values(),
    )
    await store.initialize()
    return store


@pytest.fixture(params=[DatabaseProvider.SQLITE, DatabaseProvider.DYNAMODB], ids=lambda p: p.value)
async def repositories(request, tmp_path):
    """Repositories on each backend, created through the provider factory."""
    if request.param == DatabaseProvider.SQLITE:
        config = StoreConfig(
            provider=DatabaseProvider.SQLITE,
            sqlite=SqliteConfig(path=str(tmp_path / "idp.db"), wal_mode=False),
        )
        repos = await create_repositories(config)
    else:
        config = StoreConfig(provider=DatabaseProvider.DYNAMODB)
        repos = await create_repositories(config, driver=new_memory_store())
    yield repos
    await repos.close()
