"""
Integration tests specific to the SQLite repository.

Tests cover:
- Table layout derived from the mappers
- Row <-> item conversion
- Transactional multi-row writes
- Persistence across store instances
"""

import sqlite3

import pytest

from idp_store.config import SqliteConfig
from idp_store.domain import Team
from idp_store.errors import ConditionFailedError
from idp_store.mapping.entities import MAPPERS, STACK_MAPPER, TEAM_MAPPER
from idp_store.repositories import SqliteEntityStore, SqliteRepository
from idp_store.repositories.sqlite import item_to_row, row_to_item
from tests.factories import make_stack


class TestSqliteEntityStore:
    """Tests for the SQLite store."""

    def test_memory_path_rejected(self):
        """Per-operation connections need a database file."""
        with pytest.raises(ValueError, match="requires a database file path"):
            SqliteEntityStore(SqliteConfig(path=":memory:"), MAPPERS.values())

    @pytest.mark.asyncio
    async def test_tables_created(self, sqlite_store):
        """One table per entity type, columns named after item keys."""
        conn = sqlite3.connect(str(sqlite_store.path))
        try:
            tables = {
                r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
            columns = {r[1] for r in conn.execute('PRAGMA table_info("stacks")')}
            indexes = {r[1] for r in conn.execute('PRAGMA index_list("stacks")')}
        finally:
            conn.close()
        assert {m.table for m in MAPPERS.values()} <= tables
        assert {"id", "repositoryURL", "teamId", "configuration"} <= columns
        assert "idx_stacks_teamId" in indexes

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, sqlite_store):
        """Running initialize() twice keeps existing data."""
        repo = SqliteRepository(TEAM_MAPPER, sqlite_store)
        await repo.save(Team(name="payments"))
        await sqlite_store.initialize()
        assert await repo.count() == 1

    @pytest.mark.asyncio
    async def test_duplicate_insert_rolls_back(self, sqlite_store):
        """A failing row rolls back the whole batch."""
        first = item_to_row(TEAM_MAPPER, TEAM_MAPPER.to_item(Team(name="a", id=None)))
        first["id"] = "11111111-1111-1111-1111-111111111111"
        other = dict(first, id="22222222-2222-2222-2222-222222222222", name="b")
        with pytest.raises(ConditionFailedError):
            await sqlite_store.write_rows(
                TEAM_MAPPER, [(other, True), (first, True), (first, True)]
            )
        assert await sqlite_store.count(TEAM_MAPPER) == 0

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, sqlite_store):
        """Data written by one store is visible to a new store on the same file."""
        repo = SqliteRepository(STACK_MAPPER, sqlite_store)
        stack = await repo.save(make_stack(id=None, configuration={"replicas": 2}))

        reopened = SqliteEntityStore(sqlite_store.config, MAPPERS.values())
        await reopened.initialize()
        assert await SqliteRepository(STACK_MAPPER, reopened).find_by_id(stack.id) == stack


class TestRowConversion:
    """Tests for item_to_row / row_to_item."""

    def test_row_values(self):
        """Tagged values become plain column values."""
        stack = make_stack(is_public=True, configuration={"a": [1, 2.5]})
        row = item_to_row(STACK_MAPPER, STACK_MAPPER.to_item(stack))
        assert row["id"] == str(stack.id)
        assert row["isPublic"] == 1
        assert row["stackType"] == "RESTFUL_API"
        assert row["configuration"] == '{"a": [1, 2.5]}'
        assert row["teamId"] is None

    @pytest.mark.asyncio
    async def test_row_to_item_matches_to_item(self, sqlite_store):
        """Reading a row yields the same item the mapper wrote."""
        stack = make_stack(is_public=False, configuration={"nested": {"deep": True}})
        item = STACK_MAPPER.to_item(stack)
        await sqlite_store.write_rows(STACK_MAPPER, [(item_to_row(STACK_MAPPER, item), True)])

        conn = sqlite3.connect(str(sqlite_store.path))
        conn.row_factory = sqlite3.Row
        try:
            row = conn.execute('SELECT * FROM "stacks"').fetchone()
        finally:
            conn.close()
        assert row_to_item(STACK_MAPPER, row) == item

    def test_required_null_column(self):
        """A NULL required column becomes the NULL tag."""
        row = {attr.key: None for attr in TEAM_MAPPER.attributes}
        row["id"] = "11111111-1111-1111-1111-111111111111"
        item = row_to_item(TEAM_MAPPER, row)
        assert item["name"] == {"NULL": True}
        assert "description" not in item
