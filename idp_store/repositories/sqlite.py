"""
Relational (SQLite) repository.

The same mapper attribute definitions that shape items also shape one
SQLite table per entity type. Columns are named after the item keys, so
a row and an item describe an entity the same way:

    UUID, STRING, TIMESTAMP, ENUM, REFERENCE   TEXT
    BOOLEAN, INTEGER                           INTEGER
    NUMBER                                     BLOB (no type affinity)
    MAP, JSON, REFERENCE_LIST                  TEXT (JSON document)

Rows are converted through items, so the mapper stays the only code that
encodes and decodes entity attributes. A NULL column is an unset
attribute; for required attributes it decodes to None.

Invariants:
    - Multi-row writes run in one BEGIN IMMEDIATE ... COMMIT transaction
    - Inserting a new entity never replaces an existing row
    - Each operation opens its own connection; WAL mode handles concurrency

How to change safely:
    - New attributes need an ALTER TABLE; initialize() only creates
      missing tables
    - Never rename a column; it is the item key as well
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generic, TypeVar
from uuid import UUID

from ..codec.composite import decode_value, encode_value
from ..codec.scalars import encode_number, parse_number
from ..codec.types import (
    BOOL_TAG,
    LIST_TAG,
    NULL_TAG,
    NUMBER_TAG,
    STRING_TAG,
    AttributeValue,
    Item,
    null_value,
    tag_of,
)
from ..config import SqliteConfig
from ..errors import ConditionFailedError
from ..mapping.fields import AttributeDef, AttributeKind
from ..mapping.mapper import ID_KEY, EntityMapper
from .base import filterable_attribute, prepared_for_save

logger = logging.getLogger(__name__)

T = TypeVar("T")

COLUMN_TYPES: dict[AttributeKind, str] = {
    AttributeKind.UUID: "TEXT",
    AttributeKind.STRING: "TEXT",
    AttributeKind.TIMESTAMP: "TEXT",
    AttributeKind.ENUM: "TEXT",
    AttributeKind.REFERENCE: "TEXT",
    AttributeKind.BOOLEAN: "INTEGER",
    AttributeKind.INTEGER: "INTEGER",
    AttributeKind.NUMBER: "BLOB",  # no affinity: 3.0 must not come back as 3
    AttributeKind.MAP: "TEXT",
    AttributeKind.JSON: "TEXT",
    AttributeKind.REFERENCE_LIST: "TEXT",
}


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


# =============================================================================
# Row <-> item conversion
# =============================================================================


def item_to_row(mapper: EntityMapper[Any], item: Item) -> dict[str, Any]:
    """Convert an item to column values (absent keys become NULL)."""
    row: dict[str, Any] = {}
    for attr in mapper.attributes:
        value = item.get(attr.key)
        row[attr.key] = None if value is None else _column_value(attr, value)
    return row


def _column_value(attr: AttributeDef, value: AttributeValue) -> Any:
    tag = tag_of(value, attr.key)
    if tag == NULL_TAG:
        return None
    if attr.kind in (AttributeKind.MAP, AttributeKind.JSON):
        return json.dumps(decode_value(value, attr.key))
    if tag == LIST_TAG:
        return json.dumps([element[STRING_TAG] for element in value[LIST_TAG]])
    if tag == BOOL_TAG:
        return int(value[BOOL_TAG])
    if tag == NUMBER_TAG:
        return parse_number(value[NUMBER_TAG], attr.key)
    return value[STRING_TAG]


def row_to_item(mapper: EntityMapper[Any], row: sqlite3.Row) -> Item:
    """Convert a row to an item.

    NULL columns are omitted for optional attributes and written as the
    NULL tag for required ones, mirroring what to_item() produced.
    """
    item: Item = {}
    for attr in mapper.attributes:
        column = row[attr.key]
        if column is None:
            if attr.required:
                item[attr.key] = null_value()
            continue
        item[attr.key] = _tagged_value(attr, column)
    return item


def _tagged_value(attr: AttributeDef, column: Any) -> AttributeValue:
    kind = attr.kind
    if kind == AttributeKind.BOOLEAN:
        return {BOOL_TAG: bool(column)}
    if kind in (AttributeKind.INTEGER, AttributeKind.NUMBER):
        return encode_number(column)
    if kind == AttributeKind.REFERENCE_LIST:
        return {LIST_TAG: [{STRING_TAG: s} for s in json.loads(column)]}
    if kind in (AttributeKind.MAP, AttributeKind.JSON):
        return encode_value(json.loads(column))
    return {STRING_TAG: str(column)}


# =============================================================================
# Store
# =============================================================================


class SqliteEntityStore:
    """SQLite database holding one table per entity type.

    Thread safety:
        Each operation opens its own connection. SQLite handles concurrent
        access via WAL mode.

    Example:
        >>> store = SqliteEntityStore(SqliteConfig(path="/var/lib/idp/idp.db"), MAPPERS.values())
        >>> await store.initialize()
    """

    def __init__(self, config: SqliteConfig, mappers: Iterable[EntityMapper[Any]]) -> None:
        """Initialize the store.

        Args:
            config: SQLite configuration. The path must be a file; every
                operation opens a new connection, so ":memory:" would not
                persist between operations.
            mappers: Mappers whose tables the store manages
        """
        if config.path == ":memory:":
            raise ValueError("SqliteEntityStore requires a database file path")
        self.config = config
        self.path = Path(config.path)
        self.mappers = tuple(mappers)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Yields:
            SQLite connection in autocommit mode with explicit transactions
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.path),
            timeout=self.config.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.config.busy_timeout_ms}")
            if self.config.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    def _table(self, mapper: EntityMapper[Any]) -> str:
        return _quote(mapper.table)

    def _create_table_sql(self, mapper: EntityMapper[Any]) -> str:
        columns = []
        for attr in mapper.attributes:
            column = f"{_quote(attr.key)} {COLUMN_TYPES[attr.kind]}"
            if attr.key == ID_KEY:
                column += " PRIMARY KEY"
            columns.append(column)
        statements = [f"CREATE TABLE IF NOT EXISTS {self._table(mapper)} ({', '.join(columns)});"]
        for attr in mapper.attributes:
            if attr.kind == AttributeKind.REFERENCE:
                index = _quote(f"idx_{mapper.table}_{attr.key}")
                statements.append(
                    f"CREATE INDEX IF NOT EXISTS {index} "
                    f"ON {self._table(mapper)}({_quote(attr.key)});"
                )
        return "\n".join(statements)

    async def initialize(self) -> None:
        """Create missing tables and indexes."""
        with self._get_connection() as conn:
            for mapper in self.mappers:
                conn.executescript(self._create_table_sql(mapper))

        logger.info(
            "SQLite store initialized",
            extra={"path": str(self.path), "tables": [m.table for m in self.mappers]},
        )

    async def write_rows(
        self,
        mapper: EntityMapper[Any],
        rows: Sequence[tuple[dict[str, Any], bool]],
    ) -> None:
        """Insert or replace rows in one transaction.

        Args:
            mapper: Mapper of the target table
            rows: (row, is_new) pairs; new rows are inserted and fail on an
                existing id, other rows are upserted

        Raises:
            ConditionFailedError: If a new row's id already exists
        """
        if not rows:
            return
        keys = [attr.key for attr in mapper.attributes]
        columns = ", ".join(_quote(k) for k in keys)
        placeholders = ", ".join("?" for _ in keys)
        updates = ", ".join(f"{_quote(k)} = excluded.{_quote(k)}" for k in keys if k != ID_KEY)
        insert_sql = f"INSERT INTO {self._table(mapper)} ({columns}) VALUES ({placeholders})"
        upsert_sql = f"{insert_sql} ON CONFLICT({_quote(ID_KEY)}) DO UPDATE SET {updates}"

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for row, is_new in rows:
                    conn.execute(
                        insert_sql if is_new else upsert_sql,
                        tuple(row[k] for k in keys),
                    )
                conn.execute("COMMIT")

            except sqlite3.IntegrityError as e:
                conn.execute("ROLLBACK")
                raise ConditionFailedError(
                    f"Insert into {mapper.table} rejected: {e}", table=mapper.table
                ) from e
            except Exception:
                conn.execute("ROLLBACK")
                raise

    async def fetch_by_ids(self, mapper: EntityMapper[Any], ids: Sequence[str]) -> list[Item]:
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"SELECT * FROM {self._table(mapper)} WHERE {_quote(ID_KEY)} IN ({placeholders})",
                tuple(ids),
            )
            return [row_to_item(mapper, row) for row in cursor.fetchall()]

    async def fetch_where(
        self,
        mapper: EntityMapper[Any],
        column: str | None = None,
        value: Any = None,
    ) -> list[Item]:
        """Rows of a table, optionally where column IS value, in insertion order."""
        sql = f"SELECT * FROM {self._table(mapper)}"
        params: tuple[Any, ...] = ()
        if column is not None:
            sql += f" WHERE {_quote(column)} IS ?"
            params = (value,)
        sql += " ORDER BY rowid"
        with self._get_connection() as conn:
            cursor = conn.execute(sql, params)
            return [row_to_item(mapper, row) for row in cursor.fetchall()]

    async def delete_rows(self, mapper: EntityMapper[Any], ids: Sequence[str]) -> int:
        """Delete rows by id in one transaction. Returns the number deleted."""
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                cursor = conn.execute(
                    f"DELETE FROM {self._table(mapper)} "
                    f"WHERE {_quote(ID_KEY)} IN ({placeholders})",
                    tuple(ids),
                )
                conn.execute("COMMIT")
                return cursor.rowcount

            except Exception:
                conn.execute("ROLLBACK")
                raise

    async def count(self, mapper: EntityMapper[Any]) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(f"SELECT COUNT(*) FROM {self._table(mapper)}")
            return cursor.fetchone()[0]


# =============================================================================
# Repository
# =============================================================================


class SqliteRepository(Generic[T]):
    """Repository for one entity type on SQLite.

    Example:
        >>> repo = SqliteRepository(TEAM_MAPPER, store)
        >>> team = await repo.save(Team(name="payments"))
    """

    def __init__(self, mapper: EntityMapper[T], store: SqliteEntityStore) -> None:
        self.mapper = mapper
        self.store = store

    def _row(self, entity: T) -> dict[str, Any]:
        return item_to_row(self.mapper, self.mapper.to_item(entity))

    def _decode_all(self, items: list[Item]) -> list[T]:
        entities = []
        for item in items:
            entity = self.mapper.from_item(item)
            if entity is not None:
                entities.append(entity)
        return entities

    async def save(self, entity: T) -> T:
        with prepared_for_save([entity]) as (is_new,):
            await self.store.write_rows(self.mapper, [(self._row(entity), is_new)])
        logger.debug(
            "Saved entity",
            extra={
                "entity_type": self.mapper.entity_name,
                "entity_id": str(entity.id),  # type: ignore[attr-defined]
                "is_new": is_new,
            },
        )
        return entity

    async def save_all(self, entities: Sequence[T]) -> list[T]:
        with prepared_for_save(entities) as new_flags:
            rows = [(self._row(e), is_new) for e, is_new in zip(entities, new_flags)]
            await self.store.write_rows(self.mapper, rows)
        return list(entities)

    async def find_by_id(self, entity_id: UUID) -> T | None:
        items = await self.store.fetch_by_ids(self.mapper, [str(entity_id)])
        return self.mapper.from_item(items[0]) if items else None

    async def find_by_ids(self, entity_ids: Sequence[UUID]) -> dict[UUID, T]:
        unique = [str(i) for i in dict.fromkeys(entity_ids)]
        found: dict[UUID, T] = {}
        for entity in self._decode_all(await self.store.fetch_by_ids(self.mapper, unique)):
            found[entity.id] = entity  # type: ignore[attr-defined]
        return found

    async def find_all(self) -> list[T]:
        return self._decode_all(await self.store.fetch_where(self.mapper))

    async def find_by_attribute(self, item_key: str, value: Any) -> list[T]:
        attr = filterable_attribute(self.mapper, item_key)
        column_value = None
        if value is not None:
            column_value = _column_value(attr, attr.encode(value))
        items = await self.store.fetch_where(self.mapper, attr.key, column_value)
        return self._decode_all(items)

    async def delete(self, entity_id: UUID) -> bool:
        return await self.store.delete_rows(self.mapper, [str(entity_id)]) > 0

    async def delete_all(self, entity_ids: Sequence[UUID]) -> None:
        unique = [str(i) for i in dict.fromkeys(entity_ids)]
        await self.store.delete_rows(self.mapper, unique)

    async def count(self) -> int:
        return await self.store.count(self.mapper)

    async def exists(self, entity_id: UUID) -> bool:
        return bool(await self.store.fetch_by_ids(self.mapper, [str(entity_id)]))

    def __repr__(self) -> str:
        return f"SqliteRepository({self.mapper.entity_name}, table={self.mapper.table!r})"
