"""
In-memory item store implementation for testing.

This module provides a dict-backed ItemStoreDriver for:
- Unit tests
- Integration tests
- Local development without DynamoDB Local

It mirrors the DynamoDB behaviours the persistence core depends on:
condition expressions on single-item writes, all-or-nothing
TransactWriteItems with per-operation CancellationReasons, and
ResourceNotFoundException for tables that were never created. Failures
are raised as botocore ClientErrors shaped like the real service's, so
the translation layer is exercised unchanged.

Invariants:
    - All data is lost on process exit
    - Returned items are deep copies; callers cannot mutate stored state
    - A cancelled transaction leaves every table untouched

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with ItemStoreDriver protocol
    - Keep error shapes identical to the service's; translate.py relies on them
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from botocore.exceptions import ClientError

from ..codec.types import AttributeValue, Item
from ..errors import PersistenceError
from .expressions import ExpressionError, apply_update, evaluate_condition

logger = logging.getLogger(__name__)

CONDITION_FAILED_MESSAGE = "The conditional request failed"

_KeyTuple = tuple[tuple[str, str], ...]


def _client_error(
    operation: str,
    code: str,
    message: str,
    **extra: Any,
) -> ClientError:
    response: dict[str, Any] = {"Error": {"Code": code, "Message": message}}
    response.update(extra)
    return ClientError(response, operation)


class InMemoryItemStore:
    """In-memory implementation of ItemStoreDriver for testing.

    Attributes:
        calls: Number of calls per driver operation, for asserting that no
            I/O happened

    Thread safety:
        Writes are serialized with an asyncio lock. Safe to use from
        multiple coroutines.

    Example:
        >>> store = InMemoryItemStore()
        >>> store.create_table("idp_stacks")
        >>> await store.connect()
        >>> await store.put_item("idp_stacks", {"id": {"S": "..."}})
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[_KeyTuple, Item]] = {}
        self._key_schema: dict[str, tuple[str, ...]] = {}
        self._injected: dict[str, list[ClientError]] = {}
        self._connected = False
        self._lock = asyncio.Lock()
        self.calls: Counter[str] = Counter()

    # =========================================================================
    # Test helpers
    # =========================================================================

    def create_table(self, table: str, key_attributes: Sequence[str] = ("id",)) -> None:
        """Create an empty table. Creating an existing table is a no-op."""
        if table not in self._tables:
            self._tables[table] = {}
            self._key_schema[table] = tuple(key_attributes)
            logger.debug("In-memory table created", extra={"table": table})

    def delete_table(self, table: str) -> None:
        self._tables.pop(table, None)
        self._key_schema.pop(table, None)

    def table_names(self) -> list[str]:
        return sorted(self._tables)

    def items(self, table: str) -> list[Item]:
        """Snapshot of every item in a table (deep copies)."""
        return [copy.deepcopy(i) for i in self._require_table("Scan", table).values()]

    def inject_error(self, operation: str, code: str, message: str = "Injected failure") -> None:
        """Make the next call to an operation fail with a ClientError.

        Args:
            operation: Driver method name (e.g. "transact_write_items")
            code: Error code (e.g. "ThrottlingException")
            message: Error message
        """
        self._injected.setdefault(operation, []).append(
            _client_error(operation, code, message)
        )

    # =========================================================================
    # ItemStoreDriver
    # =========================================================================

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryItemStore connected")

    async def close(self) -> None:
        """Close. Data is kept so a test can reconnect and inspect it."""
        self._connected = False
        logger.debug("InMemoryItemStore closed")

    async def get_item(
        self,
        table: str,
        key: Item,
        consistent_read: bool | None = None,
    ) -> Item | None:
        self._begin("get_item")
        rows = self._require_table("GetItem", table)
        found = rows.get(self._key_tuple(table, key))
        return copy.deepcopy(found) if found is not None else None

    async def put_item(
        self,
        table: str,
        item: Item,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> None:
        self._begin("put_item")
        async with self._lock:
            rows = self._require_table("PutItem", table)
            key = self._key_tuple(table, item)
            self._check(
                "PutItem",
                rows.get(key),
                condition_expression,
                expression_attribute_names,
                expression_attribute_values,
            )
            rows[key] = copy.deepcopy(item)

    async def delete_item(
        self,
        table: str,
        key: Item,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> None:
        self._begin("delete_item")
        async with self._lock:
            rows = self._require_table("DeleteItem", table)
            key_tuple = self._key_tuple(table, key)
            self._check(
                "DeleteItem",
                rows.get(key_tuple),
                condition_expression,
                expression_attribute_names,
                expression_attribute_values,
            )
            rows.pop(key_tuple, None)

    async def transact_write_items(self, transact_items: list[dict[str, Any]]) -> None:
        """Apply a batch of writes all-or-nothing.

        Raises:
            ClientError: TransactionCanceledException with CancellationReasons
                when any condition fails, ValidationException for malformed
                requests, ResourceNotFoundException for unknown tables
        """
        self._begin("transact_write_items")
        op = "TransactWriteItems"
        if not transact_items:
            raise _client_error(op, "ValidationException", "TransactItems must not be empty")

        async with self._lock:
            targets: set[tuple[str, _KeyTuple]] = set()
            reasons: list[dict[str, str]] = []
            writes: list[tuple[str, _KeyTuple, Item | None]] = []

            for entry in transact_items:
                if len(entry) != 1:
                    raise _client_error(op, "ValidationException", f"Invalid TransactItem {entry}")
                ((action, request),) = entry.items()
                table = request["TableName"]
                rows = self._require_table(op, table)
                source = request["Item"] if action == "Put" else request["Key"]
                key = self._key_tuple(table, source)
                if (table, key) in targets:
                    raise _client_error(
                        op,
                        "ValidationException",
                        "Transaction request cannot include multiple operations on one item",
                    )
                targets.add((table, key))

                current = rows.get(key)
                names = request.get("ExpressionAttributeNames")
                values = request.get("ExpressionAttributeValues")
                condition = request.get("ConditionExpression")
                if action not in ("Put", "Update", "Delete", "ConditionCheck"):
                    raise _client_error(
                        op, "ValidationException", f"Unsupported transaction action '{action}'"
                    )
                try:
                    passed = condition is None or evaluate_condition(
                        condition, current, names, values
                    )
                    if not passed:
                        reasons.append(
                            {"Code": "ConditionalCheckFailed", "Message": CONDITION_FAILED_MESSAGE}
                        )
                        continue
                    reasons.append({"Code": "None"})
                    if action == "Put":
                        writes.append((table, key, copy.deepcopy(request["Item"])))
                    elif action == "Update":
                        updated = apply_update(
                            request["UpdateExpression"], current, request["Key"], names, values
                        )
                        writes.append((table, key, updated))
                    elif action == "Delete":
                        writes.append((table, key, None))
                except ExpressionError as e:
                    raise _client_error(op, "ValidationException", str(e)) from e

            if any(r["Code"] != "None" for r in reasons):
                codes = ", ".join(r["Code"] for r in reasons)
                raise _client_error(
                    op,
                    "TransactionCanceledException",
                    f"Transaction cancelled, please refer cancellation reasons for specific "
                    f"reasons [{codes}]",
                    CancellationReasons=reasons,
                )

            for table, key, new_item in writes:
                rows = self._tables[table]
                if new_item is None:
                    rows.pop(key, None)
                else:
                    rows[key] = new_item

        logger.debug(
            "In-memory transaction applied",
            extra={"operations": len(transact_items)},
        )

    async def batch_get_items(
        self,
        table: str,
        keys: Sequence[Item],
        consistent_read: bool | None = None,
    ) -> list[Item]:
        self._begin("batch_get_items")
        rows = self._require_table("BatchGetItem", table)
        found: list[Item] = []
        for key in keys:
            item = rows.get(self._key_tuple(table, key))
            if item is not None:
                found.append(copy.deepcopy(item))
        return found

    async def scan(
        self,
        table: str,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, AttributeValue] | None = None,
    ) -> list[Item]:
        self._begin("scan")
        rows = self._require_table("Scan", table)
        result: list[Item] = []
        for item in rows.values():
            if filter_expression is not None:
                try:
                    matched = evaluate_condition(
                        filter_expression,
                        item,
                        expression_attribute_names,
                        expression_attribute_values,
                    )
                except ExpressionError as e:
                    raise _client_error("Scan", "ValidationException", str(e)) from e
                if not matched:
                    continue
            result.append(copy.deepcopy(item))
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _begin(self, operation: str) -> None:
        if not self._connected:
            raise PersistenceError("Not connected", code="NOT_CONNECTED")
        self.calls[operation] += 1
        pending = self._injected.get(operation)
        if pending:
            raise pending.pop(0)

    def _require_table(self, operation: str, table: str) -> dict[_KeyTuple, Item]:
        try:
            return self._tables[table]
        except KeyError:
            raise _client_error(
                operation,
                "ResourceNotFoundException",
                f"Requested resource not found: Table: {table} not found",
            ) from None

    def _key_tuple(self, table: str, item: Mapping[str, AttributeValue]) -> _KeyTuple:
        parts = []
        for name in self._key_schema[table]:
            value = item.get(name)
            if value is None:
                raise _client_error(
                    "KeyValidation",
                    "ValidationException",
                    f"Missing the key {name} in the item",
                )
            ((tag, payload),) = value.items()
            parts.append((tag, str(payload)))
        return tuple(parts)

    def _check(
        self,
        operation: str,
        current: Item | None,
        condition: str | None,
        names: Mapping[str, str] | None,
        values: Mapping[str, AttributeValue] | None,
    ) -> None:
        if condition is None:
            return
        try:
            passed = evaluate_condition(condition, current, names, values)
        except ExpressionError as e:
            raise _client_error(operation, "ValidationException", str(e)) from e
        if not passed:
            raise _client_error(
                operation, "ConditionalCheckFailedException", CONDITION_FAILED_MESSAGE
            )
