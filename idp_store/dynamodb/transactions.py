"""
Atomic multi-item writes.

A batch of TransactionWrites is submitted as one TransactWriteItems
request: every write becomes visible or none does. The coordinator checks
the store's hard limits before any I/O and folds every failure into one
TransactionFailed that names the offending writes by description.

Transaction lifecycle:
    IDLE ──put/update/delete──▶ BUILDING ──commit()──▶ SUBMITTED
                                                          │
                               ┌──────────────┬───────────┴──────┐
                               ▼              ▼                  ▼
                           COMMITTED      CANCELLED            FAILED
                                    (store gave reasons)  (anything else)

Invariants:
    - Every write carries a non-empty description
    - Count and size limits are checked before the driver is called
    - The coordinator never retries; TransactionFailed.retryable tells the
      caller whether retrying with backoff can help
    - A Transaction is single-use; it cannot be changed once submitted

How to change safely:
    - Keep size accounting conservative (serialized request JSON)
    - Never catch TransactionFailed inside this module
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..codec.types import AttributeValue, Item
from ..config import TransactionConfig
from ..errors import TransactionFailed, TransactionStateError, ValidationError
from .driver import ItemStoreDriver
from .translate import translate_transaction_error

logger = logging.getLogger(__name__)


class WriteKind(Enum):
    PUT = "Put"
    UPDATE = "Update"
    DELETE = "Delete"


@dataclass(frozen=True)
class TransactionWrite:
    """One write of an atomic batch.

    Build instances with the put / put_if / update / delete / delete_if
    constructors rather than directly.

    Attributes:
        kind: Put, Update or Delete
        table: Physical table name
        description: Human-readable label used in failure reports
        item: Full item (Put only)
        key: Primary key (Update and Delete)
        condition_expression: Optional precondition
        update_expression: SET/REMOVE expression (Update only)
        expression_attribute_names: #name placeholders
        expression_attribute_values: :value placeholders
    """

    kind: WriteKind
    table: str
    description: str
    item: Item | None = None
    key: Item | None = None
    condition_expression: str | None = None
    update_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, AttributeValue] | None = None

    def __post_init__(self) -> None:
        if not self.description or not self.description.strip():
            raise ValueError("Transaction write description cannot be empty")
        if not self.table:
            raise ValueError("Transaction write table cannot be empty")
        if self.kind == WriteKind.PUT and not self.item:
            raise ValueError(f"Put '{self.description}' requires an item")
        if self.kind != WriteKind.PUT and not self.key:
            raise ValueError(f"{self.kind.value} '{self.description}' requires a key")
        if self.kind == WriteKind.UPDATE and not self.update_expression:
            raise ValueError(f"Update '{self.description}' requires an update expression")

    @classmethod
    def put(cls, table: str, item: Item, description: str) -> TransactionWrite:
        """Unconditional create-or-replace."""
        return cls(WriteKind.PUT, table, description, item=item)

    @classmethod
    def put_if(
        cls,
        table: str,
        item: Item,
        condition_expression: str,
        description: str,
        names: Mapping[str, str] | None = None,
        values: Mapping[str, AttributeValue] | None = None,
    ) -> TransactionWrite:
        """Create-or-replace guarded by a condition on the current item."""
        return cls(
            WriteKind.PUT,
            table,
            description,
            item=item,
            condition_expression=_require_condition(condition_expression, description),
            expression_attribute_names=names,
            expression_attribute_values=values,
        )

    @classmethod
    def update(
        cls,
        table: str,
        key: Item,
        update_expression: str,
        description: str,
        names: Mapping[str, str] | None = None,
        values: Mapping[str, AttributeValue] | None = None,
        condition_expression: str | None = None,
    ) -> TransactionWrite:
        """Partial update of an item by key."""
        return cls(
            WriteKind.UPDATE,
            table,
            description,
            key=key,
            update_expression=update_expression,
            condition_expression=condition_expression,
            expression_attribute_names=names,
            expression_attribute_values=values,
        )

    @classmethod
    def delete(cls, table: str, key: Item, description: str) -> TransactionWrite:
        """Unconditional delete by key."""
        return cls(WriteKind.DELETE, table, description, key=key)

    @classmethod
    def delete_if(
        cls,
        table: str,
        key: Item,
        condition_expression: str,
        description: str,
        names: Mapping[str, str] | None = None,
        values: Mapping[str, AttributeValue] | None = None,
    ) -> TransactionWrite:
        """Delete guarded by a condition on the current item."""
        return cls(
            WriteKind.DELETE,
            table,
            description,
            key=key,
            condition_expression=_require_condition(condition_expression, description),
            expression_attribute_names=names,
            expression_attribute_values=values,
        )

    def to_request(self) -> dict[str, Any]:
        """TransactItems element for this write."""
        body: dict[str, Any] = {"TableName": self.table}
        if self.kind == WriteKind.PUT:
            body["Item"] = self.item
        else:
            body["Key"] = self.key
        if self.update_expression:
            body["UpdateExpression"] = self.update_expression
        if self.condition_expression:
            body["ConditionExpression"] = self.condition_expression
        if self.expression_attribute_names:
            body["ExpressionAttributeNames"] = dict(self.expression_attribute_names)
        if self.expression_attribute_values:
            body["ExpressionAttributeValues"] = dict(self.expression_attribute_values)
        return {self.kind.value: body}


def _require_condition(condition_expression: str, description: str) -> str:
    if not condition_expression or not condition_expression.strip():
        raise ValueError(f"Conditional write '{description}' requires a condition expression")
    return condition_expression


class TransactionCoordinator:
    """Submits batches of TransactionWrites atomically.

    Attributes:
        driver: Item store driver
        config: Count and size limits

    Example:
        >>> coordinator = TransactionCoordinator(driver)
        >>> await coordinator.execute([
        ...     TransactionWrite.put("idp_stacks", stack_item, "Create stack"),
        ...     TransactionWrite.update(
        ...         "idp_teams", team_key, "SET stackCount = stackCount + :one",
        ...         "Increment team stack count", values={":one": {"N": "1"}},
        ...     ),
        ... ])
    """

    def __init__(
        self,
        driver: ItemStoreDriver,
        config: TransactionConfig | None = None,
    ) -> None:
        self.driver = driver
        self.config = config or TransactionConfig()

    def transaction(self) -> Transaction:
        """Start a new single-use transaction builder."""
        return Transaction(self)

    def build_request(self, writes: Sequence[TransactionWrite]) -> list[dict[str, Any]]:
        """Validate a batch against the store limits and build its request.

        Raises:
            ValidationError: If the batch has too many writes or is too large
        """
        if len(writes) > self.config.max_items:
            raise ValidationError(
                f"Transaction contains {len(writes)} items, exceeding the limit of "
                f"{self.config.max_items} items",
                limit=self.config.max_items,
                actual=len(writes),
            )

        request = [write.to_request() for write in writes]
        size = request_size(request)
        if size > self.config.max_request_bytes:
            raise ValidationError(
                f"Transaction request is {size} bytes, exceeding the limit of "
                f"{self.config.max_request_bytes} bytes",
                limit=self.config.max_request_bytes,
                actual=size,
            )
        return request

    async def execute(self, writes: Sequence[TransactionWrite]) -> None:
        """Execute writes as one atomic transaction.

        Args:
            writes: Ordered writes; an empty batch is a no-op

        Raises:
            ValidationError: Before any I/O, if a limit is exceeded
            TransactionFailed: If the store did not commit the batch
        """
        if not writes:
            logger.debug("No writes to execute in transaction")
            return

        request = self.build_request(writes)
        descriptions = [write.description for write in writes]

        logger.info(
            "Executing transaction",
            extra={"operations": len(writes), "descriptions": descriptions},
        )

        try:
            await self.driver.transact_write_items(request)
        except Exception as e:
            failure = translate_transaction_error(e, descriptions)
            logger.error(
                failure.message,
                extra={
                    "kind": failure.kind.value,
                    "retryable": failure.retryable,
                    "failed_operations": [r.index + 1 for r in failure.reasons],
                },
            )
            raise failure from e

        logger.info("Transaction committed", extra={"operations": len(writes)})


def request_size(request: list[dict[str, Any]]) -> int:
    """Serialized size of a TransactItems request in bytes."""
    payload = json.dumps({"TransactItems": request}, separators=(",", ":"), ensure_ascii=False)
    return len(payload.encode("utf-8"))


class TransactionState(Enum):
    IDLE = "idle"
    BUILDING = "building"
    SUBMITTED = "submitted"
    COMMITTED = "committed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class Transaction:
    """Single-use builder for an atomic batch.

    Can be used directly or as an async context manager that commits on
    a clean exit:

        >>> async with coordinator.transaction() as tx:
        ...     tx.put("idp_stacks", stack_item, "Create stack")
        ...     tx.delete("idp_stack_resources", resource_key, "Drop old resource")
    """

    def __init__(self, coordinator: TransactionCoordinator) -> None:
        self._coordinator = coordinator
        self._writes: list[TransactionWrite] = []
        self._state = TransactionState.IDLE

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def writes(self) -> tuple[TransactionWrite, ...]:
        return tuple(self._writes)

    def add(self, write: TransactionWrite) -> Transaction:
        """Append a write.

        Raises:
            TransactionStateError: If the transaction was already submitted
        """
        if self._state not in (TransactionState.IDLE, TransactionState.BUILDING):
            raise TransactionStateError(
                f"Cannot add '{write.description}' to a {self._state.value} transaction",
                state=self._state.value,
            )
        self._writes.append(write)
        self._state = TransactionState.BUILDING
        return self

    def put(self, table: str, item: Item, description: str) -> Transaction:
        return self.add(TransactionWrite.put(table, item, description))

    def put_if(
        self,
        table: str,
        item: Item,
        condition_expression: str,
        description: str,
        names: Mapping[str, str] | None = None,
        values: Mapping[str, AttributeValue] | None = None,
    ) -> Transaction:
        return self.add(
            TransactionWrite.put_if(table, item, condition_expression, description, names, values)
        )

    def update(
        self,
        table: str,
        key: Item,
        update_expression: str,
        description: str,
        names: Mapping[str, str] | None = None,
        values: Mapping[str, AttributeValue] | None = None,
        condition_expression: str | None = None,
    ) -> Transaction:
        return self.add(
            TransactionWrite.update(
                table, key, update_expression, description, names, values, condition_expression
            )
        )

    def delete(self, table: str, key: Item, description: str) -> Transaction:
        return self.add(TransactionWrite.delete(table, key, description))

    def delete_if(
        self,
        table: str,
        key: Item,
        condition_expression: str,
        description: str,
        names: Mapping[str, str] | None = None,
        values: Mapping[str, AttributeValue] | None = None,
    ) -> Transaction:
        return self.add(
            TransactionWrite.delete_if(table, key, condition_expression, description, names, values)
        )

    async def commit(self) -> None:
        """Submit the batch.

        Raises:
            TransactionStateError: If already submitted
            ValidationError: If a limit is exceeded (state becomes FAILED)
            TransactionFailed: If the store did not commit (state becomes
                CANCELLED when the store gave per-operation reasons,
                FAILED otherwise)
        """
        if self._state not in (TransactionState.IDLE, TransactionState.BUILDING):
            raise TransactionStateError(
                f"Cannot commit a {self._state.value} transaction", state=self._state.value
            )
        self._state = TransactionState.SUBMITTED
        try:
            await self._coordinator.execute(self._writes)
        except TransactionFailed as e:
            self._state = TransactionState.CANCELLED if e.reasons else TransactionState.FAILED
            raise
        except ValidationError:
            self._state = TransactionState.FAILED
            raise
        self._state = TransactionState.COMMITTED

    async def __aenter__(self) -> Transaction:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is not None:
            if self._state in (TransactionState.IDLE, TransactionState.BUILDING):
                self._state = TransactionState.FAILED
                logger.debug(
                    "Transaction discarded after error",
                    extra={"operations": len(self._writes)},
                )
            return
        if self._state in (TransactionState.IDLE, TransactionState.BUILDING):
            await self.commit()
