"""
Error types for the idp_store persistence core.

Taxonomy:
- PersistenceError: Base exception
- DecodeError: A stored value cannot be parsed into its target type
- EncodeError: A domain value has no stored representation
- ValidationError: A batch violates a hard store limit (raised before I/O)
- TransactionFailed: An atomic multi-item write did not commit
- ConditionFailedError: A single-item conditional write was rejected
- TransactionStateError: A transaction builder was used out of order
- EntityNotFoundError: A lookup that must succeed found nothing

Invariants:
    - All errors inherit from PersistenceError
    - Only the translation boundary (dynamodb.translate) inspects driver
      exceptions; everything above it sees this taxonomy
    - Messages name the entity, attribute or write description involved

How to change safely:
    - Never reuse an error code for a different meaning
    - Add new FailureKind members at the end; callers switch on them
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class PersistenceError(Exception):
    """Base exception for all persistence errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "PERSISTENCE_ERROR"
        self.details = details or {}


class DecodeError(PersistenceError):
    """A stored value could not be decoded.

    Raised when:
    - A UUID, timestamp or enum string is unparsable
    - An attribute carries an unexpected type tag
    - A required attribute is missing from a present item

    Not retryable: the stored data needs inspection.
    """

    def __init__(
        self,
        message: str,
        attribute: str | None = None,
        raw_value: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="DECODE_ERROR",
            details={"attribute": attribute, "raw_value": raw_value},
        )
        self.attribute = attribute
        self.raw_value = raw_value


class EncodeError(PersistenceError):
    """A domain value cannot be represented as a stored value."""

    def __init__(self, message: str, value_type: str | None = None) -> None:
        super().__init__(message, code="ENCODE_ERROR", details={"value_type": value_type})
        self.value_type = value_type


class ValidationError(PersistenceError):
    """A write batch violates a hard store limit.

    Always locally avoidable; raised before any network call.
    """

    def __init__(
        self,
        message: str,
        limit: int | None = None,
        actual: int | None = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"limit": limit, "actual": actual},
        )
        self.limit = limit
        self.actual = actual


class FailureKind(Enum):
    """Classified cause of a failed store write."""

    CONDITIONAL_CHECK_FAILED = "conditional_check_failed"
    TRANSACTION_CONFLICT = "transaction_conflict"
    THROUGHPUT_EXCEEDED = "throughput_exceeded"
    RESOURCE_NOT_FOUND = "resource_not_found"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """Whether a caller may retry the same batch with backoff."""
        return self in (FailureKind.TRANSACTION_CONFLICT, FailureKind.THROUGHPUT_EXCEEDED)


@dataclass(frozen=True)
class CancellationReason:
    """Per-operation reason the store gave for cancelling a transaction.

    Attributes:
        index: Zero-based position of the write in the batch
        description: The write's description
        code: Store reason code (e.g. "ConditionalCheckFailed")
        message: Store reason message, if any
        kind: Classified failure kind
    """

    index: int
    description: str
    code: str
    message: str | None
    kind: FailureKind

    def __str__(self) -> str:
        text = f"Operation {self.index + 1} ({self.description}): {self.code}"
        if self.message:
            text += f" - {self.message}"
        return text


class TransactionFailed(PersistenceError):
    """An atomic multi-item write did not commit. No write is visible.

    Attributes:
        kind: Overall classified cause
        reasons: Per-operation breakdown (empty when the store gave none)
        cause: The original store exception
    """

    def __init__(
        self,
        message: str,
        kind: FailureKind,
        reasons: list[CancellationReason] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        reasons = reasons or []
        super().__init__(
            message,
            code="TRANSACTION_FAILED",
            details={
                "kind": kind.value,
                "reasons": [
                    {"index": r.index, "description": r.description, "code": r.code}
                    for r in reasons
                ],
            },
        )
        self.kind = kind
        self.reasons = reasons
        self.cause = cause

    @property
    def retryable(self) -> bool:
        """Whether retrying with backoff may succeed."""
        return self.kind.retryable


class ConditionFailedError(PersistenceError):
    """A single-item conditional put or delete was rejected by the store."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message, code="CONDITION_FAILED", details={"table": table})
        self.table = table


class TransactionStateError(PersistenceError):
    """A transaction was modified or committed in an invalid state."""

    def __init__(self, message: str, state: str | None = None) -> None:
        super().__init__(message, code="TRANSACTION_STATE", details={"state": state})
        self.state = state


class EntityNotFoundError(PersistenceError):
    """An entity that must exist was not found."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            code="NOT_FOUND",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
