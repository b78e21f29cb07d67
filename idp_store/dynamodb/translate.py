"""
Translation of store exceptions into the persistence error taxonomy.

This is the single place that inspects botocore ClientError codes. The
transaction coordinator and the item-store repositories call into it;
nothing above them ever sees a driver exception.

Cancellation reason codes:
    ConditionalCheckFailed              CONDITIONAL_CHECK_FAILED
    TransactionConflict                 TRANSACTION_CONFLICT
    ProvisionedThroughputExceeded,
    ThrottlingError, RequestLimitExceeded   THROUGHPUT_EXCEEDED
    any other code except "None"        UNKNOWN

The overall kind of a cancelled batch is the highest-priority kind among
its reasons: condition > conflict > throughput > unknown.

How to change safely:
    - New service codes go into the tables below, never into callers
    - Keep message wording stable; operators grep for it
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import (
    CancellationReason,
    ConditionFailedError,
    FailureKind,
    PersistenceError,
    TransactionFailed,
)

logger = logging.getLogger(__name__)

NO_FAILURE_CODE = "None"
UNKNOWN_OPERATION = "Unknown operation"

REASON_KINDS: dict[str, FailureKind] = {
    "ConditionalCheckFailed": FailureKind.CONDITIONAL_CHECK_FAILED,
    "TransactionConflict": FailureKind.TRANSACTION_CONFLICT,
    "ProvisionedThroughputExceeded": FailureKind.THROUGHPUT_EXCEEDED,
    "ThrottlingError": FailureKind.THROUGHPUT_EXCEEDED,
    "RequestLimitExceeded": FailureKind.THROUGHPUT_EXCEEDED,
}

ERROR_KINDS: dict[str, FailureKind] = {
    "ResourceNotFoundException": FailureKind.RESOURCE_NOT_FOUND,
    "ProvisionedThroughputExceededException": FailureKind.THROUGHPUT_EXCEEDED,
    "ThrottlingException": FailureKind.THROUGHPUT_EXCEEDED,
    "RequestLimitExceeded": FailureKind.THROUGHPUT_EXCEEDED,
    "TransactionConflictException": FailureKind.TRANSACTION_CONFLICT,
    "TransactionInProgressException": FailureKind.TRANSACTION_CONFLICT,
}

KIND_PRIORITY: tuple[FailureKind, ...] = (
    FailureKind.CONDITIONAL_CHECK_FAILED,
    FailureKind.TRANSACTION_CONFLICT,
    FailureKind.THROUGHPUT_EXCEEDED,
    FailureKind.UNKNOWN,
)

CONDITION_GUIDANCE = (
    "One or more conditional checks failed. This typically means the data was "
    "modified by another process or the expected state was not met."
)
CONFLICT_GUIDANCE = (
    "Transaction conflict detected. This typically means another transaction was "
    "modifying the same items. Consider retrying with exponential backoff."
)

TRANSACTION_CANCELED = "TransactionCanceledException"
CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


def error_code(error: BaseException) -> str | None:
    """Service error code of a ClientError, None for anything else."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def classify_reason(code: str | None) -> FailureKind | None:
    """Classify one cancellation reason code; None means the operation was fine."""
    if code is None or code == NO_FAILURE_CODE:
        return None
    return REASON_KINDS.get(code, FailureKind.UNKNOWN)


def diagnose_cancellation(
    raw_reasons: Sequence[dict[str, Any] | None],
    descriptions: Sequence[str],
) -> list[CancellationReason]:
    """Pair cancellation reasons with write descriptions by position.

    Args:
        raw_reasons: CancellationReasons from the service response
        descriptions: Descriptions of the submitted writes, in order

    Returns:
        One CancellationReason per failing operation, in batch order
    """
    diagnosed: list[CancellationReason] = []
    for index, raw in enumerate(raw_reasons):
        code = (raw or {}).get("Code")
        kind = classify_reason(code)
        if kind is None:
            continue
        description = descriptions[index] if index < len(descriptions) else UNKNOWN_OPERATION
        diagnosed.append(
            CancellationReason(
                index=index,
                description=description,
                code=code or "",
                message=(raw or {}).get("Message"),
                kind=kind,
            )
        )
    return diagnosed


def overall_kind(reasons: Sequence[CancellationReason]) -> FailureKind:
    """Highest-priority kind among the reasons; UNKNOWN when there are none."""
    kinds = {r.kind for r in reasons}
    for kind in KIND_PRIORITY:
        if kind in kinds:
            return kind
    return FailureKind.UNKNOWN


def cancellation_message(reasons: Sequence[CancellationReason]) -> str:
    """Human-readable summary naming every failing write."""
    lines = ["Transaction cancelled. Reasons:"]
    lines.extend(f"  {reason}" for reason in reasons)
    kinds = {r.kind for r in reasons}
    if FailureKind.CONDITIONAL_CHECK_FAILED in kinds:
        lines.append(CONDITION_GUIDANCE)
    if FailureKind.TRANSACTION_CONFLICT in kinds:
        lines.append(CONFLICT_GUIDANCE)
    return "\n".join(lines)


def translate_transaction_error(
    error: BaseException,
    descriptions: Sequence[str],
) -> TransactionFailed:
    """Fold any exception raised by an atomic write into TransactionFailed.

    Args:
        error: Exception raised by driver.transact_write_items
        descriptions: Descriptions of the submitted writes, in order

    Returns:
        TransactionFailed with kind, per-operation reasons and the cause
    """
    code = error_code(error)

    if code == TRANSACTION_CANCELED and isinstance(error, ClientError):
        raw_reasons = error.response.get("CancellationReasons") or []
        reasons = diagnose_cancellation(raw_reasons, descriptions)
        return TransactionFailed(
            cancellation_message(reasons),
            kind=overall_kind(reasons),
            reasons=reasons,
            cause=error,
        )

    kind = ERROR_KINDS.get(code or "", FailureKind.UNKNOWN)
    if kind == FailureKind.RESOURCE_NOT_FOUND:
        message = "Transaction failed because one or more tables do not exist"
    elif kind == FailureKind.THROUGHPUT_EXCEEDED:
        message = (
            "Transaction failed due to insufficient throughput. "
            "Consider increasing table capacity or retrying with backoff."
        )
    elif kind == FailureKind.TRANSACTION_CONFLICT:
        message = f"Transaction failed: {CONFLICT_GUIDANCE}"
    elif isinstance(error, (ClientError, BotoCoreError)):
        message = f"Transaction failed: {error}"
    else:
        message = f"Transaction failed with unexpected error: {error}"
    return TransactionFailed(message, kind=kind, cause=error)


def translate_item_error(error: BaseException, table: str, operation: str) -> PersistenceError:
    """Translate a single-item driver exception.

    Args:
        error: Exception raised by put_item / delete_item / get_item / scan
        table: Table the operation targeted
        operation: Operation name for the message

    Returns:
        ConditionFailedError for a rejected condition, PersistenceError
        otherwise
    """
    code = error_code(error)
    if code == CONDITIONAL_CHECK_FAILED:
        return ConditionFailedError(f"{operation} on {table} rejected: condition not met", table)
    kind = ERROR_KINDS.get(code or "", FailureKind.UNKNOWN)
    return PersistenceError(
        f"{operation} on {table} failed: {error}",
        code=kind.value.upper(),
        details={"table": table, "operation": operation, "service_code": code},
    )
