"""
Item store access for idp_store.

- driver: ItemStoreDriver protocol and the aiobotocore DynamoDB driver
- memory: in-memory driver for tests and local development
- expressions: condition / update expression evaluation
- translate: store exceptions -> persistence error taxonomy
- transactions: atomic multi-item writes
"""

from .driver import DynamoDbDriver, ItemStoreDriver
from .memory import InMemoryItemStore
from .transactions import (
    Transaction,
    TransactionCoordinator,
    TransactionState,
    TransactionWrite,
    WriteKind,
)
from .translate import translate_item_error, translate_transaction_error

__all__ = [
    "ItemStoreDriver",
    "DynamoDbDriver",
    "InMemoryItemStore",
    "Transaction",
    "TransactionCoordinator",
    "TransactionState",
    "TransactionWrite",
    "WriteKind",
    "translate_item_error",
    "translate_transaction_error",
]
