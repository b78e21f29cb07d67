"""
Repositories for the IDP catalog.

- base: Repository protocol, Repositories bundle, create_repositories()
- dynamo: item-store repository (DynamoDB / in-memory driver)
- sqlite: relational repository and its SQLite store
- loader: batched relationship resolution
"""

from .base import Repositories, Repository, create_repositories, get_by_id
from .dynamo import DynamoRepository
from .loader import attach_children, attach_reference_lists, attach_references
from .sqlite import SqliteEntityStore, SqliteRepository

__all__ = [
    "Repository",
    "Repositories",
    "create_repositories",
    "get_by_id",
    "DynamoRepository",
    "SqliteEntityStore",
    "SqliteRepository",
    "attach_references",
    "attach_reference_lists",
    "attach_children",
]
