"""
idp_store - Persistence core for the Internal Developer Platform catalog.

The catalog (cloud providers, resource types, property schemas, blueprints,
stacks) is one typed domain model that can live in either of two backends:

- SQLite (relational, one table per entity type)
- DynamoDB (schemaless items, one table per entity type)

Architecture:
    ┌──────────────┐     ┌──────────────┐     ┌──────────────────┐
    │  Repository  │────▶│ EntityMapper │────▶│  Scalar/Composite│
    │ (per entity) │     │ to/from item │     │      codecs      │
    └──────┬───────┘     └──────────────┘     └──────────────────┘
           │
           ├──────────── single item ─────────────┐
           ▼                                      ▼
    ┌──────────────────────┐             ┌─────────────────┐
    │ TransactionCoordinator│───atomic───▶│ ItemStoreDriver │
    └──────────────────────┘             │ (aiobotocore /  │
                                         │   in-memory)    │
                                         └─────────────────┘

Invariants:
    - Codecs and mappers are pure: no I/O, no shared mutable state
    - An absent item key means "not set"; a NULL tag means "set to null"
    - Mappers never resolve relationships; repositories do it in batches
    - Multi-item writes are all-or-nothing; the coordinator never retries

How to change safely:
    - Item attribute names are a stored contract; never rename a key
    - Add entity attributes as optional first, backfill, then make required
    - Enum constants are stored by name; never rename a constant
"""

from ._version import __version__

__all__ = ["__version__"]
