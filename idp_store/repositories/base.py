"""
Repository protocol and the provider factory.

A repository persists one entity type. Both backends implement the same
protocol over the same mapper attribute definitions, so application code
is written once and the provider is chosen by configuration.

Invariants:
    - save() assigns a random UUID to an entity without one and stamps
      created_at (first save) and updated_at (every save)
    - Saving a new entity never overwrites an existing one with the same id
    - A failed save leaves id and timestamps as they were before the call
    - save_all() and delete_all() are all-or-nothing
    - find_by_ids() issues one batched lookup regardless of the id count

How to change safely:
    - Protocol changes require updating both DynamoRepository and
      SqliteRepository
    - Keep create_repositories() the only place that reads the provider
"""

from __future__ import annotations

import logging
import uuid
from abc import abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Protocol, TypeVar, runtime_checkable
from uuid import UUID

from ..config import DatabaseProvider, StoreConfig
from ..domain.entities import (
    ApiKey,
    Blueprint,
    BlueprintResource,
    Category,
    CloudProvider,
    Domain,
    EnvironmentConfig,
    EnvironmentEntity,
    PropertySchema,
    ResourceType,
    ResourceTypeCloudMapping,
    Stack,
    StackCollection,
    StackResource,
    Team,
)
from ..errors import EntityNotFoundError
from ..mapping.fields import AttributeDef, AttributeKind
from ..mapping.mapper import EntityMapper

logger = logging.getLogger(__name__)

T = TypeVar("T")

FILTERABLE_KINDS = frozenset(
    {
        AttributeKind.UUID,
        AttributeKind.STRING,
        AttributeKind.BOOLEAN,
        AttributeKind.INTEGER,
        AttributeKind.NUMBER,
        AttributeKind.TIMESTAMP,
        AttributeKind.ENUM,
        AttributeKind.REFERENCE,
    }
)


@runtime_checkable
class Repository(Protocol[T]):
    """Protocol for per-entity repositories.

    Example:
        >>> stack = await repos.stacks.save(Stack(name="orders", ...))
        >>> same = await repos.stacks.find_by_id(stack.id)
        >>> by_team = await repos.stacks.find_by_attribute("teamId", team.id)
    """

    mapper: EntityMapper[T]

    @abstractmethod
    async def save(self, entity: T) -> T:
        """Create or replace one entity.

        Raises:
            ConditionFailedError: If a new entity's id is already taken
        """
        ...

    @abstractmethod
    async def save_all(self, entities: Sequence[T]) -> list[T]:
        """Create or replace many entities atomically."""
        ...

    @abstractmethod
    async def find_by_id(self, entity_id: UUID) -> T | None:
        ...

    @abstractmethod
    async def find_by_ids(self, entity_ids: Sequence[UUID]) -> dict[UUID, T]:
        """Batched lookup. Missing ids are absent from the result."""
        ...

    @abstractmethod
    async def find_all(self) -> list[T]:
        ...

    @abstractmethod
    async def find_by_attribute(self, item_key: str, value: Any) -> list[T]:
        """Entities whose attribute equals value (None matches unset).

        Raises:
            ValueError: If the attribute is not a scalar attribute
        """
        ...

    @abstractmethod
    async def delete(self, entity_id: UUID) -> bool:
        """Delete by id. Returns False if nothing was deleted."""
        ...

    @abstractmethod
    async def delete_all(self, entity_ids: Sequence[UUID]) -> None:
        """Delete many entities atomically."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def exists(self, entity_id: UUID) -> bool:
        ...


def prepare_for_save(entity: Any, now: datetime | None = None) -> bool:
    """Assign identity and timestamps before a save.

    Args:
        entity: Entity about to be saved (mutated in place)
        now: Timestamp to stamp, defaults to the current local time

    Returns:
        True if the entity is new (had no id)
    """
    now = now or datetime.now()
    is_new = entity.id is None
    if is_new:
        entity.id = uuid.uuid4()
    names = {f.name for f in fields(entity)}
    if "created_at" in names and entity.created_at is None:
        entity.created_at = now
    if "updated_at" in names:
        entity.updated_at = now
    return is_new


_STAMPED_FIELDS = ("id", "created_at", "updated_at")


@contextmanager
def prepared_for_save(entities: Sequence[Any]) -> Iterator[list[bool]]:
    """Run prepare_for_save() on entities for the duration of a write.

    If the block raises, every entity gets back the id and timestamps it
    had before, so a retry still creates the new ones conditionally.

    Example:
        >>> with prepared_for_save([stack]) as (is_new,):
        ...     await driver.put_item(table, mapper.to_item(stack))

    Yields:
        One is_new flag per entity, in order
    """
    snapshots = []
    for entity in entities:
        names = {f.name for f in fields(entity)}
        snapshots.append({n: getattr(entity, n) for n in _STAMPED_FIELDS if n in names})
    now = datetime.now()
    try:
        yield [prepare_for_save(entity, now) for entity in entities]
    except BaseException:
        for entity, snapshot in zip(entities, snapshots):
            for name, value in snapshot.items():
                setattr(entity, name, value)
        raise


def filterable_attribute(mapper: EntityMapper[Any], item_key: str) -> AttributeDef:
    """Look up an attribute usable in find_by_attribute.

    Raises:
        ValueError: For unknown keys and non-scalar attributes
    """
    try:
        attr = mapper.attribute(item_key)
    except KeyError as e:
        raise ValueError(str(e)) from None
    if attr.kind not in FILTERABLE_KINDS:
        raise ValueError(
            f"{mapper.entity_name}.{item_key} is a {attr.kind.name} attribute and cannot be "
            f"used as a filter"
        )
    return attr


async def get_by_id(repository: Repository[T], entity_id: UUID) -> T:
    """find_by_id() that raises when nothing is found.

    Raises:
        EntityNotFoundError: If no entity has that id
    """
    entity = await repository.find_by_id(entity_id)
    if entity is None:
        raise EntityNotFoundError(repository.mapper.entity_name, str(entity_id))
    return entity


@dataclass
class Repositories:
    """One repository per catalog entity type, on one backend."""

    provider: DatabaseProvider
    cloud_providers: Repository[CloudProvider]
    resource_types: Repository[ResourceType]
    resource_type_cloud_mappings: Repository[ResourceTypeCloudMapping]
    property_schemas: Repository[PropertySchema]
    teams: Repository[Team]
    stack_collections: Repository[StackCollection]
    blueprints: Repository[Blueprint]
    blueprint_resources: Repository[BlueprintResource]
    stacks: Repository[Stack]
    stack_resources: Repository[StackResource]
    api_keys: Repository[ApiKey]
    domains: Repository[Domain]
    categories: Repository[Category]
    environment_entities: Repository[EnvironmentEntity]
    environment_configs: Repository[EnvironmentConfig]
    backend: Any = None

    def for_type(self, entity_type: type[T]) -> Repository[T]:
        """Repository for an entity type.

        Raises:
            KeyError: If the type is not a catalog entity
        """
        for f in fields(self):
            repo = getattr(self, f.name)
            mapper = getattr(repo, "mapper", None)
            if mapper is not None and mapper.entity_type is entity_type:
                return repo
        raise KeyError(f"No repository for {entity_type.__name__}")

    async def close(self) -> None:
        """Release the backend (driver connection or nothing for SQLite)."""
        close = getattr(self.backend, "close", None)
        if close is not None:
            await close()


async def create_repositories(config: StoreConfig, driver: Any = None) -> Repositories:
    """Factory function to create repositories from configuration.

    Args:
        config: Store configuration
        driver: Optional ItemStoreDriver to use instead of a DynamoDbDriver
            (DynamoDB provider only)

    Returns:
        Repositories for the configured provider

    Raises:
        ValueError: If provider is not supported
    """
    from ..dynamodb.driver import DynamoDbDriver
    from ..dynamodb.transactions import TransactionCoordinator
    from ..mapping import entities as m
    from .dynamo import DynamoRepository
    from .sqlite import SqliteEntityStore, SqliteRepository

    mappers = {
        "cloud_providers": m.CLOUD_PROVIDER_MAPPER,
        "resource_types": m.RESOURCE_TYPE_MAPPER,
        "resource_type_cloud_mappings": m.RESOURCE_TYPE_CLOUD_MAPPING_MAPPER,
        "property_schemas": m.PROPERTY_SCHEMA_MAPPER,
        "teams": m.TEAM_MAPPER,
        "stack_collections": m.STACK_COLLECTION_MAPPER,
        "blueprints": m.BLUEPRINT_MAPPER,
        "blueprint_resources": m.BLUEPRINT_RESOURCE_MAPPER,
        "stacks": m.STACK_MAPPER,
        "stack_resources": m.STACK_RESOURCE_MAPPER,
        "api_keys": m.API_KEY_MAPPER,
        "domains": m.DOMAIN_MAPPER,
        "categories": m.CATEGORY_MAPPER,
        "environment_entities": m.ENVIRONMENT_ENTITY_MAPPER,
        "environment_configs": m.ENVIRONMENT_CONFIG_MAPPER,
    }

    if config.provider == DatabaseProvider.DYNAMODB:
        driver = driver or DynamoDbDriver(config.dynamodb)
        if not driver.is_connected:
            await driver.connect()
        coordinator = TransactionCoordinator(driver, config.transactions)
        repos: dict[str, Any] = {
            name: DynamoRepository(mapper, driver, coordinator, config.dynamodb.table_prefix)
            for name, mapper in mappers.items()
        }
        backend = driver
    elif config.provider == DatabaseProvider.SQLITE:
        store = SqliteEntityStore(config.sqlite, mappers.values())
        await store.initialize()
        repos = {name: SqliteRepository(mapper, store) for name, mapper in mappers.items()}
        backend = store
    else:
        raise ValueError(f"Unsupported database provider: {config.provider}")

    logger.info(
        "Repositories created",
        extra={"provider": config.provider.value, "entity_types": len(repos)},
    )
    return Repositories(provider=config.provider, backend=backend, **repos)
