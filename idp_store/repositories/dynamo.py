"""
Item-store repository.

Single-item writes go straight to the driver; multi-item writes go
through the TransactionCoordinator so they are all-or-nothing. New
entities are written with an attribute_not_exists(id) precondition so a
colliding id is reported instead of silently overwriting.

Invariants:
    - Driver exceptions never escape; they are translated by
      dynamodb.translate
    - Table names are "<prefix>_<base>" (e.g. idp_stacks)

How to change safely:
    - find_all / find_by_attribute scan the whole table; add an index-backed
      query before using them on large tables
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Generic, TypeVar
from uuid import UUID

from botocore.exceptions import BotoCoreError, ClientError

from ..codec.types import Item, null_value
from ..dynamodb.driver import ItemStoreDriver
from ..dynamodb.transactions import TransactionCoordinator, TransactionWrite
from ..dynamodb.translate import translate_item_error
from ..errors import ConditionFailedError
from ..mapping.mapper import EntityMapper
from .base import filterable_attribute, prepared_for_save

logger = logging.getLogger(__name__)

T = TypeVar("T")

NEW_ITEM_CONDITION = "attribute_not_exists(id)"
EXISTING_ITEM_CONDITION = "attribute_exists(id)"


class DynamoRepository(Generic[T]):
    """Repository for one entity type on an item store.

    Attributes:
        mapper: Entity mapper
        driver: Item store driver
        coordinator: Transaction coordinator for batch writes
        table: Physical table name

    Example:
        >>> repo = DynamoRepository(STACK_MAPPER, driver, coordinator, "idp")
        >>> await repo.save(stack)
    """

    def __init__(
        self,
        mapper: EntityMapper[T],
        driver: ItemStoreDriver,
        coordinator: TransactionCoordinator,
        table_prefix: str = "idp",
    ) -> None:
        self.mapper = mapper
        self.driver = driver
        self.coordinator = coordinator
        self.table = f"{table_prefix}_{mapper.table}" if table_prefix else mapper.table

    async def save(self, entity: T) -> T:
        with prepared_for_save([entity]) as (is_new,):
            item = self.mapper.to_item(entity)
            try:
                await self.driver.put_item(
                    self.table,
                    item,
                    condition_expression=NEW_ITEM_CONDITION if is_new else None,
                )
            except (ClientError, BotoCoreError) as e:
                raise translate_item_error(e, self.table, "PutItem") from e

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
        """Save entities in one atomic transaction.

        Raises:
            ValidationError: If the batch exceeds the transaction limits
            TransactionFailed: If the store did not commit
        """
        name = self.mapper.entity_name
        with prepared_for_save(entities) as new_flags:
            writes = []
            for entity, is_new in zip(entities, new_flags):
                item = self.mapper.to_item(entity)
                entity_id = entity.id  # type: ignore[attr-defined]
                if is_new:
                    writes.append(
                        TransactionWrite.put_if(
                            self.table, item, NEW_ITEM_CONDITION, f"Create {name} {entity_id}"
                        )
                    )
                else:
                    writes.append(
                        TransactionWrite.put(self.table, item, f"Save {name} {entity_id}")
                    )
            await self.coordinator.execute(writes)
        return list(entities)

    async def find_by_id(self, entity_id: UUID) -> T | None:
        try:
            item = await self.driver.get_item(self.table, self.mapper.key_for(entity_id))
        except (ClientError, BotoCoreError) as e:
            raise translate_item_error(e, self.table, "GetItem") from e
        return self.mapper.from_item(item)

    async def find_by_ids(self, entity_ids: Sequence[UUID]) -> dict[UUID, T]:
        unique = list(dict.fromkeys(entity_ids))
        if not unique:
            return {}
        keys = [self.mapper.key_for(entity_id) for entity_id in unique]
        try:
            items = await self.driver.batch_get_items(self.table, keys)
        except (ClientError, BotoCoreError) as e:
            raise translate_item_error(e, self.table, "BatchGetItem") from e
        found: dict[UUID, T] = {}
        for item in items:
            entity = self.mapper.from_item(item)
            if entity is not None:
                found[entity.id] = entity  # type: ignore[attr-defined]
        return found

    async def find_all(self) -> list[T]:
        return self._decode_all(await self._scan())

    async def find_by_attribute(self, item_key: str, value: Any) -> list[T]:
        attr = filterable_attribute(self.mapper, item_key)
        names = {"#k": attr.key}
        if value is None:
            items = await self._scan(
                "attribute_not_exists(#k) OR #k = :v", names, {":v": null_value()}
            )
        else:
            items = await self._scan("#k = :v", names, {":v": attr.encode(value)})
        return self._decode_all(items)

    async def delete(self, entity_id: UUID) -> bool:
        try:
            await self.driver.delete_item(
                self.table,
                self.mapper.key_for(entity_id),
                condition_expression=EXISTING_ITEM_CONDITION,
            )
        except (ClientError, BotoCoreError) as e:
            failure = translate_item_error(e, self.table, "DeleteItem")
            if isinstance(failure, ConditionFailedError):
                return False
            raise failure from e
        return True

    async def delete_all(self, entity_ids: Sequence[UUID]) -> None:
        writes = [
            TransactionWrite.delete(
                self.table,
                self.mapper.key_for(entity_id),
                f"Delete {self.mapper.entity_name} {entity_id}",
            )
            for entity_id in dict.fromkeys(entity_ids)
        ]
        await self.coordinator.execute(writes)

    async def count(self) -> int:
        return len(await self._scan())

    async def exists(self, entity_id: UUID) -> bool:
        try:
            item = await self.driver.get_item(self.table, self.mapper.key_for(entity_id))
        except (ClientError, BotoCoreError) as e:
            raise translate_item_error(e, self.table, "GetItem") from e
        return item is not None

    async def _scan(
        self,
        filter_expression: str | None = None,
        names: dict[str, str] | None = None,
        values: dict[str, Any] | None = None,
    ) -> list[Item]:
        try:
            return await self.driver.scan(self.table, filter_expression, names, values)
        except (ClientError, BotoCoreError) as e:
            raise translate_item_error(e, self.table, "Scan") from e

    def _decode_all(self, items: list[Item]) -> list[T]:
        entities = []
        for item in items:
            entity = self.mapper.from_item(item)
            if entity is not None:
                entities.append(entity)
        return entities

    def __repr__(self) -> str:
        return f"DynamoRepository({self.mapper.entity_name}, table={self.table!r})"
