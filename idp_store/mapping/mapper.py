"""
Generic entity mapper: dataclass entity <-> item.

One EntityMapper instance exists per entity type. It is built from a tuple
of AttributeDef records and is the only code that decides whether an
attribute is omitted from an item or written as NULL.

Decoding rules:
    - from_item(None) and from_item({}) return None
    - A required key that is absent raises DecodeError
    - A required key holding NULL decodes to None
    - An optional key that is absent takes the dataclass default
    - Unknown keys are ignored (items written by newer code still load)

Invariants:
    - to_item() never emits inverse relationships
    - from_item() never resolves relationships; references stay identities
    - Mappers are immutable after construction and safe to share

How to change safely:
    - Adding an optional attribute is always safe
    - Never change an existing attribute's key or kind
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Generic, TypeVar
from uuid import UUID

from ..codec.scalars import encode_uuid
from ..codec.types import Item
from ..errors import DecodeError
from .fields import AttributeDef, AttributeKind

T = TypeVar("T")

ID_KEY = "id"


class EntityMapper(Generic[T]):
    """Maps one entity type to and from items.

    Attributes:
        entity_type: The dataclass type this mapper handles
        table: Base table name (prefixed by the repository)
        attributes: Ordered attribute definitions
    """

    def __init__(
        self,
        entity_type: type[T],
        table: str,
        attributes: Iterable[AttributeDef],
    ) -> None:
        self.entity_type = entity_type
        self.table = table
        self.attributes: tuple[AttributeDef, ...] = tuple(attributes)

        by_key: dict[str, AttributeDef] = {}
        for attr in self.attributes:
            if attr.key in by_key:
                raise ValueError(
                    f"Duplicate item key '{attr.key}' in {entity_type.__name__} mapper"
                )
            by_key[attr.key] = attr
        id_attr = by_key.get(ID_KEY)
        if id_attr is None or id_attr.kind != AttributeKind.UUID:
            raise ValueError(f"{entity_type.__name__} mapper must declare a UUID 'id' attribute")
        self._by_key = by_key

    @property
    def entity_name(self) -> str:
        return self.entity_type.__name__

    def attribute(self, key: str) -> AttributeDef:
        """Look up an attribute by item key.

        Raises:
            KeyError: If the mapper has no such key
        """
        try:
            return self._by_key[key]
        except KeyError:
            raise KeyError(f"{self.entity_name} has no attribute '{key}'") from None

    def has_attribute(self, key: str) -> bool:
        return key in self._by_key

    def to_item(self, entity: T) -> Item:
        """Convert an entity to an item.

        Args:
            entity: Entity of this mapper's type

        Returns:
            Item with required attributes always present and unset optional
            attributes omitted

        Raises:
            TypeError: If entity is not of this mapper's type
            EncodeError: If a value has no stored representation
        """
        if not isinstance(entity, self.entity_type):
            raise TypeError(
                f"{self.entity_name} mapper cannot map {type(entity).__name__}"
            )
        item: Item = {}
        for attr in self.attributes:
            value = attr.value_of(entity)
            if attr.should_write(value):
                item[attr.key] = attr.encode(value)
        return item

    def from_item(self, item: Item | None) -> T | None:
        """Convert an item to an entity.

        Args:
            item: Stored item, or None if the lookup found nothing

        Returns:
            The entity, or None for a missing or empty item

        Raises:
            DecodeError: If a required attribute is missing or a value is
                malformed
        """
        if not item:
            return None
        values: dict[str, Any] = {}
        for attr in self.attributes:
            raw = item.get(attr.key)
            if raw is None:
                if attr.required:
                    raise DecodeError(
                        f"{self.entity_name} item is missing required attribute '{attr.key}'",
                        attribute=attr.key,
                    )
                continue
            values[attr.name] = attr.decode(raw)
        try:
            return self.entity_type(**values)
        except TypeError as e:
            raise DecodeError(f"Cannot construct {self.entity_name} from item: {e}") from e

    def key_for(self, entity_id: UUID) -> Item:
        """Primary-key item for an identity."""
        return {ID_KEY: encode_uuid(entity_id)}

    def key_of(self, entity: T) -> Item:
        """Primary-key item for an entity that has an identity.

        Raises:
            ValueError: If the entity has not been assigned an id
        """
        entity_id = getattr(entity, "id", None)
        if entity_id is None:
            raise ValueError(f"{self.entity_name} has no id")
        return self.key_for(entity_id)

    def __repr__(self) -> str:
        return f"EntityMapper({self.entity_name}, table={self.table!r})"
