"""
Attribute definitions for entity mappers.

An AttributeDef binds one dataclass attribute to one item key and a codec
kind, and owns the write policy for that attribute:

    required            always written; None becomes the NULL tag
    optional scalar     written only when not None; never NULL-tagged
    MAP                 written only when non-empty (empty == no config)
    JSON                written unless None or an empty map
    REFERENCE           "<name>Id", the related identity only
    REFERENCE_LIST      "<name>Ids", ordered identities; [] stays []

Invariants:
    - Item keys are unique within a mapper
    - REFERENCE keys end in "Id", REFERENCE_LIST keys end in "Ids"
    - MAP and JSON attributes cannot be required (they may be omitted)

Example:
    >>> name = attribute("name", AttributeKind.STRING, required=True)
    >>> team = attribute("team_id", AttributeKind.REFERENCE, relation="team")
    >>> team.key
    'teamId'
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..codec import composite, scalars
from ..codec.types import AttributeValue
from ..errors import DecodeError


class AttributeKind(Enum):
    """Supported attribute kinds and the codec each one uses."""

    UUID = "uuid"
    STRING = "str"
    BOOLEAN = "bool"
    INTEGER = "int"
    NUMBER = "number"
    TIMESTAMP = "timestamp"
    ENUM = "enum"
    MAP = "map"  # Free-form configuration map
    JSON = "json"  # Any JSON-shaped value
    REFERENCE = "ref"  # Single related identity
    REFERENCE_LIST = "list_ref"  # Ordered related identities


@dataclass(frozen=True)
class AttributeDef:
    """Definition of one persisted attribute of an entity.

    Attributes:
        name: Dataclass attribute name (snake_case)
        key: Item key / column name (camelCase, the stored contract)
        kind: Codec kind
        required: Whether the attribute is always written
        enum_cls: Enum class if kind is ENUM
        relation: Name of the hydrated relationship attribute a REFERENCE or
            REFERENCE_LIST falls back to when the raw identity is unset
    """

    name: str
    key: str
    kind: AttributeKind
    required: bool = False
    enum_cls: type[Enum] | None = None
    relation: str | None = None

    def __post_init__(self) -> None:
        """Validate attribute definition."""
        if not self.name or not self.key:
            raise ValueError("Attribute name and key cannot be empty")
        if self.kind == AttributeKind.ENUM and self.enum_cls is None:
            raise ValueError(f"enum_cls required for ENUM attribute '{self.name}'")
        if self.kind == AttributeKind.REFERENCE and not self.key.endswith("Id"):
            raise ValueError(f"REFERENCE key must end with 'Id', got '{self.key}'")
        if self.kind == AttributeKind.REFERENCE_LIST and not self.key.endswith("Ids"):
            raise ValueError(f"REFERENCE_LIST key must end with 'Ids', got '{self.key}'")
        if self.required and self.kind in (AttributeKind.MAP, AttributeKind.JSON):
            raise ValueError(f"{self.kind.name} attribute '{self.name}' cannot be required")

    def should_write(self, value: Any) -> bool:
        """Whether the value is written to the item at all."""
        if self.required:
            return True
        if self.kind == AttributeKind.MAP:
            return bool(value)
        if self.kind == AttributeKind.JSON:
            return value is not None and not (isinstance(value, Mapping) and not value)
        return value is not None

    def encode(self, value: Any) -> AttributeValue:
        """Encode a domain value with this attribute's codec."""
        kind = self.kind
        if kind in (AttributeKind.UUID, AttributeKind.REFERENCE):
            return scalars.encode_uuid(value)
        if kind == AttributeKind.STRING:
            return scalars.encode_string(value)
        if kind == AttributeKind.BOOLEAN:
            return scalars.encode_bool(value)
        if kind in (AttributeKind.INTEGER, AttributeKind.NUMBER):
            return scalars.encode_number(value)
        if kind == AttributeKind.TIMESTAMP:
            return scalars.encode_timestamp(value)
        if kind == AttributeKind.ENUM:
            return scalars.encode_enum(value)
        if kind == AttributeKind.MAP:
            return composite.encode_map(value)
        if kind == AttributeKind.JSON:
            return composite.encode_value(value)
        return scalars.encode_uuid_list(value)

    def decode(self, value: AttributeValue) -> Any:
        """Decode a tagged value with this attribute's codec.

        Raises:
            DecodeError: If the stored value cannot be decoded
        """
        kind = self.kind
        key = self.key
        if kind in (AttributeKind.UUID, AttributeKind.REFERENCE):
            return scalars.decode_uuid(value, key)
        if kind == AttributeKind.STRING:
            return scalars.decode_string(value, key)
        if kind == AttributeKind.BOOLEAN:
            return scalars.decode_bool(value, key)
        if kind == AttributeKind.INTEGER:
            number = scalars.decode_number(value, key)
            if number is not None and not isinstance(number, int):
                raise DecodeError(
                    f"Attribute '{key}' must be an integer, got {number}",
                    attribute=key,
                    raw_value=value,
                )
            return number
        if kind == AttributeKind.NUMBER:
            return scalars.decode_number(value, key)
        if kind == AttributeKind.TIMESTAMP:
            return scalars.decode_timestamp(value, key)
        if kind == AttributeKind.ENUM:
            if self.enum_cls is None:
                raise ValueError(f"enum_cls required for ENUM attribute '{self.name}'")
            return scalars.decode_enum(value, self.enum_cls, key)
        if kind == AttributeKind.MAP:
            return composite.decode_map(value, key)
        if kind == AttributeKind.JSON:
            return composite.decode_value(value, key)
        return scalars.decode_uuid_list(value, key)

    def value_of(self, entity: Any) -> Any:
        """Read this attribute from an entity.

        References fall back to the hydrated relationship object(s) when the
        raw identity attribute is unset.
        """
        value = getattr(entity, self.name)
        if value is not None or self.relation is None:
            return value
        related = getattr(entity, self.relation, None)
        if self.kind == AttributeKind.REFERENCE:
            return getattr(related, "id", None)
        if related:
            return [r.id for r in related]
        return None


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase (team_id -> teamId)."""
    head, *tail = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in tail)


def attribute(
    name: str,
    kind: AttributeKind,
    *,
    key: str | None = None,
    required: bool = False,
    enum_cls: type[Enum] | None = None,
    relation: str | None = None,
) -> AttributeDef:
    """Convenience function to create an AttributeDef.

    Args:
        name: Dataclass attribute name
        kind: Attribute kind
        key: Item key (defaults to the camelCase form of name)
        required: Whether the attribute is always written
        enum_cls: Enum class for ENUM attributes
        relation: Hydrated relationship attribute for references

    Returns:
        AttributeDef instance
    """
    return AttributeDef(
        name=name,
        key=key or snake_to_camel(name),
        kind=kind,
        required=required,
        enum_cls=enum_cls,
        relation=relation,
    )
