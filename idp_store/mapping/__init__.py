"""
Entity mapping between catalog dataclasses and items.

- fields: AttributeKind / AttributeDef declarative attribute definitions
- mapper: generic EntityMapper
- entities: one mapper per entity type and a type-keyed registry
"""

from .entities import MAPPERS, from_item, mapper_for, to_item
from .fields import AttributeDef, AttributeKind, attribute
from .mapper import EntityMapper

__all__ = [
    "AttributeDef",
    "AttributeKind",
    "attribute",
    "EntityMapper",
    "MAPPERS",
    "mapper_for",
    "to_item",
    "from_item",
]
