"""
Entity mappers for every catalog entity type.

Each mapper lists its attributes in the order they appear in items:
identity and required attributes first, then optional attributes, then
owned relationships and configuration.

How to change safely:
    - Item keys are the stored contract; "repositoryURL" is kept verbatim
    - New attributes must be optional (required=False) until backfilled
"""

from __future__ import annotations

from typing import Any, TypeVar

from ..codec.types import Item
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
from ..domain.enums import (
    ApiKeyType,
    ModuleLocationType,
    ProgrammingLanguage,
    PropertyDataType,
    ResourceCategory,
    StackType,
)
from .fields import AttributeKind as K
from .fields import attribute
from .mapper import EntityMapper

T = TypeVar("T")


def _identity() -> list:
    return [attribute("id", K.UUID, required=True)]


def _timestamps() -> list:
    return [
        attribute("created_at", K.TIMESTAMP, required=True),
        attribute("updated_at", K.TIMESTAMP, required=True),
    ]


CLOUD_PROVIDER_MAPPER: EntityMapper[CloudProvider] = EntityMapper(
    CloudProvider,
    "cloud_providers",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("display_name", K.STRING, required=True),
        attribute("enabled", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
    ],
)

RESOURCE_TYPE_MAPPER: EntityMapper[ResourceType] = EntityMapper(
    ResourceType,
    "resource_types",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("display_name", K.STRING, required=True),
        attribute("category", K.ENUM, required=True, enum_cls=ResourceCategory),
        attribute("enabled", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
    ],
)

RESOURCE_TYPE_CLOUD_MAPPING_MAPPER: EntityMapper[ResourceTypeCloudMapping] = EntityMapper(
    ResourceTypeCloudMapping,
    "resource_type_cloud_mappings",
    [
        *_identity(),
        attribute("terraform_module_location", K.STRING, required=True),
        attribute(
            "module_location_type", K.ENUM, required=True, enum_cls=ModuleLocationType
        ),
        attribute("enabled", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("resource_type_id", K.REFERENCE, relation="resource_type"),
        attribute("cloud_provider_id", K.REFERENCE, relation="cloud_provider"),
    ],
)

PROPERTY_SCHEMA_MAPPER: EntityMapper[PropertySchema] = EntityMapper(
    PropertySchema,
    "property_schemas",
    [
        *_identity(),
        attribute("property_name", K.STRING, required=True),
        attribute("display_name", K.STRING, required=True),
        attribute("data_type", K.ENUM, required=True, enum_cls=PropertyDataType),
        attribute("required", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
        attribute("mapping_id", K.REFERENCE, relation="mapping"),
        attribute("default_value", K.JSON),
        attribute("validation_rules", K.MAP),
        attribute("display_order", K.INTEGER),
    ],
)

TEAM_MAPPER: EntityMapper[Team] = EntityMapper(
    Team,
    "teams",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
        attribute("is_active", K.BOOLEAN),
    ],
)

STACK_COLLECTION_MAPPER: EntityMapper[StackCollection] = EntityMapper(
    StackCollection,
    "stack_collections",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("is_active", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
    ],
)

BLUEPRINT_MAPPER: EntityMapper[Blueprint] = EntityMapper(
    Blueprint,
    "blueprints",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
        attribute("is_active", K.BOOLEAN),
        attribute(
            "supported_cloud_provider_ids",
            K.REFERENCE_LIST,
            relation="supported_cloud_providers",
        ),
    ],
)

BLUEPRINT_RESOURCE_MAPPER: EntityMapper[BlueprintResource] = EntityMapper(
    BlueprintResource,
    "blueprint_resources",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("is_active", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
        attribute("resource_type_id", K.REFERENCE, relation="resource_type"),
        attribute("cloud_provider_id", K.REFERENCE, relation="cloud_provider"),
        attribute("blueprint_id", K.REFERENCE, relation="blueprint"),
        attribute("cloud_type", K.STRING),
        attribute("cloud_specific_properties", K.MAP),
        attribute("configuration", K.JSON),
    ],
)

STACK_MAPPER: EntityMapper[Stack] = EntityMapper(
    Stack,
    "stacks",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("cloud_name", K.STRING, required=True),
        attribute("route_path", K.STRING, required=True),
        attribute("stack_type", K.ENUM, required=True, enum_cls=StackType),
        attribute("created_by", K.STRING, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
        attribute("repository_url", K.STRING, key="repositoryURL"),
        attribute("programming_language", K.ENUM, enum_cls=ProgrammingLanguage),
        attribute("is_public", K.BOOLEAN),
        attribute("ephemeral_prefix", K.STRING),
        attribute("team_id", K.REFERENCE, relation="team"),
        attribute("stack_collection_id", K.REFERENCE, relation="stack_collection"),
        attribute("blueprint_id", K.REFERENCE, relation="blueprint"),
        attribute("configuration", K.MAP),
    ],
)

STACK_RESOURCE_MAPPER: EntityMapper[StackResource] = EntityMapper(
    StackResource,
    "stack_resources",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
        attribute("resource_type_id", K.REFERENCE, relation="resource_type"),
        attribute("cloud_provider_id", K.REFERENCE, relation="cloud_provider"),
        attribute("stack_id", K.REFERENCE, relation="stack"),
        attribute("configuration", K.MAP),
    ],
)

API_KEY_MAPPER: EntityMapper[ApiKey] = EntityMapper(
    ApiKey,
    "api_keys",
    [
        *_identity(),
        attribute("key_name", K.STRING, required=True),
        attribute("key_hash", K.STRING, required=True),
        attribute("key_prefix", K.STRING, required=True),
        attribute("key_type", K.ENUM, required=True, enum_cls=ApiKeyType),
        attribute("created_by_email", K.STRING, required=True),
        attribute("created_at", K.TIMESTAMP, required=True),
        attribute("is_active", K.BOOLEAN, required=True),
        attribute("user_email", K.STRING),
        attribute("expires_at", K.TIMESTAMP),
        attribute("last_used_at", K.TIMESTAMP),
        attribute("revoked_at", K.TIMESTAMP),
        attribute("revoked_by_email", K.STRING),
    ],
)

DOMAIN_MAPPER: EntityMapper[Domain] = EntityMapper(
    Domain,
    "domains",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("is_active", K.BOOLEAN, required=True),
        *_timestamps(),
    ],
)

CATEGORY_MAPPER: EntityMapper[Category] = EntityMapper(
    Category,
    "categories",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("is_active", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("domain_id", K.REFERENCE, relation="domain"),
    ],
)

ENVIRONMENT_ENTITY_MAPPER: EntityMapper[EnvironmentEntity] = EntityMapper(
    EnvironmentEntity,
    "environment_entities",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("is_active", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
        attribute("cloud_provider_id", K.REFERENCE, relation="cloud_provider"),
        attribute("blueprint_id", K.REFERENCE, relation="blueprint"),
    ],
)

ENVIRONMENT_CONFIG_MAPPER: EntityMapper[EnvironmentConfig] = EntityMapper(
    EnvironmentConfig,
    "environment_configs",
    [
        *_identity(),
        attribute("name", K.STRING, required=True),
        attribute("is_active", K.BOOLEAN, required=True),
        *_timestamps(),
        attribute("description", K.STRING),
        attribute("environment_id", K.REFERENCE, relation="environment"),
        attribute("configuration", K.MAP),
    ],
)


MAPPERS: dict[type, EntityMapper[Any]] = {
    m.entity_type: m
    for m in (
        CLOUD_PROVIDER_MAPPER,
        RESOURCE_TYPE_MAPPER,
        RESOURCE_TYPE_CLOUD_MAPPING_MAPPER,
        PROPERTY_SCHEMA_MAPPER,
        TEAM_MAPPER,
        STACK_COLLECTION_MAPPER,
        BLUEPRINT_MAPPER,
        BLUEPRINT_RESOURCE_MAPPER,
        STACK_MAPPER,
        STACK_RESOURCE_MAPPER,
        API_KEY_MAPPER,
        DOMAIN_MAPPER,
        CATEGORY_MAPPER,
        ENVIRONMENT_ENTITY_MAPPER,
        ENVIRONMENT_CONFIG_MAPPER,
    )
}


def mapper_for(entity_type: type[T]) -> EntityMapper[T]:
    """Get the mapper registered for an entity type.

    Raises:
        KeyError: If the type is not a catalog entity
    """
    try:
        return MAPPERS[entity_type]
    except KeyError:
        raise KeyError(f"No mapper registered for {entity_type.__name__}") from None


def to_item(entity: Any) -> Item:
    """Convert any catalog entity to an item."""
    return mapper_for(type(entity)).to_item(entity)


def from_item(entity_type: type[T], item: Item | None) -> T | None:
    """Convert an item to an entity of the given type, or None if empty."""
    return mapper_for(entity_type).from_item(item)
