"""
Typed entities of the IDP catalog.

Entities carry identity, scalar fields, free-form configuration and
relationships by identity only. Relationship targets are never embedded:
a stack knows its team_id, and a repository loader may attach the Team
object to the non-persisted `team` attribute.

Invariants:
    - `id` is None until the entity is first saved
    - Timestamps are naive local date-times
    - Attributes declared with compare=False are never persisted; they hold
      hydrated relationship objects or inverse collections

How to change safely:
    - Add fields with a default so existing items still decode
    - Keep mapping/entities.py in sync: a field without an AttributeDef
      is silently not persisted
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from .enums import (
    ApiKeyType,
    ModuleLocationType,
    ProgrammingLanguage,
    PropertyDataType,
    ResourceCategory,
    StackType,
)


@dataclass
class CloudProvider:
    """A cloud provider administrators can enable (e.g. AWS, Azure)."""

    name: str
    display_name: str
    enabled: bool = True
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None


@dataclass
class ResourceType:
    """A kind of infrastructure resource (database, bucket, ...)."""

    name: str
    display_name: str
    category: ResourceCategory
    enabled: bool = True
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None


@dataclass
class ResourceTypeCloudMapping:
    """Binds a resource type to a cloud provider's Terraform module.

    Attributes:
        resource_type_id: Owning resource type
        cloud_provider_id: Target cloud provider
        terraform_module_location: Module source (URL or path)
        module_location_type: How the source is resolved
        property_schemas: Inverse side, populated by repositories only
    """

    terraform_module_location: str
    module_location_type: ModuleLocationType
    resource_type_id: UUID | None = None
    cloud_provider_id: UUID | None = None
    enabled: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    resource_type: ResourceType | None = field(default=None, compare=False, repr=False)
    cloud_provider: CloudProvider | None = field(default=None, compare=False, repr=False)
    property_schemas: list[PropertySchema] = field(
        default_factory=list, compare=False, repr=False
    )


@dataclass
class PropertySchema:
    """Schema of one configurable property of a resource type mapping.

    Attributes:
        default_value: Any JSON-shaped value (string, number, list, map, ...)
        validation_rules: Free-form rules (min, max, pattern, allowedValues)
        display_order: Position in generated forms
    """

    property_name: str
    display_name: str
    data_type: PropertyDataType
    required: bool = False
    mapping_id: UUID | None = None
    description: str | None = None
    default_value: Any = None
    validation_rules: dict[str, Any] | None = None
    display_order: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    mapping: ResourceTypeCloudMapping | None = field(default=None, compare=False, repr=False)


@dataclass
class Team:
    name: str
    description: str | None = None
    is_active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    stacks: list[Stack] = field(default_factory=list, compare=False, repr=False)


@dataclass
class StackCollection:
    name: str
    is_active: bool = True
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    stacks: list[Stack] = field(default_factory=list, compare=False, repr=False)


@dataclass
class Blueprint:
    """A reusable set of shared infrastructure resources.

    Owns the many-valued relationship to supported cloud providers; the
    resource and stack collections are the inverse side and never persisted
    with the blueprint.
    """

    name: str
    description: str | None = None
    is_active: bool | None = None
    supported_cloud_provider_ids: list[UUID] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    supported_cloud_providers: list[CloudProvider] = field(
        default_factory=list, compare=False, repr=False
    )
    resources: list[BlueprintResource] = field(default_factory=list, compare=False, repr=False)
    stacks: list[Stack] = field(default_factory=list, compare=False, repr=False)


@dataclass
class BlueprintResource:
    name: str
    is_active: bool = True
    description: str | None = None
    resource_type_id: UUID | None = None
    cloud_provider_id: UUID | None = None
    blueprint_id: UUID | None = None
    cloud_type: str | None = None
    cloud_specific_properties: dict[str, Any] | None = None
    configuration: Any = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    resource_type: ResourceType | None = field(default=None, compare=False, repr=False)
    cloud_provider: CloudProvider | None = field(default=None, compare=False, repr=False)
    blueprint: Blueprint | None = field(default=None, compare=False, repr=False)


@dataclass
class Stack:
    """A deployable application or infrastructure stack owned by a team."""

    name: str
    cloud_name: str
    route_path: str
    stack_type: StackType
    created_by: str
    description: str | None = None
    repository_url: str | None = None
    programming_language: ProgrammingLanguage | None = None
    is_public: bool | None = None
    ephemeral_prefix: str | None = None
    team_id: UUID | None = None
    stack_collection_id: UUID | None = None
    blueprint_id: UUID | None = None
    configuration: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    team: Team | None = field(default=None, compare=False, repr=False)
    stack_collection: StackCollection | None = field(default=None, compare=False, repr=False)
    blueprint: Blueprint | None = field(default=None, compare=False, repr=False)
    resources: list[StackResource] = field(default_factory=list, compare=False, repr=False)


@dataclass
class StackResource:
    name: str
    description: str | None = None
    resource_type_id: UUID | None = None
    cloud_provider_id: UUID | None = None
    stack_id: UUID | None = None
    configuration: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    resource_type: ResourceType | None = field(default=None, compare=False, repr=False)
    cloud_provider: CloudProvider | None = field(default=None, compare=False, repr=False)
    stack: Stack | None = field(default=None, compare=False, repr=False)


@dataclass
class ApiKey:
    """A hashed API key. The plaintext key is never stored."""

    key_name: str
    key_hash: str
    key_prefix: str
    key_type: ApiKeyType
    created_by_email: str
    is_active: bool = True
    user_email: str | None = None
    expires_at: datetime | None = None
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None
    revoked_by_email: str | None = None
    created_at: datetime | None = None
    id: UUID | None = None


@dataclass
class Domain:
    """A business domain grouping catalog categories."""

    name: str
    is_active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    categories: list[Category] = field(default_factory=list, compare=False, repr=False)


@dataclass
class Category:
    name: str
    domain_id: UUID | None = None
    is_active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    domain: Domain | None = field(default=None, compare=False, repr=False)


@dataclass
class EnvironmentEntity:
    """A deployment environment on one cloud provider, optionally from a blueprint."""

    name: str
    description: str | None = None
    is_active: bool = True
    cloud_provider_id: UUID | None = None
    blueprint_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    cloud_provider: CloudProvider | None = field(default=None, compare=False, repr=False)
    blueprint: Blueprint | None = field(default=None, compare=False, repr=False)
    configs: list[EnvironmentConfig] = field(default_factory=list, compare=False, repr=False)


@dataclass
class EnvironmentConfig:
    """Free-form configuration of one environment.

    Attributes:
        environment_id: The environment this configuration belongs to
        configuration: Nested map; an empty map is stored as no configuration
    """

    name: str
    description: str | None = None
    environment_id: UUID | None = None
    configuration: dict[str, Any] | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID | None = None

    environment: EnvironmentEntity | None = field(default=None, compare=False, repr=False)
