"""
Domain model of the IDP catalog: entities and enumerations.

Entities are plain dataclasses with no persistence logic. The mapping
package decides how each one is stored.
"""

from .entities import (
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
from .enums import (
    ApiKeyType,
    ModuleLocationType,
    ProgrammingLanguage,
    PropertyDataType,
    ResourceCategory,
    StackType,
)

__all__ = [
    # Entities
    "ApiKey",
    "Blueprint",
    "BlueprintResource",
    "Category",
    "CloudProvider",
    "Domain",
    "EnvironmentConfig",
    "EnvironmentEntity",
    "PropertySchema",
    "ResourceType",
    "ResourceTypeCloudMapping",
    "Stack",
    "StackCollection",
    "StackResource",
    "Team",
    # Enums
    "ApiKeyType",
    "ModuleLocationType",
    "ProgrammingLanguage",
    "PropertyDataType",
    "ResourceCategory",
    "StackType",
]
