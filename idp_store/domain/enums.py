"""
Enumerations of the IDP catalog.

Constants are persisted by name. Renaming or removing a constant orphans
stored data; append new constants instead.
"""

from __future__ import annotations

from enum import Enum


class StackType(Enum):
    INFRASTRUCTURE = "Infrastructure"
    RESTFUL_SERVERLESS = "RESTful Serverless"
    RESTFUL_API = "RESTful API"
    JAVASCRIPT_WEB_APPLICATION = "JavaScript Web Application"
    EVENT_DRIVEN_SERVERLESS = "Event-driven Serverless"
    EVENT_DRIVEN_API = "Event-driven API"


class ProgrammingLanguage(Enum):
    QUARKUS = "Quarkus"
    NODE_JS = "Node.js"
    REACT = "React"


class ResourceCategory(Enum):
    """Whether a resource type is shared across stacks, per stack, or either."""

    SHARED = "shared"
    NON_SHARED = "non_shared"
    BOTH = "both"


class PropertyDataType(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"


class ModuleLocationType(Enum):
    """Where a Terraform module for a resource type mapping is fetched from."""

    GIT = "git"
    FILE_SYSTEM = "file_system"
    REGISTRY = "registry"


class ApiKeyType(Enum):
    USER = "user"
    SYSTEM = "system"
