"""Entity builders shared by the test suite."""

from datetime import datetime
from uuid import UUID, uuid4

from idp_store.domain import (
    Blueprint,
    BlueprintResource,
    Category,
    CloudProvider,
    Domain,
    EnvironmentConfig,
    EnvironmentEntity,
    ModuleLocationType,
    PropertyDataType,
    PropertySchema,
    ResourceCategory,
    ResourceType,
    ResourceTypeCloudMapping,
    Stack,
    StackType,
    Team,
)

CREATED = datetime(2024, 1, 15, 10, 30, 0)
UPDATED = datetime(2024, 1, 15, 11, 30, 0, 123456)


def make_stack(**overrides) -> Stack:
    values = dict(
        name="orders-api",
        cloud_name="orders-api-prod",
        route_path="/orders/",
        stack_type=StackType.RESTFUL_API,
        created_by="dev@example.com",
        created_at=CREATED,
        updated_at=UPDATED,
        id=uuid4(),
    )
    values.update(overrides)
    return Stack(**values)


def make_team(name: str = "payments", **overrides) -> Team:
    values = dict(name=name, created_at=CREATED, updated_at=UPDATED, id=uuid4())
    values.update(overrides)
    return Team(**values)


def make_cloud_provider(name: str = "AWS", **overrides) -> CloudProvider:
    values = dict(
        name=name,
        display_name=f"{name} Cloud",
        created_at=CREATED,
        updated_at=UPDATED,
        id=uuid4(),
    )
    values.update(overrides)
    return CloudProvider(**values)


def make_resource_type(name: str = "postgres", **overrides) -> ResourceType:
    values = dict(
        name=name,
        display_name=name.title(),
        category=ResourceCategory.SHARED,
        created_at=CREATED,
        updated_at=UPDATED,
        id=uuid4(),
    )
    values.update(overrides)
    return ResourceType(**values)


def make_mapping(**overrides) -> ResourceTypeCloudMapping:
    values = dict(
        terraform_module_location="git::https://example.com/modules/rds.git",
        module_location_type=ModuleLocationType.GIT,
        created_at=CREATED,
        updated_at=UPDATED,
        id=uuid4(),
    )
    values.update(overrides)
    return ResourceTypeCloudMapping(**values)


def make_property_schema(mapping_id: UUID | None = None, **overrides) -> PropertySchema:
    values = dict(
        property_name="instanceClass",
        display_name="Instance class",
        data_type=PropertyDataType.STRING,
        mapping_id=mapping_id,
        created_at=CREATED,
        updated_at=UPDATED,
        id=uuid4(),
    )
    values.update(overrides)
    return PropertySchema(**values)


def make_blueprint(**overrides) -> Blueprint:
    values = dict(name="shared-vpc", created_at=CREATED, updated_at=UPDATED, id=uuid4())
    values.update(overrides)
    return Blueprint(**values)


def make_blueprint_resource(**overrides) -> BlueprintResource:
    values = dict(name="main-db", created_at=CREATED, updated_at=UPDATED, id=uuid4())
    values.update(overrides)
    return BlueprintResource(**values)


def make_domain(name: str = "commerce", **overrides) -> Domain:
    values = dict(name=name, is_active=True, created_at=CREATED, updated_at=UPDATED, id=uuid4())
    values.update(overrides)
    return Domain(**values)


def make_category(domain_id: UUID | None = None, **overrides) -> Category:
    values = dict(
        name="checkout",
        domain_id=domain_id,
        is_active=True,
        created_at=CREATED,
        updated_at=UPDATED,
        id=uuid4(),
    )
    values.update(overrides)
    return Category(**values)


def make_environment(**overrides) -> EnvironmentEntity:
    values = dict(name="Production", created_at=CREATED, updated_at=UPDATED, id=uuid4())
    values.update(overrides)
    return EnvironmentEntity(**values)


def make_environment_config(environment_id: UUID | None = None, **overrides) -> EnvironmentConfig:
    values = dict(
        name="prod-defaults",
        environment_id=environment_id,
        configuration={"region": "eu-west-1", "minReplicas": 2},
        created_at=CREATED,
        updated_at=UPDATED,
        id=uuid4(),
    )
    values.update(overrides)
    return EnvironmentConfig(**values)
