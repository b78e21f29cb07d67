"""
Unit tests for entity mappers.

Tests cover:
- Required vs optional attribute write policy
- Absent vs NULL on decode
- Reference fallback to hydrated relationships
- Inverse relationships never persisted
- Stored key contract (camelCase, repositoryURL)
"""

from uuid import UUID, uuid4

import pytest

from idp_store.domain import (
    ApiKey,
    ApiKeyType,
    Category,
    CloudProvider,
    Domain,
    EnvironmentConfig,
    EnvironmentEntity,
    ProgrammingLanguage,
    Stack,
    StackResource,
    Team,
)
from idp_store.errors import DecodeError
from idp_store.mapping import from_item, mapper_for, to_item
from idp_store.mapping.entities import (
    API_KEY_MAPPER,
    BLUEPRINT_MAPPER,
    BLUEPRINT_RESOURCE_MAPPER,
    CATEGORY_MAPPER,
    DOMAIN_MAPPER,
    ENVIRONMENT_CONFIG_MAPPER,
    ENVIRONMENT_ENTITY_MAPPER,
    PROPERTY_SCHEMA_MAPPER,
    STACK_MAPPER,
    TEAM_MAPPER,
)
from tests.factories import (
    CREATED,
    make_blueprint,
    make_blueprint_resource,
    make_category,
    make_cloud_provider,
    make_domain,
    make_environment,
    make_environment_config,
    make_property_schema,
    make_stack,
    make_team,
)


class TestToItem:
    """Tests for entity -> item conversion."""

    def test_minimal_stack_writes_required_only(self):
        """Unset optional attributes are omitted, not NULL-tagged."""
        stack = make_stack()
        item = STACK_MAPPER.to_item(stack)
        assert set(item) == {
            "id",
            "name",
            "cloudName",
            "routePath",
            "stackType",
            "createdBy",
            "createdAt",
            "updatedAt",
        }
        assert item["stackType"] == {"S": "RESTFUL_API"}
        assert item["createdAt"] == {"S": "2024-01-15T10:30:00"}

    def test_required_none_written_as_null(self):
        """A required attribute that is None is written as NULL."""
        team = make_team(created_at=None)
        item = TEAM_MAPPER.to_item(team)
        assert item["createdAt"] == {"NULL": True}

    def test_repository_url_key(self):
        """repository_url is stored under the legacy repositoryURL key."""
        stack = make_stack(repository_url="https://github.com/acme/orders")
        item = STACK_MAPPER.to_item(stack)
        assert item["repositoryURL"] == {"S": "https://github.com/acme/orders"}
        assert "repositoryUrl" not in item

    def test_optional_false_is_written(self):
        """False is a value, not an absence."""
        item = STACK_MAPPER.to_item(make_stack(is_public=False))
        assert item["isPublic"] == {"BOOL": False}

    def test_empty_configuration_omitted(self):
        """An empty configuration map means no configuration."""
        item = STACK_MAPPER.to_item(make_stack(configuration={}))
        assert "configuration" not in item

    def test_configuration_written_as_map(self):
        """A non-empty configuration is written as a nested map."""
        item = STACK_MAPPER.to_item(make_stack(configuration={"memory": 512, "tags": {}}))
        assert item["configuration"] == {"M": {"memory": {"N": "512"}, "tags": {"M": {}}}}

    def test_reference_uses_raw_identity(self):
        """A set team_id is written as teamId."""
        team_id = uuid4()
        item = STACK_MAPPER.to_item(make_stack(team_id=team_id))
        assert item["teamId"] == {"S": str(team_id)}

    def test_reference_falls_back_to_relation(self):
        """An unset team_id falls back to the hydrated team's id."""
        team = make_team()
        stack = make_stack()
        stack.team = team
        item = STACK_MAPPER.to_item(stack)
        assert item["teamId"] == {"S": str(team.id)}

    def test_reference_list_falls_back_to_relation(self):
        """Blueprint provider ids fall back to the hydrated providers."""
        aws, azure = make_cloud_provider("AWS"), make_cloud_provider("Azure")
        blueprint = make_blueprint()
        blueprint.supported_cloud_providers = [aws, azure]
        item = BLUEPRINT_MAPPER.to_item(blueprint)
        assert item["supportedCloudProviderIds"] == {
            "L": [{"S": str(aws.id)}, {"S": str(azure.id)}]
        }

    def test_empty_reference_list_stays_list(self):
        """An explicitly empty identity list is written as an empty list."""
        item = BLUEPRINT_MAPPER.to_item(make_blueprint(supported_cloud_provider_ids=[]))
        assert item["supportedCloudProviderIds"] == {"L": []}

    def test_inverse_relationships_not_written(self):
        """Inverse collections never appear in the item."""
        stack = make_stack()
        stack.resources = [StackResource(name="db", id=uuid4())]
        team = make_team()
        team.stacks = [stack]
        assert "resources" not in STACK_MAPPER.to_item(stack)
        assert "stacks" not in TEAM_MAPPER.to_item(team)

    def test_api_key_has_no_updated_at(self):
        """API keys carry a creation timestamp only."""
        key = ApiKey(
            key_name="ci",
            key_hash="abc123",
            key_prefix="idp_",
            key_type=ApiKeyType.SYSTEM,
            created_by_email="admin@example.com",
            created_at=CREATED,
            id=uuid4(),
        )
        item = API_KEY_MAPPER.to_item(key)
        assert "updatedAt" not in item
        assert item["isActive"] == {"BOOL": True}

    def test_wrong_entity_type(self):
        """A mapper refuses entities of another type."""
        with pytest.raises(TypeError, match="Stack mapper cannot map Team"):
            STACK_MAPPER.to_item(make_team())


class TestFromItem:
    """Tests for item -> entity conversion."""

    def test_round_trip(self):
        """A fully populated stack survives a round trip."""
        stack = make_stack(
            description="Orders API",
            repository_url="https://github.com/acme/orders",
            programming_language=ProgrammingLanguage.QUARKUS,
            is_public=True,
            ephemeral_prefix="pr",
            team_id=uuid4(),
            stack_collection_id=uuid4(),
            blueprint_id=uuid4(),
            configuration={"replicas": 2, "env": {"A": "b"}, "ports": [80]},
        )
        assert STACK_MAPPER.from_item(STACK_MAPPER.to_item(stack)) == stack

    def test_none_and_empty(self):
        """A missing or empty item decodes to None."""
        assert STACK_MAPPER.from_item(None) is None
        assert STACK_MAPPER.from_item({}) is None

    def test_missing_required_attribute(self):
        """A required key absent from the item is a decode error."""
        item = TEAM_MAPPER.to_item(make_team())
        del item["name"]
        with pytest.raises(DecodeError, match="Team item is missing required attribute 'name'"):
            TEAM_MAPPER.from_item(item)

    def test_required_null_decodes_to_none(self):
        """A required key holding NULL decodes to None."""
        item = TEAM_MAPPER.to_item(make_team())
        item["createdAt"] = {"NULL": True}
        assert TEAM_MAPPER.from_item(item).created_at is None

    def test_absent_optional_takes_default(self):
        """Absent optional attributes take the dataclass default."""
        team = TEAM_MAPPER.from_item(TEAM_MAPPER.to_item(make_team()))
        assert team.description is None
        assert team.is_active is None

    def test_unknown_keys_ignored(self):
        """Keys written by newer code do not break decoding."""
        item = TEAM_MAPPER.to_item(make_team())
        item["slackChannel"] = {"S": "#payments"}
        assert TEAM_MAPPER.from_item(item).name == "payments"

    def test_references_stay_identities(self):
        """Decoding never hydrates relationship objects."""
        team_id = uuid4()
        stack = STACK_MAPPER.from_item(STACK_MAPPER.to_item(make_stack(team_id=team_id)))
        assert stack.team_id == team_id
        assert stack.team is None

    def test_corrupt_enum(self):
        """An unknown enum name is a decode error naming the attribute."""
        item = STACK_MAPPER.to_item(make_stack())
        item["stackType"] = {"S": "MAINFRAME"}
        with pytest.raises(DecodeError) as exc_info:
            STACK_MAPPER.from_item(item)
        assert exc_info.value.attribute == "stackType"

    def test_corrupt_reference(self):
        """A malformed reference identity is a decode error."""
        item = STACK_MAPPER.to_item(make_stack())
        item["teamId"] = {"S": "team-payments"}
        with pytest.raises(DecodeError, match="Invalid UUID"):
            STACK_MAPPER.from_item(item)


class TestPropertySchemaMapping:
    """Tests for property schema value attributes."""

    def test_default_value_scalar(self):
        """A string default value is stored as a string."""
        schema = make_property_schema(default_value="t3.micro")
        item = PROPERTY_SCHEMA_MAPPER.to_item(schema)
        assert item["defaultValue"] == {"S": "t3.micro"}
        assert PROPERTY_SCHEMA_MAPPER.from_item(item).default_value == "t3.micro"

    def test_default_value_list(self):
        """An empty list default is kept."""
        item = PROPERTY_SCHEMA_MAPPER.to_item(make_property_schema(default_value=[]))
        assert item["defaultValue"] == {"L": []}

    def test_default_value_empty_map_omitted(self):
        """An empty map default is treated as no default."""
        item = PROPERTY_SCHEMA_MAPPER.to_item(make_property_schema(default_value={}))
        assert "defaultValue" not in item

    def test_validation_rules_and_order(self):
        """Validation rules and display order round-trip."""
        schema = make_property_schema(
            mapping_id=uuid4(),
            validation_rules={"min": 1, "max": 64, "allowedValues": ["a", "b"]},
            display_order=3,
        )
        assert PROPERTY_SCHEMA_MAPPER.from_item(PROPERTY_SCHEMA_MAPPER.to_item(schema)) == schema

    def test_display_order_must_be_integer(self):
        """A fractional display order is corrupt."""
        item = PROPERTY_SCHEMA_MAPPER.to_item(make_property_schema(display_order=1))
        item["displayOrder"] = {"N": "1.5"}
        with pytest.raises(DecodeError, match="must be an integer"):
            PROPERTY_SCHEMA_MAPPER.from_item(item)

    def test_mapping_id_key(self):
        """The owning mapping is stored as mappingId."""
        mapping_id = UUID(int=42)
        item = PROPERTY_SCHEMA_MAPPER.to_item(make_property_schema(mapping_id=mapping_id))
        assert item["mappingId"] == {"S": str(mapping_id)}


class TestBlueprintResourceMapping:
    """Tests for blueprint resource configuration attributes."""

    def test_configuration_any_json(self):
        """Blueprint resource configuration accepts any JSON value."""
        resource = make_blueprint_resource(
            configuration=["a", 1],
            cloud_specific_properties={"instanceClass": "db.t3.micro"},
        )
        item = BLUEPRINT_RESOURCE_MAPPER.to_item(resource)
        assert item["configuration"] == {"L": [{"S": "a"}, {"N": "1"}]}
        assert BLUEPRINT_RESOURCE_MAPPER.from_item(item) == resource


class TestDomainAndEnvironmentMapping:
    """Tests for domains, categories and environments."""

    def test_domain_always_writes_is_active(self):
        """An unset is_active is written as NULL, not omitted."""
        item = DOMAIN_MAPPER.to_item(make_domain(is_active=None))
        assert item["isActive"] == {"NULL": True}
        assert set(item) == {"id", "name", "isActive", "createdAt", "updatedAt"}

    def test_category_domain_reference(self):
        """A category stores its domain by identity, falling back to the relation."""
        domain = make_domain()
        category = make_category()
        category.domain = domain
        item = CATEGORY_MAPPER.to_item(category)
        assert item["domainId"] == {"S": str(domain.id)}
        assert "domainId" not in CATEGORY_MAPPER.to_item(make_category())

    def test_environment_references(self):
        """Environment references use cloudProviderId and blueprintId keys."""
        provider_id, blueprint_id = uuid4(), uuid4()
        env = make_environment(cloud_provider_id=provider_id, blueprint_id=blueprint_id)
        item = ENVIRONMENT_ENTITY_MAPPER.to_item(env)
        assert item["cloudProviderId"] == {"S": str(provider_id)}
        assert item["blueprintId"] == {"S": str(blueprint_id)}
        assert item["isActive"] == {"BOOL": True}
        assert ENVIRONMENT_ENTITY_MAPPER.from_item(item) == env

    def test_environment_config_configuration(self):
        """Environment configuration is a nested map; an empty one is omitted."""
        config = make_environment_config(
            environment_id=uuid4(),
            configuration={"region": "eu-west-1", "scaling": {"min": 1, "max": 4.0}},
        )
        item = ENVIRONMENT_CONFIG_MAPPER.to_item(config)
        assert item["configuration"]["M"]["scaling"] == {
            "M": {"min": {"N": "1"}, "max": {"N": "4.0"}}
        }
        assert ENVIRONMENT_CONFIG_MAPPER.from_item(item) == config

        empty = ENVIRONMENT_CONFIG_MAPPER.to_item(make_environment_config(configuration={}))
        assert "configuration" not in empty

    def test_tables(self):
        """New entity types have their own tables."""
        assert mapper_for(Domain).table == "domains"
        assert mapper_for(Category).table == "categories"
        assert mapper_for(EnvironmentEntity).table == "environment_entities"
        assert mapper_for(EnvironmentConfig).table == "environment_configs"


class TestRegistry:
    """Tests for the type-keyed mapper registry."""

    def test_mapper_for(self):
        """Each entity type has a mapper."""
        assert mapper_for(Stack) is STACK_MAPPER
        assert mapper_for(CloudProvider).table == "cloud_providers"

    def test_unknown_type(self):
        """Non-catalog types have no mapper."""
        with pytest.raises(KeyError, match="No mapper registered for str"):
            mapper_for(str)

    def test_module_level_helpers(self):
        """to_item/from_item dispatch on the entity type."""
        team = make_team()
        assert from_item(Team, to_item(team)) == team

    def test_key_of_requires_id(self):
        """An entity without an id has no key."""
        with pytest.raises(ValueError, match="Team has no id"):
            TEAM_MAPPER.key_of(make_team(id=None))

    def test_key_for(self):
        """Keys are the encoded id only."""
        ident = UUID(int=1)
        assert TEAM_MAPPER.key_for(ident) == {"id": {"S": str(ident)}}
