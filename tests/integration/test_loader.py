"""
Integration tests for batched relationship resolution.
"""

from uuid import uuid4

import pytest

from idp_store.repositories import (
    DynamoRepository,
    attach_children,
    attach_reference_lists,
    attach_references,
)
from idp_store.mapping.entities import STACK_MAPPER, TEAM_MAPPER
from tests.factories import make_blueprint, make_cloud_provider, make_stack, make_team


class TestAttachReferences:
    """Tests for single-valued relationships."""

    @pytest.mark.asyncio
    async def test_attaches_related_objects(self, repositories):
        """Each stack gets its team; unset and dangling references give None."""
        team = await repositories.teams.save(make_team(id=None))
        with_team = make_stack(id=None, team_id=team.id)
        without_team = make_stack(id=None, name="no-team")
        dangling = make_stack(id=None, name="dangling", team_id=uuid4())
        stacks = [with_team, without_team, dangling]

        await attach_references(stacks, "team_id", "team", repositories.teams)

        assert with_team.team == team
        assert without_team.team is None
        assert dangling.team is None

    @pytest.mark.asyncio
    async def test_one_lookup_for_many_entities(self, memory_store, coordinator):
        """Many entities sharing references cost one batched lookup."""
        teams = DynamoRepository(TEAM_MAPPER, memory_store, coordinator)
        a = await teams.save(make_team(id=None, name="a"))
        b = await teams.save(make_team(id=None, name="b"))
        stacks = [make_stack(team_id=t.id) for t in (a, b, a, b, a)]

        await attach_references(stacks, "team_id", "team", teams)

        assert [s.team.name for s in stacks] == ["a", "b", "a", "b", "a"]
        assert memory_store.calls["batch_get_items"] == 1

    @pytest.mark.asyncio
    async def test_nothing_to_resolve(self, memory_store, coordinator):
        """Entities without references trigger no lookup."""
        teams = DynamoRepository(TEAM_MAPPER, memory_store, coordinator)
        await attach_references([make_stack()], "team_id", "team", teams)
        assert memory_store.calls["batch_get_items"] == 0


class TestAttachReferenceLists:
    """Tests for owned many-valued relationships."""

    @pytest.mark.asyncio
    async def test_keeps_order_and_skips_dangling(self, repositories):
        """Providers follow the stored id order; unknown ids are skipped."""
        aws = await repositories.cloud_providers.save(make_cloud_provider("AWS", id=None))
        gcp = await repositories.cloud_providers.save(make_cloud_provider("GCP", id=None))
        blueprint = make_blueprint(supported_cloud_provider_ids=[gcp.id, uuid4(), aws.id])
        empty = make_blueprint(name="empty")

        await attach_reference_lists(
            [blueprint, empty],
            "supported_cloud_provider_ids",
            "supported_cloud_providers",
            repositories.cloud_providers,
        )

        assert [p.name for p in blueprint.supported_cloud_providers] == ["GCP", "AWS"]
        assert empty.supported_cloud_providers == []


class TestAttachChildren:
    """Tests for inverse collections."""

    @pytest.mark.asyncio
    async def test_groups_children_by_parent(self, repositories):
        """Each team gets the stacks that reference it."""
        payments = await repositories.teams.save(make_team("payments", id=None))
        core = await repositories.teams.save(make_team("core", id=None))
        idle = await repositories.teams.save(make_team("idle", id=None))
        for name, team in (("p1", payments), ("c1", core), ("p2", payments)):
            await repositories.stacks.save(make_stack(id=None, name=name, team_id=team.id))
        await repositories.stacks.save(make_stack(id=None, name="orphan"))

        await attach_children([payments, core, idle], "stacks", repositories.stacks, "teamId")

        assert sorted(s.name for s in payments.stacks) == ["p1", "p2"]
        assert [s.name for s in core.stacks] == ["c1"]
        assert idle.stacks == []

    @pytest.mark.asyncio
    async def test_single_parent_uses_filtered_lookup(self, repositories, monkeypatch):
        """One parent is served by find_by_attribute, not a full read."""
        team = await repositories.teams.save(make_team(id=None))
        await repositories.stacks.save(make_stack(id=None, name="mine", team_id=team.id))
        await repositories.stacks.save(make_stack(id=None, name="other", team_id=uuid4()))

        async def no_full_read():
            raise AssertionError("find_all() called for a single parent")

        monkeypatch.setattr(repositories.stacks, "find_all", no_full_read)
        await attach_children([team], "stacks", repositories.stacks, "teamId")
        assert [s.name for s in team.stacks] == ["mine"]

    @pytest.mark.asyncio
    async def test_many_parents_share_one_scan(self, memory_store, coordinator):
        """Several parents cost one pass over the child table."""
        stacks = DynamoRepository(STACK_MAPPER, memory_store, coordinator)
        parents = [make_team(name=f"t{i}") for i in range(4)]
        for parent in parents:
            await stacks.save(make_stack(id=None, team_id=parent.id))

        await attach_children(parents, "stacks", stacks, "teamId")

        assert [len(p.stacks) for p in parents] == [1, 1, 1, 1]
        assert memory_store.calls["scan"] == 1

    @pytest.mark.asyncio
    async def test_unknown_key(self, repositories):
        """The child key must exist on the child mapper."""
        with pytest.raises(KeyError):
            await attach_children([make_team()], "stacks", repositories.stacks, "ownerId")
