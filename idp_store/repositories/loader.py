"""
Batched relationship resolution.

Mappers return relationships as raw identities. These helpers attach the
related objects to the non-persisted relationship attributes.

Invariants:
    - References and reference lists cost one batched id lookup per
      relationship, never one lookup per entity
    - Inverse collections cost one pass over the child table: a filtered
      find_by_attribute() for a single parent, a full find_all() scan for
      several parents

How to change safely:
    - Neither backend indexes foreign keys; switch attach_children() to
      per-parent queries only once find_by_attribute() is index-backed

Example:
    >>> stacks = await repos.stacks.find_all()
    >>> await attach_references(stacks, "team_id", "team", repos.teams)
    >>> await attach_children(teams, "stacks", repos.stacks, "teamId")
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Any
from uuid import UUID

from .base import Repository

logger = logging.getLogger(__name__)


async def attach_references(
    entities: Sequence[Any],
    fk_attr: str,
    target_attr: str,
    repository: Repository[Any],
) -> None:
    """Resolve a single-valued relationship for many entities.

    Args:
        entities: Entities holding the foreign key
        fk_attr: Attribute holding the related id (e.g. "team_id")
        target_attr: Attribute receiving the related object (e.g. "team")
        repository: Repository of the related entity type

    Dangling ids resolve to None and are logged.
    """
    ids = list(dict.fromkeys(getattr(e, fk_attr) for e in entities if getattr(e, fk_attr)))
    found = await repository.find_by_ids(ids) if ids else {}
    for entity in entities:
        related_id = getattr(entity, fk_attr)
        related = found.get(related_id) if related_id is not None else None
        if related_id is not None and related is None:
            logger.warning(
                "Dangling reference",
                extra={"attribute": fk_attr, "related_id": str(related_id)},
            )
        setattr(entity, target_attr, related)


async def attach_reference_lists(
    entities: Sequence[Any],
    ids_attr: str,
    target_attr: str,
    repository: Repository[Any],
) -> None:
    """Resolve a many-valued owned relationship for many entities.

    Args:
        entities: Entities holding the id lists
        ids_attr: Attribute holding the ordered ids
            (e.g. "supported_cloud_provider_ids")
        target_attr: Attribute receiving the ordered related objects
        repository: Repository of the related entity type

    Order follows the stored id list; dangling ids are skipped.
    """
    ids: list[UUID] = []
    for entity in entities:
        ids.extend(getattr(entity, ids_attr) or [])
    unique = list(dict.fromkeys(ids))
    found = await repository.find_by_ids(unique) if unique else {}
    missing = [str(i) for i in unique if i not in found]
    if missing:
        logger.warning("Dangling references", extra={"attribute": ids_attr, "related_ids": missing})
    for entity in entities:
        related = [found[i] for i in getattr(entity, ids_attr) or [] if i in found]
        setattr(entity, target_attr, related)


async def attach_children(
    parents: Sequence[Any],
    target_attr: str,
    children: Repository[Any],
    fk_key: str,
) -> None:
    """Populate an inverse collection (e.g. Team.stacks) from the child side.

    One parent is served by find_by_attribute(fk_key, parent.id). Several
    parents share one find_all() scan grouped in memory, which reads the
    whole child table.

    Args:
        parents: Parent entities with ids
        target_attr: Parent attribute receiving the children list
        children: Repository of the child entity type
        fk_key: Item key of the child's reference to the parent (e.g. "teamId")

    Raises:
        KeyError: If the child mapper has no such key
    """
    fk_attr = children.mapper.attribute(fk_key).name
    parent_ids = {p.id for p in parents if p.id is not None}
    grouped: dict[UUID, list[Any]] = defaultdict(list)
    if len(parent_ids) == 1:
        (parent_id,) = parent_ids
        grouped[parent_id] = await children.find_by_attribute(fk_key, parent_id)
    elif parent_ids:
        for child in await children.find_all():
            parent_id = getattr(child, fk_attr)
            if parent_id in parent_ids:
                grouped[parent_id].append(child)
    for parent in parents:
        setattr(parent, target_attr, grouped.get(parent.id, []))
