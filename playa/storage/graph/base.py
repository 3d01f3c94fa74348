"""
GraphStore interface.

The graph is a projection of items + entities:

    (:Item)-[:HAS_ENTITY]->(:Entity)
    (:Entity)-[:APPEARS_WITH {count}]-(:Entity)

APPEARS_WITH is undirected and its count only grows: an item reinforces
each pair of its entities exactly once, when the pair first meets on it.
"""

from abc import ABC, abstractmethod
from itertools import combinations
from typing import Iterable, List, Optional, Set, Tuple

from playa.models.entities import Entity, EntityConnection, Pool
from playa.models.items import Item, KindFilter
from playa.storage.graph.bridge import BridgeEntity, BridgeItem

DEFAULT_MAX_DEPTH = 2


def validate_depth(depth: int, max_depth: int = DEFAULT_MAX_DEPTH) -> int:
    """
    Check a traversal depth before it is used to build a pattern.

    Raises:
        ValueError: depth is not an int in [1, max_depth]
    """
    if isinstance(depth, bool) or not isinstance(depth, int):
        raise ValueError(f"depth must be an integer, got {depth!r}")
    if not 1 <= depth <= max_depth:
        raise ValueError(f"depth must be between 1 and {max_depth}, got {depth}")
    return depth


def entity_key(entity: Entity) -> Tuple[str, str]:
    return entity.type.value, entity.value


def new_pairs(existing: Iterable[Entity], added: Iterable[Entity]) -> List[Tuple[Entity, Entity]]:
    """
    Co-occurrence pairs created when `added` entities join an item that
    already has `existing` ones.

    Each pair is ordered by (type, value) and listed once.
    """
    added = sorted(set(added) - set(existing), key=entity_key)
    existing = sorted(set(existing), key=entity_key)
    pairs = set()
    for a, b in combinations(added, 2):
        pairs.add((a, b))
    for a in added:
        for b in existing:
            pairs.add((a, b))
    return sorted(
        (tuple(sorted(pair, key=entity_key)) for pair in pairs),
        key=lambda p: (entity_key(p[0]), entity_key(p[1])),
    )


class GraphStore(ABC):
    """Property graph of items and entities."""

    max_depth: int = DEFAULT_MAX_DEPTH

    @abstractmethod
    async def neighbors(self, uid: str, depth: int = 1) -> Set[Tuple[str, int]]:
        """
        Items reachable through shared entities.

        Returns:
            Set of (uid, distance), distance = number of item->entity->item hops
        """

    @abstractmethod
    async def entity_neighborhood(self, uid: str, depth: int = 1) -> List[EntityConnection]:
        """
        One EntityConnection per entity of the item, ordered by (type, value).

        `depth` bounds the appears-with hops used for co_occurring.
        """

    @abstractmethod
    async def items_for_entity(
        self,
        entity: Entity,
        exclude: Iterable[str] = (),
        limit: int = 10,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Tuple[str, int]]:
        """
        Items having the entity, excluding some uids, kind/year filtered.

        Returns:
            List of (uid, entity count of that item), count desc then uid
        """

    @abstractmethod
    async def bridge_entities(self, min_pools: int = 2, limit: Optional[int] = 50) -> List[BridgeEntity]:
        """Entities present in at least `min_pools` pools, by bridge power."""

    async def bridge(self, pool_a, pool_b, k: int = 10) -> List[BridgeEntity]:
        """
        Entities present in both pools, by bridge power.

        Args:
            pool_a, pool_b: Pool or pool name ("idea", "pool_idea")
        """
        a, b = Pool.parse(pool_a), Pool.parse(pool_b)
        bridges = await self.bridge_entities(min_pools=1 if a == b else 2, limit=None)
        return [
            bridge for bridge in bridges
            if a.value in bridge.pools and b.value in bridge.pools
        ][:k]

    async def bridge_items(self, pool_a, pool_b, k: int = 10) -> List[BridgeItem]:
        """
        Items carrying entities of both pools, most connecting entities first.

        Args:
            pool_a, pool_b: Pool or pool name ("idea", "pool_idea")
        """
        a, b = Pool.parse(pool_a), Pool.parse(pool_b)
        if k <= 0:
            return []
        return await self._pool_items(a, b, k)

    @abstractmethod
    async def _pool_items(self, pool_a: Pool, pool_b: Pool, k: int) -> List[BridgeItem]:
        """Backend lookup for bridge_items (pools already parsed, k > 0)."""

    @abstractmethod
    async def project_item(self, item: Item, entities: Iterable[Entity]) -> None:
        """Write an item and its entities into the projection (additive)."""

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the graph backend answers."""

    async def close(self) -> None:
        """Release resources (no-op by default)."""
