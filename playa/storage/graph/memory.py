"""
In-memory GraphStore.

Same projection rules as the FalkorDB store; rebuildable from an entity
index snapshot.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

import structlog

from playa.models.entities import Entity, EntityConnection, Pool
from playa.models.items import Item, KindFilter, kind_values
from playa.storage.graph.base import (
    DEFAULT_MAX_DEPTH, GraphStore, entity_key, new_pairs, validate_depth,
)
from playa.storage.graph.bridge import BridgeEntity, BridgeItem, rank_bridge_items, rank_bridges

log = structlog.get_logger()


class InMemoryGraphStore(GraphStore):
    """
    Dict-backed item/entity graph.

    Example:
        >>> graph = InMemoryGraphStore()
        >>> await graph.project_item(item, {Entity("theme", "fire")})
        >>> await graph.items_for_entity(Entity("theme", "fire"))
        [('art-2025-ember', 1)]
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.max_depth = max_depth
        self._items: Dict[str, Dict[str, object]] = {}
        self._has: Dict[str, Set[Entity]] = defaultdict(set)
        self._holders: Dict[Entity, Set[str]] = defaultdict(set)
        self._appears: Dict[Tuple[Entity, Entity], int] = {}
        self._adjacent: Dict[Entity, Set[Entity]] = defaultdict(set)

    @classmethod
    async def rebuild(
        cls,
        items: Mapping[str, Item],
        entities: Mapping[str, Iterable[Entity]],
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> "InMemoryGraphStore":
        """Build the projection from scratch (items in uid order)."""
        graph = cls(max_depth=max_depth)
        for uid in sorted(entities):
            if uid in items:
                await graph.project_item(items[uid], entities[uid])
        log.info(f"Graph rebuilt: {len(graph._items)} items, {len(graph._holders)} entities")
        return graph

    def appears_with_count(self, a: Entity, b: Entity) -> int:
        pair = tuple(sorted((a, b), key=entity_key))
        return self._appears.get(pair, 0)

    async def neighbors(self, uid: str, depth: int = 1) -> Set[Tuple[str, int]]:
        validate_depth(depth, self.max_depth)
        distances = {uid: 0}
        frontier = {uid}
        for distance in range(1, depth + 1):
            reached = set()
            for current in frontier:
                for entity in self._has.get(current, ()):
                    reached.update(self._holders[entity])
            frontier = {u for u in reached if u not in distances}
            for u in frontier:
                distances[u] = distance
        return {(u, d) for u, d in distances.items() if u != uid}

    def _co_occurring(self, entity: Entity, depth: int) -> List[Entity]:
        seen = {entity}
        frontier = {entity}
        for _ in range(depth):
            frontier = {n for e in frontier for n in self._adjacent.get(e, ())} - seen
            seen |= frontier
        seen.discard(entity)
        return sorted(seen, key=entity_key)

    async def entity_neighborhood(self, uid: str, depth: int = 1) -> List[EntityConnection]:
        validate_depth(depth, self.max_depth)
        connections = []
        for entity in sorted(self._has.get(uid, ()), key=entity_key):
            connections.append(EntityConnection(
                entity=entity,
                co_occurring=self._co_occurring(entity, depth),
                connected_items=sorted(self._holders[entity] - {uid}),
            ))
        return connections

    async def items_for_entity(
        self,
        entity: Entity,
        exclude: Iterable[str] = (),
        limit: int = 10,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Tuple[str, int]]:
        excluded = set(exclude)
        kinds = kind_values(kind)
        ranked = sorted(
            (
                (uid, len(self._has[uid])) for uid in self._holders.get(entity, ())
                if uid not in excluded and self._passes(uid, kinds, year)
            ),
            key=lambda pair: (-pair[1], pair[0]),
        )
        return ranked[:limit]

    def _passes(self, uid: str, kinds: Optional[List[str]], year: Optional[int]) -> bool:
        props = self._items.get(uid, {})
        if kinds is not None and props.get("kind") not in kinds:
            return False
        return year is None or props.get("year") == year

    async def bridge_entities(self, min_pools: int = 2, limit: Optional[int] = 50) -> List[BridgeEntity]:
        by_value: Dict[str, Dict[str, int]] = defaultdict(dict)
        for entity, holders in self._holders.items():
            if entity.pool is not None and holders:
                by_value[entity.value][entity.pool.value] = len(holders)

        bridges = []
        for value, frequencies in by_value.items():
            if len(frequencies) < min_pools:
                continue
            cross = 0
            for (a, b) in self._appears:
                if a.pool is None or b.pool is None or a.pool == b.pool:
                    continue
                if a.value == value or b.value == value:
                    cross += 1
            bridges.append(BridgeEntity(
                name=value,
                pools=sorted(frequencies),
                total_occurrences=sum(frequencies.values()),
                cross_pool_relationships=cross,
                pool_frequencies=dict(sorted(frequencies.items())),
            ))

        ranked = rank_bridges(bridges)
        return ranked if limit is None else ranked[:limit]

    async def _pool_items(self, pool_a: Pool, pool_b: Pool, k: int) -> List[BridgeItem]:
        bridges = []
        for uid, entities in self._has.items():
            by_pool = {
                pool.value: sorted(e.value for e in entities if e.pool is pool)
                for pool in (pool_a, pool_b)
            }
            if not all(by_pool.values()):
                continue
            props = self._items.get(uid, {})
            bridges.append(BridgeItem(
                uid=uid,
                name=props.get("name", uid),
                kind=props.get("kind"),
                year=props.get("year"),
                entities=by_pool,
            ))
        return rank_bridge_items(bridges)[:k]

    async def project_item(self, item: Item, entities: Iterable[Entity]) -> None:
        self._items[item.uid] = {"name": item.name, "kind": item.kind.value, "year": item.year}
        existing = set(self._has[item.uid])
        added = set(entities) - existing

        for a, b in new_pairs(existing, added):
            self._appears[(a, b)] = self._appears.get((a, b), 0) + 1
            self._adjacent[a].add(b)
            self._adjacent[b].add(a)

        for entity in added:
            self._has[item.uid].add(entity)
            self._holders[entity].add(item.uid)

    async def health_check(self) -> bool:
        return True
