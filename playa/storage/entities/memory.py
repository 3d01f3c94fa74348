"""
In-memory EntityIndex.
"""

from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from playa.models.entities import Entity, EntityType
from playa.models.items import KindFilter, item_matches, kind_values
from playa.storage.entities.base import EntityIndex, text_matches
from playa.storage.entities.normalization import EntityNormalizer
from playa.storage.items.base import ItemStore


class InMemoryEntityIndex(EntityIndex):
    """
    Dict-backed entity index.

    Args:
        items: Item store used to apply kind/year filters in rank_items
        normalizer: Canonicalization (default: shipped synonym table)

    Example:
        >>> index = InMemoryEntityIndex()
        >>> await index.add("camp-1", "activity", "Workshops")
        Entity(type=<EntityType.ACTIVITY: 'activity'>, value='workshop')
    """

    def __init__(self, items: Optional[ItemStore] = None, normalizer: Optional[EntityNormalizer] = None):
        self.items = items
        self.normalizer = normalizer or EntityNormalizer()
        self._by_item: Dict[str, Set[Entity]] = defaultdict(set)
        self._by_entity: Dict[Entity, Set[str]] = defaultdict(set)
        self.confidence: Dict[Tuple[str, Entity], Optional[float]] = {}

    def all_entities(self) -> Dict[str, Set[Entity]]:
        """Snapshot uid -> entities (used to rebuild the graph projection)."""
        return {uid: set(entities) for uid, entities in self._by_item.items() if entities}

    async def entities_for(self, uid: str) -> Set[Entity]:
        return set(self._by_item.get(uid, ()))

    async def items_for(self, entity_type: Union[EntityType, str], value: str) -> Set[str]:
        entity = self.normalizer.entity(entity_type, value)
        if entity is None:
            return set()
        return set(self._by_entity.get(entity, ()))

    async def lookup_like(
        self,
        entity_type: Optional[Union[EntityType, str]],
        value_prefix: str,
        limit: int = 10,
    ) -> Set[Entity]:
        prefix = self._prefix(value_prefix)
        if not prefix:
            return set()
        wanted = EntityType(entity_type) if entity_type is not None else None
        matches = sorted(
            (e for e in self._by_entity
             if self._by_entity[e] and (wanted is None or e.type == wanted) and e.value.startswith(prefix)),
            key=lambda e: (e.type.value, e.value),
        )
        return set(matches[:limit])

    async def matching_text(self, text: str, limit: int = 50) -> List[Entity]:
        query = (text or "").strip().casefold()
        if not query:
            return []
        matches = sorted(
            (e for e in self._by_entity
             if self._by_entity[e] and text_matches(e.value.casefold(), query)),
            key=lambda e: (e.type.value, e.value),
        )
        return matches[:limit]

    async def rank_items(
        self,
        entities: Iterable[Entity],
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Tuple[str, int]]:
        counts: Counter = Counter()
        for entity in set(entities):
            counts.update(self._by_entity.get(entity, ()))

        kinds = kind_values(kind)
        if self.items is not None and (kinds is not None or year is not None):
            found = await self.items.get_many(counts)
            counts = Counter({
                uid: n for uid, n in counts.items()
                if uid in found and item_matches(found[uid], kinds, year)
            })

        ranked = sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))
        return ranked[:k]

    async def add(
        self,
        uid: str,
        entity_type: Union[EntityType, str],
        value: str,
        confidence: Optional[float] = None,
    ) -> Optional[Entity]:
        entity = self.normalizer.entity(entity_type, value)
        if entity is None:
            return None
        self._by_item[uid].add(entity)
        self._by_entity[entity].add(uid)
        self.confidence.setdefault((uid, entity), confidence)
        return entity

    async def value_counts(self, entity_type: Optional[Union[EntityType, str]] = None) -> Dict[str, int]:
        wanted = EntityType(entity_type) if entity_type is not None else None
        counts: Counter = Counter()
        for entity, uids in self._by_entity.items():
            if wanted is None or entity.type == wanted:
                counts[entity.value] += len(uids)
        return dict(counts)
