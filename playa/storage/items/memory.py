"""
In-memory ItemStore.

Reference backend for tests and local development. Ranking uses the same
cosine distance as pgvector's `<=>` operator.
"""

from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

import structlog

from playa.models.items import Item, KindFilter, item_matches, kind_values
from playa.storage.errors import DimensionMismatch
from playa.storage.items.base import ItemStore
from playa.storage.vectors.similarity import cosine_distances

log = structlog.get_logger()


class InMemoryItemStore(ItemStore):
    """
    Dict-backed item store.

    Args:
        dimensions: Expected embedding dimensionality (None = inferred from
                    the query vector)

    Example:
        >>> store = InMemoryItemStore(dimensions=3)
        >>> store.add(Item(uid="a", name="OKNOTOK", kind="camp", year=2025))
    """

    def __init__(self, dimensions: Optional[int] = None):
        self.dimensions = dimensions
        self._items: Dict[str, Item] = {}

    def add(self, item: Item) -> None:
        """Insert or replace an item."""
        if item.embedding is not None and self.dimensions is not None \
                and len(item.embedding) != self.dimensions:
            raise DimensionMismatch(self.dimensions, [len(item.embedding)], [item.uid])
        self._items[item.uid] = item

    def __len__(self) -> int:
        return len(self._items)

    def _select(self, kind: KindFilter, year: Optional[int]) -> List[Item]:
        kinds = kind_values(kind)
        return [
            self._items[uid] for uid in sorted(self._items)
            if item_matches(self._items[uid], kinds, year)
        ]

    async def filter(self, kind: KindFilter = None, year: Optional[int] = None) -> AsyncIterator[Item]:
        for item in self._select(kind, year):
            yield item

    async def vector_search(
        self,
        query_vector: Sequence[float],
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
        distance_threshold: Optional[float] = None,
    ) -> List[Tuple[Item, float]]:
        if k <= 0:
            return []

        expected = len(query_vector)
        if self.dimensions is not None and expected != self.dimensions:
            raise DimensionMismatch(self.dimensions, [expected])

        # Filter first, then rank the partition
        candidates = [i for i in self._select(kind, year) if i.embedding is not None]
        mismatched = [i for i in candidates if len(i.embedding) != expected]
        if mismatched:
            raise DimensionMismatch(
                expected,
                [len(i.embedding) for i in mismatched],
                [i.uid for i in mismatched],
            )

        distances = cosine_distances(query_vector, [i.embedding for i in candidates])
        ranked = sorted(
            zip(candidates, (float(d) for d in distances)),
            key=lambda pair: (pair[1], pair[0].uid),
        )
        if distance_threshold is not None:
            ranked = [(item, d) for item, d in ranked if d <= distance_threshold]

        log.debug(f"In-memory vector search ranked {len(candidates)} candidates")
        return ranked[:k]

    async def keyword_search(
        self,
        text: str,
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Item]:
        needle = (text or "").strip().casefold()
        if not needle or k <= 0:
            return []
        matches = [
            item for item in self._select(kind, year)
            if needle in (item.searchable_text or "").casefold()
        ]
        return matches[:k]

    async def get(self, uid: str) -> Optional[Item]:
        return self._items.get(uid)

    async def check_dimensions(self) -> None:
        with_vectors = [i for i in self._items.values() if i.embedding is not None]
        if not with_vectors:
            return

        expected = self.dimensions
        if expected is None:
            # Majority dimensionality wins; the rest is reported
            lengths: Dict[int, int] = {}
            for item in with_vectors:
                lengths[len(item.embedding)] = lengths.get(len(item.embedding), 0) + 1
            expected = max(lengths, key=lambda n: (lengths[n], n))

        mismatched = [i for i in with_vectors if len(i.embedding) != expected]
        if mismatched:
            raise DimensionMismatch(
                expected,
                [len(i.embedding) for i in mismatched],
                [i.uid for i in mismatched],
            )

    async def items_missing_embedding(self, limit: int = 100) -> List[Item]:
        missing = [self._items[uid] for uid in sorted(self._items) if self._items[uid].embedding is None]
        return missing[:limit]

    async def set_embedding(self, uid: str, vector: Sequence[float]) -> None:
        if uid not in self._items:
            raise KeyError(uid)
        if self.dimensions is not None and len(vector) != self.dimensions:
            raise DimensionMismatch(self.dimensions, [len(vector)], [uid])
        self._items[uid].embedding = list(vector)
