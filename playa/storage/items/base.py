"""
ItemStore interface.

Filter-then-rank is the contract of vector_search: the kind/year filter
selects the candidate partition, and only that partition is ranked by
distance.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

from playa.models.items import Item, KindFilter


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ItemStore(ABC):
    """Relational store of searchable items."""

    dimensions: Optional[int] = None

    @abstractmethod
    def filter(self, kind: KindFilter = None, year: Optional[int] = None) -> AsyncIterator[Item]:
        """Lazily iterate items matching the filter, ordered by uid."""

    @abstractmethod
    async def vector_search(
        self,
        query_vector: Sequence[float],
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
        distance_threshold: Optional[float] = None,
    ) -> List[Tuple[Item, float]]:
        """
        Nearest neighbours by cosine distance, ascending (ties by uid).

        Raises:
            DimensionMismatch: query or stored vectors disagree on dimensionality
        """

    @abstractmethod
    async def keyword_search(
        self,
        text: str,
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Item]:
        """Case-insensitive substring match over searchable_text."""

    @abstractmethod
    async def get(self, uid: str) -> Optional[Item]:
        """Item by uid, or None."""

    async def get_many(self, uids: Iterable[str]) -> Dict[str, Item]:
        """Items by uid; missing uids are absent from the result."""
        found = {}
        for uid in uids:
            item = await self.get(uid)
            if item is not None:
                found[uid] = item
        return found

    @abstractmethod
    async def check_dimensions(self) -> None:
        """
        Audit every stored vector.

        Raises:
            DimensionMismatch: listing every item whose vector length differs
        """

    @abstractmethod
    async def items_missing_embedding(self, limit: int = 100) -> List[Item]:
        """Items whose embedding has not been computed yet, ordered by uid."""

    @abstractmethod
    async def set_embedding(self, uid: str, vector: Sequence[float]) -> None:
        """Store the embedding of one item."""

    async def close(self) -> None:
        """Release resources (no-op by default)."""
