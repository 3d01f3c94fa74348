"""
EntityIndex interface.

Every value written or looked up goes through EntityNormalizer first, so
the index only ever holds canonical values.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from playa.models.entities import Entity, EntityType
from playa.models.items import KindFilter
from playa.storage.entities.normalization import EntityNormalizer, canonical_spelling

# Shortest entity value that may match as a substring of the query text
MIN_CONTAINED_LENGTH = 3


def text_matches(value: str, query: str) -> bool:
    """
    Two-way substring match between an entity value and query text.

    Both arguments are expected to be case-folded.
    """
    if not value or not query:
        return False
    return query in value or (len(value) >= MIN_CONTAINED_LENGTH and value in query)


class EntityIndex(ABC):
    """Secondary index entity <-> item."""

    normalizer: EntityNormalizer

    @abstractmethod
    async def entities_for(self, uid: str) -> Set[Entity]:
        """All entities owned by an item."""

    @abstractmethod
    async def items_for(self, entity_type: Union[EntityType, str], value: str) -> Set[str]:
        """Uids of the items owning (type, normalized value)."""

    @abstractmethod
    async def lookup_like(
        self,
        entity_type: Optional[Union[EntityType, str]],
        value_prefix: str,
        limit: int = 10,
    ) -> Set[Entity]:
        """Entities whose value starts with the prefix (autocomplete)."""

    @abstractmethod
    async def matching_text(self, text: str, limit: int = 50) -> List[Entity]:
        """
        Entities whose value contains the text or is contained in it.

        Ordered by (type, value) so callers see a stable order.
        """

    @abstractmethod
    async def rank_items(
        self,
        entities: Iterable[Entity],
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Tuple[str, int]]:
        """
        Items owning any of the entities, by number of matched entities.

        Returns:
            List of (uid, match count), count desc then uid
        """

    @abstractmethod
    async def add(
        self,
        uid: str,
        entity_type: Union[EntityType, str],
        value: str,
        confidence: Optional[float] = None,
    ) -> Optional[Entity]:
        """
        Normalize and store one entity for an item (idempotent).

        Returns:
            The stored canonical entity, or None for blank values
        """

    @abstractmethod
    async def value_counts(self, entity_type: Optional[Union[EntityType, str]] = None) -> Dict[str, int]:
        """Occurrences per stored value, input for EntityNormalizer.suggest_synonyms."""

    @staticmethod
    def _prefix(value_prefix: str) -> str:
        return canonical_spelling(value_prefix or "")

    async def close(self) -> None:
        """Release resources (no-op by default)."""
