"""
Bridge Entities
===============

Un'entità "ponte" compare in più pool tematici. La forza del ponte è:

    bridge_power = pool_count × sqrt(total_occurrence_count) × (cross_pool_relationship_count + 1)

Il prodotto premia entità presenti in più pool, frequenti, e collegate
(appears-with) a entità di pool diversi: un'entità frequentissima ma
isolata non supera un ponte ben connesso.

Un item "ponte" porta entità di entrambi i pool; la sua forza è il numero
di tali entità.

Example:
    >>> round(bridge_power(4, 50, 3), 3)
    113.137
    >>> round(bridge_power(2, 100, 1), 3)
    40.0
    >>> round(bridge_power(4, 10, 0), 3)
    12.649
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


def bridge_power(pool_count: int, total_occurrence_count: int, cross_pool_relationship_count: int) -> float:
    """Bridge-power score of one entity."""
    return pool_count * math.sqrt(max(total_occurrence_count, 0)) * (cross_pool_relationship_count + 1)


@dataclass
class BridgeEntity:
    """
    An entity value seen under two or more pool types.

    Attributes:
        name: Canonical entity value
        pools: Pool names (sorted)
        total_occurrences: Items carrying the value, summed over its pools
        cross_pool_relationships: Appears-with edges to entities of another pool
        pool_frequencies: Occurrences per pool
    """
    name: str
    pools: List[str]
    total_occurrences: int
    cross_pool_relationships: int
    pool_frequencies: Dict[str, int] = field(default_factory=dict)

    @property
    def pool_count(self) -> int:
        return len(self.pools)

    @property
    def bridge_power(self) -> float:
        return bridge_power(self.pool_count, self.total_occurrences, self.cross_pool_relationships)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "pools": self.pools,
            "pool_count": self.pool_count,
            "total_frequency": self.total_occurrences,
            "cross_pool_centrality": self.cross_pool_relationships,
            "bridge_power": round(self.bridge_power, 1),
            "pool_frequencies": self.pool_frequencies,
        }


def rank_bridges(bridges: Iterable[BridgeEntity]) -> List[BridgeEntity]:
    """Order by bridge power descending, ties by name."""
    return sorted(bridges, key=lambda b: (-b.bridge_power, b.name))


@dataclass
class BridgeItem:
    """
    An item carrying entities of both pools.

    Attributes:
        entities: Entity values per pool name (sorted)
    """
    uid: str
    name: str
    kind: Optional[str]
    year: Optional[int]
    entities: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def bridge_strength(self) -> int:
        return sum(len(values) for values in self.entities.values())

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "name": self.name,
            "kind": self.kind,
            "year": self.year,
            "entities": self.entities,
            "bridge_strength": self.bridge_strength,
            "bridge_type": "-".join(self.entities),
        }


def rank_bridge_items(items: Iterable[BridgeItem]) -> List[BridgeItem]:
    """Most connecting entities first, ties by uid."""
    return sorted(items, key=lambda i: (-i.bridge_strength, i.uid))
