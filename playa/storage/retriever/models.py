"""
Retriever Models
================

Dataclasses for search results, responses and retriever configuration.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from playa.models.entities import Entity, EntityConnection
from playa.models.items import Item


@dataclass
class SearchResult:
    """
    One ranked item.

    Attributes:
        item: The matched item
        similarity_score: 1 - cosine distance, clamped to [0, 1];
                          None when the result comes from keyword or
                          entity-only matching (no vector signal)
        graph_score: Graph relevance [0-1]
        combined_score: round(0.7 * sim + 0.3 * graph, 3), or the fixed
                        expansion score for graph-expansion results
        graph_expansion: True when the item was found purely by graph adjacency
        expansion_reason: "Connected through: <value>" for expansions
        connections: Entity neighbourhood used to compute graph_score
    """
    item: Item
    similarity_score: Optional[float] = None
    graph_score: float = 0.0
    combined_score: float = 0.0
    graph_expansion: bool = False
    expansion_reason: Optional[str] = None
    connections: List[EntityConnection] = field(default_factory=list)

    @property
    def uid(self) -> str:
        return self.item.uid

    def to_dict(self) -> Dict[str, Any]:
        data = self.item.to_dict()
        data.update({
            "similarity_score": self.similarity_score,
            "graph_score": self.graph_score,
            "combined_score": self.combined_score,
            "graph_expansion": self.graph_expansion,
            "expansion_reason": self.expansion_reason,
        })
        if self.connections:
            data["entity_connections"] = [
                {
                    "entity": c.entity.value,
                    "type": c.entity.type.value,
                    "connected_items": len(c.connected_items),
                    "related_entities": len(c.co_occurring),
                }
                for c in self.connections
            ]
        return data

    def __repr__(self) -> str:
        sim = "-" if self.similarity_score is None else f"{self.similarity_score:.3f}"
        return (
            f"<SearchResult(uid={self.uid}, combined={self.combined_score:.3f}, "
            f"sim={sim}, graph={self.graph_score:.3f}, expansion={self.graph_expansion})>"
        )


@dataclass
class VectorSearchResponse:
    """
    Output of VectorSearch.

    search_type is "vector" when the query was embedded, "keyword" when
    the keyword fallback ran. `error` is set when the store failed; the
    results are then empty.
    """
    results: List[SearchResult] = field(default_factory=list)
    search_type: str = "vector"
    execution_time: float = 0.0
    error: Optional[str] = None

    @property
    def total_count(self) -> int:
        return len(self.results)


@dataclass
class UnifiedSearchResponse:
    """
    Output of UnifiedSearch.

    Attributes:
        results: Ranked results, at most k
        query_entities: Entities extracted from the query text
        graph_expansion_count: Results found by graph expansion
        execution_time: Seconds, rounded to ms
        search_type: "unified", "keyword", "entity" or "vector" (error passthrough)
        notes: Degradation notes ("graph_unavailable", "embedding_unavailable", ...)
        error: VectorSearch error passed through unchanged
    """
    results: List[SearchResult] = field(default_factory=list)
    query_entities: List[Entity] = field(default_factory=list)
    graph_expansion_count: int = 0
    execution_time: float = 0.0
    search_type: str = "unified"
    notes: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def total_count(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "total_count": self.total_count,
            "query_entities": [e.to_dict() for e in self.query_entities],
            "graph_expansion_count": self.graph_expansion_count,
            "execution_time": self.execution_time,
            "search_type": self.search_type,
            "notes": list(self.notes),
            "error": self.error,
        }


@dataclass
class RetrieverConfig:
    """
    Configuration for VectorSearch and UnifiedSearch.

    Attributes:
        alpha: Weight of vector similarity in the combined score
               Default: 0.7 (70% semantic, 30% graph)
        over_retrieve_factor: Seed over-fetch multiplier (default: 2)
        distance_threshold: Max cosine distance kept by vector search
        expansion_score: Fixed graph/combined score of expansion results
        direct_match_bonus: Graph bonus when a connection entity is a query entity
        related_match_bonus: Graph bonus per co-occurring query entity
        density_bonus: Graph bonus per connected item
        prefix_lookup_limit: Prefix matches per entity type in query extraction
        max_graph_depth: Upper bound for graph_depth
        embedding_timeout_s / store_timeout_s / graph_timeout_s: Per-call timeouts
    """
    alpha: float = 0.7
    over_retrieve_factor: int = 2
    distance_threshold: float = 0.7
    expansion_score: float = 0.8
    direct_match_bonus: float = 0.5
    related_match_bonus: float = 0.3
    density_bonus: float = 0.01
    prefix_lookup_limit: int = 5
    max_graph_depth: int = 2
    embedding_timeout_s: float = 10.0
    store_timeout_s: float = 10.0
    graph_timeout_s: float = 5.0

    def __post_init__(self):
        """Validate configuration values."""
        if not 0 <= self.alpha <= 1:
            raise ValueError(f"alpha must be in [0, 1], got {self.alpha}")
        if self.over_retrieve_factor < 1:
            raise ValueError(f"over_retrieve_factor must be >= 1, got {self.over_retrieve_factor}")
        if not 0 <= self.distance_threshold <= 2:
            raise ValueError(f"distance_threshold must be in [0, 2], got {self.distance_threshold}")
        if not 0 <= self.expansion_score <= 1:
            raise ValueError(f"expansion_score must be in [0, 1], got {self.expansion_score}")
        if self.max_graph_depth < 1:
            raise ValueError(f"max_graph_depth must be >= 1, got {self.max_graph_depth}")
        for name in ("embedding_timeout_s", "store_timeout_s", "graph_timeout_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")

    @property
    def graph_weight(self) -> float:
        return round(1 - self.alpha, 10)
