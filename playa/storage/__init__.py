"""
Storage Layer
=============

Item store, entity index and graph projection behind the hybrid retriever.

Components:
- items/: PostgreSQL + pgvector item store (filter-then-rank search)
- entities/: entity index and normalization
- graph/: FalkorDB item/entity graph
- vectors/: embedding provider
- retriever/: VectorSearch and UnifiedSearch

Architecture:
    Query -> EmbeddingProvider -> VectorSearch (2k seeds)
                                        |
                  EntityIndex -> query entities
                                        |
                  GraphStore -> entity neighbourhood per seed
                                        |
            combined = 0.7 * similarity + 0.3 * graph_score
                                        |
                  graph expansion -> ranked results
"""

from playa.storage.errors import (
    DimensionMismatch,
    EmbeddingUnavailable,
    GraphUnavailable,
    PlayaStorageError,
)
from playa.storage.graph import FalkorDBClient, FalkorDBConfig, FalkorGraphStore, GraphStore, InMemoryGraphStore
from playa.storage.items import InMemoryItemStore, ItemStore, PostgresItemStore
from playa.storage.entities import EntityIndex, EntityNormalizer, InMemoryEntityIndex, PostgresEntityIndex
from playa.storage.postgres import PostgresConfig
from playa.storage.retriever import (
    CachedUnifiedSearch,
    RetrieverConfig,
    SearchResult,
    UnifiedSearch,
    UnifiedSearchResponse,
    VectorSearch,
    VectorSearchResponse,
)
from playa.storage.vectors import EmbeddingConfig, EmbeddingProvider

__all__ = [
    # Errors
    "PlayaStorageError",
    "DimensionMismatch",
    "EmbeddingUnavailable",
    "GraphUnavailable",
    # Graph
    "FalkorDBClient",
    "FalkorDBConfig",
    "FalkorGraphStore",
    "GraphStore",
    "InMemoryGraphStore",
    # Items
    "ItemStore",
    "InMemoryItemStore",
    "PostgresItemStore",
    "PostgresConfig",
    # Entities
    "EntityIndex",
    "EntityNormalizer",
    "InMemoryEntityIndex",
    "PostgresEntityIndex",
    # Retriever
    "CachedUnifiedSearch",
    "RetrieverConfig",
    "SearchResult",
    "UnifiedSearch",
    "UnifiedSearchResponse",
    "VectorSearch",
    "VectorSearchResponse",
    # Vectors
    "EmbeddingConfig",
    "EmbeddingProvider",
]
