"""
Playa Retriever
===============

VectorSearch (similarity + keyword fallback) and UnifiedSearch
(similarity fused with graph relevance, plus graph expansion).
"""

from playa.storage.retriever.models import (
    RetrieverConfig,
    SearchResult,
    UnifiedSearchResponse,
    VectorSearchResponse,
)
from playa.storage.retriever.vector import VectorSearch, similarity_from_distance
from playa.storage.retriever.unified import (
    NOTE_EMBEDDING_UNAVAILABLE,
    NOTE_ENTITY_INDEX_UNAVAILABLE,
    NOTE_ENTITY_ONLY,
    NOTE_GRAPH_UNAVAILABLE,
    UnifiedSearch,
)
from playa.storage.retriever.cache import CachedUnifiedSearch

__all__ = [
    "RetrieverConfig",
    "SearchResult",
    "UnifiedSearchResponse",
    "VectorSearchResponse",
    "VectorSearch",
    "similarity_from_distance",
    "UnifiedSearch",
    "CachedUnifiedSearch",
    "NOTE_EMBEDDING_UNAVAILABLE",
    "NOTE_ENTITY_INDEX_UNAVAILABLE",
    "NOTE_ENTITY_ONLY",
    "NOTE_GRAPH_UNAVAILABLE",
]
