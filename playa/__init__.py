"""
Playa: ricerca ibrida per i contenuti di Burning Man
===================================================

Vector similarity, entity matching and graph expansion fused into one
ranked result list for camps, art, events and long-form writing.

Quick Start:
    from playa import PlayaSearch, PlayaConfig

    async with PlayaSearch(PlayaConfig.from_environment()) as search:
        response = await search.unified_search("fire art", k=10, year=2025)

Componenti:
- core: PlayaSearch, PlayaConfig
- storage: item store, entity index, graph store, retrievers
- pipeline: EmbeddingBackfill, EntityExtractionPipeline
- models: Item, Entity, Pool
"""

__version__ = "0.1.0"

from playa.core import PlayaConfig, PlayaSearch
from playa.models import Entity, EntityType, Item, ItemKind, Pool
from playa.storage import DimensionMismatch, SearchResult, UnifiedSearchResponse

__all__ = [
    "PlayaConfig",
    "PlayaSearch",
    "Entity",
    "EntityType",
    "Item",
    "ItemKind",
    "Pool",
    "DimensionMismatch",
    "SearchResult",
    "UnifiedSearchResponse",
]
