"""
Entity index storage and normalization.
"""

from playa.storage.entities.normalization import (
    EntityNormalizer,
    canonical_spelling,
    singularize,
)
from playa.storage.entities.base import EntityIndex, text_matches
from playa.storage.entities.memory import InMemoryEntityIndex
from playa.storage.entities.postgres import PostgresEntityIndex

__all__ = [
    "EntityNormalizer",
    "canonical_spelling",
    "singularize",
    "EntityIndex",
    "text_matches",
    "InMemoryEntityIndex",
    "PostgresEntityIndex",
]
