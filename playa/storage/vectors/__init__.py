"""
Vector utilities: embedding provider and cosine helpers.
"""

from playa.storage.vectors.embeddings import EmbeddingProvider, EmbeddingConfig
from playa.storage.vectors.similarity import cosine_distance, cosine_distances

__all__ = [
    "EmbeddingProvider",
    "EmbeddingConfig",
    "cosine_distance",
    "cosine_distances",
]
