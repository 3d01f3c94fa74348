"""
Storage Errors
==============

Failure taxonomy of the search core.

Only DimensionMismatch is meant to reach callers: it means precomputed
embeddings are corrupt (e.g. two embedding models mixed in one store).
The others are caught by the component that can degrade.
"""

from typing import Iterable, List, Optional


class PlayaStorageError(Exception):
    """Base class for storage and retrieval errors."""


class EmbeddingUnavailable(PlayaStorageError):
    """The embedding provider returned nothing for a query."""


class GraphUnavailable(PlayaStorageError):
    """A graph store call failed or timed out."""


class DimensionMismatch(PlayaStorageError):
    """
    Vectors of different dimensionality met in one ranking.

    Attributes:
        expected: Dimensionality of the query vector (or the store setting)
        found: Dimensionalities seen on stored vectors
        affected_uids: Items whose vectors do not match `expected`
    """

    def __init__(
        self,
        expected: int,
        found: Iterable[int] = (),
        affected_uids: Optional[Iterable[str]] = None,
    ):
        self.expected = expected
        self.found: List[int] = sorted(set(found))
        self.affected_uids: List[str] = sorted(affected_uids or [])
        sample = ", ".join(self.affected_uids[:10])
        more = f" (+{len(self.affected_uids) - 10} more)" if len(self.affected_uids) > 10 else ""
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, found {self.found}; "
            f"affected items: [{sample}]{more}"
        )
