"""
VectorSearch
============

Ranked items by cosine similarity to the embedded query, with keyword
fallback when no query vector is available.

Flow:
    query text → EmbeddingProvider.embed()
        ├─ vector  → ItemStore.vector_search (filter-then-rank, threshold)
        │            similarity = 1 - cosine_distance
        └─ None    → ItemStore.keyword_search, similarity_score unset

The distance threshold is never loosened here: an empty result stays
empty. hybrid_search() is the caller-side loosening (vector + keyword).
"""

import asyncio
import time
from typing import List, Optional, Sequence

import structlog

from playa.models.items import KindFilter
from playa.storage.errors import DimensionMismatch, EmbeddingUnavailable
from playa.storage.items.base import ItemStore
from playa.storage.retriever.models import RetrieverConfig, SearchResult, VectorSearchResponse
from playa.storage.vectors.embeddings import EmbeddingProvider
from playa.storage.vectors.similarity import cosine_distance

log = structlog.get_logger()


def similarity_from_distance(distance: float) -> float:
    """1 - cosine distance, clamped to [0, 1]."""
    return round(min(1.0, max(0.0, 1.0 - distance)), 4)


class VectorSearch:
    """
    Semantic search over the item store.

    Example:
        >>> search = VectorSearch(embedder, item_store)
        >>> response = await search.search("camps with morning yoga", k=10, kind="camp", year=2025)
        >>> response.search_type
        'vector'
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: ItemStore,
        config: Optional[RetrieverConfig] = None,
    ):
        self.embedder = embedder
        self.store = store
        self.config = config or RetrieverConfig()

    async def embed_query(self, query_text: str) -> List[float]:
        """
        Embed with a timeout.

        Raises:
            EmbeddingUnavailable: The provider returned nothing or timed out
        """
        try:
            embedding = await asyncio.wait_for(
                self.embedder.embed(query_text),
                timeout=self.config.embedding_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingUnavailable(
                f"query embedding timed out after {self.config.embedding_timeout_s}s"
            ) from e
        if embedding is None:
            raise EmbeddingUnavailable("no query embedding")
        return embedding

    async def search(
        self,
        query_text: str,
        k: int = 20,
        kind: KindFilter = None,
        year: Optional[int] = None,
        distance_threshold: Optional[float] = None,
        query_vector: Optional[Sequence[float]] = None,
    ) -> VectorSearchResponse:
        """
        Search items.

        Args:
            query_text: Raw query
            k: Max results
            kind: Item kind filter (one kind or a list)
            year: Year filter
            distance_threshold: Max cosine distance (default from config, 0.7)
            query_vector: Precomputed query embedding (skips the provider call)

        Returns:
            VectorSearchResponse; `error` is set (and results empty) when the
            store failed or timed out

        Raises:
            DimensionMismatch: stored and query vectors disagree
        """
        start = time.perf_counter()

        if query_vector is not None:
            embedding = list(query_vector)
        else:
            try:
                embedding = await self.embed_query(query_text)
            except EmbeddingUnavailable as e:
                log.warning(f"{e}, falling back to keyword search")
                embedding = None

        return await self._ranked(query_text, embedding, k, kind, year, distance_threshold, start)

    async def _ranked(
        self,
        query_text: str,
        embedding: Optional[List[float]],
        k: int,
        kind: KindFilter,
        year: Optional[int],
        distance_threshold: Optional[float],
        start: float,
    ) -> VectorSearchResponse:
        threshold = self.config.distance_threshold if distance_threshold is None else distance_threshold
        try:
            if embedding is None:
                items = await asyncio.wait_for(
                    self.store.keyword_search(query_text, k, kind=kind, year=year),
                    timeout=self.config.store_timeout_s,
                )
                results = [SearchResult(item=item) for item in items]
                search_type = "keyword"
            else:
                hits = await asyncio.wait_for(
                    self.store.vector_search(embedding, k, kind=kind, year=year, distance_threshold=threshold),
                    timeout=self.config.store_timeout_s,
                )
                results = []
                for item, distance in hits:
                    if distance > threshold:
                        continue
                    similarity = similarity_from_distance(distance)
                    results.append(SearchResult(
                        item=item,
                        similarity_score=similarity,
                        combined_score=round(similarity, 3),
                    ))
                search_type = "vector"
        except DimensionMismatch:
            raise
        except asyncio.TimeoutError:
            log.error(f"Item store timed out after {self.config.store_timeout_s}s")
            return self._failed("item store timeout", start)
        except Exception as e:
            log.error(f"Vector search failed: {e}")
            return self._failed(f"item store error: {e}", start)

        elapsed = time.perf_counter() - start
        log.debug(f"search() - {search_type} returned {len(results)} results in {elapsed:.3f}s")
        return VectorSearchResponse(
            results=results,
            search_type=search_type,
            execution_time=round(elapsed, 3),
        )

    async def hybrid_search(
        self,
        query_text: str,
        k: int = 20,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> VectorSearchResponse:
        """
        Vector neighbours (2k, no threshold) merged with keyword matches.

        Vector hits keep their order; keyword-only matches follow. Keyword
        matches carry a similarity when the item has a comparable vector.
        """
        start = time.perf_counter()
        try:
            embedding = await self.embed_query(query_text)
        except EmbeddingUnavailable as e:
            log.warning(f"{e}, hybrid search reduced to keyword search")
            return await self._ranked(query_text, None, k, kind, year, None, start)

        try:
            hits, keyword_items = await asyncio.wait_for(
                asyncio.gather(
                    self.store.vector_search(embedding, k * self.config.over_retrieve_factor, kind=kind, year=year),
                    self.store.keyword_search(query_text, k, kind=kind, year=year),
                ),
                timeout=self.config.store_timeout_s,
            )
        except DimensionMismatch:
            raise
        except asyncio.TimeoutError:
            log.error(f"Item store timed out after {self.config.store_timeout_s}s")
            return self._failed("item store timeout", start)
        except Exception as e:
            log.error(f"Hybrid search failed: {e}")
            return self._failed(f"item store error: {e}", start)

        results = []
        seen = set()
        for item, distance in hits:
            similarity = similarity_from_distance(distance)
            results.append(SearchResult(item=item, similarity_score=similarity, combined_score=round(similarity, 3)))
            seen.add(item.uid)

        for item in keyword_items:
            if item.uid in seen:
                continue
            similarity = None
            if item.embedding is not None and len(item.embedding) == len(embedding):
                similarity = similarity_from_distance(cosine_distance(embedding, item.embedding))
            results.append(SearchResult(
                item=item,
                similarity_score=similarity,
                combined_score=round(similarity or 0.0, 3),
            ))
            seen.add(item.uid)

        return VectorSearchResponse(
            results=results[:k],
            search_type="hybrid",
            execution_time=round(time.perf_counter() - start, 3),
        )

    def _failed(self, error: str, start: float) -> VectorSearchResponse:
        return VectorSearchResponse(
            results=[],
            search_type="vector",
            execution_time=round(time.perf_counter() - start, 3),
            error=error,
        )
