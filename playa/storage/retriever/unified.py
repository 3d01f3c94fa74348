"""
UnifiedSearch
=============

Fused ranking of vector similarity and graph relevance.

Core algorithm:
1. Seed: VectorSearch for over_retrieve_factor × k candidates
2. Query entities: entity values matching the query text, plus prefix
   matches of the first query token on location/activity/theme
3. Per-seed enrichment: entity neighbourhood from the GraphStore (pool
   entities left out) →
   graph_score = min(1, Σ[0.5·direct + 0.3·related hits + 0.01·connected items] / max(1, |query entities|))
4. combined_score = round(0.7·similarity + 0.3·graph_score, 3)
5. Graph expansion (seed set smaller than k): items adjacent to query
   entities, outside the seed set, scored 0.8
6. Sort by (-combined_score, uid), truncate to k

Degradation:
- VectorSearch error → its response is returned unchanged
- No query embedding → keyword results; none → entity-only ranking
- Graph error or timeout → seeds ranked by similarity alone
  (graph_score = 0), note "graph_unavailable"

Only DimensionMismatch reaches the caller.
"""

import asyncio
import time
from typing import Dict, List, Optional, Sequence

import structlog

from playa.models.entities import Entity, EntityConnection, PREFIX_MATCH_TYPES
from playa.models.items import KindFilter
from playa.storage.entities.base import EntityIndex
from playa.storage.errors import GraphUnavailable
from playa.storage.graph.base import GraphStore, entity_key, validate_depth
from playa.storage.retriever.models import (
    RetrieverConfig,
    SearchResult,
    UnifiedSearchResponse,
    VectorSearchResponse,
)
from playa.storage.retriever.vector import VectorSearch

log = structlog.get_logger()

NOTE_EMBEDDING_UNAVAILABLE = "embedding_unavailable"
NOTE_GRAPH_UNAVAILABLE = "graph_unavailable"
NOTE_ENTITY_INDEX_UNAVAILABLE = "entity_index_unavailable"
NOTE_ENTITY_ONLY = "entity_only_ranking"


class UnifiedSearch:
    """
    Hybrid retriever combining vector similarity and graph structure.

    Flow:
        Query → VectorSearch (2k seeds)
                       ↓
        EntityIndex → query entities
                       ↓
        GraphStore → entity neighbourhood per seed (parallel, re-sorted)
                       ↓
        combined = 0.7 * sim + 0.3 * graph
                       ↓
        Graph expansion → Re-ranked Results

    Example:
        >>> unified = UnifiedSearch(vector_search, entity_index, graph_store)
        >>> response = await unified.unified_search("fire art on the playa", k=10, year=2025)
        >>> [r.uid for r in response.results]
    """

    def __init__(
        self,
        vector_search: VectorSearch,
        entities: EntityIndex,
        graph: GraphStore,
        config: Optional[RetrieverConfig] = None,
    ):
        self.vector_search = vector_search
        self.entities = entities
        self.graph = graph
        self.config = config or vector_search.config

        log.info(
            f"UnifiedSearch initialized - "
            f"alpha={self.config.alpha}, "
            f"over_retrieve={self.config.over_retrieve_factor}x, "
            f"max_depth={self.config.max_graph_depth}"
        )

    async def unified_search(
        self,
        query_text: str,
        k: int = 20,
        kind: KindFilter = None,
        year: Optional[int] = None,
        graph_depth: int = 1,
        expand_graph: bool = True,
    ) -> UnifiedSearchResponse:
        """
        Search with vector seeds, graph enrichment and graph expansion.

        Args:
            query_text: Raw query
            k: Max results
            kind: Item kind filter (one kind or a list)
            year: Year filter
            graph_depth: Appears-with hops considered around each seed entity
            expand_graph: Allow graph expansion when seeds are fewer than k

        Returns:
            UnifiedSearchResponse

        Raises:
            ValueError: graph_depth outside [1, max_graph_depth]
            DimensionMismatch: stored and query vectors disagree
        """
        validate_depth(graph_depth, self.config.max_graph_depth)
        start = time.perf_counter()

        if k <= 0:
            return UnifiedSearchResponse(execution_time=self._elapsed(start))

        # STEP 1: seeds
        seed_response = await self.vector_search.search(
            query_text,
            k * self.config.over_retrieve_factor,
            kind=kind,
            year=year,
        )
        if seed_response.error:
            log.warning(f"unified_search() - vector search failed, passing through: {seed_response.error}")
            return self._passthrough(seed_response)

        # STEP 2: query entities
        notes: List[str] = []
        query_entities = await self.extract_query_entities(query_text, notes)

        if seed_response.search_type == "keyword":
            notes.append(NOTE_EMBEDDING_UNAVAILABLE)
            if seed_response.results:
                return UnifiedSearchResponse(
                    results=seed_response.results[:k],
                    query_entities=query_entities,
                    execution_time=self._elapsed(start),
                    search_type="keyword",
                    notes=notes,
                )
            return await self._entity_only(query_entities, k, kind, year, notes, start)

        seeds = seed_response.results
        log.debug(f"unified_search() - {len(seeds)} seeds, {len(query_entities)} query entities")

        # STEPS 3-5: enrichment and expansion
        try:
            enriched = await self._graph_call(self._enrich(seeds, query_entities, graph_depth))
            expansions: List[SearchResult] = []
            if expand_graph and query_entities and len(enriched) < k:
                expansions = await self._graph_call(
                    self._expand(query_entities, enriched, k - len(enriched), kind, year)
                )
            candidates = enriched + expansions
        except GraphUnavailable as e:
            log.warning(f"{e}, ranking by similarity only")
            notes.append(NOTE_GRAPH_UNAVAILABLE)
            candidates = self._similarity_only(seeds)

        # STEP 6: rank and truncate
        results = self.rank(candidates, k)
        response = UnifiedSearchResponse(
            results=results,
            query_entities=query_entities,
            graph_expansion_count=sum(1 for r in results if r.graph_expansion),
            execution_time=self._elapsed(start),
            search_type="unified",
            notes=notes,
        )
        log.info(
            f"unified_search() - returned {len(results)} results "
            f"({response.graph_expansion_count} from graph expansion) in {response.execution_time}s"
        )
        return response

    async def extract_query_entities(self, query_text: str, notes: Optional[List[str]] = None) -> List[Entity]:
        """
        Entities referenced by the query text, deduplicated in first-seen order.

        Index failures are logged and yield no entities.
        """
        if not query_text or not query_text.strip():
            return []
        try:
            return await asyncio.wait_for(
                self._lookup_query_entities(query_text),
                timeout=self.config.store_timeout_s,
            )
        except asyncio.TimeoutError:
            log.warning("Entity index timed out during query entity extraction")
        except Exception as e:
            log.warning(f"Entity index unavailable: {e}")
        if notes is not None:
            notes.append(NOTE_ENTITY_INDEX_UNAVAILABLE)
        return []

    async def _lookup_query_entities(self, query_text: str) -> List[Entity]:
        found: Dict[Entity, None] = {}
        for entity in await self.entities.matching_text(query_text):
            found.setdefault(entity, None)

        first_token = query_text.split()[0]
        for entity_type in PREFIX_MATCH_TYPES:
            matches = await self.entities.lookup_like(
                entity_type, first_token, limit=self.config.prefix_lookup_limit
            )
            for entity in sorted(matches, key=entity_key):
                found.setdefault(entity, None)
        return list(found)

    async def _graph_call(self, coro):
        """Await a graph-stage coroutine; timeouts and failures become GraphUnavailable."""
        try:
            return await asyncio.wait_for(coro, timeout=self.config.graph_timeout_s)
        except asyncio.TimeoutError as e:
            raise GraphUnavailable(f"Graph timed out after {self.config.graph_timeout_s}s") from e
        except Exception as e:
            raise GraphUnavailable(f"Graph unavailable ({e})") from e

    def graph_score(self, connections: Sequence[EntityConnection], query_entities: Sequence[Entity]) -> float:
        """Graph relevance of one item's neighbourhood, in [0, 1]. Pool entities do not count."""
        if not query_entities or not connections:
            return 0.0
        values = {e.value.casefold() for e in query_entities}

        score = 0.0
        for connection in connections:
            if connection.entity.type.is_pool:
                continue
            if connection.entity.value.casefold() in values:
                score += self.config.direct_match_bonus
            hits = sum(1 for related in connection.co_occurring if related.value.casefold() in values)
            score += self.config.related_match_bonus * hits
            score += self.config.density_bonus * len(connection.connected_items)

        return round(min(1.0, score / max(1, len(query_entities))), 4)

    def combine(self, similarity: Optional[float], graph_score: float) -> float:
        return round(self.config.alpha * (similarity or 0.0) + self.config.graph_weight * graph_score, 3)

    async def _enrich(
        self,
        seeds: List[SearchResult],
        query_entities: List[Entity],
        depth: int,
    ) -> List[SearchResult]:
        neighbourhoods = await asyncio.gather(
            *(self.graph.entity_neighborhood(seed.uid, depth) for seed in seeds)
        )
        enriched = []
        for seed, connections in zip(seeds, neighbourhoods):
            connections = [c for c in connections if not c.entity.type.is_pool]
            score = self.graph_score(connections, query_entities)
            enriched.append(SearchResult(
                item=seed.item,
                similarity_score=seed.similarity_score,
                graph_score=score,
                combined_score=self.combine(seed.similarity_score, score),
                connections=list(connections),
            ))
        return enriched

    async def _expand(
        self,
        query_entities: List[Entity],
        existing: List[SearchResult],
        needed: int,
        kind: KindFilter,
        year: Optional[int],
    ) -> List[SearchResult]:
        seen = {r.uid for r in existing}
        expansions: List[SearchResult] = []

        for entity in query_entities:
            if len(expansions) >= needed:
                break
            rows = await self.graph.items_for_entity(
                entity, exclude=sorted(seen), limit=needed - len(expansions), kind=kind, year=year
            )
            items = await self.vector_search.store.get_many([uid for uid, _ in rows])
            for uid, _ in rows:
                if uid in seen or uid not in items:
                    continue
                seen.add(uid)
                expansions.append(SearchResult(
                    item=items[uid],
                    similarity_score=0.0,
                    graph_score=self.config.expansion_score,
                    combined_score=self.config.expansion_score,
                    graph_expansion=True,
                    expansion_reason=f"Connected through: {entity.value}",
                ))

        log.debug(f"Graph expansion added {len(expansions)} items")
        return expansions

    def _similarity_only(self, seeds: List[SearchResult]) -> List[SearchResult]:
        return [
            SearchResult(
                item=seed.item,
                similarity_score=seed.similarity_score,
                graph_score=0.0,
                combined_score=self.combine(seed.similarity_score, 0.0),
            )
            for seed in seeds
        ]

    async def _entity_only(
        self,
        query_entities: List[Entity],
        k: int,
        kind: KindFilter,
        year: Optional[int],
        notes: List[str],
        start: float,
    ) -> UnifiedSearchResponse:
        notes.append(NOTE_ENTITY_ONLY)
        results: List[SearchResult] = []
        if query_entities:
            try:
                ranked = await asyncio.wait_for(
                    self.entities.rank_items(query_entities, k, kind=kind, year=year),
                    timeout=self.config.store_timeout_s,
                )
                items = await asyncio.wait_for(
                    self.vector_search.store.get_many([uid for uid, _ in ranked]),
                    timeout=self.config.store_timeout_s,
                )
            except asyncio.TimeoutError:
                log.warning("Entity-only ranking timed out")
                ranked, items = [], {}
            except Exception as e:
                log.warning(f"Entity-only ranking failed: {e}")
                ranked, items = [], {}

            for uid, matches in ranked:
                if uid not in items:
                    continue
                score = round(min(1.0, matches / len(query_entities)), 4)
                results.append(SearchResult(
                    item=items[uid],
                    similarity_score=None,
                    graph_score=score,
                    combined_score=self.combine(None, score),
                ))

        return UnifiedSearchResponse(
            results=self.rank(results, k),
            query_entities=query_entities,
            execution_time=self._elapsed(start),
            search_type="entity",
            notes=notes,
        )

    @staticmethod
    def rank(results: List[SearchResult], k: int) -> List[SearchResult]:
        """Sort by combined score descending, uid ascending; keep k."""
        return sorted(results, key=lambda r: (-r.combined_score, r.uid))[:k]

    @staticmethod
    def _passthrough(response: VectorSearchResponse) -> UnifiedSearchResponse:
        return UnifiedSearchResponse(
            results=response.results,
            execution_time=response.execution_time,
            search_type=response.search_type,
            error=response.error,
        )

    @staticmethod
    def _elapsed(start: float) -> float:
        return round(time.perf_counter() - start, 3)
