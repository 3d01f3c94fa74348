"""
Result cache for UnifiedSearch.

Explicit TTL and bounded size; one instance per facade, never shared
across processes.
"""

import time
from collections import OrderedDict
from dataclasses import replace
from typing import Callable, Hashable, Optional, Tuple

import structlog

from playa.models.items import KindFilter, kind_values
from playa.storage.retriever.models import UnifiedSearchResponse
from playa.storage.retriever.unified import UnifiedSearch

log = structlog.get_logger()


def _copy(response: UnifiedSearchResponse, **changes) -> UnifiedSearchResponse:
    """Copy whose lists and results the caller may mutate freely."""
    return replace(
        response,
        results=[replace(r, connections=list(r.connections)) for r in response.results],
        query_entities=list(response.query_entities),
        notes=list(response.notes),
        **changes,
    )


class CachedUnifiedSearch:
    """
    Caching decorator around UnifiedSearch.unified_search.

    Least recently used entries are evicted first. Every caller gets its own
    copy of the response; a hit reports its own (lookup) execution_time.

    Responses carrying an error or a degradation note are not cached, so
    a recovered backend is used on the next call.

    Example:
        >>> cached = CachedUnifiedSearch(unified, ttl_s=300, maxsize=256)
        >>> response = await cached.unified_search("fire art", k=10)
    """

    def __init__(
        self,
        unified: UnifiedSearch,
        ttl_s: float = 300.0,
        maxsize: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_s <= 0:
            raise ValueError(f"ttl_s must be > 0, got {ttl_s}")
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self.unified = unified
        self.ttl_s = ttl_s
        self.maxsize = maxsize
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, UnifiedSearchResponse]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(
        query_text: str,
        kind: KindFilter,
        year: Optional[int],
        k: int,
        graph_depth: int,
        expand_graph: bool,
    ) -> Hashable:
        kinds = kind_values(kind)
        return (
            query_text,
            tuple(sorted(kinds)) if kinds is not None else None,
            year,
            k,
            graph_depth,
            expand_graph,
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
        key = self.make_key(query_text, kind, year, k, graph_depth, expand_graph)
        now = self._clock()
        start = time.perf_counter()

        cached = self._entries.get(key)
        if cached is not None:
            stored_at, response = cached
            if now - stored_at < self.ttl_s:
                self.hits += 1
                self._entries.move_to_end(key)
                log.debug(f"Cache hit for '{query_text[:40]}'")
                return _copy(response, execution_time=round(time.perf_counter() - start, 3))
            del self._entries[key]

        self.misses += 1
        response = await self.unified.unified_search(
            query_text, k=k, kind=kind, year=year, graph_depth=graph_depth, expand_graph=expand_graph
        )
        if response.error is None and not response.notes:
            self._entries[key] = (now, _copy(response))
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)
        return response

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
