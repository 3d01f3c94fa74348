"""
Playa Search
============

Entry point wiring every backend of the search core:
- PostgreSQL + pgvector (items and entity index, one shared engine)
- FalkorDB (item/entity graph)
- OpenAI embeddings
- optional TTL result cache

Usage:
    from playa import PlayaSearch, PlayaConfig

    async with PlayaSearch(PlayaConfig.from_environment()) as search:
        response = await search.unified_search("fire art", k=10, year=2025)
        for result in response.results:
            print(result.uid, result.combined_score)

        bridges = await search.bridge("idea", "practical", k=5)
        items = await search.bridge_items("idea", "practical", k=5)
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional

import structlog

from playa.config import EnvironmentConfig, get_current_environment
from playa.models.items import KindFilter
from playa.storage.entities import EntityIndex, EntityNormalizer, PostgresEntityIndex
from playa.storage.graph import BridgeEntity, BridgeItem, FalkorDBConfig, FalkorGraphStore, GraphStore
from playa.storage.items import ItemStore, PostgresItemStore
from playa.storage.postgres import PostgresConfig, create_engine
from playa.storage.retriever import (
    CachedUnifiedSearch,
    RetrieverConfig,
    UnifiedSearch,
    UnifiedSearchResponse,
    VectorSearch,
    VectorSearchResponse,
)
from playa.storage.vectors import EmbeddingConfig, EmbeddingProvider

log = structlog.get_logger()


@dataclass
class PlayaConfig:
    """
    Configuration for PlayaSearch.

    Attributes:
        postgres / falkordb / embedding / retriever: Component configs
        cache_ttl_s: Result cache TTL in seconds (None disables caching)
        cache_maxsize: Max cached responses
        check_dimensions_on_connect: Audit stored vector dimensionality at startup
    """
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    falkordb: FalkorDBConfig = field(default_factory=FalkorDBConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    cache_ttl_s: Optional[float] = None
    cache_maxsize: int = 256
    check_dimensions_on_connect: bool = True

    def __post_init__(self):
        if self.falkordb.max_depth != self.retriever.max_graph_depth:
            log.warning(
                f"FalkorDB max_depth={self.falkordb.max_depth} differs from "
                f"retriever max_graph_depth={self.retriever.max_graph_depth}; using the smaller"
            )

    @classmethod
    def from_environment(cls, env_config: Optional[EnvironmentConfig] = None, **overrides) -> "PlayaConfig":
        """Table suffix and graph name from the active environment (PLAYA_ENV)."""
        env_config = env_config or get_current_environment()
        return cls(
            postgres=PostgresConfig.from_environment(env_config),
            falkordb=FalkorDBConfig.from_environment(env_config),
            **overrides,
        )


class PlayaSearch:
    """
    Unified API over the hybrid retrieval core.

    Backends can be injected (e.g. in-memory stores in tests); those not
    injected are built from the config on connect().
    """

    def __init__(
        self,
        config: Optional[PlayaConfig] = None,
        item_store: Optional[ItemStore] = None,
        entity_index: Optional[EntityIndex] = None,
        graph: Optional[GraphStore] = None,
        embedder: Optional[EmbeddingProvider] = None,
        normalizer: Optional[EntityNormalizer] = None,
    ):
        self.config = config or PlayaConfig()
        self.normalizer = normalizer or EntityNormalizer()

        self._item_store = item_store
        self._entity_index = entity_index
        self._graph = graph
        self._embedder = embedder
        self._owned: List[object] = []
        self._engine = None

        self._vector_search: Optional[VectorSearch] = None
        self._unified: Optional[UnifiedSearch] = None
        self._cached: Optional[CachedUnifiedSearch] = None
        self._connected = False

    async def connect(self) -> None:
        """
        Connect to all storage backends.

        Must be called before any search.

        Raises:
            DimensionMismatch: stored vectors do not match the configured dimensionality
        """
        if self._connected:
            log.warning("Already connected")
            return

        log.info("Connecting to storage backends...")
        dimensions = self.config.embedding.dimensions

        if self._item_store is None or self._entity_index is None:
            self._engine = create_engine(self.config.postgres)
        if self._item_store is None:
            self._item_store = PostgresItemStore(self.config.postgres, dimensions=dimensions, engine=self._engine)
            self._owned.append(self._item_store)
        if self._entity_index is None:
            self._entity_index = PostgresEntityIndex(
                self.config.postgres, self.normalizer, engine=self._engine, dimensions=dimensions
            )
            self._owned.append(self._entity_index)
        if self._graph is None:
            graph = FalkorGraphStore(self.config.falkordb)
            await graph.connect()
            self._graph = graph
            self._owned.append(graph)
            log.info(f"FalkorDB connected: {self.config.falkordb.graph_name}")
        if self._embedder is None:
            self._embedder = EmbeddingProvider(self.config.embedding)
            self._owned.append(self._embedder)

        if self.config.check_dimensions_on_connect:
            await self._item_store.check_dimensions()

        retriever = self.config.retriever
        if self.config.falkordb.max_depth < retriever.max_graph_depth:
            retriever = replace(retriever, max_graph_depth=self.config.falkordb.max_depth)

        self._vector_search = VectorSearch(self._embedder, self._item_store, retriever)
        self._unified = UnifiedSearch(self._vector_search, self._entity_index, self._graph, retriever)
        if self.config.cache_ttl_s:
            self._cached = CachedUnifiedSearch(self._unified, self.config.cache_ttl_s, self.config.cache_maxsize)

        self._connected = True
        log.info("PlayaSearch connected successfully")

    async def close(self) -> None:
        """Close the backends created by connect() (injected ones are left open)."""
        for component in reversed(self._owned):
            await component.close()
        self._owned = []
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        self._connected = False
        log.info("PlayaSearch disconnected")

    async def __aenter__(self) -> "PlayaSearch":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _require_connection(self):
        if not self._connected:
            raise RuntimeError("Not connected. Call connect() first.")

    async def unified_search(
        self,
        query_text: str,
        k: int = 20,
        kind: KindFilter = None,
        year: Optional[int] = None,
        graph_depth: int = 1,
        expand_graph: bool = True,
    ) -> UnifiedSearchResponse:
        """Hybrid search (cached when cache_ttl_s is set)."""
        self._require_connection()
        search = self._cached if self._cached is not None else self._unified
        return await search.unified_search(
            query_text, k=k, kind=kind, year=year, graph_depth=graph_depth, expand_graph=expand_graph
        )

    async def vector_search(
        self,
        query_text: str,
        k: int = 20,
        kind: KindFilter = None,
        year: Optional[int] = None,
        distance_threshold: Optional[float] = None,
    ) -> VectorSearchResponse:
        self._require_connection()
        return await self._vector_search.search(
            query_text, k=k, kind=kind, year=year, distance_threshold=distance_threshold
        )

    async def hybrid_search(
        self,
        query_text: str,
        k: int = 20,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> VectorSearchResponse:
        self._require_connection()
        return await self._vector_search.hybrid_search(query_text, k=k, kind=kind, year=year)

    async def bridge(self, pool_a: str, pool_b: str, k: int = 10) -> List[BridgeEntity]:
        """Entities bridging two pools, by bridge power."""
        self._require_connection()
        return await self._graph.bridge(pool_a, pool_b, k)

    async def bridge_items(self, pool_a: str, pool_b: str, k: int = 10) -> List[BridgeItem]:
        """Items carrying entities of both pools."""
        self._require_connection()
        return await self._graph.bridge_items(pool_a, pool_b, k)

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def item_store(self) -> Optional[ItemStore]:
        return self._item_store

    @property
    def entity_index(self) -> Optional[EntityIndex]:
        return self._entity_index

    @property
    def graph(self) -> Optional[GraphStore]:
        return self._graph
