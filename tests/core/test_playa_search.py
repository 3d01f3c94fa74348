"""
Test PlayaSearch
================

Facade lifecycle and delegation with in-memory backends injected.
"""

import pytest
from unittest.mock import AsyncMock

from playa import DimensionMismatch, PlayaConfig, PlayaSearch
from playa.models import Item
from playa.storage.graph import FalkorDBConfig
from playa.storage.items import InMemoryItemStore
from playa.storage.retriever import RetrieverConfig


def _search(item_store, entity_index, graph_store, mock_embedder, **config):
    return PlayaSearch(
        PlayaConfig(**config),
        item_store=item_store,
        entity_index=entity_index,
        graph=graph_store,
        embedder=mock_embedder,
    )


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_requires_connection(self, item_store, entity_index, graph_store, mock_embedder):
        search = _search(item_store, entity_index, graph_store, mock_embedder)

        assert search.is_connected is False
        with pytest.raises(RuntimeError, match="Not connected"):
            await search.unified_search("fire art")
        with pytest.raises(RuntimeError, match="Not connected"):
            await search.bridge("idea", "practical")

    @pytest.mark.asyncio
    async def test_context_manager(self, item_store, entity_index, graph_store, mock_embedder):
        async with _search(item_store, entity_index, graph_store, mock_embedder) as search:
            assert search.is_connected
            assert search.item_store is item_store
            assert search.graph is graph_store

        assert search.is_connected is False
        # Injected backends are not closed by the facade
        mock_embedder.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, item_store, entity_index, graph_store, mock_embedder):
        search = _search(item_store, entity_index, graph_store, mock_embedder)
        await search.connect()
        await search.connect()
        assert search.is_connected
        await search.close()

    @pytest.mark.asyncio
    async def test_dimension_audit_on_connect(self, entity_index, graph_store, mock_embedder):
        store = InMemoryItemStore()
        store.add(Item(uid="a", name="A", kind="art", year=2025, embedding=[1.0, 0.0, 0.0]))
        store.add(Item(uid="b", name="B", kind="art", year=2025, embedding=[1.0, 0.0, 0.0]))
        store.add(Item(uid="c", name="C", kind="art", year=2025, embedding=[1.0, 0.0]))
        search = _search(store, entity_index, graph_store, mock_embedder)

        with pytest.raises(DimensionMismatch) as exc_info:
            await search.connect()

        assert exc_info.value.affected_uids == ["c"]
        assert search.is_connected is False

    @pytest.mark.asyncio
    async def test_dimension_audit_disabled(self, entity_index, graph_store, mock_embedder):
        store = InMemoryItemStore()
        store.add(Item(uid="a", name="A", kind="art", year=2025, embedding=[1.0, 0.0, 0.0]))
        store.add(Item(uid="c", name="C", kind="art", year=2025, embedding=[1.0, 0.0]))
        search = _search(store, entity_index, graph_store, mock_embedder, check_dimensions_on_connect=False)

        await search.connect()
        assert search.is_connected


class TestDelegation:

    @pytest.mark.asyncio
    async def test_unified_search(self, item_store, entity_index, graph_store, mock_embedder):
        async with _search(item_store, entity_index, graph_store, mock_embedder) as search:
            response = await search.unified_search("fire art", k=5)

        assert response.results[0].uid == "art-2025-ember"
        assert response.graph_expansion_count == 2

    @pytest.mark.asyncio
    async def test_vector_and_hybrid_search(self, item_store, entity_index, graph_store, mock_embedder):
        async with _search(item_store, entity_index, graph_store, mock_embedder) as search:
            vector = await search.vector_search("fire art", k=10, distance_threshold=0.3)
            hybrid = await search.hybrid_search("torch", k=10)

        assert [r.uid for r in vector.results] == ["art-2025-ember", "art-2025-pyre"]
        assert hybrid.search_type == "hybrid"

    @pytest.mark.asyncio
    async def test_graph_depth_bounded_by_falkordb(self, item_store, entity_index, graph_store, mock_embedder):
        search = _search(
            item_store, entity_index, graph_store, mock_embedder,
            falkordb=FalkorDBConfig(max_depth=1),
            retriever=RetrieverConfig(max_graph_depth=2),
        )
        async with search:
            with pytest.raises(ValueError):
                await search.unified_search("fire art", graph_depth=2)

    @pytest.mark.asyncio
    async def test_bridge(self, item_store, entity_index, graph_store, mock_embedder):
        graph_store.bridge = AsyncMock(return_value=[])
        async with _search(item_store, entity_index, graph_store, mock_embedder) as search:
            assert await search.bridge("idea", "practical", k=5) == []
        graph_store.bridge.assert_awaited_once_with("idea", "practical", 5)

    @pytest.mark.asyncio
    async def test_bridge_items(self, item_store, entity_index, graph_store, mock_embedder):
        async with _search(item_store, entity_index, graph_store, mock_embedder) as search:
            assert await search.bridge_items("idea", "practical", k=5) == []

    @pytest.mark.asyncio
    async def test_bridge_items_requires_connection(self, item_store, entity_index, graph_store, mock_embedder):
        search = _search(item_store, entity_index, graph_store, mock_embedder)
        with pytest.raises(RuntimeError, match="Not connected"):
            await search.bridge_items("idea", "practical")


class TestCache:

    @pytest.mark.asyncio
    async def test_cache_enabled(self, item_store, entity_index, graph_store, mock_embedder):
        async with _search(item_store, entity_index, graph_store, mock_embedder, cache_ttl_s=60) as search:
            first = await search.unified_search("fire art", k=5)
            second = await search.unified_search("fire art", k=5)

        assert second is not first
        assert [r.uid for r in second.results] == [r.uid for r in first.results]
        assert mock_embedder.embed.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_disabled_by_default(self, item_store, entity_index, graph_store, mock_embedder):
        async with _search(item_store, entity_index, graph_store, mock_embedder) as search:
            await search.unified_search("fire art", k=5)
            await search.unified_search("fire art", k=5)

        assert mock_embedder.embed.await_count == 2
