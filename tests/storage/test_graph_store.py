"""
Test InMemoryGraphStore
=======================

Traversal, entity neighbourhoods, projection weights and pool bridges.
"""

import pytest
import pytest_asyncio

from playa.models import Entity, EntityType, Item, Pool
from playa.storage.graph import (
    BridgeEntity,
    BridgeItem,
    InMemoryGraphStore,
    bridge_power,
    new_pairs,
    rank_bridge_items,
    rank_bridges,
    validate_depth,
)

FIRE = Entity(EntityType.THEME, "fire")
COMMUNITY = Entity(EntityType.THEME, "community")
WORKSHOP = Entity(EntityType.ACTIVITY, "workshop")


def _item(uid, kind="art", year=2025):
    return Item(uid=uid, name=uid, kind=kind, year=year)


class TestValidateDepth:

    def test_valid(self):
        assert validate_depth(1) == 1
        assert validate_depth(2) == 2

    @pytest.mark.parametrize("depth", [0, 3, -1, "2", 1.5, True])
    def test_invalid(self, depth):
        with pytest.raises(ValueError):
            validate_depth(depth)

    def test_custom_max(self):
        assert validate_depth(4, max_depth=4) == 4


class TestNeighbors:
    """Test item -> entity -> item traversal."""

    @pytest.mark.asyncio
    async def test_depth_one(self, graph_store):
        neighbors = await graph_store.neighbors("art-2025-ember", depth=1)
        assert neighbors == {
            ("art-2025-pyre", 1),
            ("camp-2025-flame", 1),
            ("event-2025-burn", 1),
        }

    @pytest.mark.asyncio
    async def test_depth_two(self, graph_store):
        neighbors = await graph_store.neighbors("art-2025-ember", depth=2)
        assert ("art-2024-temple", 2) in neighbors
        assert ("art-2025-pyre", 1) in neighbors
        assert all(uid != "art-2025-ember" for uid, _ in neighbors)

    @pytest.mark.asyncio
    async def test_isolated_item(self, graph_store):
        assert await graph_store.neighbors("camp-2025-oknotok", depth=2) == set()

    @pytest.mark.asyncio
    async def test_depth_bound(self, graph_store):
        with pytest.raises(ValueError):
            await graph_store.neighbors("art-2025-ember", depth=3)


class TestEntityNeighborhood:
    """Test per-item entity neighbourhoods."""

    @pytest.mark.asyncio
    async def test_connections(self, graph_store):
        connections = await graph_store.entity_neighborhood("art-2025-pyre")

        assert [c.entity for c in connections] == [COMMUNITY, FIRE]
        community, fire = connections
        assert community.co_occurring == [FIRE]
        assert community.connected_items == ["art-2024-temple"]
        assert fire.co_occurring == [WORKSHOP, COMMUNITY]
        assert fire.connected_items == ["art-2025-ember", "camp-2025-flame", "event-2025-burn"]

    @pytest.mark.asyncio
    async def test_depth_extends_co_occurrence(self, graph_store):
        shallow = await graph_store.entity_neighborhood("art-2024-temple", depth=1)
        deep = await graph_store.entity_neighborhood("art-2024-temple", depth=2)

        assert shallow[0].co_occurring == [FIRE]
        assert deep[0].co_occurring == [WORKSHOP, FIRE]

    @pytest.mark.asyncio
    async def test_unknown_item(self, graph_store):
        assert await graph_store.entity_neighborhood("missing") == []


class TestItemsForEntity:
    """Test the expansion source query."""

    @pytest.mark.asyncio
    async def test_ordered_by_entity_count(self, graph_store):
        rows = await graph_store.items_for_entity(FIRE, limit=10)
        assert rows[0][1] == 2
        assert {uid for uid, count in rows if count == 2} == {"art-2025-pyre", "camp-2025-flame"}
        assert [uid for uid, _ in rows[:2]] == ["art-2025-pyre", "camp-2025-flame"]

    @pytest.mark.asyncio
    async def test_exclude_and_limit(self, graph_store):
        rows = await graph_store.items_for_entity(
            FIRE, exclude=["art-2025-pyre", "art-2025-ember"], limit=1
        )
        assert rows == [("camp-2025-flame", 2)]

    @pytest.mark.asyncio
    async def test_kind_and_year_filters(self, graph_store):
        assert await graph_store.items_for_entity(FIRE, kind="event") == [("event-2025-burn", 1)]
        assert await graph_store.items_for_entity(FIRE, year=2024) == []


class TestProjection:
    """Test incremental projection writes."""

    @pytest.mark.asyncio
    async def test_appears_with_weight_never_decreases(self):
        graph = InMemoryGraphStore()

        await graph.project_item(_item("a"), {FIRE, COMMUNITY})
        assert graph.appears_with_count(FIRE, COMMUNITY) == 1

        await graph.project_item(_item("b"), {FIRE, COMMUNITY})
        assert graph.appears_with_count(COMMUNITY, FIRE) == 2

        # Re-projecting the same item adds nothing
        await graph.project_item(_item("a"), {FIRE, COMMUNITY})
        assert graph.appears_with_count(FIRE, COMMUNITY) == 2

        # A new entity on an existing item pairs with what is already there
        await graph.project_item(_item("a"), {WORKSHOP})
        assert graph.appears_with_count(FIRE, COMMUNITY) == 2
        assert graph.appears_with_count(WORKSHOP, FIRE) == 1
        assert graph.appears_with_count(WORKSHOP, COMMUNITY) == 1

    def test_new_pairs(self):
        pairs = new_pairs({FIRE}, {COMMUNITY, WORKSHOP, FIRE})
        assert pairs == [
            (WORKSHOP, COMMUNITY),
            (WORKSHOP, FIRE),
            (COMMUNITY, FIRE),
        ]

    @pytest.mark.asyncio
    async def test_rebuild_matches_incremental(self, graph_store, item_store, entity_index):
        items = {item.uid: item async for item in item_store.filter()}
        rebuilt = await InMemoryGraphStore.rebuild(items, entity_index.all_entities())

        for uid in items:
            assert await rebuilt.entity_neighborhood(uid) == await graph_store.entity_neighborhood(uid)

    @pytest.mark.asyncio
    async def test_health_check(self, graph_store):
        assert await graph_store.health_check() is True


class TestBridgePower:
    """Test bridge-power scoring and ordering."""

    def test_reference_values(self):
        assert bridge_power(4, 50, 3) == pytest.approx(113.137, abs=1e-3)
        assert bridge_power(2, 100, 1) == pytest.approx(40.0)
        assert bridge_power(4, 10, 0) == pytest.approx(12.649, abs=1e-3)

    def test_ordering(self):
        bridges = [
            BridgeEntity("lonely", ["idea", "manifest", "practical", "relational"], 10, 0),
            BridgeEntity("frequent", ["idea", "practical"], 100, 1),
            BridgeEntity("connected", ["experience", "idea", "practical", "relational"], 50, 3),
        ]
        ranked = rank_bridges(bridges)
        assert [b.name for b in ranked] == ["connected", "frequent", "lonely"]

    def test_ties_by_name(self):
        bridges = [
            BridgeEntity("b", ["idea", "practical"], 4, 0),
            BridgeEntity("a", ["idea", "practical"], 4, 0),
        ]
        assert [b.name for b in rank_bridges(bridges)] == ["a", "b"]

    def test_to_dict(self):
        bridge = BridgeEntity("gift", ["idea", "relational"], 9, 1, {"idea": 4, "relational": 5})
        data = bridge.to_dict()
        assert data["pool_count"] == 2
        assert data["bridge_power"] == 12.0


class TestBridges:
    """Test bridge discovery on a projected graph."""

    @pytest_asyncio.fixture
    async def pool_graph(self):
        graph = InMemoryGraphStore()
        inclusion_idea = Entity(EntityType.POOL_IDEA, "radical inclusion")
        inclusion_relational = Entity(EntityType.POOL_RELATIONAL, "radical inclusion")
        gift = Entity(EntityType.POOL_RELATIONAL, "gift")
        shade = Entity(EntityType.POOL_PRACTICAL, "shade")

        await graph.project_item(_item("essay-1", kind="essay"), {inclusion_idea, gift})
        await graph.project_item(_item("essay-2", kind="essay"), {inclusion_relational, shade})
        await graph.project_item(_item("essay-3", kind="essay"), {inclusion_idea})
        return graph

    @pytest.mark.asyncio
    async def test_bridge_entities(self, pool_graph):
        graph = pool_graph
        bridges = await graph.bridge_entities()

        assert len(bridges) == 1
        bridge = bridges[0]
        assert bridge.name == "radical inclusion"
        assert bridge.pools == ["idea", "relational"]
        assert bridge.pool_frequencies == {"idea": 2, "relational": 1}
        assert bridge.total_occurrences == 3
        assert bridge.cross_pool_relationships == 2
        assert bridge.bridge_power == pytest.approx(2 * 3 ** 0.5 * 3)

    @pytest.mark.asyncio
    async def test_bridge_between_pools(self, pool_graph):
        graph = pool_graph
        assert [b.name for b in await graph.bridge("idea", Pool.RELATIONAL)] == ["radical inclusion"]
        assert [b.name for b in await graph.bridge("pool_idea", "relational", k=0)] == []
        assert await graph.bridge("idea", "practical") == []

    @pytest.mark.asyncio
    async def test_unknown_pool(self, pool_graph):
        graph = pool_graph
        with pytest.raises(ValueError):
            await graph.bridge("idea", "nonsense")

    @pytest.mark.asyncio
    async def test_bridge_items(self, pool_graph):
        graph = pool_graph
        items = await graph.bridge_items("idea", "relational")

        assert [i.uid for i in items] == ["essay-1"]
        assert items[0].entities == {"idea": ["radical inclusion"], "relational": ["gift"]}
        assert items[0].bridge_strength == 2
        assert items[0].kind == "essay"
        assert items[0].to_dict()["bridge_type"] == "idea-relational"

    @pytest.mark.asyncio
    async def test_bridge_items_ranked_by_strength(self, pool_graph):
        graph = pool_graph
        await graph.project_item(_item("essay-0", kind="essay"), {
            Entity(EntityType.POOL_IDEA, "decommodification"),
            Entity(EntityType.POOL_IDEA, "civic responsibility"),
            Entity(EntityType.POOL_RELATIONAL, "gift"),
        })

        items = await graph.bridge_items(Pool.RELATIONAL, "pool_idea", k=5)

        assert [(i.uid, i.bridge_strength) for i in items] == [("essay-0", 3), ("essay-1", 2)]
        assert items[0].entities["idea"] == ["civic responsibility", "decommodification"]
        assert [i.uid for i in await graph.bridge_items("idea", "relational", k=1)] == ["essay-0"]

    @pytest.mark.asyncio
    async def test_bridge_items_edge_cases(self, pool_graph):
        graph = pool_graph
        assert await graph.bridge_items("idea", "practical") == []
        assert await graph.bridge_items("idea", "relational", k=0) == []
        same = await graph.bridge_items("idea", "idea")
        assert [i.uid for i in same] == ["essay-1", "essay-3"]
        assert same[0].entities == {"idea": ["radical inclusion"]}
        with pytest.raises(ValueError):
            await graph.bridge_items("idea", "nonsense")

    def test_rank_bridge_items(self):
        a = BridgeItem("b", "B", "camp", 2025, {"idea": ["x"], "practical": ["y"]})
        b = BridgeItem("a", "A", "camp", 2025, {"idea": ["x"], "practical": ["y"]})
        c = BridgeItem("c", "C", "camp", 2025, {"idea": ["x", "z"], "practical": ["y"]})
        assert [i.uid for i in rank_bridge_items([a, b, c])] == ["c", "a", "b"]
