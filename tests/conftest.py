"""
Playa Test Configuration
========================

Shared fixtures for all tests.

The corpus is small and hand-checked: 3-dimensional unit vectors so that
cosine distances are exact (0.0, 0.2, 0.4, 1.0) against the query
vector [1, 0, 0].
"""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from playa.models import ArtDetails, CampDetails, Entity, EntityType, EventDetails, Item, ItemKind
from playa.storage.entities import EntityNormalizer, InMemoryEntityIndex
from playa.storage.graph import InMemoryGraphStore
from playa.storage.items import InMemoryItemStore

QUERY_VECTOR = [1.0, 0.0, 0.0]

FIRE = Entity(EntityType.THEME, "fire")
COMMUNITY = Entity(EntityType.THEME, "community")
WORKSHOP = Entity(EntityType.ACTIVITY, "workshop")
PARTY = Entity(EntityType.ACTIVITY, "party")


def make_corpus():
    """Items and their entities."""
    items = [
        Item(
            uid="art-2025-ember", name="Ember", kind=ItemKind.ART, year=2025,
            description="Glowing steel sculpture", embedding=[1.0, 0.0, 0.0],
            details=ArtDetails(artist="Rosa Vega", category="sculpture"),
        ),
        Item(
            uid="art-2025-pyre", name="The Pyre", kind=ItemKind.ART, year=2025,
            description="Wooden tower burned on Friday", embedding=[0.8, 0.6, 0.0],
        ),
        Item(
            uid="art-2024-temple", name="Temple of Echoes", kind=ItemKind.ART, year=2024,
            description="Quiet space for remembrance", embedding=[0.6, 0.8, 0.0],
        ),
        Item(
            uid="camp-2025-flame", name="Flame Camp", kind=ItemKind.CAMP, year=2025,
            description="Spinning lessons at dusk", embedding=[0.0, 1.0, 0.0],
            location="4:30 & E",
        ),
        Item(
            uid="camp-2025-oknotok", name="OKNOTOK", kind=ItemKind.CAMP, year=2025,
            description="Dance floor and shade", embedding=[0.0, 0.0, 1.0],
            location="7:30 & C", details=CampDetails(hometown="San Francisco"),
        ),
        Item(
            uid="event-2025-burn", name="Night Burn", kind=ItemKind.EVENT, year=2025,
            description="Torch procession", details=EventDetails(event_type="Ritual"),
        ),
    ]
    entities = {
        "art-2025-ember": {FIRE},
        "art-2025-pyre": {FIRE, COMMUNITY},
        "art-2024-temple": {COMMUNITY},
        "camp-2025-flame": {FIRE, WORKSHOP},
        "camp-2025-oknotok": {PARTY},
        "event-2025-burn": {FIRE},
    }
    return items, entities


@pytest.fixture
def normalizer():
    return EntityNormalizer()


@pytest.fixture
def item_store():
    store = InMemoryItemStore(dimensions=3)
    items, _ = make_corpus()
    for item in items:
        store.add(item)
    return store


@pytest_asyncio.fixture
async def entity_index(item_store, normalizer):
    index = InMemoryEntityIndex(items=item_store, normalizer=normalizer)
    _, entities = make_corpus()
    for uid, owned in entities.items():
        for entity in owned:
            await index.add(uid, entity.type, entity.value)
    return index


@pytest_asyncio.fixture
async def graph_store(item_store, entity_index):
    items = {item.uid: item async for item in item_store.filter()}
    return await InMemoryGraphStore.rebuild(items, entity_index.all_entities())


@pytest.fixture
def mock_embedder():
    """Embedding provider returning the fixed query vector."""
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=list(QUERY_VECTOR))
    embedder.embed_batch = AsyncMock(return_value=[])
    embedder.close = AsyncMock()
    return embedder


# Mock FalkorDB client for unit tests
@pytest.fixture
def mock_falkordb():
    """Mock FalkorDB client for unit tests."""
    client = MagicMock()
    client.connect = AsyncMock()
    client.close = AsyncMock()
    client.query = AsyncMock(return_value=[])
    client.health_check = AsyncMock(return_value=True)
    return client
