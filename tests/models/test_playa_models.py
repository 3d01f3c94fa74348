"""
Test playa models
=================

Items, kind filters, entities and pools.
"""

import pytest

from playa.models import ArtDetails, CampDetails, Entity, EntityType, EventDetails, Item, ItemKind, Pool
from playa.models.items import details_from_metadata, details_to_metadata, item_matches, kind_values


class TestItem:

    def test_searchable_text_built_on_init(self):
        item = Item(
            uid="camp-2025-oknotok", name="OKNOTOK", kind="camp", year=2025,
            description="Dance floor and shade", details=CampDetails(hometown="San Francisco"),
        )
        assert item.kind is ItemKind.CAMP
        assert item.searchable_text == "OKNOTOK Dance floor and shade San Francisco"

    def test_explicit_searchable_text_kept(self):
        item = Item(uid="a", name="Ember", kind="art", year=2025, searchable_text="custom")
        assert item.searchable_text == "custom"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            Item(uid="a", name="A", kind="spaceship", year=2025)

    def test_to_dict_without_vector(self):
        item = Item(
            uid="art-2025-ember", name="Ember", kind="art", year=2025, embedding=[1.0, 0.0],
            details=ArtDetails(artist="Rosa Vega"), extra={"url": "https://example.org"},
        )
        data = item.to_dict()
        assert "embedding" not in data
        assert data["kind"] == "art"
        assert data["metadata"] == {"url": "https://example.org", "artist": "Rosa Vega"}


class TestDetailsMetadata:

    def test_event_type_label_flattened(self):
        details, extra = details_from_metadata(
            ItemKind.EVENT, {"event_type": {"label": "Workshop"}, "hosted_by": "Flame Camp", "url": "x"}
        )
        assert details == EventDetails(event_type="Workshop", hosted_by="Flame Camp")
        assert extra == {"url": "x"}

    def test_kinds_without_details(self):
        details, extra = details_from_metadata(ItemKind.ESSAY, {"author": "Larry Harvey"})
        assert details is None
        assert extra == {"author": "Larry Harvey"}

    def test_inverse(self):
        details, extra = details_from_metadata(ItemKind.CAMP, {"hometown": "Reno", "size": 40})
        assert details_to_metadata(details, extra) == {"hometown": "Reno", "size": 40}


class TestKindFilter:

    def test_kind_values(self):
        assert kind_values(None) is None
        assert kind_values("Camp") == ["camp"]
        assert kind_values(ItemKind.ART) == ["art"]
        assert kind_values(["camp", ItemKind.EVENT]) == ["camp", "event"]

    def test_item_matches(self):
        item = Item(uid="a", name="A", kind="camp", year=2025)
        assert item_matches(item, None, None)
        assert item_matches(item, ["camp", "art"], 2025)
        assert not item_matches(item, ["art"], None)
        assert not item_matches(item, None, 2024)
        assert not item_matches(item, ["starship"], None)


class TestEntitiesAndPools:

    def test_entity_coerces_type(self):
        entity = Entity("theme", "fire")
        assert entity.type is EntityType.THEME
        assert str(entity) == "theme:fire"
        assert entity.pool is None

    def test_pool_mapping(self):
        assert Pool.IDEA.entity_type is EntityType.POOL_IDEA
        assert Pool.from_entity_type(EntityType.POOL_EMANATION) is Pool.EMANATION
        assert Pool.from_entity_type(EntityType.ACTIVITY) is None
        assert Entity(EntityType.POOL_PRACTICAL, "shade").pool is Pool.PRACTICAL

    @pytest.mark.parametrize("value", ["idea", "Idea", "pool_idea", " IDEA ", Pool.IDEA])
    def test_pool_parse(self, value):
        assert Pool.parse(value) is Pool.IDEA

    def test_pool_parse_unknown(self):
        with pytest.raises(ValueError):
            Pool.parse("nonsense")

    def test_every_pool_has_an_entity_type(self):
        assert {p.entity_type for p in Pool} == {t for t in EntityType if t.is_pool}
