"""
Test EntityNormalizer
=====================

Canonical spelling, plural stripping, synonym table and synonym
suggestions.
"""

import pytest

from playa.config import load_yaml_config
from playa.models import Entity, EntityType
from playa.storage.entities import EntityNormalizer, canonical_spelling, singularize


class TestCanonicalSpelling:
    """Test case/spacing canonicalization."""

    @pytest.mark.parametrize("raw, expected", [
        ("  Fire  Spinning ", "fire spinning"),
        ("Arts&Crafts", "arts & crafts"),
        ("arts  &   crafts", "arts & crafts"),
        ("Class / Workshop", "class/workshop"),
        ("MUSIC", "music"),
    ])
    def test_spelling(self, raw, expected):
        assert canonical_spelling(raw) == expected


class TestSingularize:
    """Test simple plural stripping."""

    @pytest.mark.parametrize("word, expected", [
        ("parties", "party"),
        ("workshops", "workshop"),
        ("classes", "class"),
        ("glasses", "glass"),
        ("glass", "glass"),
        ("bus", "bus"),
        ("lotus", "lotus"),
        ("oasis", "oasis"),
        ("fire dances", "fire dance"),
        ("ties", "tie"),
    ])
    def test_rules(self, word, expected):
        assert singularize(word) == expected

    @pytest.mark.parametrize("word", [
        "parties", "workshops", "glasses", "buses", "series", "arts & crafts", "yogis",
    ])
    def test_stable_under_reapplication(self, word):
        once = singularize(word)
        assert singularize(once) == once


class TestEntityNormalizer:
    """Test type-scoped normalization through the synonym table."""

    def test_table_version(self, normalizer):
        assert normalizer.version == load_yaml_config("synonyms.yaml")["version"]

    def test_plural_mapped_to_canonical(self, normalizer):
        assert normalizer.normalize("activity", "Workshops") == "workshop"
        assert normalizer.normalize(EntityType.ACTIVITY, "classes") == "workshop"

    def test_location_synonym(self, normalizer):
        assert normalizer.normalize("location", "BRC") == "black rock city"
        assert normalizer.normalize("location", "Deep Playa") == "open playa"

    def test_synonyms_are_type_scoped(self, normalizer):
        # "playa" is a location synonym only
        assert normalizer.normalize("theme", "Playa") == "playa"

    def test_locations_are_not_singularized(self, normalizer):
        assert normalizer.normalize("location", "Esplanade Camps") == "esplanade camps"

    def test_themes_are_singularized(self, normalizer):
        assert normalizer.normalize("theme", "Fires") == "fire"

    def test_blank_values(self, normalizer):
        assert normalizer.normalize("theme", "   ") == ""
        assert normalizer.normalize("theme", None) == ""
        assert normalizer.entity("theme", "") is None

    def test_unknown_type_raises(self, normalizer):
        with pytest.raises(ValueError):
            normalizer.normalize("colour", "red")

    def test_canonical_values_are_fixed_points(self, normalizer):
        table = load_yaml_config("synonyms.yaml")
        for type_name, rules in table.items():
            if type_name == "version":
                continue
            for canonical in rules:
                assert normalizer.normalize(type_name, canonical) == canonical_spelling(canonical)

    def test_idempotent(self, normalizer):
        raw_values = [
            "Workshops", "Classes/Workshops", "PARTIES", "Arts&Crafts", "Self-Care",
            "Fire Dances", "Deep  Playa", "drinks", "Communities", "glasses",
        ]
        for entity_type in ("activity", "theme", "location"):
            for raw in raw_values:
                once = normalizer.normalize(entity_type, raw)
                assert normalizer.normalize(entity_type, once) == once, (entity_type, raw)

    def test_custom_table(self):
        normalizer = EntityNormalizer({
            "version": 7,
            "theme": {"fire": ["flames", "burning"]},
        })
        assert normalizer.version == 7
        assert normalizer.normalize("theme", "Flames") == "fire"
        assert normalizer.normalize("theme", "flame") == "flame"

    def test_normalize_many_deduplicates(self, normalizer):
        entities = normalizer.normalize_many([
            ("activity", "Workshops"),
            ("activity", "workshop"),
            ("theme", "  "),
            ("theme", "Music"),
        ])
        assert entities == [
            Entity(EntityType.ACTIVITY, "workshop"),
            Entity(EntityType.THEME, "music"),
        ]


class TestSuggestSynonyms:
    """Test Levenshtein clustering of observed values."""

    def test_groups_close_spellings(self, normalizer):
        suggestions = normalizer.suggest_synonyms(
            {"workshop": 10, "workshops": 3, "worksho": 1, "yoga": 5},
            min_similarity=0.8,
        )

        assert len(suggestions) == 1
        group = suggestions[0]
        assert group["canonical"] == "workshop"
        assert group["count"] == 10
        assert [s["value"] for s in group["similar"]] == ["workshops", "worksho"]
        assert group["similar"][0]["similarity"] == pytest.approx(0.889, abs=1e-3)

    def test_values_are_claimed_once(self, normalizer):
        suggestions = normalizer.suggest_synonyms({"camp": 5, "camps": 4, "champs": 1}, min_similarity=0.7)
        claimed = [s["value"] for group in suggestions for s in group["similar"]]
        assert len(claimed) == len(set(claimed))
        assert "camp" not in claimed

    def test_no_suggestions_for_distinct_values(self, normalizer):
        assert normalizer.suggest_synonyms({"music": 3, "yoga": 2}) == []
