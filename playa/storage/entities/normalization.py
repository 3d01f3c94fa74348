"""
Entity Normalization
====================

Canonicalizzazione dei valori delle entità prima di ogni scrittura e
lookup sull'EntityIndex.

Operazioni:
- Case-fold, trim, whitespace collassati
- Spaziatura canonica attorno a "&" e "/"
- Singolarizzazione dei plurali semplici (solo activity e theme)
- Mappatura attraverso la tabella sinonimi statica e versionata
  (playa/config/synonyms.yaml), separata per tipo di entità

La normalizzazione è idempotente: un valore canonico resta invariato.

Esempio:
    >>> normalizer = EntityNormalizer()
    >>> normalizer.normalize("activity", "Workshops")
    'workshop'
    >>> normalizer.normalize("activity", "workshop")
    'workshop'
    >>> normalizer.normalize("location", "BRC")
    'black rock city'
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from rapidfuzz.distance import Levenshtein

from playa.config import load_yaml_config
from playa.models.entities import Entity, EntityType

# Tipi a cui si applica la singolarizzazione
SINGULARIZED_TYPES = frozenset({EntityType.ACTIVITY, EntityType.THEME})

_WHITESPACE = re.compile(r"\s+")
_AMPERSAND = re.compile(r"\s*&\s*")
_SLASH = re.compile(r"\s*/\s*")


def canonical_spelling(value: str) -> str:
    """
    Case-fold and collapse spacing variants.

    Example:
        >>> canonical_spelling("  Arts&Crafts ")
        'arts & crafts'
        >>> canonical_spelling("Class / Workshop")
        'class/workshop'
    """
    result = value.casefold().strip()
    result = _AMPERSAND.sub(" & ", result)
    result = _SLASH.sub("/", result)
    return _WHITESPACE.sub(" ", result).strip()


def singularize(word: str) -> str:
    """
    Strip simple English plurals from the last word.

    Only rules whose output is stable under a second application are
    used, so singularize(singularize(w)) == singularize(w).

    Example:
        >>> singularize("parties")
        'party'
        >>> singularize("glass")
        'glass'
    """
    head, sep, last = word.rpartition(" ")
    if len(last) > 4 and last.endswith("ies"):
        last = last[:-3] + "y"
    elif last.endswith("sses"):
        last = last[:-2]
    elif len(last) > 3 and last.endswith("s") and not last.endswith(("ss", "us", "is")):
        last = last[:-1]
    return f"{head}{sep}{last}"


class EntityNormalizer:
    """
    Type-scoped canonicalization through the synonym table.

    Args:
        table: Parsed synonym table; defaults to playa/config/synonyms.yaml
    """

    def __init__(self, table: Optional[Dict[str, Any]] = None):
        table = table if table is not None else load_yaml_config("synonyms.yaml")
        self.version: int = int(table.get("version", 1))
        self._mapping = self._build_reverse_mapping(table)

    @staticmethod
    def _build_reverse_mapping(table: Dict[str, Any]) -> Dict[Tuple[EntityType, str], str]:
        mapping: Dict[Tuple[EntityType, str], str] = {}
        for type_name, rules in table.items():
            if type_name == "version":
                continue
            entity_type = EntityType(type_name)
            for canonical, variants in (rules or {}).items():
                canonical = canonical_spelling(canonical)
                mapping[(entity_type, canonical)] = canonical
                for variant in variants or []:
                    mapping.setdefault((entity_type, canonical_spelling(variant)), canonical)
        return mapping

    def normalize(self, entity_type: Union[EntityType, str], value: Optional[str]) -> str:
        """
        Canonical form of `value` for the given entity type.

        Args:
            entity_type: EntityType or its string value
            value: Raw value (from extraction or from a query)

        Returns:
            Canonical value ("" for blank input)
        """
        if not value or not value.strip():
            return ""
        entity_type = EntityType(entity_type)

        spelled = canonical_spelling(value)
        canonical = self._mapping.get((entity_type, spelled))
        if canonical is not None:
            return canonical

        if entity_type not in SINGULARIZED_TYPES:
            return spelled

        singular = singularize(spelled)
        return self._mapping.get((entity_type, singular), singular)

    def entity(self, entity_type: Union[EntityType, str], value: Optional[str]) -> Optional[Entity]:
        """Build a canonical Entity, or None when the value is blank."""
        normalized = self.normalize(entity_type, value)
        if not normalized:
            return None
        return Entity(EntityType(entity_type), normalized)

    def normalize_many(self, pairs: Iterable[Tuple[Union[EntityType, str], str]]) -> List[Entity]:
        """Normalize (type, value) pairs, dropping blanks and duplicates (order kept)."""
        seen = {}
        for entity_type, value in pairs:
            entity = self.entity(entity_type, value)
            if entity is not None:
                seen.setdefault(entity, None)
        return list(seen)

    def suggest_synonyms(
        self,
        value_counts: Mapping[str, int],
        min_similarity: float = 0.8,
    ) -> List[Dict[str, Any]]:
        """
        Propose new synonym-table rows from observed entity values.

        Values are visited from most to least frequent; every still
        unclaimed value whose Levenshtein similarity to the current one is
        at least `min_similarity` is grouped under it.

        Args:
            value_counts: Observed value -> occurrence count
            min_similarity: Normalized Levenshtein similarity threshold (0-1)

        Returns:
            List of {"canonical", "count", "similar": [{"value", "count", "similarity"}]}
        """
        ordered = sorted(value_counts.items(), key=lambda kv: (-kv[1], kv[0]))
        processed = set()
        suggestions = []

        for value, count in ordered:
            key = value.casefold()
            if key in processed:
                continue

            similar = []
            for other, other_count in ordered:
                other_key = other.casefold()
                if other == value or other_key in processed:
                    continue
                similarity = Levenshtein.normalized_similarity(key, other_key)
                if similarity >= min_similarity:
                    similar.append({
                        "value": other,
                        "count": other_count,
                        "similarity": round(similarity, 3),
                    })

            if similar:
                similar.sort(key=lambda s: (-s["similarity"], s["value"]))
                suggestions.append({"canonical": value, "count": count, "similar": similar})
                processed.update(s["value"].casefold() for s in similar)

            processed.add(key)

        return suggestions
