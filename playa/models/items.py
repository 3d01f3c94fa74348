"""
Searchable Items
================

Typed content records (camps, art, events, essays, ...) that the search
core ranks.

Ogni item ha un set di campi comuni e un blocco `details` specifico per
tipo. I campi non prevedibili finiscono in `extra`.

Example:
    >>> item = Item(
    ...     uid="camp-2025-oknotok",
    ...     name="OKNOTOK",
    ...     kind=ItemKind.CAMP,
    ...     year=2025,
    ...     location="7:30 & C",
    ...     details=CampDetails(hometown="San Francisco"),
    ... )
    >>> item.build_searchable_text()
    'OKNOTOK San Francisco'
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union


class ItemKind(str, Enum):
    """Item categories stored in the searchable item table."""
    CAMP = "camp"
    ART = "art"
    EVENT = "event"
    PHILOSOPHICAL_TEXT = "philosophical_text"
    EXPERIENCE_STORY = "experience_story"
    PRACTICAL_GUIDE = "practical_guide"
    INFRASTRUCTURE = "infrastructure"
    HISTORICAL_FACT = "historical_fact"
    TIMELINE_EVENT = "timeline_event"
    ESSAY = "essay"
    SPEECH = "speech"
    MANIFESTO = "manifesto"
    INTERVIEW = "interview"
    LETTER = "letter"
    NOTE = "note"
    THEME_ESSAY = "theme_essay"
    POLICY_ESSAY = "policy_essay"


@dataclass
class CampDetails:
    hometown: Optional[str] = None
    landmark: Optional[str] = None

    def text_parts(self) -> List[str]:
        return [p for p in (self.hometown, self.landmark) if p]


@dataclass
class ArtDetails:
    artist: Optional[str] = None
    category: Optional[str] = None

    def text_parts(self) -> List[str]:
        return [p for p in (self.artist, self.category) if p]


@dataclass
class EventDetails:
    event_type: Optional[str] = None
    hosted_by: Optional[str] = None

    def text_parts(self) -> List[str]:
        return [p for p in (self.event_type,) if p]


ItemDetails = Union[CampDetails, ArtDetails, EventDetails]

_DETAILS_BY_KIND = {
    ItemKind.CAMP: CampDetails,
    ItemKind.ART: ArtDetails,
    ItemKind.EVENT: EventDetails,
}


def details_from_metadata(kind: ItemKind, metadata: Optional[Dict[str, Any]]) -> tuple:
    """
    Split a raw metadata map into typed details and an extra bag.

    The event type label is nested in imported data
    (``{"event_type": {"label": "Workshop"}}``) and is flattened here.

    Returns:
        Tuple (details or None, extra dict)
    """
    metadata = dict(metadata or {})
    details_cls = _DETAILS_BY_KIND.get(kind)
    if details_cls is None:
        return None, metadata

    if kind == ItemKind.EVENT and isinstance(metadata.get("event_type"), dict):
        metadata["event_type"] = metadata["event_type"].get("label")

    known = details_cls.__dataclass_fields__.keys()
    values = {key: metadata.pop(key) for key in list(metadata) if key in known}
    return details_cls(**values), metadata


def details_to_metadata(details: Optional[ItemDetails], extra: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse of details_from_metadata, for JSONB storage."""
    metadata = dict(extra)
    if details is not None:
        for key, value in details.__dict__.items():
            if value is not None:
                metadata[key] = value
    return metadata


@dataclass
class Item:
    """
    A searchable content record.

    Attributes:
        uid: Unique identifier within the store
        name: Display name
        kind: Item category
        year: Burning Man edition the item belongs to
        description: Free text description
        location: Free text location (e.g. "7:30 & C", "Center Camp")
        embedding: Dense vector, None until the backfill has run
        searchable_text: Denormalized text used by keyword search
        details: Kind-specific optional fields
        extra: Fields with no fixed schema
    """
    uid: str
    name: str
    kind: ItemKind
    year: int
    description: Optional[str] = None
    location: Optional[str] = None
    embedding: Optional[List[float]] = None
    searchable_text: Optional[str] = None
    details: Optional[ItemDetails] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.kind, ItemKind):
            self.kind = ItemKind(self.kind)
        if self.searchable_text is None:
            self.searchable_text = self.build_searchable_text()

    def build_searchable_text(self) -> str:
        """Join name, description and kind-specific fields."""
        parts = [self.name]
        if self.description:
            parts.append(self.description)
        if self.details is not None:
            parts.extend(self.details.text_parts())
        return " ".join(p for p in parts if p)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization (without the vector)."""
        return {
            "uid": self.uid,
            "name": self.name,
            "kind": self.kind.value,
            "year": self.year,
            "description": self.description,
            "location": self.location,
            "metadata": details_to_metadata(self.details, self.extra),
        }

    def __repr__(self) -> str:
        return f"<Item(uid={self.uid}, kind={self.kind.value}, year={self.year})>"


KindFilter = Union[ItemKind, str, Sequence[Union[ItemKind, str]], None]


def kind_values(kind: KindFilter) -> Optional[List[str]]:
    """
    Normalize a kind filter to a list of kind values (None = no filter).

    Unknown kinds are kept as given: they simply match nothing.
    """
    if kind is None:
        return None
    if isinstance(kind, (ItemKind, str)):
        kind = [kind]
    return [k.value if isinstance(k, ItemKind) else str(k).lower() for k in kind]


def item_matches(item: "Item", kinds: Optional[List[str]], year: Optional[int]) -> bool:
    """True when the item passes the kind/year filter."""
    if kinds is not None and item.kind.value not in kinds:
        return False
    if year is not None and item.year != year:
        return False
    return True
