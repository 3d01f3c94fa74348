"""
Domain models shared by storage and retrieval.
"""

from playa.models.items import (
    Item,
    ItemKind,
    CampDetails,
    ArtDetails,
    EventDetails,
    details_from_metadata,
    details_to_metadata,
    kind_values,
    item_matches,
)
from playa.models.entities import (
    Entity,
    EntityType,
    EntityConnection,
    Pool,
    PREFIX_MATCH_TYPES,
)

__all__ = [
    "Item",
    "ItemKind",
    "CampDetails",
    "ArtDetails",
    "EventDetails",
    "details_from_metadata",
    "details_to_metadata",
    "kind_values",
    "item_matches",
    "Entity",
    "EntityType",
    "EntityConnection",
    "Pool",
    "PREFIX_MATCH_TYPES",
]
