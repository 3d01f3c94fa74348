"""
Entities and Pools
==================

An entity is a (type, canonical value) pair extracted from item text.
Pool entity types tag entities with one of seven thematic pools.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class EntityType(str, Enum):
    LOCATION = "location"
    ACTIVITY = "activity"
    THEME = "theme"
    TIME = "time"
    PERSON = "person"
    CONTACT = "contact"
    ORGANIZATIONAL = "organizational"
    SERVICE = "service"
    SCHEDULE = "schedule"
    REQUIREMENT = "requirement"
    ITEM_TYPE = "item_type"
    POOL_IDEA = "pool_idea"
    POOL_MANIFEST = "pool_manifest"
    POOL_EXPERIENCE = "pool_experience"
    POOL_RELATIONAL = "pool_relational"
    POOL_EVOLUTIONARY = "pool_evolutionary"
    POOL_PRACTICAL = "pool_practical"
    POOL_EMANATION = "pool_emanation"

    @property
    def is_pool(self) -> bool:
        return self.value.startswith("pool_")


# Entity types matched by prefix when extracting entities from a query
PREFIX_MATCH_TYPES = (EntityType.LOCATION, EntityType.ACTIVITY, EntityType.THEME)


class Pool(str, Enum):
    """The seven thematic pools."""
    IDEA = "idea"
    MANIFEST = "manifest"
    EXPERIENCE = "experience"
    RELATIONAL = "relational"
    EVOLUTIONARY = "evolutionary"
    PRACTICAL = "practical"
    EMANATION = "emanation"

    @property
    def entity_type(self) -> EntityType:
        return EntityType(f"pool_{self.value}")

    @classmethod
    def from_entity_type(cls, entity_type: EntityType) -> Optional["Pool"]:
        if not entity_type.is_pool:
            return None
        return cls(entity_type.value[len("pool_"):])

    @classmethod
    def parse(cls, value: str) -> "Pool":
        """Accept a Pool, "idea", "pool_idea" or "Idea"."""
        if isinstance(value, cls):
            return value
        value = value.strip().lower()
        if value.startswith("pool_"):
            value = value[len("pool_"):]
        return cls(value)


@dataclass(frozen=True)
class Entity:
    """
    Canonical (type, value) pair.

    Values are expected to be already normalized; build instances through
    EntityNormalizer.entity() when the value comes from user text.
    """
    type: EntityType
    value: str

    def __post_init__(self):
        if not isinstance(self.type, EntityType):
            object.__setattr__(self, "type", EntityType(self.type))

    @property
    def pool(self) -> Optional[Pool]:
        return Pool.from_entity_type(self.type)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "value": self.value}

    def __str__(self) -> str:
        return f"{self.type.value}:{self.value}"


@dataclass
class EntityConnection:
    """
    Graph neighbourhood of one entity owned by an item.

    Attributes:
        entity: The entity the item has
        co_occurring: Entities linked to it by appears-with edges (bounded depth)
        connected_items: Other items that have the same entity
    """
    entity: Entity
    co_occurring: List[Entity] = field(default_factory=list)
    connected_items: List[str] = field(default_factory=list)
