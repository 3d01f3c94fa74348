"""
Searchable item storage.

- ItemStore: interface (filter-then-rank nearest-neighbour search)
- PostgresItemStore: PostgreSQL + pgvector backend
- InMemoryItemStore: reference backend for tests
"""

from playa.storage.items.base import ItemStore, escape_like
from playa.storage.items.memory import InMemoryItemStore
from playa.storage.items.postgres import PostgresItemStore

__all__ = [
    "ItemStore",
    "InMemoryItemStore",
    "PostgresItemStore",
    "escape_like",
]
