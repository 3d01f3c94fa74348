"""
PostgreSQL EntityIndex
======================

Entity rows live in search_entities{suffix}, one row per
(item, entity_type, entity_value), with a (type, value) index for lookups.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from sqlalchemy import func, select, tuple_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncEngine

from playa.models.entities import Entity, EntityType
from playa.models.items import KindFilter, kind_values
from playa.storage.entities.base import MIN_CONTAINED_LENGTH, EntityIndex
from playa.storage.entities.normalization import EntityNormalizer
from playa.storage.items.base import escape_like
from playa.storage.postgres import PostgresConfig, create_engine, get_tables

logger = logging.getLogger(__name__)


class PostgresEntityIndex(EntityIndex):
    """
    Entity index on the search_entities table.

    Example:
        index = PostgresEntityIndex(config, engine=shared_engine)
        uids = await index.items_for("theme", "Fire")
    """

    def __init__(
        self,
        config: Optional[PostgresConfig] = None,
        normalizer: Optional[EntityNormalizer] = None,
        engine: Optional[AsyncEngine] = None,
        dimensions: Optional[int] = 1536,
    ):
        self.config = config or PostgresConfig()
        self.normalizer = normalizer or EntityNormalizer()
        self._engine = engine
        self._owns_engine = engine is None
        self._connected = engine is not None
        self.items, self.entities = get_tables(self.config.table_suffix, dimensions)

        logger.info(f"PostgresEntityIndex initialized - table={self.entities.name}")

    async def connect(self):
        """Establish connection pool to PostgreSQL."""
        if self._connected:
            return
        self._engine = create_engine(self.config)
        self._connected = True
        logger.info(f"Connected to PostgreSQL at {self.config.host}:{self.config.port}, table={self.entities.name}")

    async def close(self):
        """Close connection pool (only when this index created it)."""
        if not self._connected:
            return
        if self._owns_engine:
            await self._engine.dispose()
        self._connected = False

    def _require_connection(self):
        if not self._connected:
            raise RuntimeError("Not connected to PostgreSQL. Call connect() first.")

    def _joined(self):
        return self.entities.join(self.items, self.entities.c.searchable_item_id == self.items.c.id)

    async def _entity_rows(self, stmt) -> List[Entity]:
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [Entity(EntityType(r.entity_type), r.entity_value) for r in rows]

    async def entities_for(self, uid: str) -> Set[Entity]:
        self._require_connection()
        stmt = (
            select(self.entities.c.entity_type, self.entities.c.entity_value)
            .select_from(self._joined())
            .where(self.items.c.uid == uid)
        )
        return set(await self._entity_rows(stmt))

    async def items_for(self, entity_type: Union[EntityType, str], value: str) -> Set[str]:
        self._require_connection()
        entity = self.normalizer.entity(entity_type, value)
        if entity is None:
            return set()
        stmt = (
            select(self.items.c.uid)
            .select_from(self._joined())
            .where(self.entities.c.entity_type == entity.type.value)
            .where(self.entities.c.entity_value == entity.value)
        )
        async with self._engine.connect() as conn:
            return set((await conn.execute(stmt)).scalars().all())

    async def lookup_like(
        self,
        entity_type: Optional[Union[EntityType, str]],
        value_prefix: str,
        limit: int = 10,
    ) -> Set[Entity]:
        self._require_connection()
        prefix = self._prefix(value_prefix)
        if not prefix:
            return set()
        stmt = (
            select(self.entities.c.entity_type, self.entities.c.entity_value)
            .where(self.entities.c.entity_value.like(f"{escape_like(prefix)}%", escape="\\"))
            .distinct()
            .order_by(self.entities.c.entity_type, self.entities.c.entity_value)
            .limit(limit)
        )
        if entity_type is not None:
            stmt = stmt.where(self.entities.c.entity_type == EntityType(entity_type).value)
        return set(await self._entity_rows(stmt))

    async def matching_text(self, text: str, limit: int = 50) -> List[Entity]:
        self._require_connection()
        query = (text or "").strip().casefold()
        if not query:
            return []
        value = self.entities.c.entity_value
        contains_query = value.like(f"%{escape_like(query)}%", escape="\\")
        inside_query = (func.length(value) >= MIN_CONTAINED_LENGTH) & (func.strpos(query, value) > 0)
        stmt = (
            select(self.entities.c.entity_type, value)
            .where(contains_query | inside_query)
            .distinct()
            .order_by(self.entities.c.entity_type, value)
            .limit(limit)
        )
        return await self._entity_rows(stmt)

    async def rank_items(
        self,
        entities: Iterable[Entity],
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Tuple[str, int]]:
        self._require_connection()
        pairs = sorted({(e.type.value, e.value) for e in entities})
        if not pairs or k <= 0:
            return []

        matches = func.count(func.distinct(tuple_(self.entities.c.entity_type, self.entities.c.entity_value)))
        stmt = (
            select(self.items.c.uid, matches.label("matches"))
            .select_from(self._joined())
            .where(tuple_(self.entities.c.entity_type, self.entities.c.entity_value).in_(pairs))
            .group_by(self.items.c.uid)
            .order_by(matches.desc(), self.items.c.uid)
            .limit(k)
        )
        kinds = kind_values(kind)
        if kinds is not None:
            stmt = stmt.where(self.items.c.item_type.in_(kinds))
        if year is not None:
            stmt = stmt.where(self.items.c.year == year)

        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [(r.uid, int(r.matches)) for r in rows]

    async def add(
        self,
        uid: str,
        entity_type: Union[EntityType, str],
        value: str,
        confidence: Optional[float] = None,
    ) -> Optional[Entity]:
        self._require_connection()
        entity = self.normalizer.entity(entity_type, value)
        if entity is None:
            return None

        async with self._engine.begin() as conn:
            item_id = (await conn.execute(
                select(self.items.c.id).where(self.items.c.uid == uid)
            )).scalar()
            if item_id is None:
                logger.warning(f"Cannot index {entity}: unknown item {uid}")
                return None
            await conn.execute(self._insert_stmt(item_id, entity, confidence))
        logger.debug(f"Indexed {entity} for {uid}")
        return entity

    def _insert_stmt(self, item_id: int, entity: Entity, confidence: Optional[float]):
        return (
            insert(self.entities)
            .values(
                searchable_item_id=item_id,
                entity_type=entity.type.value,
                entity_value=entity.value,
                confidence=confidence,
                normalizer_version=self.normalizer.version,
            )
            .on_conflict_do_nothing(
                index_elements=["searchable_item_id", "entity_type", "entity_value"]
            )
        )

    async def value_counts(self, entity_type: Optional[Union[EntityType, str]] = None) -> Dict[str, int]:
        self._require_connection()
        stmt = select(self.entities.c.entity_value, func.count().label("n")).group_by(self.entities.c.entity_value)
        if entity_type is not None:
            stmt = stmt.where(self.entities.c.entity_type == EntityType(entity_type).value)
        async with self._engine.connect() as conn:
            return {r.entity_value: int(r.n) for r in (await conn.execute(stmt)).all()}
