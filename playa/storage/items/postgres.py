"""
PostgreSQL + pgvector ItemStore
===============================

Service class for the searchable item table.

Features:
- Filter-then-rank nearest-neighbour search: the kind/year filter is
  materialized in a CTE, only that partition is ordered by `<=>`
- Dimension checks with the list of affected items
- Streaming filtered scans
- Supporta separazione test/prod con tabelle diverse
"""

import logging
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine

from playa.models.items import Item, ItemKind, KindFilter, details_from_metadata, kind_values
from playa.storage.errors import DimensionMismatch
from playa.storage.items.base import ItemStore, escape_like
from playa.storage.postgres import PostgresConfig, create_engine, get_tables

logger = logging.getLogger(__name__)


class PostgresItemStore(ItemStore):
    """
    Item store backed by PostgreSQL with the pgvector extension.

    Example:
        from playa.config import get_current_environment
        config = PostgresConfig.from_environment(get_current_environment())
        store = PostgresItemStore(config, dimensions=1536)
        await store.connect()

        hits = await store.vector_search(query_vector, k=10, kind="camp", year=2025)

        await store.close()
    """

    def __init__(
        self,
        config: Optional[PostgresConfig] = None,
        dimensions: Optional[int] = 1536,
        engine: Optional[AsyncEngine] = None,
    ):
        self.config = config or PostgresConfig()
        self.dimensions = dimensions
        self._engine = engine
        self._owns_engine = engine is None
        self._connected = engine is not None
        self.items, self.entities = get_tables(self.config.table_suffix, dimensions)

        logger.info(
            f"PostgresItemStore initialized - "
            f"host={self.config.host}:{self.config.port}, "
            f"database={self.config.database}, "
            f"table={self.items.name}"
        )

    async def connect(self):
        """Establish connection pool to PostgreSQL."""
        if self._connected:
            logger.debug("Already connected to PostgreSQL")
            return
        self._engine = create_engine(self.config)
        self._connected = True
        logger.info(f"Connected to PostgreSQL at {self.config.host}:{self.config.port}, table={self.items.name}")

    async def close(self):
        """Close connection pool (only when this store created it)."""
        if not self._connected:
            return
        if self._owns_engine:
            await self._engine.dispose()
        self._connected = False
        logger.info("Disconnected from PostgreSQL")

    async def ensure_tables_exist(self):
        """Create the pgvector extension and the item/entity tables if missing."""
        self._require_connection()
        async with self._engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            await conn.run_sync(self.items.metadata.create_all, tables=[self.items, self.entities])
        logger.info(f"Tables {self.items.name}, {self.entities.name} ensured to exist")

    def _require_connection(self):
        if not self._connected:
            raise RuntimeError("Not connected to PostgreSQL. Call connect() first.")

    def _filtered(self, stmt, kind: KindFilter, year: Optional[int]):
        kinds = kind_values(kind)
        if kinds is not None:
            stmt = stmt.where(self.items.c.item_type.in_(kinds))
        if year is not None:
            stmt = stmt.where(self.items.c.year == year)
        return stmt

    @staticmethod
    def _row_to_item(row: Any) -> Item:
        mapping = row._mapping
        details, extra = details_from_metadata(ItemKind(mapping["item_type"]), mapping["metadata"])
        embedding = mapping.get("embedding")
        return Item(
            uid=mapping["uid"],
            name=mapping["name"],
            kind=mapping["item_type"],
            year=mapping["year"],
            description=mapping["description"],
            location=mapping["location_string"],
            embedding=[float(x) for x in embedding] if embedding is not None else None,
            searchable_text=mapping["searchable_text"],
            details=details,
            extra=extra,
        )

    async def filter(self, kind: KindFilter = None, year: Optional[int] = None) -> AsyncIterator[Item]:
        self._require_connection()
        stmt = self._filtered(select(self.items), kind, year).order_by(self.items.c.uid)
        async with self._engine.connect() as conn:
            result = await conn.stream(stmt.execution_options(yield_per=500))
            async for row in result:
                yield self._row_to_item(row)

    async def vector_search(
        self,
        query_vector: Sequence[float],
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
        distance_threshold: Optional[float] = None,
    ) -> List[Tuple[Item, float]]:
        self._require_connection()
        if k <= 0:
            return []
        if self.dimensions is not None and len(query_vector) != self.dimensions:
            raise DimensionMismatch(self.dimensions, [len(query_vector)])

        query_vector = list(query_vector)
        partition = self._filtered(
            select(self.items).where(self.items.c.embedding.isnot(None)), kind, year
        ).cte("candidates").prefix_with("MATERIALIZED")

        distance = partition.c.embedding.cosine_distance(query_vector)
        stmt = select(partition, distance.label("distance"))
        if distance_threshold is not None:
            stmt = stmt.where(distance <= distance_threshold)
        stmt = stmt.order_by(distance, partition.c.uid).limit(k)

        try:
            async with self._engine.connect() as conn:
                rows = (await conn.execute(stmt)).all()
        except DBAPIError as e:
            if "different vector dimensions" in str(e):
                raise await self._diagnose_dimensions(len(query_vector), kind, year) from e
            raise

        logger.debug(f"Vector search returned {len(rows)} rows from {self.items.name}")
        return [(self._row_to_item(row), float(row._mapping["distance"])) for row in rows]

    async def _diagnose_dimensions(
        self, expected: int, kind: KindFilter = None, year: Optional[int] = None
    ) -> DimensionMismatch:
        dims = func.vector_dims(self.items.c.embedding)
        stmt = self._filtered(
            select(self.items.c.uid, dims.label("dims"))
            .where(self.items.c.embedding.isnot(None))
            .where(dims != expected),
            kind, year,
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return DimensionMismatch(expected, [r.dims for r in rows], [r.uid for r in rows])

    async def keyword_search(
        self,
        text: str,
        k: int,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Item]:
        self._require_connection()
        needle = (text or "").strip()
        if not needle or k <= 0:
            return []
        stmt = self._filtered(
            select(self.items).where(
                self.items.c.searchable_text.ilike(f"%{escape_like(needle)}%", escape="\\")
            ),
            kind, year,
        ).order_by(self.items.c.uid).limit(k)
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [self._row_to_item(row) for row in rows]

    async def get(self, uid: str) -> Optional[Item]:
        self._require_connection()
        async with self._engine.connect() as conn:
            row = (await conn.execute(select(self.items).where(self.items.c.uid == uid))).first()
        return self._row_to_item(row) if row is not None else None

    async def get_many(self, uids: Iterable[str]) -> Dict[str, Item]:
        self._require_connection()
        uids = list(uids)
        if not uids:
            return {}
        async with self._engine.connect() as conn:
            rows = (await conn.execute(select(self.items).where(self.items.c.uid.in_(uids)))).all()
        return {row.uid: self._row_to_item(row) for row in rows}

    async def check_dimensions(self) -> None:
        self._require_connection()
        dims = func.vector_dims(self.items.c.embedding)
        stmt = (
            select(dims.label("dims"), func.count().label("n"))
            .where(self.items.c.embedding.isnot(None))
            .group_by(dims)
        )
        async with self._engine.connect() as conn:
            counts = {r.dims: r.n for r in (await conn.execute(stmt)).all()}
        if not counts:
            return

        expected = self.dimensions
        if expected is None:
            expected = max(counts, key=lambda n: (counts[n], n))
        if set(counts) != {expected}:
            raise await self._diagnose_dimensions(expected)

    async def items_missing_embedding(self, limit: int = 100) -> List[Item]:
        self._require_connection()
        stmt = (
            select(self.items)
            .where(self.items.c.embedding.is_(None))
            .order_by(self.items.c.uid)
            .limit(limit)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [self._row_to_item(row) for row in rows]

    async def set_embedding(self, uid: str, vector: Sequence[float]) -> None:
        self._require_connection()
        if self.dimensions is not None and len(vector) != self.dimensions:
            raise DimensionMismatch(self.dimensions, [len(vector)], [uid])
        stmt = (
            update(self.items)
            .where(self.items.c.uid == uid)
            .values(embedding=list(vector), updated_at=func.now())
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        if result.rowcount == 0:
            raise KeyError(uid)
        logger.debug(f"Stored embedding for {uid}")
