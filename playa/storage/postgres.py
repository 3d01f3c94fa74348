"""
PostgreSQL Connection and Tables
================================

Shared async engine setup (SQLAlchemy + asyncpg + pgvector) and the table
definitions used by PostgresItemStore and PostgresEntityIndex.

Supporta tabelle separate per ambiente:
- searchable_items_test / search_entities_test per test
- searchable_items / search_entities per produzione
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from pgvector.asyncpg import register_vector
from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Column, DateTime, Float, ForeignKey, Index, Integer, MetaData, String, Table, Text,
    UniqueConstraint, event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql import func

from playa.config import env_int, env_str


@dataclass
class PostgresConfig:
    """
    PostgreSQL connection settings.

    Environment Variables:
        PLAYA_PG_HOST, PLAYA_PG_PORT, PLAYA_PG_DATABASE, PLAYA_PG_USER,
        PLAYA_PG_PASSWORD, PLAYA_PG_POOL_SIZE, PLAYA_PG_COMMAND_TIMEOUT_S
    """
    host: str = field(default_factory=lambda: env_str("PLAYA_PG_HOST", "localhost"))
    port: int = field(default_factory=lambda: env_int("PLAYA_PG_PORT", 5432))
    database: str = field(default_factory=lambda: env_str("PLAYA_PG_DATABASE", "playa_dev"))
    user: str = field(default_factory=lambda: env_str("PLAYA_PG_USER", "dev"))
    password: str = field(default_factory=lambda: env_str("PLAYA_PG_PASSWORD", "devpassword"))
    pool_size: int = field(default_factory=lambda: env_int("PLAYA_PG_POOL_SIZE", 10))
    max_overflow: int = 20
    command_timeout_s: int = field(default_factory=lambda: env_int("PLAYA_PG_COMMAND_TIMEOUT_S", 10))
    table_suffix: str = ""

    def get_connection_string(self) -> str:
        """Get async PostgreSQL connection string."""
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"

    @classmethod
    def from_environment(cls, env_config) -> "PostgresConfig":
        """Build a config whose tables match the given EnvironmentConfig."""
        return cls(table_suffix=env_config.table_suffix)


def create_engine(config: PostgresConfig) -> AsyncEngine:
    """
    Create the async engine and register the pgvector codec on every
    new asyncpg connection.
    """
    engine = create_async_engine(
        config.get_connection_string(),
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        connect_args={"command_timeout": config.command_timeout_s},
        echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _register_vector(dbapi_connection, connection_record):
        dbapi_connection.run_async(register_vector)

    return engine


# Cache per tabelle: una coppia (con la sua MetaData) per suffisso e dimensionalità
_table_cache: Dict[Tuple[str, Optional[int]], Tuple[Table, Table]] = {}


def get_tables(suffix: str = "", dimensions: Optional[int] = 1536) -> Tuple[Table, Table]:
    """
    Factory for the (items, entities) table pair of an environment.

    Args:
        suffix: Table name suffix ("" or "_test")
        dimensions: Vector column dimensionality; None leaves the column
                    unconstrained (legacy stores)

    Returns:
        Tuple (searchable_items table, search_entities table), sharing one
        MetaData (`items.metadata`)
    """
    key = (suffix, dimensions)
    if key in _table_cache:
        return _table_cache[key]

    metadata = MetaData()

    items_name = f"searchable_items{suffix}"
    entities_name = f"search_entities{suffix}"

    items = Table(
        items_name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("uid", String(255), nullable=False, unique=True),
        Column("name", String(500), nullable=False),
        Column("item_type", String(50), nullable=False, index=True),
        Column("year", Integer, nullable=False, index=True),
        Column("description", Text, nullable=True),
        Column("location_string", Text, nullable=True),
        Column("searchable_text", Text, nullable=True),
        Column("metadata", JSONB, nullable=True),
        Column("embedding", Vector(dimensions), nullable=True),
        Column("created_at", DateTime, nullable=False, server_default=func.now()),
        Column("updated_at", DateTime, nullable=False, server_default=func.now(), onupdate=func.now()),
    )

    entities = Table(
        entities_name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column(
            "searchable_item_id",
            Integer,
            ForeignKey(f"{items_name}.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        Column("entity_type", String(50), nullable=False),
        Column("entity_value", String(500), nullable=False),
        Column("confidence", Float, nullable=True),
        Column("normalizer_version", Integer, nullable=True),
        Column("created_at", DateTime, nullable=False, server_default=func.now()),
        UniqueConstraint(
            "searchable_item_id", "entity_type", "entity_value",
            name=f"{entities_name}_item_entity_key",
        ),
        Index(f"{entities_name}_type_value_idx", "entity_type", "entity_value"),
    )

    _table_cache[key] = (items, entities)
    return items, entities
