"""
FalkorDB GraphStore
===================

Cypher implementation of the item/entity projection.

Schema:
    (:Item {uid, name, kind, year})
    (:Entity {type, value, occurrence_count})
    (:Item)-[:HAS_ENTITY]->(:Entity)
    (:Entity)-[:APPEARS_WITH {count}]->(:Entity)   stored once, queried undirected

Tutti i valori passano come parametri; i pattern a lunghezza variabile
sono costruiti solo da interi già validati (validate_depth).
"""

from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import structlog

from playa.models.entities import Entity, EntityConnection, EntityType, Pool
from playa.models.items import Item, KindFilter, kind_values
from playa.storage.graph.base import GraphStore, entity_key, new_pairs, validate_depth
from playa.storage.graph.bridge import BridgeEntity, BridgeItem, rank_bridge_items, rank_bridges
from playa.storage.graph.client import FalkorDBClient
from playa.storage.graph.config import FalkorDBConfig

log = structlog.get_logger()

POOL_PREFIX = "pool_"


def _entity(entity_type: Optional[str], value: Optional[str]) -> Optional[Entity]:
    if entity_type is None or value is None:
        return None
    return Entity(EntityType(entity_type), value)


class FalkorGraphStore(GraphStore):
    """
    GraphStore backed by FalkorDB.

    Example:
        graph = FalkorGraphStore(FalkorDBConfig.from_environment(get_current_environment()))
        await graph.connect()
        connections = await graph.entity_neighborhood("camp-2025-oknotok")
        await graph.close()
    """

    def __init__(self, config: Optional[FalkorDBConfig] = None, client: Optional[FalkorDBClient] = None):
        self.config = config or (client.config if client is not None else FalkorDBConfig())
        self.client = client or FalkorDBClient(self.config)
        self.max_depth = self.config.max_depth

    async def connect(self):
        await self.client.connect()

    async def close(self):
        await self.client.close()

    async def ensure_indexes(self):
        """Create the lookup indexes used by every query."""
        for cypher in (
            "CREATE INDEX FOR (i:Item) ON (i.uid)",
            "CREATE INDEX FOR (e:Entity) ON (e.type, e.value)",
            "CREATE INDEX FOR (e:Entity) ON (e.value)",
        ):
            try:
                await self.client.query(cypher)
            except Exception as e:
                # FalkorDB errors when the index already exists
                log.debug(f"Index not created: {e}")

    async def neighbors(self, uid: str, depth: int = 1) -> Set[Tuple[str, int]]:
        depth = validate_depth(depth, self.max_depth)
        cypher = f"""
            MATCH p = (i:Item {{uid: $uid}})-[:HAS_ENTITY*2..{2 * depth}]-(j:Item)
            WHERE j.uid <> $uid
            RETURN j.uid AS uid, min(length(p)) / 2 AS distance
        """
        records = await self.client.query(cypher, {"uid": uid}, read_only=True)
        return {(r["uid"], int(r["distance"])) for r in records}

    async def entity_neighborhood(self, uid: str, depth: int = 1) -> List[EntityConnection]:
        depth = validate_depth(depth, self.max_depth)
        cypher = f"""
            MATCH (i:Item {{uid: $uid}})-[:HAS_ENTITY]->(e:Entity)
            OPTIONAL MATCH (e)<-[:HAS_ENTITY]-(other:Item)
            WHERE other.uid <> $uid
            WITH e, collect(DISTINCT other.uid) AS connected_items
            OPTIONAL MATCH (e)-[:APPEARS_WITH*1..{depth}]-(related:Entity)
            WHERE related <> e
            RETURN e.type AS type, e.value AS value, connected_items,
                   collect(DISTINCT [related.type, related.value]) AS related
        """
        records = await self.client.query(cypher, {"uid": uid}, read_only=True)

        connections = []
        for record in records:
            entity = _entity(record["type"], record["value"])
            related = {
                _entity(pair[0], pair[1]) for pair in record.get("related") or []
                if pair and pair[0] is not None
            }
            related.discard(None)
            related.discard(entity)
            connections.append(EntityConnection(
                entity=entity,
                co_occurring=sorted(related, key=entity_key),
                connected_items=sorted(u for u in record.get("connected_items") or [] if u is not None),
            ))
        return sorted(connections, key=lambda c: entity_key(c.entity))

    async def items_for_entity(
        self,
        entity: Entity,
        exclude: Iterable[str] = (),
        limit: int = 10,
        kind: KindFilter = None,
        year: Optional[int] = None,
    ) -> List[Tuple[str, int]]:
        kinds = kind_values(kind)
        cypher = """
            MATCH (e:Entity {type: $type, value: $value})<-[:HAS_ENTITY]-(i:Item)
            WHERE NOT i.uid IN $exclude
              AND ($kinds IS NULL OR i.kind IN $kinds)
              AND ($year IS NULL OR i.year = $year)
            MATCH (i)-[:HAS_ENTITY]->(other:Entity)
            WITH i, count(DISTINCT other) AS entity_count
            RETURN i.uid AS uid, entity_count
            ORDER BY entity_count DESC, uid ASC
            LIMIT $limit
        """
        records = await self.client.query(cypher, {
            "type": entity.type.value,
            "value": entity.value,
            "exclude": list(exclude),
            "kinds": kinds,
            "year": year,
            "limit": int(limit),
        }, read_only=True)
        return [(r["uid"], int(r["entity_count"])) for r in records]

    async def bridge_entities(self, min_pools: int = 2, limit: Optional[int] = 50) -> List[BridgeEntity]:
        cypher = """
            MATCH (e:Entity)
            WHERE e.type STARTS WITH $prefix AND e.occurrence_count > 0
            WITH e.value AS name, collect(e.type) AS types, collect(e.occurrence_count) AS counts
            WHERE size(types) >= $min_pools
            OPTIONAL MATCH (e1:Entity {value: name})-[r:APPEARS_WITH]-(e2:Entity)
            WHERE e1.type STARTS WITH $prefix AND e2.type STARTS WITH $prefix AND e1.type <> e2.type
            RETURN name, types, counts, count(DISTINCT r) AS cross_pool
        """
        records = await self.client.query(
            cypher, {"prefix": POOL_PREFIX, "min_pools": int(min_pools)}, read_only=True
        )

        bridges = []
        for record in records:
            frequencies = {
                t[len(POOL_PREFIX):]: int(c)
                for t, c in zip(record["types"], record["counts"])
            }
            bridges.append(BridgeEntity(
                name=record["name"],
                pools=sorted(frequencies),
                total_occurrences=sum(frequencies.values()),
                cross_pool_relationships=int(record["cross_pool"]),
                pool_frequencies=dict(sorted(frequencies.items())),
            ))

        ranked = rank_bridges(bridges)
        return ranked if limit is None else ranked[:limit]

    async def _pool_items(self, pool_a: Pool, pool_b: Pool, k: int) -> List[BridgeItem]:
        cypher = """
            MATCH (i:Item)-[:HAS_ENTITY]->(a:Entity {type: $type_a})
            MATCH (i)-[:HAS_ENTITY]->(b:Entity {type: $type_b})
            WITH i, collect(DISTINCT a.value) AS values_a, collect(DISTINCT b.value) AS values_b
            WITH i, values_a, values_b, size(values_a) + size(values_b) AS strength
            RETURN i.uid AS uid, i.name AS name, i.kind AS kind, i.year AS year, values_a, values_b
            ORDER BY strength DESC, uid ASC
            LIMIT $limit
        """
        records = await self.client.query(cypher, {
            "type_a": pool_a.entity_type.value,
            "type_b": pool_b.entity_type.value,
            "limit": int(k),
        }, read_only=True)

        items = []
        for record in records:
            entities = {pool_a.value: sorted(record["values_a"] or [])}
            entities.setdefault(pool_b.value, sorted(record["values_b"] or []))
            items.append(BridgeItem(
                uid=record["uid"],
                name=record["name"],
                kind=record["kind"],
                year=record["year"],
                entities=entities,
            ))
        return rank_bridge_items(items)

    async def _entities_of(self, uid: str) -> Set[Entity]:
        records = await self.client.query(
            "MATCH (:Item {uid: $uid})-[:HAS_ENTITY]->(e:Entity) RETURN e.type AS type, e.value AS value",
            {"uid": uid},
            read_only=True,
        )
        return {_entity(r["type"], r["value"]) for r in records}

    async def project_item(self, item: Item, entities: Iterable[Entity]) -> None:
        await self.client.query(
            """
            MERGE (i:Item {uid: $uid})
            SET i.name = $name, i.kind = $kind, i.year = $year
            """,
            {"uid": item.uid, "name": item.name, "kind": item.kind.value, "year": item.year},
        )

        existing = await self._entities_of(item.uid)
        added = sorted(set(entities) - existing, key=entity_key)
        if not added:
            return

        await self.client.query(
            """
            UNWIND $entities AS row
            MATCH (i:Item {uid: $uid})
            MERGE (e:Entity {type: row.type, value: row.value})
            ON CREATE SET e.occurrence_count = 0
            MERGE (i)-[:HAS_ENTITY]->(e)
            SET e.occurrence_count = e.occurrence_count + 1
            """,
            {"uid": item.uid, "entities": [e.to_dict() for e in added]},
        )

        pairs = new_pairs(existing, added)
        if pairs:
            await self.client.query(
                """
                UNWIND $pairs AS p
                MATCH (a:Entity {type: p.a_type, value: p.a_value})
                MATCH (b:Entity {type: p.b_type, value: p.b_value})
                MERGE (a)-[r:APPEARS_WITH]->(b)
                ON CREATE SET r.count = 0
                SET r.count = r.count + 1
                """,
                {"pairs": [_pair_param(a, b) for a, b in pairs]},
            )

        log.debug(f"Projected {item.uid}: +{len(added)} entities, +{len(pairs)} co-occurrences")

    async def health_check(self) -> bool:
        return await self.client.health_check()


def _pair_param(a: Entity, b: Entity) -> Dict[str, Any]:
    return {"a_type": a.type.value, "a_value": a.value, "b_type": b.type.value, "b_value": b.value}
