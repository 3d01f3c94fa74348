"""
Playa Graph Storage
===================

Proiezione item/entità su grafo (FalkorDB, Cypher).

Componenti:
- GraphStore: interfaccia (neighbors, entity_neighborhood, bridge, ...)
- FalkorGraphStore: backend FalkorDB
- InMemoryGraphStore: backend di riferimento per test
- FalkorDBClient / FalkorDBConfig: client async e configurazione
- bridge_power / BridgeEntity / BridgeItem: entità e item ponte tra pool

Esempio:
    from playa.storage.graph import FalkorGraphStore, FalkorDBConfig

    graph = FalkorGraphStore(FalkorDBConfig(host="localhost", port=6380, graph_name="playa_prod"))
    await graph.connect()
"""

from playa.storage.graph.config import FalkorDBConfig
from playa.storage.graph.client import FalkorDBClient
from playa.storage.graph.bridge import BridgeEntity, BridgeItem, bridge_power, rank_bridge_items, rank_bridges
from playa.storage.graph.base import GraphStore, validate_depth, new_pairs
from playa.storage.graph.memory import InMemoryGraphStore
from playa.storage.graph.falkor import FalkorGraphStore

__all__ = [
    "FalkorDBConfig",
    "FalkorDBClient",
    "BridgeEntity",
    "BridgeItem",
    "bridge_power",
    "rank_bridges",
    "rank_bridge_items",
    "GraphStore",
    "validate_depth",
    "new_pairs",
    "InMemoryGraphStore",
    "FalkorGraphStore",
]
