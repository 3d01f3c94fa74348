"""
FalkorDB connection
===================

falkordb-py is synchronous, so every Cypher call runs on a bounded thread
pool owned by the client. Traversals go through GRAPH.RO_QUERY and can
never write; only the projection writes use GRAPH.QUERY.

The item/entity queries return scalars and lists only, so rows come back
as plain dicts keyed by the RETURN aliases.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import structlog
from falkordb import FalkorDB, Graph

from playa.storage.graph.config import FalkorDBConfig

log = structlog.get_logger()

Record = Dict[str, Any]


def to_records(result) -> List[Record]:
    """Rows of a falkordb QueryResult keyed by column alias (header is [type, alias])."""
    if not result.result_set:
        return []
    aliases = [column[1] for column in result.header]
    return [dict(zip(aliases, row)) for row in result.result_set]


class FalkorDBClient:
    """
    Connection to the graph named in FalkorDBConfig.

    Example:
        client = FalkorDBClient(FalkorDBConfig(graph_name="playa_test"))
        await client.connect()
        rows = await client.query(
            "MATCH (:Item {uid: $uid})-[:HAS_ENTITY]->(e:Entity) RETURN e.type AS type, e.value AS value",
            {"uid": "camp-2025-oknotok"},
            read_only=True,
        )
        await client.close()
    """

    def __init__(self, config: Optional[FalkorDBConfig] = None):
        self.config = config or FalkorDBConfig()
        self._graph: Optional[Graph] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def connected(self) -> bool:
        return self._graph is not None

    def _select_graph(self) -> Graph:
        db = FalkorDB(host=self.config.host, port=self.config.port, password=self.config.password)
        return db.select_graph(self.config.graph_name)

    async def connect(self):
        if self.connected:
            return
        executor = ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="falkordb")
        try:
            self._graph = await asyncio.get_running_loop().run_in_executor(executor, self._select_graph)
        except Exception:
            executor.shutdown(wait=False)
            raise
        self._executor = executor
        log.info(
            f"Connected to FalkorDB at {self.config.host}:{self.config.port}, "
            f"graph={self.config.graph_name}, workers={self.config.max_workers}"
        )

    async def close(self):
        if not self.connected:
            return
        self._graph = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        log.info("Disconnected from FalkorDB")

    async def query(
        self,
        cypher: str,
        params: Optional[Dict[str, Any]] = None,
        read_only: bool = False,
    ) -> List[Record]:
        """
        Run one Cypher statement.

        Values must travel in `params`; the statement text is never built
        from user input. `read_only=True` uses GRAPH.RO_QUERY.
        """
        if not self.connected:
            raise RuntimeError("Not connected to FalkorDB. Call connect() first.")

        run = self._graph.ro_query if read_only else self._graph.query
        call = functools.partial(run, cypher, params or {}, timeout=self.config.timeout_ms)
        try:
            result = await asyncio.get_running_loop().run_in_executor(self._executor, call)
        except Exception as e:
            log.error(f"FalkorDB query failed on {self.config.graph_name}: {e}")
            raise

        records = to_records(result)
        log.debug(f"FalkorDB {'read' if read_only else 'write'} -> {len(records)} records")
        return records

    async def health_check(self) -> bool:
        if not self.connected:
            return False
        try:
            await self.query("RETURN 1", read_only=True)
        except Exception as e:
            log.warning(f"FalkorDB health check failed: {e}")
            return False
        return True
