"""
Test FalkorDB Configuration
===========================

Unit tests for FalkorDBConfig and the executor-backed FalkorDBClient.
"""

import pytest
import os
from unittest.mock import MagicMock, patch

from playa.config import get_environment_config
from playa.storage.graph import FalkorDBClient, FalkorDBConfig
from playa.storage.graph.client import to_records


def _result(header, rows):
    result = MagicMock()
    result.header = header
    result.result_set = rows
    return result


class TestFalkorDBConfig:
    """Test FalkorDBConfig dataclass."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            config = FalkorDBConfig()

        assert config.host == "localhost"
        assert config.port == 6380
        assert config.graph_name == "playa_dev"
        assert config.timeout_ms == 5000
        assert config.password is None
        assert config.max_depth == 2
        assert config.max_workers == 8

    def test_environment_variables(self):
        """Test that defaults are read from FALKORDB_* env vars."""
        with patch.dict(os.environ, {
            "FALKORDB_HOST": "env-host.com",
            "FALKORDB_PORT": "6399",
            "FALKORDB_GRAPH_NAME": "playa_prod",
            "FALKORDB_MAX_DEPTH": "1",
            "FALKORDB_MAX_WORKERS": "2",
        }):
            config = FalkorDBConfig()

        assert config.host == "env-host.com"
        assert config.port == 6399
        assert config.graph_name == "playa_prod"
        assert config.max_depth == 1
        assert config.max_workers == 2

    @pytest.mark.parametrize("kwargs, message", [
        ({"max_depth": 0}, "max_depth must be"),
        ({"max_workers": 0}, "max_workers must be"),
        ({"timeout_ms": 0}, "timeout_ms must be"),
    ])
    def test_validation(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            FalkorDBConfig(**kwargs)

    def test_graph_of_environment(self):
        assert FalkorDBConfig.from_environment(get_environment_config("test")).graph_name == "playa_test"
        prod = FalkorDBConfig.from_environment(get_environment_config("prod"), max_depth=1)
        assert prod.graph_name == "playa_prod"
        assert prod.max_depth == 1


class TestRecords:

    def test_rows_keyed_by_alias(self):
        result = _result([[1, "uid"], [1, "distance"]], [["art-2025-pyre", 1], ["art-2024-temple", 2]])
        assert to_records(result) == [
            {"uid": "art-2025-pyre", "distance": 1},
            {"uid": "art-2024-temple", "distance": 2},
        ]

    def test_empty_result(self):
        assert to_records(_result([], [])) == []


class TestFalkorDBClient:

    def test_initial_state(self):
        client = FalkorDBClient(FalkorDBConfig(graph_name="playa_test"))
        assert client.connected is False
        assert client.config.graph_name == "playa_test"

    @pytest.mark.asyncio
    async def test_query_requires_connection(self):
        client = FalkorDBClient()
        with pytest.raises(RuntimeError, match="Not connected"):
            await client.query("RETURN 1")

    @pytest.mark.asyncio
    async def test_connect_selects_configured_graph(self):
        config = FalkorDBConfig(host="graph-host", port=6381, graph_name="playa_test", max_workers=2)
        with patch("playa.storage.graph.client.FalkorDB") as falkordb:
            client = FalkorDBClient(config)
            await client.connect()
            await client.connect()

        falkordb.assert_called_once_with(host="graph-host", port=6381, password=config.password)
        falkordb.return_value.select_graph.assert_called_once_with("playa_test")
        assert client.connected is True

        await client.close()
        assert client.connected is False

    @pytest.mark.asyncio
    async def test_reads_use_read_only_queries(self):
        with patch("playa.storage.graph.client.FalkorDB") as falkordb:
            client = FalkorDBClient(FalkorDBConfig(timeout_ms=250))
            await client.connect()
        graph = falkordb.return_value.select_graph.return_value
        graph.ro_query.return_value = _result([[1, "uid"]], [["art-2025-pyre"]])

        records = await client.query("MATCH (j:Item) RETURN j.uid AS uid", {"uid": "x"}, read_only=True)

        assert records == [{"uid": "art-2025-pyre"}]
        graph.ro_query.assert_called_once_with("MATCH (j:Item) RETURN j.uid AS uid", {"uid": "x"}, timeout=250)
        graph.query.assert_not_called()
        await client.close()

    @pytest.mark.asyncio
    async def test_writes_and_errors(self):
        with patch("playa.storage.graph.client.FalkorDB") as falkordb:
            client = FalkorDBClient()
            await client.connect()
        graph = falkordb.return_value.select_graph.return_value
        graph.query.side_effect = RuntimeError("connection reset")

        with pytest.raises(RuntimeError, match="connection reset"):
            await client.query("MERGE (i:Item {uid: $uid})", {"uid": "x"})
        graph.ro_query.assert_not_called()
        await client.close()

    @pytest.mark.asyncio
    async def test_health_check(self):
        client = FalkorDBClient()
        assert await client.health_check() is False

        with patch("playa.storage.graph.client.FalkorDB") as falkordb:
            await client.connect()
        graph = falkordb.return_value.select_graph.return_value
        graph.ro_query.return_value = _result([[1, "1"]], [[1]])
        assert await client.health_check() is True

        graph.ro_query.side_effect = RuntimeError("down")
        assert await client.health_check() is False
        await client.close()
