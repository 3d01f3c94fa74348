"""
FalkorDB settings for FalkorGraphStore.

Environment Variables:
    FALKORDB_HOST, FALKORDB_PORT, FALKORDB_PASSWORD
    FALKORDB_GRAPH_NAME: graph holding the item/entity projection (default: playa_dev)
    FALKORDB_TIMEOUT_MS: server-side timeout of one Cypher query (default: 5000)
    FALKORDB_MAX_DEPTH: ceiling for every variable-length traversal (default: 2)
    FALKORDB_MAX_WORKERS: threads running the synchronous driver (default: 8)
"""

from dataclasses import dataclass, field
from typing import Optional

from playa.config import EnvironmentConfig, env_int, env_str


@dataclass
class FalkorDBConfig:
    host: str = field(default_factory=lambda: env_str("FALKORDB_HOST", "localhost"))
    port: int = field(default_factory=lambda: env_int("FALKORDB_PORT", 6380))
    graph_name: str = field(default_factory=lambda: env_str("FALKORDB_GRAPH_NAME", "playa_dev"))
    password: Optional[str] = field(default_factory=lambda: env_str("FALKORDB_PASSWORD", "") or None)
    timeout_ms: int = field(default_factory=lambda: env_int("FALKORDB_TIMEOUT_MS", 5000))
    max_depth: int = field(default_factory=lambda: env_int("FALKORDB_MAX_DEPTH", 2))
    max_workers: int = field(default_factory=lambda: env_int("FALKORDB_MAX_WORKERS", 8))

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")

    @classmethod
    def from_environment(cls, env_config: EnvironmentConfig, **overrides) -> "FalkorDBConfig":
        """Settings pointing at the graph of a deployment environment."""
        return cls(graph_name=env_config.graph_name, **overrides)
