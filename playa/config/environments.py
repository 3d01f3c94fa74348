"""
Deployment environments
=======================

An environment is the pair every store reads: the FalkorDB graph name and
the suffix of the PostgreSQL tables (searchable_items{suffix},
search_entities{suffix}). PLAYA_ENV selects it; unset means "test".

Also home of the env-var readers used by the component configs.
"""

import os
from dataclasses import dataclass
from typing import Dict

ENV_VAR = "PLAYA_ENV"
DEFAULT_ENVIRONMENT = "test"


def env_str(key: str, default: str) -> str:
    return os.environ.get(key, default)


def env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


@dataclass(frozen=True)
class EnvironmentConfig:
    name: str
    graph_name: str
    table_suffix: str = ""


ENVIRONMENTS: Dict[str, EnvironmentConfig] = {
    "test": EnvironmentConfig("test", graph_name="playa_test", table_suffix="_test"),
    "prod": EnvironmentConfig("prod", graph_name="playa_prod"),
}


def get_environment_config(name: str) -> EnvironmentConfig:
    """
    Look up an environment by name (case-insensitive).

    Raises:
        ValueError: unknown environment name
    """
    key = (name or "").strip().lower()
    if key not in ENVIRONMENTS:
        raise ValueError(f"Unknown environment {name!r}, expected one of {sorted(ENVIRONMENTS)}")
    return ENVIRONMENTS[key]


def get_current_environment() -> EnvironmentConfig:
    """Environment named by PLAYA_ENV."""
    return get_environment_config(os.environ.get(ENV_VAR) or DEFAULT_ENVIRONMENT)
