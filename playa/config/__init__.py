"""
Configuration module for playa.

Static data files (synonym table, extraction prompts) live next to this
module as YAML and are loaded through load_yaml_config().
"""

from pathlib import Path
from typing import Any, Dict

import yaml

from .environments import (
    ENVIRONMENTS,
    EnvironmentConfig,
    env_int,
    env_str,
    get_current_environment,
    get_environment_config,
)

CONFIG_DIR = Path(__file__).parent

_yaml_cache: Dict[str, Dict[str, Any]] = {}


def load_yaml_config(name: str) -> Dict[str, Any]:
    """
    Load (and cache) a YAML file shipped in playa/config.

    Args:
        name: File name, e.g. "synonyms.yaml"

    Raises:
        FileNotFoundError: If the file is not part of the package
    """
    if name not in _yaml_cache:
        with open(CONFIG_DIR / name, "r", encoding="utf-8") as f:
            _yaml_cache[name] = yaml.safe_load(f) or {}
    return _yaml_cache[name]


__all__ = [
    "ENVIRONMENTS",
    "EnvironmentConfig",
    "env_int",
    "env_str",
    "get_environment_config",
    "get_current_environment",
    "CONFIG_DIR",
    "load_yaml_config",
]
