"""
Core API: PlayaSearch facade and its configuration.
"""

from playa.core.playa_search import PlayaConfig, PlayaSearch

__all__ = ["PlayaConfig", "PlayaSearch"]
