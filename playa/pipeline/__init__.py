"""
Playa Pipelines
===============

Batch jobs that prepare the stores for search:
- EmbeddingBackfill: vectors for items stored without one
- EntityExtractionPipeline: LLM entity extraction with pluggable strategies
"""

from playa.pipeline.embeddings import BackfillResult, EmbeddingBackfill
from playa.pipeline.extraction import (
    EntityExtractionPipeline,
    ExtractionResult,
    ExtractionStrategy,
    parse_json_object,
)

__all__ = [
    "BackfillResult",
    "EmbeddingBackfill",
    "EntityExtractionPipeline",
    "ExtractionResult",
    "ExtractionStrategy",
    "parse_json_object",
]
