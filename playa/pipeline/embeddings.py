"""
Embedding Backfill
==================

Fills in vectors for items stored without one.

Flow:
    ItemStore.items_missing_embedding(batch_size)
        → Item.searchable_text (rebuilt when empty)
        → EmbeddingProvider.embed_batch()
            └─ empty result (not 1:1 with inputs) → embed() per item
        → ItemStore.set_embedding()

Items whose text is blank are skipped; items whose embedding failed are
retried on the next run, never within the same run.

Usage:
    from playa.pipeline import EmbeddingBackfill

    backfill = EmbeddingBackfill(item_store, EmbeddingProvider())
    result = await backfill.run(batch_size=50)
    print(result.summary())
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional, Set

import structlog

from playa.models.items import Item
from playa.storage.errors import DimensionMismatch
from playa.storage.items.base import ItemStore
from playa.storage.vectors.embeddings import EmbeddingProvider

log = structlog.get_logger()


@dataclass
class BackfillResult:
    """Counts of one backfill run."""
    embedded: int = 0
    skipped: int = 0
    failed: int = 0
    batches: int = 0
    duration_seconds: float = 0.0
    failed_uids: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.embedded + self.skipped + self.failed

    def summary(self) -> str:
        return (
            f"EmbeddingBackfill: {self.embedded}/{self.total} embedded, "
            f"{self.skipped} skipped, {self.failed} failed "
            f"in {self.batches} batches ({self.duration_seconds:.1f}s)"
        )


class EmbeddingBackfill:
    """
    Batch job writing embeddings for items that have none.

    Args:
        store: Item store to read from and write to
        provider: Embedding provider (same model as the stored vectors)
        delay_between_batches: Pause between provider calls, in seconds
    """

    def __init__(
        self,
        store: ItemStore,
        provider: EmbeddingProvider,
        delay_between_batches: float = 0.0,
    ):
        self.store = store
        self.provider = provider
        self.delay_between_batches = delay_between_batches

    async def run(self, batch_size: int = 50, max_items: Optional[int] = None) -> BackfillResult:
        """
        Embed every item missing a vector (or at most max_items of them).

        Raises:
            ValueError: batch_size < 1
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        start = time.perf_counter()
        result = BackfillResult()
        attempted: Set[str] = set()

        while max_items is None or result.total < max_items:
            size = batch_size if max_items is None else min(batch_size, max_items - result.total)
            # Items that failed earlier in this run are still missing: over-fetch past them
            candidates = await self.store.items_missing_embedding(limit=size + len(attempted))
            batch = [item for item in candidates if item.uid not in attempted][:size]
            if not batch:
                break

            attempted.update(item.uid for item in batch)
            result.batches += 1
            await self._run_batch(batch, result)
            log.debug(f"Backfill batch {result.batches}: {len(batch)} items")

            if self.delay_between_batches > 0:
                await asyncio.sleep(self.delay_between_batches)

        result.duration_seconds = round(time.perf_counter() - start, 3)
        log.info(result.summary())
        return result

    async def _run_batch(self, batch: List[Item], result: BackfillResult) -> None:
        texts = [self._text_for(item) for item in batch]

        embeddable = [(item, text) for item, text in zip(batch, texts) if text]
        result.skipped += len(batch) - len(embeddable)
        if not embeddable:
            return

        vectors = await self.provider.embed_batch([text for _, text in embeddable])
        if not vectors:
            log.warning(f"Batch embedding unusable, falling back to {len(embeddable)} single calls")
            vectors = [await self.provider.embed(text) for _, text in embeddable]

        for (item, _), vector in zip(embeddable, vectors):
            if vector is None:
                self._fail(result, item, "no embedding returned")
                continue
            try:
                await self.store.set_embedding(item.uid, vector)
                result.embedded += 1
            except DimensionMismatch as e:
                log.error(f"Provider dimensionality does not match the store: {e}")
                self._fail(result, item, "dimension mismatch")
            except KeyError:
                self._fail(result, item, "item disappeared")

    @staticmethod
    def _text_for(item: Item) -> str:
        text = item.searchable_text or item.build_searchable_text()
        return text.strip()

    @staticmethod
    def _fail(result: BackfillResult, item: Item, reason: str) -> None:
        log.warning(f"Embedding failed for {item.uid}: {reason}")
        result.failed += 1
        result.failed_uids.append(item.uid)
