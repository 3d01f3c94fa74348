"""
Embedding Provider for OpenAI text-embedding-3-small

Wraps the hosted embeddings endpoint with token-budget truncation.

Key Features:
- Token counting with tiktoken (character approximation if that fails)
- Never raises on provider failure: returns None so callers degrade
  to keyword search
- Order-preserving batch call
- Output vectors are L2-normalized

IMPORTANT: the model MUST match the one used to embed the stored items.
Changing it requires re-embedding the whole store (see EmbeddingBackfill).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import aiohttp
import numpy as np
import tiktoken

from playa.config import env_int, env_str

logger = logging.getLogger(__name__)

# Rough number of characters per token, used when tiktoken cannot count
CHARS_PER_TOKEN = 4


@dataclass
class EmbeddingConfig:
    """
    Embedding provider configuration.

    Environment Variables:
        OPENAI_API_KEY: API key
        PLAYA_EMBEDDING_MODEL: Model name (default: text-embedding-3-small)
        PLAYA_EMBEDDING_DIMENSIONS: Output dimensionality (default: 1536)
        PLAYA_EMBEDDING_MAX_TOKENS: Input token ceiling (default: 8191)
        PLAYA_EMBEDDING_TIMEOUT_S: HTTP timeout in seconds (default: 10)
        OPENAI_BASE_URL: API base URL
    """
    model: str = field(default_factory=lambda: env_str("PLAYA_EMBEDDING_MODEL", "text-embedding-3-small"))
    dimensions: int = field(default_factory=lambda: env_int("PLAYA_EMBEDDING_DIMENSIONS", 1536))
    max_tokens: int = field(default_factory=lambda: env_int("PLAYA_EMBEDDING_MAX_TOKENS", 8191))
    timeout_s: int = field(default_factory=lambda: env_int("PLAYA_EMBEDDING_TIMEOUT_S", 10))
    base_url: str = field(default_factory=lambda: env_str("OPENAI_BASE_URL", "https://api.openai.com/v1"))
    api_key: Optional[str] = field(default_factory=lambda: env_str("OPENAI_API_KEY", "") or None)


class EmbeddingProvider:
    """
    Async client for the embeddings endpoint.

    Usage:
        provider = EmbeddingProvider()
        vector = await provider.embed("camps with morning yoga")
        if vector is None:
            ...  # no vector signal, fall back to keywords

        vectors = await provider.embed_batch(["text1", "text2"])
        await provider.close()
    """

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self.session: Optional[aiohttp.ClientSession] = None
        self._encoding = None

        logger.info(
            "EmbeddingProvider configured",
            extra={
                "model": self.config.model,
                "dimensions": self.config.dimensions,
                "max_tokens": self.config.max_tokens,
            }
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_s)
            )
        return self.session

    async def close(self):
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    def truncate(self, text: str) -> str:
        """
        Cut text to the model token budget.

        Counts tokens with tiktoken; when the encoding cannot be loaded or
        fails on the input, falls back to max_tokens * 4 characters.
        """
        try:
            if self._encoding is None:
                self._encoding = tiktoken.encoding_for_model(self.config.model)
            tokens = self._encoding.encode(text)
            if len(tokens) > self.config.max_tokens:
                return self._encoding.decode(tokens[:self.config.max_tokens])
            return text
        except Exception as e:
            logger.warning(f"Token counting failed, using character approximation: {e}")
            return text[:self.config.max_tokens * CHARS_PER_TOKEN]

    async def embed(self, text: Optional[str]) -> Optional[List[float]]:
        """
        Embed a single text.

        Args:
            text: Input text (truncated to the token budget)

        Returns:
            Normalized vector, or None when the text is blank or the
            provider call fails for any reason
        """
        if not text or not text.strip():
            return None

        try:
            data = await self._request([self.truncate(text)])
            return _normalize(data[0]["embedding"])
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Embedding error: {e}")
            return None

    async def embed_batch(self, texts: List[str]) -> List[Optional[List[float]]]:
        """
        Embed many texts in one request.

        The result is aligned 1:1 with `texts`; blank inputs get None.
        If the response cannot be matched to the inputs by index, or the
        call fails, an empty list is returned so the caller falls back to
        per-item embed().
        """
        if not texts:
            return []

        positions = [i for i, t in enumerate(texts) if t and t.strip()]
        if not positions:
            return [None] * len(texts)

        try:
            data = await self._request([self.truncate(texts[i]) for i in positions])
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Batch embedding error: {e}")
            return []

        by_index = {}
        for entry in data:
            index = entry.get("index")
            if index is None or index in by_index or not 0 <= index < len(positions):
                logger.warning("Batch embedding response not aligned with inputs")
                return []
            by_index[index] = entry["embedding"]

        if len(by_index) != len(positions):
            logger.warning(
                f"Batch embedding returned {len(by_index)} vectors for {len(positions)} inputs"
            )
            return []

        results: List[Optional[List[float]]] = [None] * len(texts)
        for batch_index, text_index in enumerate(positions):
            results[text_index] = _normalize(by_index[batch_index])
        return results

    async def _request(self, inputs: List[str]) -> List[dict]:
        """POST to /embeddings and return the `data` array."""
        if not self.config.api_key:
            raise ValueError("OpenAI API key not provided")

        session = await self._get_session()
        payload = {"model": self.config.model, "input": inputs}
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        async with session.post(
            f"{self.config.base_url}/embeddings",
            json=payload,
            headers=headers,
        ) as response:
            if response.status != 200:
                error_text = await response.text()
                raise RuntimeError(f"Embeddings API error: {response.status} - {error_text[:200]}")
            body = await response.json()

        data = body.get("data")
        if not data:
            raise RuntimeError("Embeddings API returned no data")
        return data

    def __repr__(self) -> str:
        return f"EmbeddingProvider(model={self.config.model}, dimensions={self.config.dimensions})"


def _normalize(vector: List[float]) -> List[float]:
    """Scale to unit length (zero vectors are returned unchanged)."""
    arr = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.tolist()
    return (arr / norm).tolist()
