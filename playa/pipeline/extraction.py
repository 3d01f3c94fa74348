"""
Entity Extraction Pipeline
==========================

LLM-based extraction of entities from item text, written through the
EntityIndex (and optionally projected into the graph).

Una sola pipeline parametrizzata da strategie caricate da
playa/config/extractors.yaml:
- basic: location/activity/theme/... per camp, art ed eventi
- pools: i sette pool tematici per i testi lunghi

Usage:
    from playa.pipeline import EntityExtractionPipeline

    pipeline = EntityExtractionPipeline(entity_index, strategy="pools", graph=graph_store)
    result = await pipeline.run(items)
    print(result.summary())
    await pipeline.close()
"""

import asyncio
import json
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import aiohttp
import structlog

from playa.config import load_yaml_config
from playa.models.entities import Entity, EntityType
from playa.models.items import Item
from playa.storage.entities.base import EntityIndex
from playa.storage.graph.base import GraphStore

log = structlog.get_logger()

EXTRACTORS_FILE = "extractors.yaml"


@dataclass
class ExtractionStrategy:
    """
    Prompt and field mapping for one extraction flavour.

    Attributes:
        name: Strategy name in extractors.yaml
        system_prompt: System message sent to the model
        fields: JSON field -> entity type
        focus: Item kind -> extra instruction line
        confidence: Confidence stored with every extracted entity
    """
    name: str
    system_prompt: str
    fields: Dict[str, EntityType]
    focus: Dict[str, str] = field(default_factory=dict)
    confidence: float = 0.9

    @classmethod
    def from_config(cls, name: str, config: Optional[Dict[str, Any]] = None) -> "ExtractionStrategy":
        """
        Load a strategy from extractors.yaml.

        Raises:
            ValueError: Unknown strategy name
        """
        config = config if config is not None else load_yaml_config(EXTRACTORS_FILE)
        strategies = config.get("strategies", {})
        if name not in strategies:
            raise ValueError(f"Unknown extraction strategy '{name}'. Available: {sorted(strategies)}")

        raw = strategies[name]
        return cls(
            name=name,
            system_prompt=raw["system_prompt"].strip(),
            fields={key: EntityType(value) for key, value in raw["fields"].items()},
            focus=dict(raw.get("focus") or {}),
            confidence=float(raw.get("confidence", 0.9)),
        )

    def build_messages(self, item: Item) -> List[Dict[str, str]]:
        system = self.system_prompt
        focus = self.focus.get(item.kind.value)
        if focus:
            system = f"{system}\n{focus}"

        keys = ", ".join(f'"{key}": []' for key in self.fields)
        text = item.searchable_text or item.build_searchable_text()
        user = (
            f"Item type: {item.kind.value}\n"
            f"Name: {item.name}\n"
            f"Text:\n{text}\n\n"
            f"Return a JSON object with exactly these keys: {{{keys}}}"
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

    def parse(self, payload: Dict[str, Any]) -> List[Tuple[EntityType, str]]:
        """Pull (type, raw value) pairs out of the model's JSON answer."""
        pairs = []
        for key, entity_type in self.fields.items():
            values = payload.get(key) or []
            if isinstance(values, str):
                values = [values]
            for value in values:
                if isinstance(value, str) and value.strip():
                    pairs.append((entity_type, value))
        return pairs


@dataclass
class ExtractionResult:
    """Counts of one extraction run."""
    processed: int = 0
    failed: int = 0
    entities_added: int = 0
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"EntityExtraction: {self.processed} items, {self.failed} failed, "
            f"{self.entities_added} entities ({self.duration_seconds:.1f}s)"
        )


class EntityExtractionPipeline:
    """
    Extract, normalize and store entities for a batch of items.

    Chiamate concorrenti limitate da un Semaphore; un errore su un item
    viene loggato e contato senza interrompere il batch.
    """

    def __init__(
        self,
        index: EntityIndex,
        strategy: Union[str, ExtractionStrategy] = "basic",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        graph: Optional[GraphStore] = None,
        max_concurrency: Optional[int] = None,
    ):
        llm = load_yaml_config(EXTRACTORS_FILE).get("llm", {})

        self.index = index
        self.strategy = strategy if isinstance(strategy, ExtractionStrategy) else ExtractionStrategy.from_config(strategy)
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
        self.model = model or os.getenv("PLAYA_EXTRACTION_MODEL", llm.get("default_model", "gpt-4o-mini"))
        self.temperature = float(llm.get("temperature", 0.3))
        self.max_tokens = int(llm.get("max_tokens", 1500))
        self.timeout = int(llm.get("timeout", 60))
        self.graph = graph
        self.session: Optional[aiohttp.ClientSession] = None
        self._semaphore = asyncio.Semaphore(max_concurrency or int(llm.get("max_concurrency", 4)))

        log.info(f"EntityExtractionPipeline initialized - strategy={self.strategy.name}, model={self.model}")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def close(self):
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def complete_json(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        """
        Chat completion in JSON mode.

        Raises:
            ValueError: No API key
            RuntimeError: Non-200 response or a response without choices
            json.JSONDecodeError: The answer holds no JSON object
        """
        if not self.api_key:
            raise ValueError("OpenAI API key not provided")

        session = await self._get_session()
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        async with session.post(
            f"{self.base_url}/chat/completions",
            json=payload,
            headers=headers,
        ) as response:
            if response.status != 200:
                error_text = await response.text()
                raise RuntimeError(f"Chat completion API error: {response.status} - {error_text[:200]}")
            data = await response.json()

        if not data.get("choices"):
            raise RuntimeError("Chat completion API returned no choices")
        return parse_json_object(data["choices"][0]["message"]["content"])

    async def extract(self, item: Item) -> List[Entity]:
        """Extract and store entities for one item; returns the stored canonical entities."""
        async with self._semaphore:
            payload = await self.complete_json(self.strategy.build_messages(item))

        stored: Dict[Entity, None] = {}
        for entity_type, value in self.strategy.parse(payload):
            entity = await self.index.add(item.uid, entity_type, value, self.strategy.confidence)
            if entity is not None:
                stored.setdefault(entity, None)

        entities = list(stored)
        if self.graph is not None and entities:
            await self.graph.project_item(item, entities)
        log.debug(f"Extracted {len(entities)} entities for {item.uid}")
        return entities

    async def run(self, items: Iterable[Item]) -> ExtractionResult:
        start = time.perf_counter()
        result = ExtractionResult()

        async def process(item: Item):
            try:
                entities = await self.extract(item)
            except Exception as e:
                log.warning(f"Extraction failed for {item.uid}: {e}")
                result.failed += 1
                result.errors.append(f"{item.uid}: {e}")
                return
            result.processed += 1
            result.entities_added += len(entities)

        await asyncio.gather(*(process(item) for item in items))

        result.duration_seconds = round(time.perf_counter() - start, 3)
        log.info(result.summary())
        return result


def parse_json_object(completion: str) -> Dict[str, Any]:
    """
    Parse the model answer, tolerating text around the JSON object.

    Raises:
        json.JSONDecodeError: No JSON object found
    """
    try:
        result = json.loads(completion)
    except json.JSONDecodeError:
        start, end = completion.find("{"), completion.rfind("}")
        if start == -1 or end <= start:
            raise
        result = json.loads(completion[start:end + 1])

    if not isinstance(result, dict):
        raise json.JSONDecodeError("Expected a JSON object", completion, 0)
    return result
