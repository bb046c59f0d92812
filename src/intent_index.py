"""
Intent Index - Semantisk nærmeste-nabo-søk over intent-embeddings.

Embeddings for katalogen beregnes ved refresh (én batch-forespørsel) og holdes i minnet.
Refresh er single-flight: samtidige kall venter på samme pågående refresh.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Optional, List, Sequence

from schema import CanonicalIntent, Config

logger = logging.getLogger(__name__)


@dataclass
class IndexedIntent:
    intent_id: str
    category: str
    subcategory: Optional[str]
    embedding: List[float]


@dataclass
class SemanticMatch:
    intent_id: str
    category: str
    subcategory: Optional[str]
    similarity: float


@dataclass
class SemanticSearchResult:
    match: Optional[SemanticMatch]
    best_score: float
    best_intent_id: Optional[str]


def build_intent_embedding_text(intent: CanonicalIntent) -> str:
    parts = [f"Intent: {intent.intent_id}", f"Kategori: {intent.category}"]
    if intent.subcategory:
        parts.append(f"Underkategori: {intent.subcategory}")
    if intent.description:
        parts.append(f"Beskrivelse: {intent.description}")
    if intent.keywords:
        parts.append(f"Nøkkelord: {', '.join(intent.keywords)}")
    if intent.info_text:
        parts.append(f"Info: {intent.info_text[:Config.EMBEDDING_INFO_MAX_CHARS]}")
    return " | ".join(parts)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    denom = norm_a * norm_b
    return 0.0 if denom == 0 else dot / denom


class IntentIndex:
    """
    Semantic Matcher.

    Args:
        llm_client: AsyncOpenAI-klient (embeddings.create)
        intents: Kanoniske intents som skal indekseres
    """

    def __init__(self, llm_client, intents: Sequence[CanonicalIntent]):
        self.llm_client = llm_client
        self.intents = list(intents)
        self.model = Config.EMBEDDING_MODEL
        self.dimensions = Config.EMBEDDING_DIMENSION

        self._index: List[IndexedIntent] = []
        self._ready = False
        self._refresh_task: Optional[asyncio.Task] = None

    # === Status ===

    def is_index_ready(self) -> bool:
        return self._ready

    def get_index_size(self) -> int:
        return len(self._index)

    def get_indexed_intent_ids(self) -> List[str]:
        return [i.intent_id for i in self._index]

    # === Embeddings ===

    async def generate_embedding(self, text: str) -> List[float]:
        response = await self.llm_client.embeddings.create(
            model=self.model,
            input=text,
            dimensions=self.dimensions,
        )
        return response.data[0].embedding

    async def _generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        response = await self.llm_client.embeddings.create(
            model=self.model,
            input=texts,
            dimensions=self.dimensions,
        )
        return [item.embedding for item in response.data]

    # === Refresh ===

    async def refresh_intent_index(self) -> int:
        """Single-flight: returnerer antall indekserte intents."""
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._do_refresh())
            self._refresh_task = task
        else:
            logger.info("IntentIndex: refresh already in flight, joining")
        return await task

    async def _do_refresh(self) -> int:
        texts = [build_intent_embedding_text(i) for i in self.intents]
        try:
            embeddings = await self._generate_embeddings(texts)
        except Exception as e:
            logger.error(f"IntentIndex: embedding refresh failed: {e}")
            return len(self._index)

        index = []
        missing = []
        for intent, embedding in zip(self.intents, embeddings):
            if embedding:
                index.append(IndexedIntent(
                    intent_id=intent.intent_id,
                    category=intent.category,
                    subcategory=intent.subcategory,
                    embedding=list(embedding),
                ))
            else:
                missing.append(intent.intent_id)

        self._index = index
        self._ready = len(index) > 0

        logger.info(
            f"IntentIndex: intents={len(self.intents)} | loaded={len(index)} | "
            f"missing={len(missing)} | ready={self._ready}"
        )
        if missing:
            logger.error(f"IntentIndex: intents without embedding: {', '.join(missing)}")
        return len(index)

    async def ensure_ready(self) -> bool:
        if not self._ready:
            await self.refresh_intent_index()
        return self._ready

    # === Search ===

    def _score_all(self, embedding: List[float]) -> List[SemanticMatch]:
        return [
            SemanticMatch(
                intent_id=i.intent_id,
                category=i.category,
                subcategory=i.subcategory,
                similarity=cosine_similarity(embedding, i.embedding),
            )
            for i in self._index
        ]

    async def find_semantic_match(
        self,
        text: str,
        threshold: float = Config.SEMANTIC_ACCEPT_THRESHOLD,
    ) -> SemanticSearchResult:
        if not self._index:
            return SemanticSearchResult(match=None, best_score=0.0, best_intent_id=None)

        embedding = await self.generate_embedding(text)
        scored = self._score_all(embedding)
        best = max(scored, key=lambda m: m.similarity)

        if best.similarity >= threshold:
            return SemanticSearchResult(match=best, best_score=best.similarity, best_intent_id=best.intent_id)
        return SemanticSearchResult(
            match=None,
            best_score=best.similarity if best.similarity > 0 else 0.0,
            best_intent_id=best.intent_id,
        )

    async def find_top_n_semantic_matches(self, text: str, n: int = 3) -> List[SemanticMatch]:
        if not self._index:
            return []
        embedding = await self.generate_embedding(text)
        scored = self._score_all(embedding)
        scored.sort(key=lambda m: m.similarity, reverse=True)
        return scored[:n]
