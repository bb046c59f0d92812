"""
Fake LLM-klienter for testene.

FakeEmbeddings gir hver intent en egen akse (one-hot). En spørring får en vektor
med valgt cosinuslikhet mot én intent, slik at semantiske soner kan styres eksakt.
"""

import math
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence, Tuple


class FakeEmbeddings:
    def __init__(self, intent_ids: Sequence[str], query_scores: Optional[Dict[str, Tuple[str, float]]] = None,
                 fail: bool = False):
        self.intent_ids = list(intent_ids)
        self.dim = len(self.intent_ids) + 1
        self.query_scores = query_scores or {}
        self.fail = fail
        self.calls: List[dict] = []

    def _vector(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        if text.startswith("Intent: "):
            intent_id = text.split(" | ")[0][len("Intent: "):]
            vec[self.intent_ids.index(intent_id)] = 1.0
            return vec

        target = self.query_scores.get(text)
        if target is None:
            vec[-1] = 1.0
            return vec
        intent_id, score = target
        vec[self.intent_ids.index(intent_id)] = score
        vec[-1] = math.sqrt(max(0.0, 1.0 - score * score))
        return vec

    async def create(self, model, input, dimensions=None):
        self.calls.append({"model": model, "input": input})
        if self.fail:
            raise RuntimeError("embedding service unavailable")
        texts = input if isinstance(input, list) else [input]
        return SimpleNamespace(data=[SimpleNamespace(embedding=self._vector(t)) for t in texts])


class FakeChatCompletions:
    """Returnerer forhåndsdefinerte svar i rekkefølge. Et Exception-objekt kastes."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        content = self.responses.pop(0) if self.responses else '{"intent": null, "confidence": 0.0}'
        if isinstance(content, Exception):
            raise content
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeLLMClient:
    def __init__(self, intent_ids: Sequence[str] = (), query_scores=None, chat_responses=None,
                 embeddings_fail: bool = False):
        self.embeddings = FakeEmbeddings(intent_ids, query_scores, fail=embeddings_fail)
        self.chat = SimpleNamespace(completions=FakeChatCompletions(chat_responses))

    @property
    def chat_calls(self) -> List[dict]:
        return self.chat.completions.calls
