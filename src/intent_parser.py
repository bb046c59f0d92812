import json
import logging
from typing import List, Optional, Sequence, Tuple

from schema import (
    CanonicalIntent,
    Config,
    MatchDebugInfo,
    MatchMethod,
    ResolutionResult,
    SessionState,
)
from input_normalization import (
    NormalizationResult,
    SLOT_EXTRACTORS,
    fuzzy_label_fallback,
)
from intent_catalog import CANONICAL_INTENTS, get_intent
from intent_patterns import match_pattern

logger = logging.getLogger(__name__)


class IntentGateLLM:
    """
    Siste trinn i kaskaden: LLM-klassifisering mot en lukket liste.

    Key principles:
    1. LLM velger bare blant kanoniske intents, den skriver ALDRI svar
    2. Temperature = 0 for deterministisk klassifisering
    3. Output er validert JSON; intents utenfor listen forkastes
    """

    SYSTEM_PROMPT = """Du er en klassifiserer for kundeservicen til DyreID (norsk register for ID-merkede kjæledyr).

DIN ENESTE OPPGAVE er å velge hvilken intent brukerens melding tilhører, og returnere JSON. Du skal IKKE svare på spørsmålet.

Returner JSON med nøyaktig disse feltene:

{{
    "intent": "<string|null> - én intent-ID fra listen under, eller null hvis ingen passer",
    "confidence": "<float 0-1> - hvor sikker du er"
}}

=== REGLER ===
1. Bruk KUN intent-ID-er fra listen. Finn aldri på nye.
2. Er meldingen utenfor DyreID sitt område, returner intent null.
3. Er du usikker mellom flere intents, velg den mest spesifikke og senk confidence.

=== TILLATTE INTENTS ===
{intent_list}"""

    def __init__(self, llm_client, intents: Sequence[CanonicalIntent] = CANONICAL_INTENTS):
        self.llm_client = llm_client
        self.model = Config.INTENT_GATE_MODEL
        self.temperature = Config.INTENT_GATE_TEMPERATURE
        self.max_tokens = Config.INTENT_GATE_MAX_TOKENS
        self.allowed = {i.intent_id for i in intents}
        self.system_prompt = self.SYSTEM_PROMPT.format(
            intent_list="\n".join(f"- {i.intent_id}: {i.description}" for i in intents)
        )

    async def classify(self, text: str) -> Optional[Tuple[str, float]]:
        """
        Returns:
            (intent_id, confidence) eller None hvis ingen gyldig klassifisering
        """
        try:
            response = await self.llm_client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": f"MELDING:\n{text}\n\nReturner JSON."},
                ],
                response_format={"type": "json_object"},
            )
            result = json.loads(response.choices[0].message.content)

        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse intent gate response as JSON: {e}")
            return None

        except Exception as e:
            logger.error(f"Intent gate call failed: {e}")
            return None

        intent = result.get("intent")
        try:
            confidence = float(result.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0

        if not intent:
            return None
        if intent not in self.allowed:
            logger.warning(f"Intent gate returned intent outside allowlist: {intent!r}")
            return None
        return intent, confidence


# ==============================================================================
# INTENT RESOLUTION CASCADE
# ==============================================================================

class IntentResolutionCascade:
    """
    Fritekst -> kanonisk intent. Strengt ordnet, første treff vinner:

        session -> regex -> semantic (+ fuzzy i gråsonen) -> keyword -> LLM -> block

    hint_only=True brukes mens en flyt er aktiv: bare regex og sikre semantiske
    treff, ingen LLM-kall og ingen endring av session.
    """

    def __init__(
        self,
        storage,
        intent_index,
        intent_gate: Optional[IntentGateLLM] = None,
        intents: Sequence[CanonicalIntent] = CANONICAL_INTENTS,
    ):
        self.storage = storage
        self.intent_index = intent_index
        self.intent_gate = intent_gate
        self.intents = list(intents)

    async def resolve(
        self,
        normalization: NormalizationResult,
        session: SessionState,
        hint_only: bool = False,
    ) -> ResolutionResult:
        text = normalization.normalized
        debug = MatchDebugInfo(
            normalized_text=text,
            corrections=list(normalization.corrections),
        )

        # === Step 1: session continuation ===
        if not hint_only and session.awaiting_input and session.intent:
            extractor = SLOT_EXTRACTORS.get(session.awaiting_input)
            value = extractor(normalization.original) if extractor else None
            if value:
                logger.info(f"Cascade: session slot {session.awaiting_input}={value} for {session.intent}")
                session.collected_data[session.awaiting_input] = value
                session.awaiting_input = None
                playbook = await self.storage.get_playbook_by_intent(session.intent)
                return self._accept(session.intent, playbook, MatchMethod.SESSION, debug, session, hint_only,
                                    keep_slots=True)

        # === Step 2: regex ===
        intent = match_pattern(text)
        if intent:
            logger.info(f"Cascade: regex matched {intent}")
            playbook = await self.storage.get_playbook_by_intent(intent)
            return self._accept(intent, playbook, MatchMethod.REGEX, debug, session, hint_only)

        # === Step 3: semantic ===
        score = 0.0
        semantic_match = None
        try:
            if self.intent_index is not None and await self.intent_index.ensure_ready():
                search = await self.intent_index.find_semantic_match(text, Config.SEMANTIC_ACCEPT_THRESHOLD)
                score = search.best_score
                semantic_match = search.match
                debug.semantic_score = round(score, 4)
                debug.semantic_best_intent = search.best_intent_id
        except Exception as e:
            logger.error(f"Cascade: semantic search failed, skipping tier: {e}")

        if semantic_match is not None:
            logger.info(f"Cascade: semantic matched {semantic_match.intent_id} (score={score:.3f})")
            playbook = await self.storage.get_playbook_by_intent(semantic_match.intent_id)
            return self._accept(semantic_match.intent_id, playbook, MatchMethod.SEMANTIC, debug, session, hint_only)

        if hint_only:
            return self._unresolved(debug, "hint_only")

        fuzzy = None
        if Config.FUZZY_ZONE_MIN <= score < Config.SEMANTIC_ACCEPT_THRESHOLD:
            fuzzy = fuzzy_label_fallback(text, score, self.intents)
            if fuzzy is not None:
                debug.fuzzy_score = fuzzy.fuzzy_score
                debug.fuzzy_detail = fuzzy.match_detail

        # === Step 4: keyword (går foran fuzzy) ===
        keyword_entry = None
        try:
            keyword_entry = await self.storage.search_playbook_by_keywords(text)
        except Exception as e:
            logger.error(f"Cascade: keyword search failed: {e}")

        if keyword_entry is not None:
            logger.info(f"Cascade: keyword matched {keyword_entry.intent}")
            return self._accept(keyword_entry.intent, keyword_entry, MatchMethod.KEYWORD, debug, session, hint_only)

        # === Step 5: fuzzy ===
        if fuzzy is not None:
            playbook = await self.storage.get_playbook_by_intent(fuzzy.intent_id)
            return self._accept(fuzzy.intent_id, playbook, MatchMethod.FUZZY, debug, session, hint_only)

        if Config.SEMANTIC_BLOCK_THRESHOLD <= score < Config.SEMANTIC_ACCEPT_THRESHOLD:
            logger.info(f"Cascade: blocked in semantic gray zone (score={score:.3f}), LLM not called")
            return self._unresolved(debug, "semantic_gray_zone")

        # === Step 6: LLM gate ===
        if self.intent_gate is not None:
            classification = await self.intent_gate.classify(text)
            if classification is not None:
                gate_intent, confidence = classification
                debug.gpt_confidence = confidence
                if confidence >= Config.LLM_CONFIDENCE_THRESHOLD:
                    logger.info(f"Cascade: LLM gate matched {gate_intent} (confidence={confidence:.2f})")
                    playbook = await self.storage.get_playbook_by_intent(gate_intent)
                    return self._accept(gate_intent, playbook, MatchMethod.LLM, debug, session, hint_only)
                logger.info(f"Cascade: LLM gate below threshold ({gate_intent}, {confidence:.2f})")

        # === Step 7: unresolved ===
        return self._unresolved(debug, "no_match")

    def _accept(self, intent, playbook, method, debug, session, hint_only, keep_slots=False) -> ResolutionResult:
        debug.match_method = method
        debug.final_intent = intent
        if not hint_only:
            if not keep_slots:
                session.collected_data = {}
                session.awaiting_input = None
            session.intent = intent
            session.playbook_ref = playbook.intent if playbook else None
        return ResolutionResult(intent=intent, playbook=playbook, method=method, debug=debug)

    @staticmethod
    def _unresolved(debug: MatchDebugInfo, reason: str) -> ResolutionResult:
        debug.match_method = MatchMethod.BLOCKED
        debug.block_reason = reason
        logger.info(
            f"Cascade: unresolved ({reason}) best={debug.semantic_best_intent} score={debug.semantic_score}"
        )
        return ResolutionResult(intent=None, playbook=None, method=MatchMethod.BLOCKED, debug=debug, blocked=True)


def suggestion_lines(matches: List) -> List[str]:
    """Top-N semantiske treff -> 'mente du'-linjer for block-svaret."""
    lines = []
    for m in matches[:Config.BLOCK_SUGGESTIONS]:
        intent = get_intent(m.intent_id)
        lines.append(f"- {intent.subcategory if intent else m.intent_id}")
    return lines
