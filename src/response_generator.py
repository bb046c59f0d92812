import re
import logging
from dataclasses import dataclass
from typing import Optional, List

from schema import (
    DISALLOWED_TOPIC_PATTERNS,
    Config,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# PARAPHRASE SAFETY VALIDATOR
# ==============================================================================

@dataclass
class ParaphraseValidation:
    valid: bool
    reason: Optional[str] = None


URL_PATTERN = re.compile(r"https?://[^\s)>\]]+")
NUMBER_PATTERN = re.compile(r"\d+(?:[.,]\d+)?")
SENTENCE_SPLIT = re.compile(r"[.!?]+(?=\s|$)")

_DISALLOWED = {name: re.compile(p, re.IGNORECASE) for name, p in DISALLOWED_TOPIC_PATTERNS.items()}


def extract_urls(text: str) -> List[str]:
    return [u.rstrip(".,;:!?") for u in URL_PATTERN.findall(text)]


def extract_numbers(text: str) -> List[str]:
    return NUMBER_PATTERN.findall(text)


def count_sentences(text: str) -> int:
    without_urls = URL_PATTERN.sub("URL", text)
    return len([s for s in SENTENCE_SPLIT.split(without_urls) if s.strip()])


def validate_paraphrase(original: str, candidate: Optional[str]) -> ParaphraseValidation:
    """
    Avviser en omformulering som kan ha lagt til eller fjernet fakta.

    Ren funksjon. Kalleren faller tilbake til originalteksten ved valid=False.
    """
    if not candidate or not candidate.strip():
        return ParaphraseValidation(False, "empty")

    for topic, pattern in _DISALLOWED.items():
        if pattern.search(candidate) and not pattern.search(original):
            return ParaphraseValidation(False, f"disallowed_topic:{topic}")

    if len(candidate) > len(original) * Config.PARAPHRASE_MAX_LENGTH_RATIO:
        return ParaphraseValidation(False, "too_long")

    candidate_numbers = set(extract_numbers(candidate))
    for number in extract_numbers(original):
        if number not in candidate_numbers:
            return ParaphraseValidation(False, f"missing_number:{number}")

    candidate_urls = set(extract_urls(candidate))
    for url in extract_urls(original):
        if url not in candidate_urls:
            return ParaphraseValidation(False, f"missing_url:{url}")

    if count_sentences(candidate) > count_sentences(original) + Config.PARAPHRASE_MAX_EXTRA_SENTENCES:
        return ParaphraseValidation(False, "too_many_sentences")

    return ParaphraseValidation(True)


# ==============================================================================
# PARAPHRASE GENERATOR
# ==============================================================================

class ParaphraseGenerator:
    """Omformulerer kvalitetssikret svartekst for tone. Faller alltid tilbake til originalen."""

    SYSTEM_PROMPT = """Du omformulerer svar for kundeservicen til DyreID.

REGLER:
1. Bruk KUN innholdet i <svar>
2. IKKE legg til nye fakta, tall, priser, lenker eller kontaktinformasjon
3. Behold alle tall og lenker nøyaktig som de står
4. Ikke nevn veterinær, priser eller kundeservice hvis originalen ikke gjør det
5. Skriv kort, vennlig og på norsk bokmål
6. Ikke start med en hilsen"""

    def __init__(self, llm_client):
        self.llm_client = llm_client
        self.model = Config.PARAPHRASE_MODEL
        self.temperature = Config.PARAPHRASE_TEMPERATURE
        self.max_tokens = Config.PARAPHRASE_MAX_TOKENS

    async def paraphrase(self, original: str) -> str:
        if self.llm_client is None or not original:
            return original

        candidate = await self._call_llm(original)
        validation = validate_paraphrase(original, candidate)
        if not validation.valid:
            logger.warning(f"Paraphrase rejected ({validation.reason}), using canonical text")
            return original
        return candidate

    async def _call_llm(self, original: str) -> Optional[str]:
        try:
            response = await self.llm_client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": f"<svar>\n{original}\n</svar>"},
                ],
            )
            return (response.choices[0].message.content or "").strip()
        except Exception as e:
            logger.error(f"Paraphrase LLM call failed: {e}")
            return None
