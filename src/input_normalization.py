"""
Input Normalization - Forbehandling, domenestaving, fuzzy fallback og slot-uttrekk.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Sequence

from rapidfuzz.distance import Levenshtein

from schema import CanonicalIntent, Config

logger = logging.getLogger(__name__)


@dataclass
class NormalizationResult:
    original: str
    normalized: str
    changed: bool
    corrections: List[str] = field(default_factory=list)


@dataclass
class FuzzyMatchResult:
    intent_id: str
    fuzzy_score: float
    match_detail: str


# ==============================================================================
# TEXT NORMALIZER
# ==============================================================================

class TextNormalizer:
    """
    Normaliserer norsk brukertekst: ASCII-stavemåter → æøå, vanlige skrivefeil → domeneord.
    """

    HTML_TAG = re.compile(r"<[^>]*>")
    WHITESPACE = re.compile(r"\s+")
    REPEATED_PUNCT = re.compile(r"([!?.,;:])\1{2,}")

    NORWEGIAN_CHAR_MAP = {
        "dyreide": "dyreid",
        "aendre": "endre",
        "aerlig": "ærlig",
        "hoere": "høre",
        "foerste": "første",
        "oensker": "ønsker",
        "aarsak": "årsak",
        "aapen": "åpen",
    }

    # Rekkefølgen betyr noe: fraser før enkeltord
    DOMAIN_DICTIONARY = [
        (r"\bqrkode\b", "qr-brikke"),
        (r"\bqr kode\b", "qr-brikke"),
        (r"\bbrikke qr\b", "qr-brikke"),
        (r"\bqr(?!\s*-?\s*(?:brikke|tag|kode))\b", "qr-brikke"),
        (r"\bvipps funker ikke\b", "vipps betaling feilet"),
        (r"\bvipps fungerer ikke\b", "vipps betaling feilet"),
        (r"\binnlogging funker ikke\b", "innlogging problem"),
        (r"\binnlogging fungerer ikke\b", "innlogging problem"),
        (r"\blogge inn funker ikke\b", "innlogging problem"),
        (r"\bfår ikke logga inn\b", "innlogging problem"),
        (r"\bfår ikke logget inn\b", "innlogging problem"),
        (r"\bminside\b", "min side"),
        (r"\bmin-side\b", "min side"),
        (r"\bfamilie deling\b", "familiedeling"),
        (r"\bfamilie-deling\b", "familiedeling"),
        (r"\bsmarttag\b", "smart tag"),
        (r"\bsmart-tag\b", "smart tag"),
        (r"\beier skifte\b", "eierskifte"),
        (r"\beier-skifte\b", "eierskifte"),
        (r"\beierskfte\b", "eierskifte"),
        (r"\bchip nummer\b", "chipnummer"),
        (r"\bchip-nummer\b", "chipnummer"),
        (r"\bchipnr\b", "chipnummer"),
        (r"\bchip nr\b", "chipnummer"),
        (r"\bid merke\b", "id-merke"),
        (r"\bidmerke\b", "id-merke"),
        (r"\bid merking\b", "id-merking"),
        (r"\bidmerking\b", "id-merking"),
        (r"\babonement\b", "abonnement"),
        (r"\babonnemang\b", "abonnement"),
        (r"\babonnoment\b", "abonnement"),
        (r"\bregistere\b", "registrere"),
        (r"\bregisrere\b", "registrere"),
        (r"\bregistring\b", "registrering"),
        (r"\bregistrerig\b", "registrering"),
        (r"\bfunkerer\b", "fungerer"),
        (r"\bfunger\b", "fungerer"),
        (r"\bfunka\b", "fungerer"),
        (r"\bfunker\b", "fungerer"),
        (r"\bkjæle dyr\b", "kjæledyr"),
        (r"\bkjæle-dyr\b", "kjæledyr"),
        (r"\bkjeledyr\b", "kjæledyr"),
        (r"\bkjæedyr\b", "kjæledyr"),
        (r"\bdyre id\b", "dyreid"),
        (r"\bdyre-id\b", "dyreid"),
        (r"\bpasord\b", "passord"),
        (r"\bveternær\b", "veterinær"),
        (r"\bvetrinær\b", "veterinær"),
        (r"\bveterinæren\b", "veterinær"),
        (r"\boverfør\b", "overføre"),
        (r"\boverførig\b", "overføring"),
    ]

    _compiled_dictionary = [(re.compile(p), r) for p, r in DOMAIN_DICTIONARY]
    _compiled_chars = [(re.compile(rf"\b{k}\b"), v) for k, v in NORWEGIAN_CHAR_MAP.items()]

    @classmethod
    def preprocess(cls, raw: str) -> str:
        s = raw.lower()
        s = cls.HTML_TAG.sub(" ", s)
        s = cls.WHITESPACE.sub(" ", s).strip()
        s = cls.REPEATED_PUNCT.sub(r"\1", s)
        for pattern, replacement in cls._compiled_chars:
            s = pattern.sub(replacement, s)
        return s

    @classmethod
    def apply_domain_corrections(cls, text: str) -> str:
        for pattern, replacement in cls._compiled_dictionary:
            text = pattern.sub(replacement, text)
        return text

    @classmethod
    def normalize(cls, raw: str) -> NormalizationResult:
        """
        Full normalisering.

        Args:
            raw: Rå brukermelding

        Returns:
            NormalizationResult med original, normalisert tekst og rettelser
        """
        if not raw:
            return NormalizationResult(original=raw or "", normalized="", changed=False)

        preprocessed = cls.preprocess(raw)
        corrected = cls.apply_domain_corrections(preprocessed)

        corrections = []
        if preprocessed != corrected:
            corrections.append(f'domain_correction: "{preprocessed}" → "{corrected}"')

        changed = raw.lower().strip() != corrected
        if changed:
            logger.debug(f"Normalization: original={raw!r} normalized={corrected!r}")

        return NormalizationResult(
            original=raw,
            normalized=corrected,
            changed=changed,
            corrections=corrections,
        )


def normalize_input(raw: str) -> NormalizationResult:
    return TextNormalizer.normalize(raw)


# ==============================================================================
# FUZZY LABEL FALLBACK
# ==============================================================================

_TOKEN_STRIP = re.compile(r"[^a-zæøå0-9\s-]")


def tokenize(text: str) -> List[str]:
    cleaned = _TOKEN_STRIP.sub("", text.lower())
    return [t for t in cleaned.split() if len(t) > 1]


def jaccard_similarity(a: set, b: set) -> float:
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return 0.0 if union == 0 else intersection / union


def _token_similarity(a: str, b: str, dist: int) -> float:
    return 1 - dist / max(len(a), len(b))


def fuzzy_label_fallback(
    normalized_message: str,
    semantic_score: float,
    intents: Sequence[CanonicalIntent],
) -> Optional[FuzzyMatchResult]:
    """
    Deterministisk strenglikhet mot intent-labels og nøkkelord.

    Brukes bare i den semantiske gråsonen [FUZZY_ZONE_MIN, SEMANTIC_ACCEPT_THRESHOLD).
    """
    if semantic_score < Config.FUZZY_ZONE_MIN or semantic_score >= Config.SEMANTIC_ACCEPT_THRESHOLD:
        return None

    msg_tokens = tokenize(normalized_message)
    msg_token_set = set(msg_tokens)
    best: Optional[FuzzyMatchResult] = None

    for intent in intents:
        max_score = 0.0
        detail = ""

        # === Label tokens ===
        for lt in tokenize(intent.label):
            for mt in msg_tokens:
                dist = Levenshtein.distance(mt, lt)
                if len(lt) <= 5 or len(mt) <= 5:
                    allowed = dist <= 1 and len(lt) >= 3
                else:
                    allowed = dist <= 2
                if allowed:
                    score = _token_similarity(mt, lt, dist)
                    if score > max_score:
                        max_score = score
                        detail = f'levenshtein: "{mt}"≈"{lt}" (dist={dist})'

        # === Keywords ===
        keywords = [k.strip().lower() for k in intent.keywords if k.strip()]
        if keywords:
            jaccard = jaccard_similarity(msg_token_set, set(keywords))
            keyword_score = jaccard * 1.2
            if keyword_score > max_score:
                max_score = keyword_score
                detail = f"jaccard: msgTokens∩keywords (score={jaccard:.3f})"

            for kw in keywords:
                if len(kw) < 3:
                    continue
                for mt in msg_tokens:
                    dist = Levenshtein.distance(mt, kw)
                    if dist <= 2:
                        boosted = _token_similarity(mt, kw, dist) * 1.1
                        if boosted > max_score:
                            max_score = boosted
                            detail = f'keyword-levenshtein: "{mt}"≈"{kw}" (dist={dist})'

        if max_score >= Config.FUZZY_ACCEPT_THRESHOLD and (best is None or max_score > best.fuzzy_score):
            best = FuzzyMatchResult(
                intent_id=intent.intent_id,
                fuzzy_score=round(max_score, 3),
                match_detail=detail,
            )

    if best:
        logger.info(f"Fuzzy fallback: {best.intent_id} score={best.fuzzy_score} ({best.match_detail})")
    return best


# ==============================================================================
# SLOT EXTRACTORS
# ==============================================================================

PHONE_PATTERN = re.compile(r"(?<!\d)(?:\+?47)?(\d{8})(?!\d)")
TAG_PATTERN = re.compile(r"\bTAG-\d+\b", re.IGNORECASE)
CHIP_PATTERN = re.compile(r"(?<!\d)\d{%d,%d}(?!\d)" % (Config.CHIP_MIN_DIGITS, Config.CHIP_MAX_DIGITS))
EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_DIGIT_SEPARATORS = re.compile(r"(?<=\d)[\s.-](?=\d)")


def _join_digit_groups(text: str) -> str:
    """'912 34 567' -> '91234567'"""
    return _DIGIT_SEPARATORS.sub("", text)


def extract_phone(text: str) -> Optional[str]:
    compact = _join_digit_groups(text.replace("+47 ", "+47"))
    match = PHONE_PATTERN.search(compact)
    return match.group(1) if match else None


def extract_tag_id(text: str) -> Optional[str]:
    match = TAG_PATTERN.search(text)
    return match.group(0).upper() if match else None


def extract_chip_number(text: str) -> Optional[str]:
    match = CHIP_PATTERN.search(text)
    if match:
        return match.group(0)
    match = CHIP_PATTERN.search(_join_digit_groups(text))
    return match.group(0) if match else None


def extract_email(text: str) -> Optional[str]:
    match = EMAIL_PATTERN.search(text)
    return match.group(0) if match else None


def has_chip_token(text: str) -> bool:
    return extract_chip_number(text) is not None


SLOT_EXTRACTORS = {
    "phone": extract_phone,
    "tag_id": extract_tag_id,
}


# ==============================================================================
# YES / NO
# ==============================================================================

YES_WORDS = {"ja", "jepp", "japp", "jo", "yes", "ok", "okei", "gjerne", "stemmer", "riktig", "korrekt", "absolutt"}
NO_WORDS = {"nei", "nope", "no", "ikke", "niks", "neida"}
CANCEL_WORDS = {"avbryt", "stopp", "avslutt", "glem det"}

_ANSWER_STRIP = re.compile(r"[^\wæøå\s]")


def _answer_tokens(text: str) -> List[str]:
    return _ANSWER_STRIP.sub(" ", text.lower()).split()


def is_affirmative(text: str) -> bool:
    tokens = _answer_tokens(text)
    if not tokens or len(tokens) > 4:
        return False
    return tokens[0] in YES_WORDS and not any(t in NO_WORDS for t in tokens)


def is_negative(text: str) -> bool:
    tokens = _answer_tokens(text)
    if not tokens or len(tokens) > 4:
        return False
    return tokens[0] in NO_WORDS


def is_cancel(text: str) -> bool:
    return " ".join(_answer_tokens(text)) in CANCEL_WORDS
