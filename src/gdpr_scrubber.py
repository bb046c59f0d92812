"""
GDPR Scrubber - Fjerner personopplysninger fra tekst før den sendes til kundeservice.

Rekkefølgen betyr noe: spesifikke mønstre (e-post, chip, telefon) kjøres før de brede
tallmønstrene, ellers ville et chipnummer blitt merket som telefon.
"""

import re
from typing import List, Dict, Optional, Tuple

SCRUB_RULES: List[Tuple[str, "re.Pattern", str]] = [
    ("email", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "<EMAIL>"),
    ("chip", re.compile(r"\b5780\d{11}\b"), "<CHIP_ID>"),
    ("foreign_chip", re.compile(r"\b\d{3}0\d{11}\b"), "<CHIP_ID>"),
    ("phone", re.compile(r"\b(\+?47\s?)?[2-9]\d{7}\b"), "<PHONE>"),
    ("ssn", re.compile(r"\b\d{6}\s?\d{5}\b"), "<SSN>"),
    ("ip", re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b"), "<IP>"),
    ("account", re.compile(r"\b\d{4}[\s.]?\d{2}[\s.]?\d{5}\b"), "<ACCOUNT>"),
    ("kid", re.compile(r"\bKID[\s:]*\d{5,25}\b", re.IGNORECASE), "<PAYMENT_REF>"),
    ("payment_ref", re.compile(r"\b(?:ref|referanse|betalingsref)[\s.:]*[\w-]{6,}\b", re.IGNORECASE), "<PAYMENT_REF>"),
    ("address", re.compile(r"\b[A-ZÆØÅ][a-zæøå]+(?:veien|gata|gate|vegen|vei|gt|pl|plass)\s*\d+[a-zA-Z]?\b",
                           re.IGNORECASE), "<ADDRESS>"),
    ("postal", re.compile(r"\b\d{4}\s+[A-ZÆØÅ][a-zæøå]+\b"), "<POSTAL>"),
    ("broad_chip", re.compile(r"\b\d{15}\b"), "<CHIP_ID>"),
    ("broad_phone", re.compile(r"\b\d{8,15}\b"), "<PHONE>"),
]

ROLE_LABELS = {"user": "Bruker", "assistant": "Bot"}


def scrub_text(text: Optional[str]) -> str:
    if not text:
        return ""
    scrubbed = text
    for _, pattern, replacement in SCRUB_RULES:
        scrubbed = pattern.sub(replacement, scrubbed)
    return scrubbed


def scrub_transcript(messages: List[Dict[str, str]]) -> str:
    """
    [{"role": "user", "content": ...}, ...] -> "[Bruker]: ...\\n\\n[Bot]: ..."
    """
    blocks = []
    for message in messages:
        label = ROLE_LABELS.get(message.get("role"), "Bot")
        blocks.append(f"[{label}]: {scrub_text(message.get('content'))}")
    return "\n\n".join(blocks)
