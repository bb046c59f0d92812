"""
Storage - In-memory lagring av samtaler, meldinger, playbook, interaksjonslogg og saker.

Samme async-grensesnitt som en databasebackend ville hatt.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable

from schema import ChatbotInteraction, Config, PlaybookEntry


@dataclass
class StoredMessage:
    conversation_id: str
    role: str  # "user" eller "assistant"
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class Conversation:
    conversation_id: str
    authenticated: bool = False
    owner_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class EscalationRecord:
    escalation_id: str
    conversation_id: str
    email: str
    intent: Optional[str]
    subject: str
    description: str
    status: str
    created_at: datetime = field(default_factory=datetime.now)


class InMemoryStorage:
    """Storage-kollaborator for kjernen. Prosesslevetid."""

    def __init__(self, playbook: Optional[Iterable[PlaybookEntry]] = None):
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, List[StoredMessage]] = {}
        self._playbook: Dict[str, PlaybookEntry] = {}
        self._interactions: List[ChatbotInteraction] = []
        self._escalations: List[EscalationRecord] = []

        for entry in playbook or []:
            self._playbook[entry.intent.lower()] = entry

    # === Conversations & messages ===

    async def get_or_create_conversation(
        self,
        conversation_id: str,
        authenticated: bool = False,
        owner_id: Optional[str] = None,
    ) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            conversation = Conversation(conversation_id, authenticated, owner_id)
            self._conversations[conversation_id] = conversation
        else:
            conversation.authenticated = authenticated
            conversation.owner_id = owner_id
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self._conversations.get(conversation_id)

    async def create_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StoredMessage:
        message = StoredMessage(conversation_id, role, content, metadata or {})
        self._messages.setdefault(conversation_id, []).append(message)
        return message

    async def get_messages(self, conversation_id: str) -> List[StoredMessage]:
        return list(self._messages.get(conversation_id, []))

    # === Playbook ===

    async def upsert_playbook_entry(self, entry: PlaybookEntry):
        self._playbook[entry.intent.lower()] = entry

    async def get_playbook_by_intent(self, intent: str) -> Optional[PlaybookEntry]:
        if not intent:
            return None
        entry = self._playbook.get(intent.lower())
        if entry is None or not entry.is_active:
            return None
        return entry

    async def search_playbook_by_keywords(self, text: str) -> Optional[PlaybookEntry]:
        """
        Beste aktive oppføring etter antall nøkkelord som finnes i teksten.

        Returns:
            PlaybookEntry med flest treff, eller None hvis ingen når KEYWORD_MIN_MATCHES
        """
        lowered = text.lower()
        best: Optional[PlaybookEntry] = None
        best_count = 0
        for entry in self._playbook.values():
            if not entry.is_active:
                continue
            count = sum(1 for kw in entry.keyword_list() if kw in lowered)
            if count > best_count:
                best, best_count = entry, count

        if best is not None and best_count >= Config.KEYWORD_MIN_MATCHES:
            return best
        return None

    # === Interaction log ===

    async def log_chatbot_interaction(self, interaction: ChatbotInteraction):
        self._interactions.append(interaction)

    async def get_chatbot_interactions(self, conversation_id: Optional[str] = None) -> List[ChatbotInteraction]:
        if conversation_id is None:
            return list(self._interactions)
        return [i for i in self._interactions if i.conversation_id == conversation_id]

    # === Escalations ===

    async def create_escalation_record(
        self,
        conversation_id: str,
        email: str,
        intent: Optional[str],
        subject: str,
        description: str,
        status: str,
    ) -> EscalationRecord:
        record = EscalationRecord(
            escalation_id=f"ESC-{uuid.uuid4().hex[:8].upper()}",
            conversation_id=conversation_id,
            email=email.lower(),
            intent=intent,
            subject=subject,
            description=description,
            status=status,
        )
        self._escalations.append(record)
        return record

    async def count_escalations_for_conversation(self, conversation_id: str) -> int:
        return sum(1 for r in self._escalations if r.conversation_id == conversation_id)

    async def count_escalations_for_email_since(self, email: str, since: datetime) -> int:
        email = email.lower()
        return sum(1 for r in self._escalations if r.email == email and r.created_at >= since)

    async def find_recent_escalation(self, email: str, intent: Optional[str], since: datetime) -> Optional[EscalationRecord]:
        email = email.lower()
        for r in reversed(self._escalations):
            # ukjent intent: enhver sak fra samme e-post teller som duplikat
            if r.email == email and (intent is None or r.intent == intent) and r.created_at >= since:
                return r
        return None

    async def get_escalations(self) -> List[EscalationRecord]:
        return list(self._escalations)
