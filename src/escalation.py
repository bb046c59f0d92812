"""
Escalation - Supportsaker når boten ikke løste henvendelsen.

Inneholder:
- EscalationService: e-postvalidering, grenser per samtale/e-post, duplikatsjekk,
  saksemne og -beskrivelse med GDPR-scrubbet samtalelogg
- should_trigger_escalation: når et tilbud om sak skal vises
- EscalationFlow: awaiting_resolution_feedback -> awaiting_email -> completed
"""

import os
import re
import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict

from schema import (
    BotReply,
    Config,
    EscalationContext,
    EscalationPayload,
    EscalationResult,
    EscalationStep,
    EscalationTrigger,
    ReplyKind,
    SessionState,
)
from gdpr_scrubber import scrub_transcript
from input_normalization import extract_email, is_affirmative, is_negative
from flows import Flow, FlowContext

logger = logging.getLogger(__name__)


EMAIL_REGEX = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

FRUSTRATION_SIGNALS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"fungerer ikke",
        r"hjelper ikke",
        r"ikke riktig",
        r"forstår ikke",
        r"feil svar",
        r"det stemmer ikke",
        r"prøvd det",
        r"allerede prøvd",
        r"dette hjelper ikke",
        r"kan du ikke bare",
        r"snakke med (?:et )?menneske",
        r"ekte person",
        r"kundeservice",
        r"support",
        r"klage",
    )
]

ERROR_INVALID_EMAIL = "Ugyldig e-postadresse. Vennligst oppgi en gyldig e-post."
ERROR_SESSION_LIMIT = "Du har allerede opprettet en supportsak i denne samtalen."
ERROR_DAILY_LIMIT = "Du har nådd grensen for antall saker per dag. Prøv igjen i morgen."
DUPLICATE_MESSAGE = "Det finnes allerede en nylig sak om dette temaet. Saken er videresendt til kundeservice."


def _split_camel_case(value: str) -> str:
    return re.sub(r"(?<=[a-zæøå])(?=[A-ZÆØÅ])", " ", value)


def detect_frustration(message: Optional[str]) -> bool:
    if not message:
        return False
    return any(p.search(message) for p in FRUSTRATION_SIGNALS)


# ==============================================================================
# SERVICE
# ==============================================================================

class EscalationService:
    """
    Oppretter supportsaker i storage.

    Args:
        storage: InMemoryStorage-kompatibel kollaborator
        enabled: overstyrer ENABLE_CASE_ESCALATION
        post_enabled: overstyrer ENABLE_PURESERVICE_POST
    """

    def __init__(self, storage, enabled: Optional[bool] = None, post_enabled: Optional[bool] = None):
        self.storage = storage
        self._enabled = enabled
        self._post_enabled = post_enabled

    def is_escalation_enabled(self) -> bool:
        if self._enabled is not None:
            return self._enabled
        return os.getenv("ENABLE_CASE_ESCALATION", "false").lower() == "true"

    def is_post_enabled(self) -> bool:
        if self._post_enabled is not None:
            return self._post_enabled
        return os.getenv("ENABLE_PURESERVICE_POST", "false").lower() == "true"

    @staticmethod
    def validate_email(email: Optional[str]) -> bool:
        return bool(email) and EMAIL_REGEX.match(email.strip()) is not None

    def should_trigger_escalation(
        self,
        just_delivered_answer: bool,
        just_completed_action: bool,
        consecutive_no_progress: int,
        user_message: str,
        was_blocked: bool,
    ) -> Optional[EscalationTrigger]:
        if not self.is_escalation_enabled():
            return None
        if was_blocked:
            return EscalationTrigger.BLOCK
        if just_delivered_answer or just_completed_action:
            return EscalationTrigger.POST_ANSWER
        if consecutive_no_progress >= Config.ESCALATION_NO_PROGRESS_TURNS:
            return EscalationTrigger.NO_PROGRESS
        if detect_frustration(user_message):
            return EscalationTrigger.FRUSTRATION
        return None

    # === Case creation ===

    async def create_escalation(self, payload: EscalationPayload) -> EscalationResult:
        email = (payload.email or "").strip().lower()
        if not self.validate_email(email):
            return EscalationResult(success=False, error=ERROR_INVALID_EMAIL)

        try:
            session_count = await self.storage.count_escalations_for_conversation(payload.conversation_id)
            if session_count >= Config.ESCALATION_MAX_PER_SESSION:
                logger.info(f"Escalation rejected: conversation {payload.conversation_id} already has a case")
                return EscalationResult(success=False, error=ERROR_SESSION_LIMIT)

            since = datetime.now() - timedelta(hours=Config.ESCALATION_DEDUPE_HOURS)
            email_count = await self.storage.count_escalations_for_email_since(email, since)
            if email_count >= Config.ESCALATION_MAX_PER_EMAIL_PER_DAY:
                logger.info(f"Escalation rejected: daily limit reached for {email}")
                return EscalationResult(success=False, error=ERROR_DAILY_LIMIT)

            existing = await self.storage.find_recent_escalation(email, payload.intent, since)
            if existing is not None:
                logger.info(f"Escalation duplicate of {existing.escalation_id} for {email}")
                return EscalationResult(success=True, escalation_id=existing.escalation_id, is_duplicate=True)

            transcript = payload.transcript
            if not transcript:
                messages = await self.storage.get_messages(payload.conversation_id)
                transcript = [{"role": m.role, "content": m.content} for m in messages]

            status = "ready_to_post" if self.is_post_enabled() else "pending"
            record = await self.storage.create_escalation_record(
                conversation_id=payload.conversation_id,
                email=email,
                intent=payload.intent,
                subject=self.build_subject(payload.intent),
                description=self.build_description(payload, transcript),
                status=status,
            )
        except Exception as e:
            logger.error(f"Escalation creation failed: {e}")
            return EscalationResult(success=False, error="Kunne ikke opprette sak akkurat nå. Prøv igjen senere.")

        logger.info(
            f"Escalation created {record.escalation_id} for {email} | intent={payload.intent} | status={status}"
        )
        return EscalationResult(success=True, escalation_id=record.escalation_id)

    @staticmethod
    def build_subject(intent: Optional[str]) -> str:
        topic = _split_camel_case(intent) if intent else "Generell henvendelse"
        return f"DyreID Support AI – {intent or 'Ukjent'} – {topic}"

    @staticmethod
    def build_description(payload: EscalationPayload, transcript: List[Dict[str, str]]) -> str:
        score = f"{payload.semantic_score:.3f}" if payload.semantic_score is not None else "N/A"
        category = payload.category or "GeneralInquiry"
        if payload.subcategory:
            category = f"{category} > {payload.subcategory}"
        lines = [
            "--- Automatisk opprettet av DyreID Support AI ---",
            "",
            f"Intent: {payload.intent or 'Ikke identifisert'}",
            f"Match-metode: {payload.matched_by or 'N/A'}",
            f"Semantisk score: {score}",
            f"Kategori: {category}",
            f"Utløser: {payload.trigger}" if payload.trigger else None,
            "",
            "--- Samtalelogg (scrubbet) ---",
            "",
            scrub_transcript(transcript),
        ]
        return "\n".join(line for line in lines if line is not None)


# ==============================================================================
# FLOW
# ==============================================================================

OFFER_FEEDBACK = "Fikk du svar på det du lurte på? (ja/nei)"
OFFER_CASE = "Vil du at jeg oppretter en supportsak, så kundeservice kontakter deg på e-post? (ja/nei)"
PROMPT_EMAIL = "Hvilken e-postadresse kan kundeservice svare deg på?"


def make_offer(session: SessionState, context: EscalationContext) -> str:
    """Setter escalation-state og returnerer tilbudsteksten. Maks én gang per samtale."""
    session.has_escalated = True
    session.enter_escalation(EscalationStep.AWAITING_RESOLUTION_FEEDBACK, context)
    logger.info(f"Escalation offered (trigger={context.trigger.value}, intent={context.intent})")
    if context.trigger == EscalationTrigger.POST_ANSWER:
        return OFFER_FEEDBACK
    return OFFER_CASE


class EscalationFlow(Flow):
    name = "escalation"

    def __init__(self, service: EscalationService, registry=None):
        super().__init__(registry)
        self.service = service

    async def start(self, session, message, ctx) -> BotReply:
        return await self._begin_case(session, ctx)

    async def handle(self, session, message, ctx) -> Optional[BotReply]:
        step = session.escalation_flow
        context = session.escalation_context

        if step == EscalationStep.AWAITING_RESOLUTION_FEEDBACK:
            post_answer = context is not None and context.trigger == EscalationTrigger.POST_ANSWER
            if is_affirmative(message):
                if post_answer:
                    return self._complete(session, "Så bra! Takk for at du brukte DyreID Support.")
                return await self._begin_case(session, ctx)
            if is_negative(message):
                if post_answer:
                    return await self._begin_case(session, ctx)
                return self._complete(session, "Greit. Spør gjerne om noe annet.")
            return self._leave(session, "unrelated message while awaiting feedback")

        if step == EscalationStep.AWAITING_EMAIL:
            email = extract_email(message)
            if email is None and "@" not in message and ctx.hint_intent is not None:
                return self._leave(session, f"hint={ctx.hint_intent}")
            if email is None:
                return self.prompt(ERROR_INVALID_EMAIL)
            return await self._create(session, ctx, email)

        return self._leave(session, f"unknown step {step}")

    async def _begin_case(self, session: SessionState, ctx: FlowContext) -> BotReply:
        owner = ctx.owner_context.owner if ctx.owner_context else None
        if ctx.auth.authenticated and owner is not None and self.service.validate_email(owner.email):
            return await self._create(session, ctx, owner.email)
        session.enter_escalation(EscalationStep.AWAITING_EMAIL)
        return self.prompt(PROMPT_EMAIL)

    async def _create(self, session: SessionState, ctx: FlowContext, email: str) -> BotReply:
        context = session.escalation_context
        payload = EscalationPayload(
            conversation_id=ctx.conversation_id,
            email=email,
            intent=context.intent if context else None,
            matched_by=context.matched_by if context else None,
            semantic_score=context.semantic_score if context else None,
            category=context.category if context else None,
            subcategory=context.subcategory if context else None,
            trigger=context.trigger.value if context else None,
            transcript=list(session.transcript),
        )
        result = await self.service.create_escalation(payload)

        if not result.success:
            if result.error == ERROR_INVALID_EMAIL:
                session.enter_escalation(EscalationStep.AWAITING_EMAIL)
                return self.prompt(ERROR_INVALID_EMAIL)
            return self._complete(session, result.error, kind=ReplyKind.ACTION_FAILED)

        if result.is_duplicate:
            return self._complete(session, DUPLICATE_MESSAGE)
        return self._complete(
            session,
            f"Takk! Jeg har opprettet en supportsak ({result.escalation_id}). "
            f"Kundeservice svarer deg på {email.strip().lower()}.",
            kind=ReplyKind.ACTION_DONE,
            actions=["create_escalation"],
        )

    @staticmethod
    def _complete(session: SessionState, text: str, kind: ReplyKind = ReplyKind.FLOW_END, actions=None) -> BotReply:
        session.escalation_flow = EscalationStep.COMPLETED
        session.escalation_context = None
        return BotReply(text=text, kind=kind, actions_executed=list(actions or []))

    @staticmethod
    def _leave(session: SessionState, reason: str) -> None:
        logger.info(f"Flow escalation: break-out ({reason})")
        session.escalation_flow = EscalationStep.COMPLETED
        session.escalation_context = None
        return None


