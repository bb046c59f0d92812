import os
import re
import json
import time
import logging
from typing import Optional, AsyncIterator, List, Tuple

from dotenv import load_dotenv

from schema import (
    AuthContext,
    BotReply,
    ChatbotInteraction,
    Config,
    EscalationContext,
    MatchDebugInfo,
    MatchMethod,
    OwnerContext,
    ReplyKind,
    RESPONSE_TEMPLATES,
    SessionState,
)
from input_normalization import SLOT_EXTRACTORS, NormalizationResult, has_chip_token, is_cancel, normalize_input
from intent_catalog import CANONICAL_INTENTS, build_default_playbook, get_intent
from intent_patterns import detect_category_menu, parse_menu_selection
from intent_index import IntentIndex
from intent_parser import IntentGateLLM, IntentResolutionCascade, suggestion_lines
from response_generator import ParaphraseGenerator
from playbook_router import PlaybookRouter, slot_retry_prompt
from flows import FlowContext, INTENT_FLOW_TABLE, build_flow_registry
from escalation import EscalationFlow, EscalationService, make_offer
from session_store import InMemorySessionStore, KeyedLock, create_session_store
from registry_client import RegistrySandbox
from storage import InMemoryStorage

logger = logging.getLogger(__name__)

_CHUNK_PATTERN = re.compile(r"\s*\S+")


def chunk_text(text: str) -> List[str]:
    """Ord-for-ord chunks som til sammen gir teksten (uten etterfølgende whitespace)."""
    return _CHUNK_PATTERN.findall(text) or [text]


class ChatbotPipeline:
    def __init__(
        self,
        storage: InMemoryStorage,
        registry,
        intent_index: Optional[IntentIndex] = None,
        intent_gate: Optional[IntentGateLLM] = None,
        paraphraser: Optional[ParaphraseGenerator] = None,
        session_store=None,
        escalation_service: Optional[EscalationService] = None,
    ):
        """
        Kobler sammen alle komponentene for én melding.

        Args:
            storage: Samtaler, meldinger, playbook, interaksjonslogg og saker
            registry: Registerklient (RegistrySandbox eller ekte API-klient)
            intent_index: Semantisk indeks, None slår av semantisk trinn
            intent_gate: LLM-klassifisering, None slår av LLM-trinnet
            paraphraser: Omformulering av INFO-svar, None gir ordrett tekst
            session_store: Lager for SessionState (default: prosessminne)
            escalation_service: Supportsaker (default: styrt av ENABLE_CASE_ESCALATION)
        """
        self.storage = storage
        self.registry = registry
        self.intent_index = intent_index

        self.cascade = IntentResolutionCascade(storage, intent_index, intent_gate)
        self.router = PlaybookRouter(registry, paraphraser)
        self.sessions = session_store or InMemorySessionStore()
        self.escalation = escalation_service or EscalationService(storage)

        self.flows = build_flow_registry(registry)
        self.flows["escalation"] = EscalationFlow(self.escalation, registry)

        self._locks = KeyedLock()

    async def warm_up(self) -> int:
        """Bygger embedding-indeksen før første melding."""
        if self.intent_index is None:
            return 0
        return await self.intent_index.refresh_intent_index()

    # ==========================================================================
    # ENTRY POINTS
    # ==========================================================================

    async def stream_chat_response(
        self,
        conversation_id: str,
        message: str,
        auth: Optional[AuthContext] = None,
    ) -> AsyncIterator[str]:
        """
        Behandler én brukermelding og strømmer svaret i chunks.

        Meldinger i samme samtale behandles serielt. Feil gir alltid et tekstsvar.
        """
        reply = await self.process_message(conversation_id, message, auth)
        for chunk in chunk_text(reply.text):
            yield chunk

    async def process_message(
        self,
        conversation_id: str,
        message: str,
        auth: Optional[AuthContext] = None,
    ) -> BotReply:
        auth = auth or AuthContext()
        try:
            async with self._locks.hold(conversation_id):
                return await self._process(conversation_id, message, auth)
        except Exception as e:
            logger.error(f"Pipeline error: {e}", exc_info=True)
            return BotReply(
                text=RESPONSE_TEMPLATES["FALLBACK_ERROR"].format(help_center_url=Config.HELP_CENTER_URL),
                kind=ReplyKind.ERROR,
            )

    async def clear_session(self, conversation_id: str) -> None:
        await self.sessions.delete(conversation_id)

    # ==========================================================================
    # TURN PROCESSING
    # ==========================================================================

    async def _process(self, conversation_id: str, message: str, auth: AuthContext) -> BotReply:
        start_time = time.time()

        await self.storage.get_or_create_conversation(conversation_id, auth.authenticated, auth.owner_id)
        await self.storage.create_message(conversation_id, "user", message)

        session = await self.sessions.get_or_create(conversation_id)
        owner_context = await self._load_owner_context(auth)
        normalization = normalize_input(message)

        reply, debug = await self._handle_turn(conversation_id, message, normalization, session, auth, owner_context)
        reply = self._maybe_offer_escalation(reply, session, message, debug)

        session.transcript.append({"role": "user", "content": message})
        session.transcript.append({"role": "assistant", "content": reply.text})
        session.transcript = session.transcript[-Config.TRANSCRIPT_MAX_MESSAGES:]
        await self.sessions.set(conversation_id, session)

        metadata = debug.to_dict()
        metadata["reply_kind"] = reply.kind.value
        metadata["actions_executed"] = list(reply.actions_executed)
        await self.storage.create_message(conversation_id, "assistant", reply.text, metadata)

        await self._save_log(
            conversation_id, message, reply, debug, auth,
            response_time_ms=int((time.time() - start_time) * 1000),
        )
        return reply

    async def _handle_turn(
        self,
        conversation_id: str,
        message: str,
        normalization: NormalizationResult,
        session: SessionState,
        auth: AuthContext,
        owner_context: Optional[OwnerContext],
    ) -> Tuple[BotReply, MatchDebugInfo]:
        text = normalization.normalized
        debug = MatchDebugInfo(normalized_text=text, corrections=list(normalization.corrections))

        # Step 1: avbryt
        if is_cancel(message):
            logger.info("Cancel word, clearing flows")
            session.clear_flows()
            session.reset_intent()
            return BotReply(text=RESPONSE_TEMPLATES["CANCELLED"], kind=ReplyKind.FLOW_END), debug

        # Step 2: valg fra kategorimeny
        if session.menu_options:
            selected = parse_menu_selection(text, session.menu_options)
            session.menu_options = []
            if selected:
                logger.info(f"Menu selection -> {selected}")
                session.clear_flows()
                session.intent = selected
                session.collected_data = {}
                session.awaiting_input = None
                debug.match_method = MatchMethod.MENU
                debug.final_intent = selected
                reply = await self._dispatch(selected, session, message, auth, owner_context, conversation_id)
                return reply, debug

        # Step 3: kategorimeny (bryter ut av aktiv flyt)
        menu = detect_category_menu(text)
        if menu is not None:
            session.clear_flows()
            session.reset_intent()
            session.menu_options = menu.options()
            debug.match_method = MatchMethod.MENU
            return BotReply(text=menu.render(), kind=ReplyKind.MENU), debug

        # Step 4: svar på dyrevalg
        if session.awaiting_input == "animal_id" and session.intent:
            if self.router.fill_pet_slot(message, session, owner_context):
                debug.match_method = MatchMethod.SESSION
                debug.final_intent = session.intent
                playbook = await self.storage.get_playbook_by_intent(session.intent)
                reply = await self.router.route(session.intent, playbook, session, auth, owner_context)
                return reply, debug

        # Step 5: aktiv flyt
        flow_name = session.active_flow()
        if flow_name is not None:
            hint = await self.cascade.resolve(normalization, session, hint_only=True)
            flow = self.flows.get(flow_name)
            ctx = FlowContext(auth=auth, owner_context=owner_context, hint=hint, conversation_id=conversation_id)
            reply = await flow.handle(session, message, ctx) if flow else None
            if reply is not None:
                debug = hint.debug
                debug.match_method = MatchMethod.FLOW
                debug.final_intent = reply.intent or session.intent
                debug.block_reason = None
                return reply, debug
            logger.info(f"Flow {flow_name} released control, resolving normally")

        # Step 6: chipnummer starter ID-søk, også midt i slot-innsamling når svaret ikke er en gyldig slot
        if session.active_flow() is None and has_chip_token(message) and not self._fills_pending_slot(message, session):
            logger.info("Chip token detected, entering chip lookup")
            if session.awaiting_input:
                logger.info(f"Dropping pending slot {session.awaiting_input} for {session.intent}")
                session.reset_intent()
            session.intent = "ChipLookup"
            debug.match_method = MatchMethod.CHIP_TOKEN
            debug.final_intent = "ChipLookup"
            ctx = FlowContext(auth=auth, owner_context=owner_context, conversation_id=conversation_id)
            reply = await self.flows["chip_lookup"].start(session, message, ctx)
            return reply, debug

        # Step 7: full kaskade
        resolution = await self.cascade.resolve(normalization, session)
        debug = resolution.debug

        if not resolution.resolved:
            session.unresolved_turns += 1
            if session.awaiting_input:
                return BotReply(
                    text=slot_retry_prompt(session.awaiting_input, owner_context),
                    kind=ReplyKind.PROMPT,
                    intent=session.intent,
                ), debug
            return await self._block_reply(text), debug

        session.unresolved_turns = 0
        reply = await self._dispatch(resolution.intent, session, message, auth, owner_context, conversation_id,
                                     playbook=resolution.playbook)
        return reply, debug

    @staticmethod
    def _fills_pending_slot(message: str, session: SessionState) -> bool:
        extractor = SLOT_EXTRACTORS.get(session.awaiting_input) if session.awaiting_input else None
        return extractor is not None and extractor(message) is not None

    async def _dispatch(self, intent, session, message, auth, owner_context, conversation_id, playbook=None) -> BotReply:
        flow_name = INTENT_FLOW_TABLE.get(intent)
        if flow_name is not None:
            ctx = FlowContext(auth=auth, owner_context=owner_context, conversation_id=conversation_id)
            return await self.flows[flow_name].start(session, message, ctx)

        if playbook is None:
            playbook = await self.storage.get_playbook_by_intent(intent)
        return await self.router.route(intent, playbook, session, auth, owner_context)

    async def _block_reply(self, text: str) -> BotReply:
        parts = [RESPONSE_TEMPLATES["BLOCK"].format(help_center_url=Config.HELP_CENTER_URL)]

        if self.intent_index is not None and self.intent_index.is_index_ready():
            try:
                matches = await self.intent_index.find_top_n_semantic_matches(text, n=Config.BLOCK_SUGGESTIONS)
                lines = suggestion_lines(matches)
                if lines:
                    parts.append(RESPONSE_TEMPLATES["BLOCK_SUGGESTIONS"].format(suggestions="\n".join(lines)))
            except Exception as e:
                logger.warning(f"Block suggestions unavailable: {e}")

        return BotReply(text="\n\n".join(parts), kind=ReplyKind.BLOCK)

    async def _load_owner_context(self, auth: AuthContext) -> Optional[OwnerContext]:
        if not auth.authenticated or not auth.owner_id:
            return None
        try:
            return await self.registry.get_context(auth.owner_id)
        except Exception as e:
            logger.error(f"Owner context lookup failed for {auth.owner_id}: {e}")
            return None

    # ==========================================================================
    # ESCALATION OFFER
    # ==========================================================================

    def _maybe_offer_escalation(
        self,
        reply: BotReply,
        session: SessionState,
        message: str,
        debug: MatchDebugInfo,
    ) -> BotReply:
        if session.has_escalated:
            return reply
        if reply.kind in (ReplyKind.LOGIN_REQUIRED, ReplyKind.MENU, ReplyKind.PROMPT, ReplyKind.ERROR):
            return reply
        if session.active_flow() is not None or session.awaiting_input:
            return reply

        trigger = self.escalation.should_trigger_escalation(
            just_delivered_answer=reply.kind == ReplyKind.ANSWER,
            just_completed_action=reply.kind == ReplyKind.ACTION_DONE,
            consecutive_no_progress=session.unresolved_turns,
            user_message=message,
            was_blocked=reply.kind == ReplyKind.BLOCK,
        )
        if trigger is None:
            return reply

        intent = reply.intent or debug.final_intent
        catalog_entry = get_intent(intent)
        context = EscalationContext(
            intent=intent,
            matched_by=debug.match_method.value,
            semantic_score=debug.semantic_score,
            trigger=trigger,
            category=catalog_entry.category if catalog_entry else None,
            subcategory=catalog_entry.subcategory if catalog_entry else None,
        )
        offer = make_offer(session, context)
        return BotReply(
            text=f"{reply.text}\n\n{offer}",
            kind=reply.kind,
            intent=reply.intent,
            actions_executed=reply.actions_executed,
        )

    # ==========================================================================
    # LOGGING
    # ==========================================================================

    async def _save_log(self, conversation_id, message, reply: BotReply, debug: MatchDebugInfo,
                        auth: AuthContext, response_time_ms: int) -> None:
        intent = reply.intent or debug.final_intent
        catalog_entry = get_intent(intent)
        interaction = ChatbotInteraction(
            conversation_id=conversation_id,
            user_question=message,
            bot_response=reply.text,
            response_method=debug.match_method.value,
            matched_intent=intent,
            matched_category=catalog_entry.category if catalog_entry else None,
            actions_executed=list(reply.actions_executed),
            authenticated=auth.authenticated,
            response_time_ms=response_time_ms,
        )
        try:
            await self.storage.log_chatbot_interaction(interaction)
        except Exception as e:
            logger.error(f"Failed to store interaction: {e}")

        log_dict = {
            "conversation_id": conversation_id,
            "timestamp": interaction.timestamp.isoformat(),
            "user_message": message[:100] + "..." if len(message) > 100 else message,
            "reply_kind": reply.kind.value,
            "match_method": debug.match_method.value,
            "intent": intent,
            "semantic_score": debug.semantic_score,
            "block_reason": debug.block_reason,
            "response_time_ms": response_time_ms,
        }
        logger.info(f"Interaction log: {json.dumps(log_dict, ensure_ascii=False)}")


def create_pipeline(
    openai_api_key: Optional[str] = None,
    redis_url: Optional[str] = None,
    use_llm: Optional[bool] = None,
    enable_escalation: Optional[bool] = None,
) -> ChatbotPipeline:
    load_dotenv()

    openai_api_key = openai_api_key or os.getenv("OPENAI_API_KEY")
    redis_url = redis_url or os.getenv("REDIS_URL")
    if use_llm is None:
        use_llm = os.getenv("USE_LLM", "true").lower() == "true"

    llm_client = None
    if use_llm and openai_api_key:
        from openai import AsyncOpenAI

        llm_client = AsyncOpenAI(api_key=openai_api_key)
    elif use_llm:
        logger.warning("OPENAI_API_KEY not set, running without semantic and LLM tiers")

    storage = InMemoryStorage(build_default_playbook())

    return ChatbotPipeline(
        storage=storage,
        registry=RegistrySandbox(),
        intent_index=IntentIndex(llm_client, CANONICAL_INTENTS) if llm_client else None,
        intent_gate=IntentGateLLM(llm_client) if llm_client else None,
        paraphraser=ParaphraseGenerator(llm_client) if llm_client else None,
        session_store=create_session_store(redis_url),
        escalation_service=EscalationService(storage, enabled=enable_escalation),
    )
