"""
Playbook Router - Gjør en løst intent om til et svar eller en registerhandling.

API_CALL krever innlogging og alle påkrevde slots før handlingen kjøres.
FORM_FILL / NAVIGATION returneres ordrett. INFO_ONLY går via omformulering + validator.
"""

import re
import logging
from typing import Optional, List

from schema import (
    ActionResult,
    ActionType,
    AuthContext,
    BotReply,
    Config,
    OwnerContext,
    Pet,
    PlaybookEntry,
    ReplyKind,
    RESPONSE_TEMPLATES,
    SessionState,
)

logger = logging.getLogger(__name__)


def format_pet_list(pets: List[Pet]) -> str:
    return "\n".join(f"{n}. {p.name} ({p.species})" for n, p in enumerate(pets, start=1))


_SELECT_STRIP = re.compile(r"[^\wæøå\s]")


def select_pet(text: str, pets: List[Pet]) -> Optional[Pet]:
    """'2', 'nr 2' eller dyrets navn -> Pet"""
    cleaned = _SELECT_STRIP.sub(" ", text.lower())
    tokens = cleaned.split()
    digits = [t for t in tokens if t.isdigit()]
    if len(digits) == 1 and len(tokens) <= 3:
        index = int(digits[0])
        if 1 <= index <= len(pets):
            return pets[index - 1]
    for pet in pets:
        if pet.name.lower() in tokens:
            return pet
    return None


def help_link(url: Optional[str]) -> str:
    return RESPONSE_TEMPLATES["HELP_LINK"].format(url=url or Config.HELP_CENTER_URL)


def login_required_reply(intent: Optional[str]) -> BotReply:
    return BotReply(
        text=RESPONSE_TEMPLATES["LOGIN_REQUIRED"].format(min_side_url=Config.MIN_SIDE_URL),
        kind=ReplyKind.LOGIN_REQUIRED,
        intent=intent,
    )


class PlaybookRouter:
    """
    Args:
        registry: RegistrySandbox-kompatibel klient (perform_action)
        paraphraser: ParaphraseGenerator, eller None for ordrett INFO-svar
    """

    def __init__(self, registry, paraphraser=None):
        self.registry = registry
        self.paraphraser = paraphraser

    async def route(
        self,
        intent: str,
        playbook: Optional[PlaybookEntry],
        session: SessionState,
        auth: AuthContext,
        owner_context: Optional[OwnerContext] = None,
    ) -> BotReply:
        if playbook is None:
            logger.warning(f"Router: no active playbook entry for {intent}")
            return BotReply(
                text=RESPONSE_TEMPLATES["BLOCK"].format(help_center_url=Config.HELP_CENTER_URL),
                kind=ReplyKind.BLOCK,
                intent=intent,
            )

        if playbook.action_type == ActionType.API_CALL:
            return await self._route_action(intent, playbook, session, auth, owner_context)

        if playbook.action_type in (ActionType.FORM_FILL, ActionType.NAVIGATION):
            text = f"{playbook.answer_text}\n\n{help_link(playbook.help_url)}"
            return BotReply(text=text, kind=ReplyKind.ANSWER, intent=intent)

        # INFO_ONLY
        text = playbook.answer_text
        if self.paraphraser is not None:
            text = await self.paraphraser.paraphrase(text)
        if playbook.help_url:
            text = f"{text}\n\n{help_link(playbook.help_url)}"
        return BotReply(text=text, kind=ReplyKind.ANSWER, intent=intent)

    # === API_CALL ===

    async def _route_action(self, intent, playbook, session, auth, owner_context) -> BotReply:
        if not auth.authenticated or not auth.owner_id:
            logger.info(f"Router: {intent} requires login")
            return login_required_reply(intent)

        if owner_context is None:
            return self._action_failed(intent, session, ActionResult(False, "Eier ikke funnet"))

        prompt = self._next_slot_prompt(playbook, session, owner_context)
        if prompt is not None:
            return prompt

        params = dict(playbook.action_params)
        params.update(session.collected_data)

        try:
            result = await self.registry.perform_action(auth.owner_id, playbook.action, params)
        except Exception as e:
            logger.error(f"Router: action {playbook.action} raised: {e}")
            result = ActionResult(success=False, message="Registeret svarer ikke akkurat nå")

        if not result.success:
            return self._action_failed(intent, session, result)

        parts = [result.message]
        payment_link = result.data.get("payment_link") if result.data else None
        if payment_link:
            parts.append(f"Betalingslink: {payment_link}")
        if playbook.payment_required and playbook.payment_amount:
            parts.append(RESPONSE_TEMPLATES["PAYMENT_INFO"].format(amount=playbook.payment_amount))

        session.reset_intent()
        logger.info(f"Router: action {playbook.action} done for {auth.owner_id}")
        return BotReply(
            text="\n\n".join(parts),
            kind=ReplyKind.ACTION_DONE,
            intent=intent,
            actions_executed=[playbook.action],
        )

    def _next_slot_prompt(self, playbook, session, owner_context: OwnerContext) -> Optional[BotReply]:
        for slot in playbook.required_slots:
            if session.collected_data.get(slot):
                continue

            if slot == "animal_id":
                pets = owner_context.active_pets
                if len(pets) == 1:
                    session.collected_data["animal_id"] = pets[0].animal_id
                    logger.info(f"Router: auto-selected pet {pets[0].name}")
                    continue
                if not pets:
                    return self._action_failed(
                        playbook.intent, session, ActionResult(False, "Du har ingen aktive dyr registrert")
                    )
                session.awaiting_input = "animal_id"
                text = RESPONSE_TEMPLATES["SLOT_PROMPT_PET"].format(pet_list=format_pet_list(pets))
                return BotReply(text=text, kind=ReplyKind.PROMPT, intent=playbook.intent)

            if slot == "phone":
                session.awaiting_input = "phone"
                return BotReply(text=RESPONSE_TEMPLATES["SLOT_PROMPT_PHONE"], kind=ReplyKind.PROMPT,
                                intent=playbook.intent)

            if slot == "tag_id":
                session.awaiting_input = "tag_id"
                tag_ids = [t.tag_id for t in owner_context.tags]
                hint = f" Dine tagger: {', '.join(tag_ids)}." if tag_ids else ""
                return BotReply(text=RESPONSE_TEMPLATES["SLOT_PROMPT_TAG"].format(tag_hint=hint),
                                kind=ReplyKind.PROMPT, intent=playbook.intent)

            logger.warning(f"Router: unknown slot {slot} for {playbook.intent}")
        return None

    def fill_pet_slot(self, text: str, session: SessionState, owner_context: Optional[OwnerContext]) -> bool:
        """Svar på dyrevalg: fyller animal_id og returnerer True ved treff."""
        if session.awaiting_input != "animal_id" or owner_context is None:
            return False
        pet = select_pet(text, owner_context.active_pets)
        if pet is None:
            return False
        session.collected_data["animal_id"] = pet.animal_id
        session.awaiting_input = None
        return True

    @staticmethod
    def _action_failed(intent, session: SessionState, result: ActionResult) -> BotReply:
        session.collected_data = {}
        session.awaiting_input = None
        text = RESPONSE_TEMPLATES["ACTION_FAILED"].format(
            message=result.message,
            help_center_url=Config.HELP_CENTER_URL,
        )
        return BotReply(text=text, kind=ReplyKind.ACTION_FAILED, intent=intent)


def slot_retry_prompt(slot: str, owner_context: Optional[OwnerContext] = None) -> str:
    """Gjentar spørsmålet for sloten som ventes på."""
    if slot == "phone":
        prompt = RESPONSE_TEMPLATES["SLOT_PROMPT_PHONE"]
    elif slot == "tag_id":
        prompt = RESPONSE_TEMPLATES["SLOT_PROMPT_TAG"].format(tag_hint="")
    elif slot == "animal_id" and owner_context is not None:
        prompt = RESPONSE_TEMPLATES["SLOT_PROMPT_PET"].format(pet_list=format_pet_list(owner_context.active_pets))
    else:
        prompt = "Kan du prøve igjen?"
    return RESPONSE_TEMPLATES["SLOT_RETRY"].format(prompt=prompt)
