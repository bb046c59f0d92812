"""
Flows - Navngitte dialoger over flere turer.

Hver flyt implementerer samme grensesnitt:

    start(session, message, ctx)  -> BotReply          (inngang fra intent/chip-token)
    handle(session, message, ctx) -> BotReply | None   (None = flyten brøt ut og har ryddet state)

Mens en flyt er aktiv beholder den kontrollen selv om kaskaden gir en annen intent,
så lenge meldingen er et forventet svar eller intent-hintet er relatert.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, FrozenSet

from schema import (
    ActionResult,
    AuthContext,
    BotReply,
    ChipLookupResult,
    ChipLookupStep,
    Config,
    DirectFlow,
    LoginHelpStep,
    OwnerContext,
    ReplyKind,
    ResolutionResult,
    RESPONSE_TEMPLATES,
    SessionState,
)
from input_normalization import (
    extract_chip_number,
    extract_email,
    extract_phone,
    has_chip_token,
    is_affirmative,
    is_negative,
)
from playbook_router import format_pet_list, login_required_reply, select_pet

logger = logging.getLogger(__name__)


@dataclass
class FlowContext:
    auth: AuthContext
    owner_context: Optional[OwnerContext] = None
    hint: Optional[ResolutionResult] = None
    conversation_id: str = ""

    @property
    def hint_intent(self) -> Optional[str]:
        return self.hint.intent if self.hint is not None else None


class Flow:
    name: str = ""
    related_intents: FrozenSet[str] = frozenset()
    breaks_on_chip_token: bool = True

    def __init__(self, registry):
        self.registry = registry

    async def start(self, session: SessionState, message: str, ctx: FlowContext) -> BotReply:
        raise NotImplementedError

    async def handle(self, session: SessionState, message: str, ctx: FlowContext) -> Optional[BotReply]:
        raise NotImplementedError

    def should_break_out(self, message: str, ctx: FlowContext) -> bool:
        """Kalles bare når meldingen ikke var et forventet svar."""
        if self.breaks_on_chip_token and has_chip_token(message):
            return True
        hint = ctx.hint_intent
        return hint is not None and hint not in self.related_intents

    def break_out(self, session: SessionState, reason: str) -> None:
        logger.info(f"Flow {self.name}: break-out ({reason})")
        session.clear_flows()
        return None

    @staticmethod
    def end(session: SessionState, text: str, kind: ReplyKind = ReplyKind.FLOW_END,
            intent: Optional[str] = None, actions=None) -> BotReply:
        session.clear_flows()
        return BotReply(text=text, kind=kind, intent=intent, actions_executed=list(actions or []))

    @staticmethod
    def prompt(text: str, intent: Optional[str] = None) -> BotReply:
        return BotReply(text=text, kind=ReplyKind.PROMPT, intent=intent)

    async def _perform(self, owner_id: str, action: str, params: Dict) -> ActionResult:
        try:
            return await self.registry.perform_action(owner_id, action, params)
        except Exception as e:
            logger.error(f"Flow {self.name}: action {action} raised: {e}")
            return ActionResult(success=False, message="Registeret svarer ikke akkurat nå")

    def _failed(self, session: SessionState, result: ActionResult, intent: Optional[str] = None) -> BotReply:
        text = RESPONSE_TEMPLATES["ACTION_FAILED"].format(
            message=result.message, help_center_url=Config.HELP_CENTER_URL
        )
        return self.end(session, text, kind=ReplyKind.ACTION_FAILED, intent=intent)


# ==============================================================================
# CHIP LOOKUP
# ==============================================================================

class ChipLookupFlow(Flow):
    """awaiting_chip -> awaiting_ownership_confirm -> awaiting_sms_confirm"""

    name = "chip_lookup"
    related_intents = frozenset({"ChipLookup", "WrongOwner", "PetNotInSystem", "UnregisteredChip578",
                                 "NewRegistration", "InactiveRegistration"})
    breaks_on_chip_token = False

    PROMPT_CHIP = "Oppgi chipnummeret til dyret (9-15 siffer), så sjekker jeg registeret."

    async def start(self, session, message, ctx) -> BotReply:
        chip = extract_chip_number(message)
        if chip:
            return await self._lookup(session, chip)
        session.enter_chip_lookup(ChipLookupStep.AWAITING_CHIP)
        logger.info("Flow chip_lookup: awaiting_chip")
        return self.prompt(self.PROMPT_CHIP, intent="ChipLookup")

    async def handle(self, session, message, ctx) -> Optional[BotReply]:
        chip = extract_chip_number(message)
        if chip:
            # nytt chipnummer starter oppslaget på nytt uansett steg
            return await self._lookup(session, chip)

        step = session.chip_lookup_flow
        if step == ChipLookupStep.AWAITING_CHIP:
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt(f"Jeg fant ikke et gyldig chipnummer i meldingen. {self.PROMPT_CHIP}")

        if step == ChipLookupStep.AWAITING_OWNERSHIP_CONFIRM:
            if is_affirmative(message):
                return self._confirm_ownership(session, ctx)
            if is_negative(message):
                return self.end(session, "Ok. Har du funnet dyret, kan du kontakte nærmeste veterinær "
                                         "eller politi, som kan lese av chipen.")
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt("Er du eieren av dyret? Svar ja eller nei.")

        if step == ChipLookupStep.AWAITING_SMS_CONFIRM:
            if is_affirmative(message):
                return await self._send_sms(session, ctx)
            if is_negative(message):
                return self.end(session, "Ok, jeg sender ingen SMS. Si fra hvis du trenger hjelp med noe annet.")
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt("Skal jeg sende SMS til registrert eier? Svar ja eller nei.")

        return self.break_out(session, f"unknown step {step}")

    async def _lookup(self, session: SessionState, chip: str) -> BotReply:
        try:
            result = await self.registry.lookup_by_chip_number(chip)
        except Exception as e:
            logger.error(f"Flow chip_lookup: lookup failed: {e}")
            return self.end(session, RESPONSE_TEMPLATES["FALLBACK_ERROR"].format(
                help_center_url=Config.HELP_CENTER_URL), kind=ReplyKind.ERROR)

        if not result.found:
            logger.info(f"Flow chip_lookup: miss for {chip}")
            if chip.startswith(Config.UNREGISTERED_CHIP_PREFIX):
                text = (
                    f"Chipnummeret {chip} er ikke registrert i DyreID. Dette kan være en uregistrert 578-brikke: "
                    f"norske brikker som ikke ble forhåndsbetalt ved ID-merking, er ikke registrert før "
                    f"registreringen er betalt. Registreringen koster {Config.REGISTRATION_FEE_NOK} kr. "
                    f"Ta kontakt med veterinæren som ID-merket dyret, eller registrer dyret via {Config.MIN_SIDE_URL}"
                )
            else:
                text = (
                    f"Chipnummeret {chip} finnes ikke i DyreID. Er dyret ID-merket i utlandet, må det "
                    f"registreres i Norge av en veterinær. Sjekk også at nummeret er riktig."
                )
            return self.end(session, text, intent="ChipLookup")

        session.enter_chip_lookup(ChipLookupStep.AWAITING_OWNERSHIP_CONFIRM)
        session.chip_lookup_result = result
        pet = result.pet
        description = pet.species if not pet.breed else f"{pet.species}, {pet.breed}"
        logger.info(f"Flow chip_lookup: hit for {chip} -> awaiting_ownership_confirm")
        return self.prompt(
            f"Jeg fant {pet.name} ({description}) registrert med chip {result.chip_number}. "
            f"Er du eieren av dyret? (ja/nei)",
            intent="ChipLookup",
        )

    def _confirm_ownership(self, session: SessionState, ctx: FlowContext) -> BotReply:
        if not ctx.auth.authenticated:
            # state beholdes, brukeren kan svare ja igjen etter innlogging
            return BotReply(
                text="For å gå videre må jeg bekrefte hvem du er.\n\n"
                     + RESPONSE_TEMPLATES["LOGIN_REQUIRED"].format(min_side_url=Config.MIN_SIDE_URL),
                kind=ReplyKind.LOGIN_REQUIRED,
                intent="ChipLookup",
            )

        result: ChipLookupResult = session.chip_lookup_result
        if result is None or result.owner is None:
            logger.warning("Flow chip_lookup: missing lookup result, asking for chip again")
            session.enter_chip_lookup(ChipLookupStep.AWAITING_CHIP)
            return self.prompt(self.PROMPT_CHIP, intent="ChipLookup")

        if self._is_same_owner(result, ctx):
            return self.end(session, f"{result.pet.name} er allerede registrert på deg. Du finner dyret på Min side.",
                            intent="ChipLookup")

        session.chip_lookup_flow = ChipLookupStep.AWAITING_SMS_CONFIRM
        logger.info("Flow chip_lookup: awaiting_sms_confirm")
        return self.prompt(
            f"{result.pet.name} er registrert på en annen eier. Jeg kan sende en SMS til registrert eier "
            f"og be dem kontakte deg om eierskifte. Skal jeg sende SMS? (ja/nei)",
            intent="ChipLookup",
        )

    @staticmethod
    def _is_same_owner(result: ChipLookupResult, ctx: FlowContext) -> bool:
        if result.owner.owner_id and result.owner.owner_id == ctx.auth.owner_id:
            return True
        own = ctx.owner_context.owner if ctx.owner_context else None
        return own is not None and bool(result.owner.phone) and own.phone == result.owner.phone

    async def _send_sms(self, session: SessionState, ctx: FlowContext) -> BotReply:
        result: ChipLookupResult = session.chip_lookup_result
        customer = ctx.owner_context.owner if ctx.owner_context else None
        if result is None or result.owner is None or customer is None:
            return self.end(session, RESPONSE_TEMPLATES["FALLBACK_ERROR"].format(
                help_center_url=Config.HELP_CENTER_URL), kind=ReplyKind.ERROR)

        try:
            sms = await self.registry.send_ownership_transfer_sms(
                result.owner.phone,
                result.owner.name,
                customer.name,
                customer.phone,
                result.pet.name,
            )
        except Exception as e:
            logger.error(f"Flow chip_lookup: SMS failed: {e}")
            sms = ActionResult(success=False, message="SMS kunne ikke sendes akkurat nå")

        if not sms.success:
            return self._failed(session, sms, intent="ChipLookup")
        return self.end(
            session,
            f"{sms.message}. Registrert eier blir bedt om å kontakte deg direkte om eierskifte.",
            kind=ReplyKind.ACTION_DONE,
            intent="ChipLookup",
            actions=["send_ownership_transfer_sms"],
        )


# ==============================================================================
# LOGIN HELP
# ==============================================================================

class LoginHelpFlow(Flow):
    """awaiting_phone -> awaiting_sms_confirm"""

    name = "login_help"
    related_intents = frozenset({"LoginProblem", "LoginIssue", "AppLoginIssue", "ProfileVerification",
                                 "PhoneError", "EmailError"})

    PROMPT_PHONE = "Jeg hjelper deg å logge inn. Hvilket mobilnummer er registrert på deg? (8 siffer)"

    TROUBLESHOOTING = """Her er noen ting du kan sjekke:
1. Bruk mobilnummeret som er registrert på dyret, uten landkode.
2. Sjekk at telefonen kan motta SMS og at du har dekning.
3. Engangskoden er gyldig i noen minutter. Be om en ny kode hvis den er utløpt.
4. Prøv en annen nettleser, eller logg inn i DyreID-appen.
5. Er nummeret ditt endret, kan du logge inn med BankID på Min side: {min_side_url}"""

    async def start(self, session, message, ctx) -> BotReply:
        phone = extract_phone(message)
        session.enter_login_help(LoginHelpStep.AWAITING_PHONE)
        if phone:
            return await self._send_code(session, phone)
        logger.info("Flow login_help: awaiting_phone")
        return self.prompt(self.PROMPT_PHONE, intent="LoginProblem")

    async def handle(self, session, message, ctx) -> Optional[BotReply]:
        step = session.login_help_step

        if step == LoginHelpStep.AWAITING_PHONE:
            phone = extract_phone(message)
            if phone:
                return await self._send_code(session, phone)
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt(RESPONSE_TEMPLATES["SLOT_RETRY"].format(prompt=RESPONSE_TEMPLATES["SLOT_PROMPT_PHONE"]))

        if step == LoginHelpStep.AWAITING_SMS_CONFIRM:
            if is_affirmative(message):
                session.collected_data.pop("login_phone", None)
                return self.end(session, "Så bra at du kom inn! Du finner dyrene dine under Mine dyr på Min side.",
                                intent="LoginProblem")
            if is_negative(message):
                session.collected_data.pop("login_phone", None)
                return self.end(session, self.TROUBLESHOOTING.format(min_side_url=Config.MIN_SIDE_URL),
                                intent="LoginProblem")
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt("Fikk du logget inn? Svar ja eller nei.")

        return self.break_out(session, f"unknown step {step}")

    async def _send_code(self, session: SessionState, phone: str) -> BotReply:
        try:
            owner = await self.registry.lookup_owner_by_phone(phone)
        except Exception as e:
            logger.error(f"Flow login_help: owner lookup failed: {e}")
            owner = None

        if owner is None:
            return self.prompt(
                f"Jeg finner ingen profil med mobilnummer {phone}. Sjekk nummeret og prøv igjen, "
                f"eller oppgi et annet nummer.",
                intent="LoginProblem",
            )

        session.collected_data["login_phone"] = phone
        session.login_help_step = LoginHelpStep.AWAITING_SMS_CONFIRM
        logger.info("Flow login_help: simulated OTP sent -> awaiting_sms_confirm")
        return self.prompt(
            f"Vi har sendt en engangskode på SMS til {phone[:2]}xxxx{phone[-2:]}. "
            f"Skriv inn koden på innloggingssiden. Fikk du logget inn? (ja/nei)",
            intent="LoginProblem",
        )


# ==============================================================================
# DIRECT INTENT FLOWS
# ==============================================================================

class _PetSelectingFlow(Flow):
    """Felles dyrevalg for flyter som trenger ett av brukerens aktive dyr."""

    direct_flow: DirectFlow = None
    intent: str = ""

    def _pets(self, ctx: FlowContext):
        return ctx.owner_context.active_pets if ctx.owner_context else []

    def _pet_name(self, session: SessionState, ctx: FlowContext) -> str:
        animal_id = session.collected_data.get("animal_id")
        for pet in self._pets(ctx):
            if pet.animal_id == animal_id:
                return pet.name
        return "dyret"

    def _choose_pet(self, session: SessionState, ctx: FlowContext, next_step: str, next_prompt) -> BotReply:
        pets = self._pets(ctx)
        if not pets:
            return self.end(session, "Du har ingen aktive dyr registrert på deg.", intent=self.intent)
        if len(pets) == 1:
            session.enter_direct_flow(self.direct_flow, next_step)
            session.collected_data["animal_id"] = pets[0].animal_id
            return self.prompt(next_prompt(pets[0].name), intent=self.intent)
        session.enter_direct_flow(self.direct_flow, "awaiting_pet")
        return self.prompt(
            RESPONSE_TEMPLATES["SLOT_PROMPT_PET"].format(pet_list=format_pet_list(pets)),
            intent=self.intent,
        )

    def _on_pet_answer(self, session, message, ctx, next_step: str, next_prompt) -> Optional[BotReply]:
        pet = select_pet(message, self._pets(ctx))
        if pet is not None:
            session.collected_data["animal_id"] = pet.animal_id
            session.direct_flow_step = next_step
            return self.prompt(next_prompt(pet.name), intent=self.intent)
        if self.should_break_out(message, ctx):
            return self.break_out(session, f"hint={ctx.hint_intent}")
        return self.prompt(
            RESPONSE_TEMPLATES["SLOT_PROMPT_PET"].format(pet_list=format_pet_list(self._pets(ctx))),
            intent=self.intent,
        )


class PetDeceasedFlow(_PetSelectingFlow):
    name = DirectFlow.PET_DECEASED.value
    direct_flow = DirectFlow.PET_DECEASED
    intent = "PetDeceased"
    related_intents = frozenset({"PetDeceased"})

    @staticmethod
    def _confirm_prompt(pet_name: str) -> str:
        return f"Vi kondolerer så mye. Vil du at jeg registrerer {pet_name} som død? (ja/nei)"

    async def start(self, session, message, ctx) -> BotReply:
        if not ctx.auth.authenticated:
            reply = login_required_reply(self.intent)
            reply.text = ("Vi kondolerer så mye. Du kan registrere at dyret er dødt på Min side under Mine dyr. "
                          "Jeg kan også gjøre det for deg når du er innlogget.\n\n" + reply.text)
            return reply
        return self._choose_pet(session, ctx, "awaiting_confirm", self._confirm_prompt)

    async def handle(self, session, message, ctx) -> Optional[BotReply]:
        step = session.direct_flow_step
        if step == "awaiting_pet":
            return self._on_pet_answer(session, message, ctx, "awaiting_confirm", self._confirm_prompt)

        if step == "awaiting_confirm":
            if is_affirmative(message):
                result = await self._perform(ctx.auth.owner_id, "mark_deceased",
                                             {"animal_id": session.collected_data.get("animal_id")})
                session.collected_data.pop("animal_id", None)
                if not result.success:
                    return self._failed(session, result, intent=self.intent)
                return self.end(session, f"{result.message}. Vi kondolerer.", kind=ReplyKind.ACTION_DONE,
                                intent=self.intent, actions=["mark_deceased"])
            if is_negative(message):
                session.collected_data.pop("animal_id", None)
                return self.end(session, "Ok, ingenting er endret.", intent=self.intent)
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt(self._confirm_prompt(self._pet_name(session, ctx)), intent=self.intent)

        return self.break_out(session, f"unknown step {step}")


class OwnershipTransferFlow(_PetSelectingFlow):
    name = DirectFlow.OWNERSHIP_TRANSFER.value
    direct_flow = DirectFlow.OWNERSHIP_TRANSFER
    intent = "OwnershipTransferWeb"
    related_intents = frozenset({"OwnershipTransferWeb", "OwnershipTransferApp", "OwnershipTransferCost"})

    @staticmethod
    def _phone_prompt(pet_name: str) -> str:
        return f"Eierskifte av {pet_name}. Hva er mobilnummeret til ny eier? (8 siffer)"

    async def start(self, session, message, ctx) -> BotReply:
        if not ctx.auth.authenticated:
            return login_required_reply(self.intent)
        return self._choose_pet(session, ctx, "awaiting_phone", self._phone_prompt)

    async def handle(self, session, message, ctx) -> Optional[BotReply]:
        step = session.direct_flow_step
        if step == "awaiting_pet":
            return self._on_pet_answer(session, message, ctx, "awaiting_phone", self._phone_prompt)

        if step == "awaiting_phone":
            phone = extract_phone(message)
            if phone:
                session.collected_data["phone"] = phone
                session.direct_flow_step = "awaiting_confirm"
                return self.prompt(
                    f"Bekreft eierskifte av {self._pet_name(session, ctx)} til {phone}. "
                    f"Ny eier får en betalingslink på SMS. Skal jeg starte eierskiftet? (ja/nei)",
                    intent=self.intent,
                )
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt(RESPONSE_TEMPLATES["SLOT_RETRY"].format(prompt=RESPONSE_TEMPLATES["SLOT_PROMPT_PHONE"]),
                               intent=self.intent)

        if step == "awaiting_confirm":
            if is_affirmative(message):
                params = {
                    "animal_id": session.collected_data.pop("animal_id", None),
                    "phone": session.collected_data.pop("phone", None),
                }
                result = await self._perform(ctx.auth.owner_id, "initiate_transfer", params)
                if not result.success:
                    return self._failed(session, result, intent=self.intent)
                text = result.message
                if result.data.get("payment_link"):
                    text += f"\n\nBetalingslink: {result.data['payment_link']}"
                return self.end(session, text, kind=ReplyKind.ACTION_DONE, intent=self.intent,
                                actions=["initiate_transfer"])
            if is_negative(message):
                session.collected_data.pop("animal_id", None)
                session.collected_data.pop("phone", None)
                return self.end(session, "Ok, eierskiftet er ikke startet.", intent=self.intent)
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt("Skal jeg starte eierskiftet? Svar ja eller nei.", intent=self.intent)

        return self.break_out(session, f"unknown step {step}")


class WrongInfoFlow(Flow):
    name = DirectFlow.WRONG_INFO.value
    intent = "WrongInfo"
    related_intents = frozenset({"WrongInfo", "CheckContactData", "PhoneError", "EmailError", "AddContactInfo"})

    PROMPT_FIELD = ("Hvilken opplysning er feil? Dyrets navn, rase, kjønn, fødselsdato eller chip, "
                    "eller din telefon, e-post eller adresse?")

    # rekkefølge: kontaktfelt før dyrefelt ("telefonnummer" skal ikke bli "chipnummer")
    CONTACT_FIELDS = [
        ("phone", ("telefon", "mobil", "tlf")),
        ("email", ("e-post", "epost", "mail")),
        ("address", ("adresse",)),
    ]
    ANIMAL_FIELDS = [
        ("navn", ("navn", "navnet")),
        ("rase", ("rase", "rasen")),
        ("kjønn", ("kjønn", "kjønnet")),
        ("fødselsdato", ("fødselsdato", "født", "alder")),
        ("chip", ("chip", "chipnummer", "chipnummeret")),
    ]
    CONTACT_LABELS = {"phone": "telefonnummer", "email": "e-postadresse", "address": "adresse"}

    def _detect_field(self, message: str):
        lowered = message.lower()
        for field_name, words in self.CONTACT_FIELDS:
            if any(w in lowered for w in words):
                return "contact", field_name
        for field_name, words in self.ANIMAL_FIELDS:
            if any(w in lowered for w in words):
                return "animal", field_name
        return None, None

    async def start(self, session, message, ctx) -> BotReply:
        kind, field_name = self._detect_field(message)
        if kind is not None:
            return self._on_field(session, kind, field_name, ctx)
        session.enter_direct_flow(DirectFlow.WRONG_INFO, "awaiting_field")
        return self.prompt(self.PROMPT_FIELD, intent=self.intent)

    async def handle(self, session, message, ctx) -> Optional[BotReply]:
        step = session.direct_flow_step

        if step == "awaiting_field":
            kind, field_name = self._detect_field(message)
            if kind is not None:
                return self._on_field(session, kind, field_name, ctx)
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            return self.prompt(self.PROMPT_FIELD, intent=self.intent)

        if step == "awaiting_value":
            field_name = session.collected_data.get("wrong_info_field")
            value = self._parse_value(field_name, message)
            if value is not None:
                session.collected_data.pop("wrong_info_field", None)
                result = await self._perform(ctx.auth.owner_id, "update_profile", {field_name: value})
                if not result.success:
                    return self._failed(session, result, intent=self.intent)
                label = self.CONTACT_LABELS.get(field_name, field_name)
                return self.end(session, f"{result.message}. Ny {label}: {value}", kind=ReplyKind.ACTION_DONE,
                                intent=self.intent, actions=["update_profile"])
            if self.should_break_out(message, ctx):
                return self.break_out(session, f"hint={ctx.hint_intent}")
            label = self.CONTACT_LABELS.get(field_name, "verdi")
            return self.prompt(f"Det ser ikke ut som en gyldig {label}. Prøv igjen.", intent=self.intent)

        return self.break_out(session, f"unknown step {step}")

    def _on_field(self, session, kind, field_name, ctx) -> BotReply:
        if kind == "animal":
            if field_name == "navn":
                text = "Dyrets navn kan du endre selv på Min side under Mine dyr."
            elif field_name == "chip":
                text = ("Chipnummeret kan bare rettes av en veterinær som leser av chipen. "
                        "Ta kontakt med veterinæren din.")
            else:
                text = (f"Feil {field_name} rettes av veterinær, eller via Min side under Mine dyr. "
                        f"Ta med dokumentasjon hvis du har det.")
            return self.end(session, f"{text}\n\n{RESPONSE_TEMPLATES['HELP_LINK'].format(url=Config.MIN_SIDE_URL)}",
                            intent=self.intent)

        if not ctx.auth.authenticated:
            session.clear_flows()
            return login_required_reply(self.intent)

        session.enter_direct_flow(DirectFlow.WRONG_INFO, "awaiting_value")
        session.collected_data["wrong_info_field"] = field_name
        return self.prompt(f"Hva er riktig {self.CONTACT_LABELS[field_name]}?", intent=self.intent)

    @staticmethod
    def _parse_value(field_name: Optional[str], message: str) -> Optional[str]:
        if field_name == "phone":
            return extract_phone(message)
        if field_name == "email":
            return extract_email(message)
        if field_name == "address":
            value = message.strip()
            if len(value) >= 5 and any(ch.isdigit() for ch in value):
                return value
        return None


# ==============================================================================
# REGISTRY
# ==============================================================================

# intent -> flytnavn
INTENT_FLOW_TABLE: Dict[str, str] = {
    "ChipLookup": "chip_lookup",
    "WrongOwner": "chip_lookup",
    "PetNotInSystem": "chip_lookup",
    "UnregisteredChip578": "chip_lookup",
    "LoginProblem": "login_help",
    "PetDeceased": DirectFlow.PET_DECEASED.value,
    "WrongInfo": DirectFlow.WRONG_INFO.value,
    "OwnershipTransferWeb": DirectFlow.OWNERSHIP_TRANSFER.value,
}


def build_flow_registry(registry) -> Dict[str, Flow]:
    flows = [
        ChipLookupFlow(registry),
        LoginHelpFlow(registry),
        PetDeceasedFlow(registry),
        WrongInfoFlow(registry),
        OwnershipTransferFlow(registry),
    ]
    return {f.name: f for f in flows}
