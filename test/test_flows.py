"""
Test Flows
==========

ID-søk (chip lookup), innloggingshjelp og de direkte flytene (dødsfall, eierskifte,
feil informasjon), kjørt mot sandkasseregisteret.
"""

import sys
import os
import asyncio

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from schema import (
    AuthContext,
    ChipLookupStep,
    Config,
    DirectFlow,
    LoginHelpStep,
    MatchDebugInfo,
    MatchMethod,
    Owner,
    OwnerContext,
    Pet,
    ReplyKind,
    ResolutionResult,
    SessionState,
)
from flows import (
    ChipLookupFlow,
    FlowContext,
    INTENT_FLOW_TABLE,
    LoginHelpFlow,
    OwnershipTransferFlow,
    PetDeceasedFlow,
    WrongInfoFlow,
    build_flow_registry,
)
from registry_client import RegistrySandbox


def run(coro):
    return asyncio.run(coro)


def hint(intent):
    return ResolutionResult(intent=intent, playbook=None, method=MatchMethod.REGEX, debug=MatchDebugInfo())


def ctx_for(registry, owner_id=None, hint_intent=None):
    if owner_id is None:
        return FlowContext(auth=AuthContext(), hint=hint(hint_intent) if hint_intent else None)
    return FlowContext(
        auth=AuthContext(authenticated=True, owner_id=owner_id),
        owner_context=run(registry.get_context(owner_id)),
        hint=hint(hint_intent) if hint_intent else None,
        conversation_id="conv-test",
    )


# ==============================================================================
# CHIP LOOKUP
# ==============================================================================

def test_chip_flow_prompts_for_chip():
    registry = RegistrySandbox()
    flow = ChipLookupFlow(registry)
    session = SessionState()

    reply = run(flow.start(session, "jeg vil sjekke et chipnummer", ctx_for(registry)))

    assert reply.kind == ReplyKind.PROMPT
    assert "9-15 siffer" in reply.text
    assert session.chip_lookup_flow == ChipLookupStep.AWAITING_CHIP
    assert session.active_flow() == "chip_lookup"


def test_chip_flow_same_owner():
    registry = RegistrySandbox()
    flow = ChipLookupFlow(registry)
    session = SessionState()

    reply = run(flow.handle(session, "578000000001", ctx_for(registry)))
    assert reply.text == ("Jeg fant Bella (Hund, Labrador Retriever) registrert med chip 578000000001. "
                          "Er du eieren av dyret? (ja/nei)")
    assert session.chip_lookup_flow == ChipLookupStep.AWAITING_OWNERSHIP_CONFIRM
    assert session.chip_lookup_result.pet.name == "Bella"

    # uinnlogget: state beholdes
    reply = run(flow.handle(session, "ja", ctx_for(registry)))
    assert reply.kind == ReplyKind.LOGIN_REQUIRED
    assert session.chip_lookup_flow == ChipLookupStep.AWAITING_OWNERSHIP_CONFIRM

    reply = run(flow.handle(session, "ja", ctx_for(registry, "OWN-001")))
    assert reply.kind == ReplyKind.FLOW_END
    assert "Bella er allerede registrert på deg" in reply.text
    assert session.active_flow() is None


def test_chip_flow_sends_sms_to_registered_owner():
    registry = RegistrySandbox()
    flow = ChipLookupFlow(registry)
    session = SessionState()
    ctx = ctx_for(registry, "OWN-001")

    reply = run(flow.start(session, "fant en hund med chip 978456111111111", ctx))
    assert "Agora (Hund, Blandingshund)" in reply.text

    reply = run(flow.handle(session, "ja", ctx))
    assert "registrert på en annen eier" in reply.text
    assert session.chip_lookup_flow == ChipLookupStep.AWAITING_SMS_CONFIRM

    reply = run(flow.handle(session, "ja takk", ctx))
    assert reply.kind == ReplyKind.ACTION_DONE
    assert reply.actions_executed == ["send_ownership_transfer_sms"]
    assert reply.text.startswith("SMS sendt til Gudbrand Vatn (91341434).")
    assert session.active_flow() is None

    assert len(registry.sms_log) == 1
    assert registry.sms_log[0]["to"] == "91341434"
    assert "Demo Bruker" in registry.sms_log[0]["body"]


def test_chip_flow_sms_outside_sandbox_number_fails():
    registry = RegistrySandbox()
    flow = ChipLookupFlow(registry)
    session = SessionState()
    ctx = ctx_for(registry, "OWN-001")

    run(flow.start(session, "578000000003", ctx))
    run(flow.handle(session, "ja", ctx))
    reply = run(flow.handle(session, "ja", ctx))

    assert reply.kind == ReplyKind.ACTION_FAILED
    assert "SMS kan kun sendes til testnummeret" in reply.text
    assert registry.sms_log == []
    assert session.active_flow() is None


def test_chip_flow_unregistered_578():
    registry = RegistrySandbox()
    session = SessionState()
    reply = run(ChipLookupFlow(registry).start(session, "578123456789012", ctx_for(registry)))

    assert "uregistrert 578-brikke" in reply.text
    assert f"{Config.REGISTRATION_FEE_NOK} kr" in reply.text
    assert session.active_flow() is None


def test_chip_flow_unknown_foreign_chip():
    registry = RegistrySandbox()
    reply = run(ChipLookupFlow(registry).start(SessionState(), "123456789", ctx_for(registry)))
    assert "Chipnummeret 123456789 finnes ikke i DyreID" in reply.text


def test_chip_flow_new_chip_restarts_lookup():
    registry = RegistrySandbox()
    flow = ChipLookupFlow(registry)
    session = SessionState()

    run(flow.start(session, "578000000001", ctx_for(registry)))
    reply = run(flow.handle(session, "nei vent, det er 578000000003", ctx_for(registry)))

    assert "Luna" in reply.text
    assert session.chip_lookup_result.chip_number == "578000000003"


def test_chip_flow_break_out_on_unrelated_hint():
    registry = RegistrySandbox()
    flow = ChipLookupFlow(registry)
    session = SessionState()
    run(flow.start(session, "578000000001", ctx_for(registry)))

    reply = run(flow.handle(session, "hva koster eierskifte", ctx_for(registry, hint_intent="OwnershipTransferCost")))

    assert reply is None
    assert session.chip_lookup_flow is None
    assert session.chip_lookup_result is None


def test_chip_flow_keeps_control_without_hint():
    registry = RegistrySandbox()
    flow = ChipLookupFlow(registry)
    session = SessionState()
    run(flow.start(session, "578000000001", ctx_for(registry)))

    reply = run(flow.handle(session, "hmm", ctx_for(registry)))
    assert reply.text == "Er du eieren av dyret? Svar ja eller nei."

    reply = run(flow.handle(session, "nei", ctx_for(registry)))
    assert reply.kind == ReplyKind.FLOW_END
    assert session.active_flow() is None


# ==============================================================================
# LOGIN HELP
# ==============================================================================

def test_login_flow_happy_path():
    registry = RegistrySandbox()
    flow = LoginHelpFlow(registry)
    session = SessionState()

    reply = run(flow.start(session, "jeg får ikke logget inn", ctx_for(registry)))
    assert reply.text == LoginHelpFlow.PROMPT_PHONE
    assert session.login_help_step == LoginHelpStep.AWAITING_PHONE

    reply = run(flow.handle(session, "99999999", ctx_for(registry)))
    assert "ingen profil med mobilnummer 99999999" in reply.text
    assert session.login_help_step == LoginHelpStep.AWAITING_PHONE

    reply = run(flow.handle(session, "91000001", ctx_for(registry)))
    assert "91xxxx01" in reply.text
    assert session.login_help_step == LoginHelpStep.AWAITING_SMS_CONFIRM
    assert session.collected_data["login_phone"] == "91000001"

    reply = run(flow.handle(session, "ja", ctx_for(registry)))
    assert reply.text.startswith("Så bra at du kom inn!")
    assert session.active_flow() is None
    assert "login_phone" not in session.collected_data


def test_login_flow_troubleshooting():
    registry = RegistrySandbox()
    flow = LoginHelpFlow(registry)
    session = SessionState()

    reply = run(flow.start(session, "får ikke logget inn med 91000003", ctx_for(registry)))
    assert session.login_help_step == LoginHelpStep.AWAITING_SMS_CONFIRM
    assert "91xxxx03" in reply.text

    reply = run(flow.handle(session, "nei", ctx_for(registry)))
    assert reply.kind == ReplyKind.FLOW_END
    assert Config.MIN_SIDE_URL in reply.text
    assert reply.text.startswith("Her er noen ting du kan sjekke:")


def test_login_flow_retry_and_break_out():
    registry = RegistrySandbox()
    flow = LoginHelpFlow(registry)
    session = SessionState()
    run(flow.start(session, "hjelp med innlogging", ctx_for(registry)))

    reply = run(flow.handle(session, "vet ikke", ctx_for(registry)))
    assert reply.text.startswith("Jeg klarte ikke å lese det.")

    reply = run(flow.handle(session, "jeg har mistet hunden min", ctx_for(registry, hint_intent="ReportLostPet")))
    assert reply is None
    assert session.login_help_step is None


# ==============================================================================
# PET DECEASED
# ==============================================================================

def test_pet_deceased_requires_login():
    registry = RegistrySandbox()
    reply = run(PetDeceasedFlow(registry).start(SessionState(), "hunden min er død", ctx_for(registry)))

    assert reply.kind == ReplyKind.LOGIN_REQUIRED
    assert reply.text.startswith("Vi kondolerer så mye.")


def test_pet_deceased_with_pet_choice():
    registry = RegistrySandbox()
    flow = PetDeceasedFlow(registry)
    session = SessionState()
    ctx = ctx_for(registry, "OWN-005")

    reply = run(flow.start(session, "katten min er død", ctx))
    assert session.direct_intent_flow == DirectFlow.PET_DECEASED
    assert session.direct_flow_step == "awaiting_pet"
    assert "1. Milo (Katt)" in reply.text

    reply = run(flow.handle(session, "Milo", ctx))
    assert reply.text == "Vi kondolerer så mye. Vil du at jeg registrerer Milo som død? (ja/nei)"
    assert session.direct_flow_step == "awaiting_confirm"

    reply = run(flow.handle(session, "ja", ctx))
    assert reply.kind == ReplyKind.ACTION_DONE
    assert reply.text == "Milo er registrert som død. Vi kondolerer."
    assert reply.actions_executed == ["mark_deceased"]
    assert session.active_flow() is None

    context = run(registry.get_context("OWN-005"))
    assert [p.name for p in context.active_pets] == ["Nala"]


def test_pet_deceased_single_pet_declined():
    registry = RegistrySandbox()
    flow = PetDeceasedFlow(registry)
    session = SessionState()
    ctx = ctx_for(registry, "OWN-003")

    reply = run(flow.start(session, "hunden min er død", ctx))
    assert "registrerer Rex som død" in reply.text

    reply = run(flow.handle(session, "nei", ctx))
    assert reply.text == "Ok, ingenting er endret."
    assert session.active_flow() is None


def test_pet_deceased_without_active_pets():
    registry = RegistrySandbox()
    owner = Owner(owner_id="OWN-X", name="Uten Dyr", phone="91999999")
    ctx = FlowContext(
        auth=AuthContext(authenticated=True, owner_id="OWN-X"),
        owner_context=OwnerContext(owner=owner, pets=[Pet("ANI-X", "Gammel", "Hund", deceased=True)]),
    )
    reply = run(PetDeceasedFlow(registry).start(SessionState(), "hunden er død", ctx))
    assert reply.text == "Du har ingen aktive dyr registrert på deg."


# ==============================================================================
# OWNERSHIP TRANSFER
# ==============================================================================

def test_ownership_transfer_full_flow():
    registry = RegistrySandbox()
    flow = OwnershipTransferFlow(registry)
    session = SessionState()
    ctx = ctx_for(registry, "OWN-001")

    reply = run(flow.start(session, "jeg har solgt hunden", ctx))
    assert session.direct_flow_step == "awaiting_pet"

    reply = run(flow.handle(session, "Bella", ctx))
    assert reply.text == "Eierskifte av Bella. Hva er mobilnummeret til ny eier? (8 siffer)"

    reply = run(flow.handle(session, "nummeret er 922 33 444", ctx))
    assert reply.text.startswith("Bekreft eierskifte av Bella til 92233444.")
    assert session.direct_flow_step == "awaiting_confirm"

    reply = run(flow.handle(session, "ja", ctx))
    assert reply.kind == ReplyKind.ACTION_DONE
    assert reply.actions_executed == ["initiate_transfer"]
    assert "Betalingslink: https://dyreid.no/pay/transfer-OWS-001" in reply.text
    assert session.collected_data == {}
    assert session.active_flow() is None


def test_ownership_transfer_requires_login():
    registry = RegistrySandbox()
    reply = run(OwnershipTransferFlow(registry).start(SessionState(), "eierskifte", ctx_for(registry)))
    assert reply.kind == ReplyKind.LOGIN_REQUIRED


def test_ownership_transfer_related_hint_keeps_flow():
    registry = RegistrySandbox()
    flow = OwnershipTransferFlow(registry)
    session = SessionState()
    run(flow.start(session, "eierskifte", ctx_for(registry, "OWN-003")))
    assert session.direct_flow_step == "awaiting_phone"

    reply = run(flow.handle(session, "hva koster eierskifte",
                            ctx_for(registry, "OWN-003", hint_intent="OwnershipTransferCost")))
    assert reply.kind == ReplyKind.PROMPT
    assert session.direct_flow_step == "awaiting_phone"

    reply = run(flow.handle(session, "hvordan fungerer savnet og funnet",
                            ctx_for(registry, "OWN-003", hint_intent="LostFoundInfo")))
    assert reply is None
    assert session.direct_intent_flow is None


# ==============================================================================
# WRONG INFO
# ==============================================================================

def test_wrong_info_animal_field():
    registry = RegistrySandbox()
    session = SessionState()
    reply = run(WrongInfoFlow(registry).start(session, "feil navn på hunden", ctx_for(registry)))

    assert reply.kind == ReplyKind.FLOW_END
    assert "Min side under Mine dyr" in reply.text
    assert f"Les mer: {Config.MIN_SIDE_URL}" in reply.text
    assert session.active_flow() is None


def test_wrong_info_breed_goes_to_vet():
    registry = RegistrySandbox()
    reply = run(WrongInfoFlow(registry).start(SessionState(), "rasen er feil", ctx_for(registry)))
    assert reply.text.startswith("Feil rase rettes av veterinær")


def test_wrong_info_update_email():
    registry = RegistrySandbox()
    flow = WrongInfoFlow(registry)
    session = SessionState()
    ctx = ctx_for(registry, "OWN-001")

    reply = run(flow.start(session, "feil informasjon", ctx))
    assert reply.text == WrongInfoFlow.PROMPT_FIELD
    assert session.direct_flow_step == "awaiting_field"

    reply = run(flow.handle(session, "e-posten min er feil", ctx))
    assert reply.text == "Hva er riktig e-postadresse?"
    assert session.direct_flow_step == "awaiting_value"

    reply = run(flow.handle(session, "det er ikke riktig", ctx))
    assert reply.text == "Det ser ikke ut som en gyldig e-postadresse. Prøv igjen."

    reply = run(flow.handle(session, "ny.adresse@example.no", ctx))
    assert reply.kind == ReplyKind.ACTION_DONE
    assert reply.text == "Profil oppdatert. Ny e-postadresse: ny.adresse@example.no"
    assert reply.actions_executed == ["update_profile"]
    assert session.active_flow() is None

    context = run(registry.get_context("OWN-001"))
    assert context.owner.email == "ny.adresse@example.no"


def test_wrong_info_contact_field_requires_login():
    registry = RegistrySandbox()
    session = SessionState()
    reply = run(WrongInfoFlow(registry).start(session, "telefonnummeret mitt er feil", ctx_for(registry)))

    assert reply.kind == ReplyKind.LOGIN_REQUIRED
    assert session.active_flow() is None


def test_wrong_info_address():
    registry = RegistrySandbox()
    flow = WrongInfoFlow(registry)
    session = SessionState()
    ctx = ctx_for(registry, "OWN-003")

    run(flow.start(session, "adressen min er feil", ctx))
    reply = run(flow.handle(session, "Storgata 5, 0155 Oslo", ctx))

    assert reply.kind == ReplyKind.ACTION_DONE
    assert reply.text.endswith("Ny adresse: Storgata 5, 0155 Oslo")


# ==============================================================================
# REGISTRY
# ==============================================================================

def test_flow_registry_covers_table():
    flows = build_flow_registry(RegistrySandbox())
    assert set(INTENT_FLOW_TABLE.values()) <= set(flows)
    assert INTENT_FLOW_TABLE["UnregisteredChip578"] == "chip_lookup"
    assert INTENT_FLOW_TABLE["LoginProblem"] == "login_help"
