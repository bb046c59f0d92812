"""
Test Playbook Router
====================

INFO / FORM / NAVIGATION-svar, innloggingskrav, slot-innsamling og registerhandlinger
mot sandkasseregisteret.
"""

import sys
import os
import asyncio

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from schema import AuthContext, Config, ReplyKind, SessionState
from intent_catalog import build_default_playbook
from playbook_router import PlaybookRouter, select_pet, slot_retry_prompt
from registry_client import RegistrySandbox


PLAYBOOK = {e.intent: e for e in build_default_playbook()}


class CountingParaphraser:
    def __init__(self, text="Omformulert svar."):
        self.text = text
        self.calls = 0

    async def paraphrase(self, original):
        self.calls += 1
        return self.text


class BrokenRegistry(RegistrySandbox):
    async def perform_action(self, owner_id, action, params):
        raise ConnectionError("registry down")


def login(owner_id):
    return AuthContext(authenticated=True, owner_id=owner_id)


def route(router, intent, session, auth, owner_id=None):
    owner_context = asyncio.run(router.registry.get_context(owner_id)) if owner_id else None
    return asyncio.run(router.route(intent, PLAYBOOK.get(intent), session, auth, owner_context)), owner_context


# ==============================================================================
# ANSWERS
# ==============================================================================

def test_info_only_answer_with_help_link():
    router = PlaybookRouter(RegistrySandbox())
    reply, _ = route(router, "LostFoundInfo", SessionState(), AuthContext())

    entry = PLAYBOOK["LostFoundInfo"]
    assert reply.kind == ReplyKind.ANSWER
    assert reply.text == f"{entry.answer_text}\n\nLes mer: {entry.help_url}"


def test_info_only_goes_through_paraphraser():
    paraphraser = CountingParaphraser()
    router = PlaybookRouter(RegistrySandbox(), paraphraser)
    reply, _ = route(router, "LostFoundInfo", SessionState(), AuthContext())

    assert paraphraser.calls == 1
    assert reply.text.startswith("Omformulert svar.")


def test_form_fill_is_verbatim():
    paraphraser = CountingParaphraser()
    router = PlaybookRouter(RegistrySandbox(), paraphraser)
    reply, _ = route(router, "GDPRDelete", SessionState(), AuthContext())

    assert paraphraser.calls == 0
    assert reply.text.startswith(PLAYBOOK["GDPRDelete"].answer_text)
    assert reply.kind == ReplyKind.ANSWER


def test_missing_playbook_blocks():
    router = PlaybookRouter(RegistrySandbox())
    reply = asyncio.run(router.route("Unknown", None, SessionState(), AuthContext()))
    assert reply.kind == ReplyKind.BLOCK


# ==============================================================================
# API_CALL
# ==============================================================================

def test_api_call_requires_login():
    router = PlaybookRouter(RegistrySandbox())
    reply, _ = route(router, "ReportLostPet", SessionState(intent="ReportLostPet"), AuthContext())

    assert reply.kind == ReplyKind.LOGIN_REQUIRED
    assert Config.MIN_SIDE_URL in reply.text
    assert reply.actions_executed == []


def test_single_pet_is_auto_selected():
    router = PlaybookRouter(RegistrySandbox())
    session = SessionState(intent="ReportLostPet")
    reply, _ = route(router, "ReportLostPet", session, login("OWN-003"), "OWN-003")

    assert reply.kind == ReplyKind.ACTION_DONE
    assert reply.text.startswith("Rex er nå meldt savnet")
    assert reply.actions_executed == ["mark_lost"]
    assert session.intent is None
    assert session.collected_data == {}


def test_pet_prompt_then_selection():
    router = PlaybookRouter(RegistrySandbox())
    session = SessionState(intent="ReportLostPet")
    reply, owner_context = route(router, "ReportLostPet", session, login("OWN-001"), "OWN-001")

    assert reply.kind == ReplyKind.PROMPT
    assert "1. Bella (Hund)" in reply.text
    assert "2. Max (Hund)" in reply.text
    assert session.awaiting_input == "animal_id"

    assert router.fill_pet_slot("nummer 2", session, owner_context)
    assert session.collected_data["animal_id"] == "ANI-002"

    reply = asyncio.run(router.route("ReportLostPet", PLAYBOOK["ReportLostPet"], session,
                                     login("OWN-001"), owner_context))
    assert reply.text.startswith("Max er nå meldt savnet")


def test_deceased_pets_are_not_offered():
    router = PlaybookRouter(RegistrySandbox())
    reply, _ = route(router, "ReportLostPet", SessionState(intent="ReportLostPet"), login("OWN-005"), "OWN-005")

    assert "Milo" in reply.text
    assert "Nala" in reply.text
    assert "Buddy" not in reply.text


def test_tag_slot_prompt_and_activation():
    router = PlaybookRouter(RegistrySandbox())
    session = SessionState(intent="QRTagActivation")
    reply, owner_context = route(router, "QRTagActivation", session, login("OWN-002"), "OWN-002")

    assert reply.kind == ReplyKind.PROMPT
    assert "Dine tagger: TAG-003." in reply.text
    assert session.awaiting_input == "tag_id"

    session.collected_data["tag_id"] = "TAG-003"
    session.awaiting_input = None
    reply = asyncio.run(router.route("QRTagActivation", PLAYBOOK["QRTagActivation"], session,
                                     login("OWN-002"), owner_context))
    assert reply.kind == ReplyKind.ACTION_DONE
    assert reply.text == "QR Tag TAG-003 er nå aktivert"


def test_payment_action_includes_link_and_amount():
    router = PlaybookRouter(RegistrySandbox())
    reply, _ = route(router, "QRTagLost", SessionState(intent="QRTagLost"), login("OWN-001"), "OWN-001")

    assert reply.kind == ReplyKind.ACTION_DONE
    assert "Betalingslink: https://dyreid.no/pay/qr_tag-" in reply.text
    assert "Dette koster 249 kr." in reply.text
    assert reply.actions_executed == ["send_payment_link"]


def test_action_failure_clears_slots_keeps_intent():
    router = PlaybookRouter(RegistrySandbox())
    session = SessionState(intent="QRTagActivation", collected_data={"tag_id": "TAG-999"})
    reply, _ = route(router, "QRTagActivation", session, login("OWN-002"), "OWN-002")

    assert reply.kind == ReplyKind.ACTION_FAILED
    assert "Tag ikke funnet" in reply.text
    assert session.collected_data == {}
    assert session.awaiting_input is None
    assert session.intent == "QRTagActivation"


def test_registry_exception_becomes_action_failed():
    router = PlaybookRouter(BrokenRegistry())
    reply, _ = route(router, "QRTagLost", SessionState(intent="QRTagLost"), login("OWN-001"), "OWN-001")

    assert reply.kind == ReplyKind.ACTION_FAILED
    assert "Registeret svarer ikke akkurat nå" in reply.text


def test_missing_owner_context_fails():
    router = PlaybookRouter(RegistrySandbox())
    reply = asyncio.run(router.route("QRTagLost", PLAYBOOK["QRTagLost"], SessionState(),
                                     login("OWN-404"), None))
    assert reply.kind == ReplyKind.ACTION_FAILED
    assert "Eier ikke funnet" in reply.text


# ==============================================================================
# HELPERS
# ==============================================================================

def test_select_pet():
    context = asyncio.run(RegistrySandbox().get_context("OWN-001"))
    pets = context.active_pets

    assert select_pet("1", pets).name == "Bella"
    assert select_pet("nr 2", pets).name == "Max"
    assert select_pet("det er Max", pets).name == "Max"
    assert select_pet("3", pets) is None
    assert select_pet("katten", pets) is None


def test_slot_retry_prompt():
    assert slot_retry_prompt("phone").startswith("Jeg klarte ikke å lese det.")
    assert "8 siffer" in slot_retry_prompt("phone")
    assert "TAG-001" in slot_retry_prompt("tag_id")
