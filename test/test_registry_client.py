"""
Test Registry Sandbox
=====================
"""

import sys
import os
import asyncio

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest

from schema import Config
from registry_client import RegistrySandbox


def run(coro):
    return asyncio.run(coro)


# ==============================================================================
# LOOKUPS
# ==============================================================================

def test_context_by_owner_id_phone_and_email():
    registry = RegistrySandbox()
    by_id = run(registry.get_context("OWN-001"))
    by_phone = run(registry.get_context("91000001"))
    by_email = run(registry.get_context("DEMO1@dyreid.no"))

    assert by_id.owner.name == "Demo Bruker"
    assert by_id.owner.address == "Eksempelveien 1, 0001 Oslo"
    assert by_phone.owner.owner_id == by_email.owner.owner_id == "OWN-001"
    assert [p.name for p in by_id.pets] == ["Bella", "Max"]
    assert by_id.pets[0].species == "Hund"
    assert run(registry.get_context("OWN-404")) is None
    assert run(registry.get_context(None)) is None


def test_deceased_pet_is_not_active():
    context = run(RegistrySandbox().get_context("OWN-005"))
    assert [p.name for p in context.active_pets] == ["Milo", "Nala"]
    assert context.pets[2].deceased


def test_tag_status():
    context = run(RegistrySandbox().get_context("OWN-003"))
    assert context.tags[0].status == "expired"
    context = run(RegistrySandbox().get_context("OWN-002"))
    assert context.tags[0].status == "inactive"


def test_lookup_owner_by_phone():
    registry = RegistrySandbox()
    assert run(registry.lookup_owner_by_phone("91000001")).owner_id == "OWN-001"
    assert run(registry.lookup_owner_by_phone("99999999")) is None


def test_chip_lookup_in_register():
    result = run(RegistrySandbox().lookup_by_chip_number("978 456 111 111 111"))
    assert result.found
    assert result.chip_number == "978456111111111"
    assert result.pet.name == "Agora"
    assert result.pet.breed == "Blandingshund"
    assert result.owner.name == "Gudbrand Vatn"
    assert result.owner.phone == Config.SAFE_TEST_PHONE
    assert result.owner.owner_id == ""


def test_chip_lookup_falls_back_to_min_side():
    result = run(RegistrySandbox().lookup_by_chip_number("578000000002"))
    assert result.found
    assert result.pet.name == "Max"
    assert result.owner.owner_id == "OWN-001"


def test_chip_lookup_miss():
    result = run(RegistrySandbox().lookup_by_chip_number("578123456789012"))
    assert not result.found
    assert result.pet is None


# ==============================================================================
# SMS
# ==============================================================================

def test_sms_only_to_sandbox_number():
    registry = RegistrySandbox()

    ok = run(registry.send_ownership_transfer_sms("91341434", "Gudbrand Vatn", "Demo Bruker", "91000001", "Agora"))
    assert ok.success
    assert ok.message == "SMS sendt til Gudbrand Vatn (91341434)"
    assert "Demo Bruker" in ok.data["body"]
    assert "91000001" in ok.data["body"]

    refused = run(registry.send_ownership_transfer_sms("91000002", "Test Person", "Demo Bruker", "91000001", "Luna"))
    assert not refused.success
    assert len(registry.sms_log) == 1


# ==============================================================================
# ACTIONS
# ==============================================================================

def test_mark_lost_and_found():
    registry = RegistrySandbox()
    lost = run(registry.perform_action("OWN-001", "mark_lost", {"animal_id": "ANI-001"}))
    assert lost.success
    assert lost.message.startswith("Bella er nå meldt savnet")
    assert run(registry.get_context("OWN-001")).pets[0].lost

    found = run(registry.perform_action("OWN-001", "mark_found", {"animal_id": "ANI-001"}))
    assert found.message == "Bella er markert som funnet"
    assert not run(registry.get_context("OWN-001")).pets[0].lost


def test_view_pets():
    result = run(RegistrySandbox().perform_action("OWN-005", "view_pets", {}))
    assert result.message.startswith("Du har 3 dyr registrert:")
    assert "Buddy (Hund, Cavalier King Charles Spaniel), chip 578000000008, registrert død" in result.message


def test_initiate_transfer():
    result = run(RegistrySandbox().perform_action("OWN-002", "initiate_transfer",
                                                  {"animal_id": "ANI-003", "phone": "92233444"}))
    assert result.success
    assert result.data["payment_link"] == "https://dyreid.no/pay/transfer-OWS-003"
    assert result.data["new_owner_phone"] == "92233444"


def test_renew_subscription():
    registry = RegistrySandbox()
    result = run(registry.perform_action("OWN-003", "renew_subscription", {"tag_id": "tag-004"}))
    assert result.success
    assert result.data["payment_link"] == "https://dyreid.no/pay/subscription-TAG-004"
    assert run(registry.get_context("OWN-003")).tags[0].status == "active"


def test_update_profile():
    registry = RegistrySandbox()
    result = run(registry.perform_action("OWN-001", "update_profile", {"phone": "92233444"}))
    assert result.message == "Profil oppdatert"
    assert run(registry.get_context("OWN-001")).owner.phone == "92233444"


@pytest.mark.parametrize("owner_id,action,params,message", [
    ("OWN-404", "mark_lost", {"animal_id": "ANI-001"}, "Eier ikke funnet"),
    ("OWN-001", "teleport", {}, "Ukjent handling: teleport"),
    ("OWN-001", "mark_lost", {"animal_id": "ANI-999"}, "Dyr ikke funnet"),
    ("OWN-001", "activate_qr", {"tag_id": "TAG-999"}, "Tag ikke funnet"),
    ("OWN-001", "initiate_transfer", {"animal_id": "ANI-999"}, "Eierskap ikke funnet"),
])
def test_action_failures(owner_id, action, params, message):
    result = run(RegistrySandbox().perform_action(owner_id, action, params))
    assert not result.success
    assert result.message == message


def test_instances_do_not_share_state():
    first = RegistrySandbox()
    run(first.perform_action("OWN-005", "mark_deceased", {"animal_id": "ANI-006"}))

    assert not run(first.get_context("OWN-005")).pets[0].lost
    assert run(first.get_context("OWN-005")).pets[0].deceased
    assert not run(RegistrySandbox().get_context("OWN-005")).pets[0].deceased
