"""
Registry Client - Sandbox-adapter mot dyreregisteret (Min side + ID-søk).

Rådata finnes i to former: Min side-poster (firstName/lastName, camelCase) og
ID-søk-poster (ett samlet name-felt). Begge normaliseres til Owner/Pet/Tag her,
slik at flyt- og ruterlogikk bare ser én form.
"""

import copy
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from schema import (
    ActionResult,
    ChipLookupResult,
    Config,
    Owner,
    OwnerContext,
    Pet,
    Tag,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# SANDBOX DATA (rå Min side-form)
# ==============================================================================

def _animal(animal_id, name, species, breed, chip, born, gender, status="active", payment="paid"):
    return {
        "animalId": animal_id,
        "name": name,
        "species": species,
        "breed": breed,
        "chipNumber": chip,
        "dateOfBirth": born,
        "gender": gender,
        "status": status,
        "paymentStatus": payment,
    }


def _lost(animal_id, name, lost=False, alert=False, sms=True, push=True):
    return {
        "animalId": animal_id,
        "animalName": name,
        "lost": lost,
        "lostDate": None,
        "alertActive": alert,
        "smsEnabled": sms,
        "pushEnabled": push,
    }


def _ownership(ownership_id, owner_id, animal_id, name, pending=False):
    return {
        "ownershipId": ownership_id,
        "ownerId": owner_id,
        "animalId": animal_id,
        "animalName": name,
        "pendingTransfer": pending,
        "transferStatus": "pending" if pending else "none",
    }


def _tag(tag_id, tag_type, activated, subscription, animal_id):
    return {
        "tagId": tag_id,
        "type": tag_type,
        "activated": activated,
        "subscriptionStatus": subscription,
        "assignedAnimalId": animal_id,
    }


_MINSIDE_OWNERS: List[Dict[str, Any]] = [
    {
        "owner": {
            "ownerId": "OWN-001", "firstName": "Demo", "lastName": "Bruker",
            "email": "demo1@dyreid.no", "phone": "91000001",
            "address": "Eksempelveien 1", "postalCode": "0001", "city": "Oslo",
        },
        "animals": [
            _animal("ANI-001", "Bella", "dog", "Labrador Retriever", "578000000001", "2020-03-15", "female"),
            _animal("ANI-002", "Max", "dog", "Schæfer", "578000000002", "2019-07-22", "male"),
        ],
        "ownerships": [
            _ownership("OWS-001", "OWN-001", "ANI-001", "Bella"),
            _ownership("OWS-002", "OWN-001", "ANI-002", "Max", pending=True),
        ],
        "tags": [
            _tag("TAG-001", "qr", True, "active", "ANI-001"),
            _tag("TAG-002", "smart", True, "active", "ANI-002"),
        ],
        "lostStatuses": [
            _lost("ANI-001", "Bella"),
            _lost("ANI-002", "Max"),
        ],
    },
    {
        "owner": {
            "ownerId": "OWN-002", "firstName": "Test", "lastName": "Person",
            "email": "demo2@dyreid.no", "phone": "91000002",
            "address": "Testgata 5", "postalCode": "5003", "city": "Bergen",
        },
        "animals": [
            _animal("ANI-003", "Luna", "cat", "Norsk Skogkatt", "578000000003", "2021-11-08", "female", payment="unpaid"),
        ],
        "ownerships": [_ownership("OWS-003", "OWN-002", "ANI-003", "Luna")],
        "tags": [_tag("TAG-003", "qr", False, "none", "ANI-003")],
        "lostStatuses": [_lost("ANI-003", "Luna", sms=False, push=False)],
    },
    {
        "owner": {
            "ownerId": "OWN-003", "firstName": "Savnet", "lastName": "Eier",
            "email": "demo3@dyreid.no", "phone": "91000003",
            "address": "Savnetveien 10", "postalCode": "7010", "city": "Trondheim",
        },
        "animals": [
            _animal("ANI-004", "Rex", "dog", "Border Collie", "578000000004", "2018-05-30", "male"),
        ],
        "ownerships": [_ownership("OWS-004", "OWN-003", "ANI-004", "Rex")],
        "tags": [_tag("TAG-004", "smart", True, "expired", "ANI-004")],
        "lostStatuses": [_lost("ANI-004", "Rex", lost=True, alert=True, sms=True, push=False)],
    },
    {
        "owner": {
            "ownerId": "OWN-004", "firstName": "Utenlands", "lastName": "Registrering",
            "email": "demo4@dyreid.no", "phone": "91000004",
            "address": "Importveien 3", "postalCode": "4006", "city": "Stavanger",
        },
        "animals": [
            _animal("ANI-005", "Charlie", "dog", "Golden Retriever", "276098100012345", "2022-01-12", "male", payment="unpaid"),
        ],
        "ownerships": [_ownership("OWS-005", "OWN-004", "ANI-005", "Charlie")],
        "tags": [],
        "lostStatuses": [_lost("ANI-005", "Charlie", sms=False, push=False)],
    },
    {
        "owner": {
            "ownerId": "OWN-005", "firstName": "App", "lastName": "Bruker",
            "email": "demo5@dyreid.no", "phone": "91000005",
            "address": "Appveien 7", "postalCode": "1000", "city": "Oslo",
        },
        "animals": [
            _animal("ANI-006", "Milo", "cat", "Maine Coon", "578000000006", "2023-04-20", "male"),
            _animal("ANI-007", "Nala", "cat", "Bengal", "578000000007", "2023-08-10", "female"),
            _animal("ANI-008", "Buddy", "dog", "Cavalier King Charles Spaniel", "578000000008", "2020-12-01", "male", status="deceased"),
        ],
        "ownerships": [
            _ownership("OWS-006", "OWN-005", "ANI-006", "Milo"),
            _ownership("OWS-007", "OWN-005", "ANI-007", "Nala"),
            _ownership("OWS-008", "OWN-005", "ANI-008", "Buddy"),
        ],
        "tags": [
            _tag("TAG-005", "qr", True, "active", "ANI-006"),
            _tag("TAG-006", "qr", True, "active", "ANI-007"),
        ],
        "lostStatuses": [
            _lost("ANI-006", "Milo"),
            _lost("ANI-007", "Nala"),
        ],
    },
]

# ID-søk-form: eier har ett samlet navnefelt
_CHIP_REGISTER: Dict[str, Dict[str, Any]] = {
    "978456111111111": {
        "animal": {"name": "Agora", "species": "Hund", "breed": "Blandingshund",
                   "gender": "Hannkjønn", "chipNumber": "978456111111111", "dateOfBirth": "2019-05-10"},
        "owner": {"name": "Gudbrand Vatn", "address": "Ørneveien 25", "postalCode": "1640",
                  "city": "Råde", "phone": "91341434"},
    },
    "578000000001": {
        "animal": {"name": "Bella", "species": "Hund", "breed": "Labrador Retriever",
                   "gender": "Hunnkjønn", "chipNumber": "578000000001", "dateOfBirth": "2020-03-15"},
        "owner": {"ownerId": "OWN-001", "name": "Demo Bruker", "address": "Eksempelveien 1", "postalCode": "0001",
                  "city": "Oslo", "phone": "91000001"},
    },
    "578000000003": {
        "animal": {"name": "Luna", "species": "Katt", "breed": "Norsk Skogkatt",
                   "gender": "Hunnkjønn", "chipNumber": "578000000003", "dateOfBirth": "2021-11-08"},
        "owner": {"ownerId": "OWN-002", "name": "Test Person", "address": "Testgata 5", "postalCode": "5003",
                  "city": "Bergen", "phone": "91000002"},
    },
}

SPECIES_LABELS = {"dog": "Hund", "cat": "Katt"}
GENDER_LABELS = {"male": "Hannkjønn", "female": "Hunnkjønn"}


# ==============================================================================
# NORMALIZATION
# ==============================================================================

def _full_address(raw: Dict[str, Any]) -> Optional[str]:
    street = raw.get("address")
    place = " ".join(p for p in (raw.get("postalCode"), raw.get("city")) if p)
    if street and place:
        return f"{street}, {place}"
    return street or place or None


def owner_from_minside(raw: Dict[str, Any]) -> Owner:
    return Owner(
        owner_id=raw["ownerId"],
        name=f"{raw.get('firstName', '')} {raw.get('lastName', '')}".strip(),
        phone=raw.get("phone", ""),
        email=raw.get("email"),
        address=_full_address(raw),
    )


def owner_from_register(raw: Dict[str, Any]) -> Owner:
    return Owner(
        owner_id=raw.get("ownerId", ""),
        name=raw.get("name", ""),
        phone=raw.get("phone", ""),
        email=raw.get("email"),
        address=_full_address(raw),
    )


def pet_from_minside(raw: Dict[str, Any], lost_status: Optional[Dict[str, Any]] = None) -> Pet:
    lost_status = lost_status or {}
    return Pet(
        animal_id=raw["animalId"],
        name=raw["name"],
        species=SPECIES_LABELS.get(raw.get("species"), "Annet"),
        breed=raw.get("breed"),
        chip_number=raw.get("chipNumber"),
        gender=GENDER_LABELS.get(raw.get("gender"), raw.get("gender")),
        birth_date=raw.get("dateOfBirth"),
        lost=bool(lost_status.get("lost")),
        deceased=raw.get("status") == "deceased",
        sms_alert=bool(lost_status.get("smsEnabled")),
        push_alert=bool(lost_status.get("pushEnabled")),
    )


def pet_from_register(raw: Dict[str, Any]) -> Pet:
    return Pet(
        animal_id=raw.get("animalId", ""),
        name=raw["name"],
        species=raw.get("species", "Annet"),
        breed=raw.get("breed"),
        chip_number=raw.get("chipNumber"),
        gender=raw.get("gender"),
        birth_date=raw.get("dateOfBirth"),
    )


def tag_from_minside(raw: Dict[str, Any]) -> Tag:
    if raw.get("subscriptionStatus") == "expired":
        status = "expired"
    elif raw.get("activated"):
        status = "active"
    else:
        status = "inactive"
    return Tag(
        tag_id=raw["tagId"],
        tag_type=raw.get("type", "qr"),
        animal_id=raw.get("assignedAnimalId"),
        status=status,
    )


def context_from_minside(raw: Dict[str, Any]) -> OwnerContext:
    lost_by_animal = {l["animalId"]: l for l in raw.get("lostStatuses", [])}
    return OwnerContext(
        owner=owner_from_minside(raw["owner"]),
        pets=[pet_from_minside(a, lost_by_animal.get(a["animalId"])) for a in raw.get("animals", [])],
        tags=[tag_from_minside(t) for t in raw.get("tags", [])],
    )


# ==============================================================================
# SANDBOX CLIENT
# ==============================================================================

class RegistrySandbox:
    """
    Registry collaborator backed by in-process demo data.

    Each instance owns a deep copy of the data, so actions in one instance
    (or one test) never leak into another.
    """

    def __init__(self):
        self._owners: Dict[str, Dict[str, Any]] = {}
        self._by_key: Dict[str, str] = {}
        for raw in copy.deepcopy(_MINSIDE_OWNERS):
            owner = raw["owner"]
            self._owners[owner["ownerId"]] = raw
            for key in (owner["ownerId"], owner["phone"], owner["email"]):
                self._by_key[key.lower()] = owner["ownerId"]
        self._chip_register = copy.deepcopy(_CHIP_REGISTER)
        self.sms_log: List[Dict[str, str]] = []

    def _raw(self, identifier: Optional[str]) -> Optional[Dict[str, Any]]:
        if not identifier:
            return None
        owner_id = self._by_key.get(identifier.strip().lower())
        return self._owners.get(owner_id) if owner_id else None

    # === Lookups ===

    async def get_context(self, owner_id: str) -> Optional[OwnerContext]:
        """Eier-ID, telefon eller e-post -> OwnerContext."""
        raw = self._raw(owner_id)
        if raw is None:
            return None
        return context_from_minside(raw)

    async def lookup_owner_by_phone(self, phone: str) -> Optional[Owner]:
        raw = self._raw(phone)
        return owner_from_minside(raw["owner"]) if raw else None

    async def lookup_by_chip_number(self, chip_number: str) -> ChipLookupResult:
        cleaned = "".join(chip_number.split())

        record = self._chip_register.get(cleaned)
        if record:
            logger.info(f"Chip lookup hit (register): {cleaned}")
            return ChipLookupResult(
                found=True,
                chip_number=cleaned,
                pet=pet_from_register(record["animal"]),
                owner=owner_from_register(record["owner"]),
            )

        for raw in self._owners.values():
            for animal in raw["animals"]:
                if animal["chipNumber"] == cleaned:
                    logger.info(f"Chip lookup hit (min side): {cleaned}")
                    return ChipLookupResult(
                        found=True,
                        chip_number=cleaned,
                        pet=pet_from_minside(animal),
                        owner=owner_from_minside(raw["owner"]),
                    )

        logger.info(f"Chip lookup miss: {cleaned}")
        return ChipLookupResult(found=False, chip_number=cleaned)

    # === Notifications ===

    async def send_ownership_transfer_sms(
        self,
        registered_owner_phone: str,
        registered_owner_name: str,
        customer_name: str,
        customer_phone: str,
        pet_name: str,
    ) -> ActionResult:
        if registered_owner_phone != Config.SAFE_TEST_PHONE:
            return ActionResult(
                success=False,
                message=(
                    f"SMS kan kun sendes til testnummeret ({Config.SAFE_TEST_PHONE}) i sandbox-modus. "
                    f"Registrert eiers telefon: {registered_owner_phone}"
                ),
            )

        body = (
            f"Hei - vi er blitt kontaktet av {customer_name} vedrørende eierskifte av {pet_name}. "
            f"Vennligst ta direkte kontakt på {customer_phone}. Med vennlig hilsen DyreID"
        )
        self.sms_log.append({
            "timestamp": datetime.now().isoformat(),
            "to": registered_owner_phone,
            "body": body,
        })
        logger.info(f"SMS sent to {registered_owner_phone}")
        return ActionResult(
            success=True,
            message=f"SMS sendt til {registered_owner_name} ({registered_owner_phone})",
            data={"to": registered_owner_phone, "body": body},
        )

    # === Actions ===

    async def perform_action(self, owner_id: str, action: str, params: Dict[str, Any]) -> ActionResult:
        raw = self._raw(owner_id)
        if raw is None:
            return ActionResult(success=False, message="Eier ikke funnet")

        handler = getattr(self, f"_action_{action}", None)
        if handler is None:
            return ActionResult(success=False, message=f"Ukjent handling: {action}")

        result = handler(raw, params or {})
        logger.info(f"Registry action {action} for {raw['owner']['ownerId']}: success={result.success}")
        return result

    @staticmethod
    def _find(items: List[Dict[str, Any]], key: str, value: Any) -> Optional[Dict[str, Any]]:
        for item in items:
            if item.get(key) == value:
                return item
        return None

    def _action_mark_lost(self, raw, params) -> ActionResult:
        status = self._find(raw["lostStatuses"], "animalId", params.get("animal_id"))
        if status is None:
            return ActionResult(success=False, message="Dyr ikke funnet")
        status.update(
            lost=True,
            lostDate=datetime.now().date().isoformat(),
            alertActive=True,
            smsEnabled=True,
            pushEnabled=True,
        )
        return ActionResult(
            success=True,
            message=f"{status['animalName']} er nå meldt savnet. SMS- og push-varsler er aktivert.",
            data=dict(status),
        )

    def _action_mark_found(self, raw, params) -> ActionResult:
        status = self._find(raw["lostStatuses"], "animalId", params.get("animal_id"))
        if status is None:
            return ActionResult(success=False, message="Dyr ikke funnet")
        status.update(lost=False, alertActive=False)
        return ActionResult(success=True, message=f"{status['animalName']} er markert som funnet", data=dict(status))

    def _action_activate_qr(self, raw, params) -> ActionResult:
        tag = self._find(raw["tags"], "tagId", (params.get("tag_id") or "").upper())
        if tag is None:
            return ActionResult(success=False, message="Tag ikke funnet")
        tag.update(activated=True, subscriptionStatus="active")
        return ActionResult(success=True, message=f"QR Tag {tag['tagId']} er nå aktivert", data=dict(tag))

    def _action_initiate_transfer(self, raw, params) -> ActionResult:
        ownership = self._find(raw["ownerships"], "animalId", params.get("animal_id"))
        if ownership is None:
            return ActionResult(success=False, message="Eierskap ikke funnet")
        ownership.update(pendingTransfer=True, transferStatus="pending")
        link = f"https://dyreid.no/pay/transfer-{ownership['ownershipId']}"
        return ActionResult(
            success=True,
            message=f"Eierskifteforespørsel opprettet for {ownership['animalName']}. Betalingslink sendt til ny eier.",
            data={"ownership": dict(ownership), "payment_link": link, "new_owner_phone": params.get("phone")},
        )

    def _action_send_payment_link(self, raw, params) -> ActionResult:
        payment_type = params.get("payment_type") or "registration"
        link = f"https://dyreid.no/pay/{payment_type}-{int(datetime.now().timestamp() * 1000)}"
        return ActionResult(success=True, message="Betalingslink sendt via SMS", data={"payment_link": link})

    def _action_update_profile(self, raw, params) -> ActionResult:
        owner = raw["owner"]
        for field_name in ("email", "phone", "address"):
            if params.get(field_name):
                owner[field_name] = params[field_name]
        return ActionResult(success=True, message="Profil oppdatert", data=dict(owner))

    def _action_renew_subscription(self, raw, params) -> ActionResult:
        tag = self._find(raw["tags"], "tagId", (params.get("tag_id") or "").upper())
        if tag is None:
            return ActionResult(success=False, message="Tag ikke funnet")
        tag["subscriptionStatus"] = "active"
        return ActionResult(
            success=True,
            message=f"Abonnement fornyet for tag {tag['tagId']}",
            data={"tag": dict(tag), "payment_link": f"https://dyreid.no/pay/subscription-{tag['tagId']}"},
        )

    def _action_view_pets(self, raw, params) -> ActionResult:
        context = context_from_minside(raw)
        if not context.pets:
            return ActionResult(success=True, message="Du har ingen dyr registrert.")
        lines = []
        for pet in context.pets:
            line = f"- {pet.name} ({pet.species}, {pet.breed or 'ukjent rase'}), chip {pet.chip_number or 'mangler'}"
            if pet.deceased:
                line += ", registrert død"
            elif pet.lost:
                line += ", meldt savnet"
            lines.append(line)
        return ActionResult(
            success=True,
            message=f"Du har {len(context.pets)} dyr registrert:\n" + "\n".join(lines),
            data={"animal_ids": [p.animal_id for p in context.pets]},
        )

    def _action_mark_deceased(self, raw, params) -> ActionResult:
        animal = self._find(raw["animals"], "animalId", params.get("animal_id"))
        if animal is None:
            return ActionResult(success=False, message="Dyr ikke funnet")
        animal["status"] = "deceased"
        status = self._find(raw["lostStatuses"], "animalId", animal["animalId"])
        if status is not None:
            status.update(lost=False, alertActive=False)
        return ActionResult(success=True, message=f"{animal['name']} er registrert som død", data=dict(animal))
