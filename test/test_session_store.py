"""
Test Session Store
==================

In-memory og Redis-lager (mot en falsk redis.asyncio-klient), serialisering av
SessionState og låsing per samtale.
"""

import sys
import os
import asyncio
import json

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from schema import (
    ChipLookupResult,
    ChipLookupStep,
    DirectFlow,
    EscalationContext,
    EscalationStep,
    EscalationTrigger,
    Owner,
    Pet,
    SessionState,
)
from session_store import (
    InMemorySessionStore,
    KeyedLock,
    RedisSessionStore,
    SessionStoreConfig,
    create_session_store,
)


class FakeRedis:
    """Minimal redis.asyncio-klient med decode_responses=True."""

    def __init__(self):
        self.data = {}
        self.ttl = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttl[key] = ttl

    async def delete(self, key):
        self.data.pop(key, None)

    async def expire(self, key, ttl):
        self.ttl[key] = ttl


class DownRedis(FakeRedis):
    async def get(self, key):
        raise ConnectionError("connection refused")

    async def setex(self, key, ttl, value):
        raise ConnectionError("connection refused")


def run(coro):
    return asyncio.run(coro)


def rich_session():
    return SessionState(
        intent="ReportLostPet",
        playbook_ref="ReportLostPet",
        collected_data={"animal_id": "ANI-001"},
        awaiting_input="animal_id",
        chip_lookup_flow=ChipLookupStep.AWAITING_OWNERSHIP_CONFIRM,
        chip_lookup_result=ChipLookupResult(
            found=True,
            chip_number="578000000001",
            pet=Pet("ANI-001", "Bella", "Hund", breed="Labrador Retriever"),
            owner=Owner("OWN-001", "Demo Bruker", "91000001"),
        ),
        escalation_context=EscalationContext(intent="ReportLostPet", matched_by="regex",
                                             semantic_score=0.81, trigger=EscalationTrigger.BLOCK),
        has_escalated=True,
        transcript=[{"role": "user", "content": "hei"}],
    )


# ==============================================================================
# SERIALIZATION
# ==============================================================================

def test_session_state_round_trip_through_json():
    state = rich_session()
    restored = SessionState.from_dict(json.loads(json.dumps(state.to_dict())))

    assert restored.chip_lookup_flow == ChipLookupStep.AWAITING_OWNERSHIP_CONFIRM
    assert restored.chip_lookup_result.pet.name == "Bella"
    assert restored.chip_lookup_result.owner.phone == "91000001"
    assert restored.escalation_context.trigger == EscalationTrigger.BLOCK
    assert restored.collected_data == {"animal_id": "ANI-001"}
    assert restored.has_escalated


def test_direct_flow_enum_survives():
    state = SessionState(direct_intent_flow=DirectFlow.PET_DECEASED, direct_flow_step="awaiting_confirm",
                         escalation_flow=EscalationStep.COMPLETED)
    restored = SessionState.from_dict(state.to_dict())
    assert restored.direct_intent_flow == DirectFlow.PET_DECEASED
    assert restored.escalation_flow == EscalationStep.COMPLETED
    assert restored.active_flow() == DirectFlow.PET_DECEASED.value


# ==============================================================================
# IN-MEMORY
# ==============================================================================

def test_in_memory_set_get_delete():
    store = InMemorySessionStore()

    async def scenario():
        assert await store.get("c1") is None
        await store.set("c1", rich_session())
        loaded = await store.get("c1")
        await store.delete("c1")
        return loaded, await store.get("c1")

    loaded, after_delete = run(scenario())
    assert loaded.intent == "ReportLostPet"
    assert after_delete is None
    assert len(store) == 0


def test_in_memory_mutation_needs_set():
    store = InMemorySessionStore()

    async def scenario():
        state = await store.get_or_create("c1")
        state.intent = "LoginProblem"
        unsaved = await store.get("c1")
        await store.set("c1", state)
        return unsaved, await store.get("c1")

    unsaved, saved = run(scenario())
    assert unsaved.intent is None
    assert saved.intent == "LoginProblem"


def test_in_memory_ttl():
    store = InMemorySessionStore(ttl_seconds=0)

    async def scenario():
        await store.set("c1", SessionState(intent="X"))
        return await store.get("c1")

    assert run(scenario()) is None
    assert len(store) == 0


def test_in_memory_expire():
    store = InMemorySessionStore()

    async def scenario():
        await store.set("c1", SessionState(intent="X"))
        await store.expire("c1", 0)
        return await store.get("c1")

    assert run(scenario()) is None


# ==============================================================================
# REDIS
# ==============================================================================

def test_redis_store_uses_prefix_and_ttl():
    client = FakeRedis()
    store = RedisSessionStore(SessionStoreConfig(ttl_session=600), client=client)

    async def scenario():
        await store.set("c1", rich_session())
        loaded = await store.get("c1")
        await store.expire("c1", 30)
        return loaded

    loaded = run(scenario())
    assert store.is_connected
    assert "dyreid:session:c1" in client.data
    assert client.ttl["dyreid:session:c1"] == 30
    assert loaded.chip_lookup_result.chip_number == "578000000001"

    run(store.delete("c1"))
    assert client.data == {}


def test_redis_store_falls_back_on_error():
    store = RedisSessionStore(client=DownRedis())

    async def scenario():
        await store.set("c1", SessionState(intent="LoginProblem"))
        return await store.get("c1")

    loaded = run(scenario())
    assert not store.is_connected
    assert loaded.intent == "LoginProblem"


def test_create_session_store_without_url():
    assert isinstance(create_session_store(None), InMemorySessionStore)
    assert isinstance(create_session_store(""), InMemorySessionStore)


# ==============================================================================
# KEYED LOCK
# ==============================================================================

def test_keyed_lock_serializes_same_key():
    locks = KeyedLock()
    events = []

    async def worker(name, key, delay):
        async with locks.hold(key):
            events.append(f"{name}:start")
            await asyncio.sleep(delay)
            events.append(f"{name}:end")

    async def scenario():
        await asyncio.gather(worker("a", "conv-1", 0.02), worker("b", "conv-1", 0))

    run(scenario())
    assert events == ["a:start", "a:end", "b:start", "b:end"]
    assert len(locks) == 0


def test_keyed_lock_different_keys_interleave():
    locks = KeyedLock()
    events = []

    async def worker(name, key, delay):
        async with locks.hold(key):
            events.append(f"{name}:start")
            await asyncio.sleep(delay)
            events.append(f"{name}:end")

    async def scenario():
        await asyncio.gather(worker("a", "conv-1", 0.02), worker("b", "conv-2", 0))

    run(scenario())
    assert events.index("b:end") < events.index("a:end")


def test_keyed_lock_is_locked():
    locks = KeyedLock()

    async def scenario():
        async with locks.hold("conv-1"):
            inside = locks.is_locked("conv-1")
        return inside

    assert run(scenario())
    assert not locks.is_locked("conv-1")
