import asyncio
import itertools
import random

import pytest

from creepy_companion.core.storage import MemoryStorage
from creepy_companion.models.pet import Archetype, PetIdentity, PetState
from creepy_companion.services.dispatch import BackgroundDispatcher
from creepy_companion.services.narrative_client import NarrativeResponse
from creepy_companion.services.narrator import Narrator
from creepy_companion.services.persistence import PersistenceGateway, serialize
from creepy_companion.services.pet_service import PetService
from creepy_companion.services.scheduler import Scheduler

STORAGE_KEY = "test-storage"
START_TIME = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubNarrativeClient:
    """Stands in for the HTTP client; records prompts and answers with fixed text."""

    def __init__(self, text: str = "It watches you from the dark.", error=None):
        self.text = text
        self.error = error
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        await asyncio.sleep(0)
        return NarrativeResponse(text=self.text, error=self.error)


class StubSoundSelector:
    def __init__(self):
        self.events = []

    async def select(self, event_type, context):
        self.events.append((event_type, context))
        return None


def make_identity(name: str = "Test") -> PetIdentity:
    return PetIdentity(name=name, archetype=Archetype.GLOOM, color=0xFF0000)


@pytest.fixture
def make_state():
    def factory(**overrides) -> PetState:
        fields = {"identity": make_identity(), "last_tick_at": START_TIME}
        fields.update(overrides)
        return PetState(**fields)
    return factory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def gateway(storage) -> PersistenceGateway:
    return PersistenceGateway(storage, key=STORAGE_KEY)


@pytest.fixture
def narrative_client() -> StubNarrativeClient:
    return StubNarrativeClient()


@pytest.fixture
def sound_selector() -> StubSoundSelector:
    return StubSoundSelector()


@pytest.fixture
def service(gateway, narrative_client, sound_selector, clock, id_factory) -> PetService:
    return PetService(
        scheduler=Scheduler(interval_ms=1000),
        gateway=gateway,
        narrator=Narrator(narrative_client, rng=random.Random(7)),
        sound_selector=sound_selector,
        dispatcher=BackgroundDispatcher(),
        clock=clock,
        rng=random.Random(42),
        id_factory=id_factory,
    )


@pytest.fixture
def seed(storage, service):
    """Store a state and hydrate the service from it."""
    def apply(state: PetState) -> PetService:
        storage.write(STORAGE_KEY, serialize(state))
        service.hydrate()
        return service
    return apply
