# creepy_companion/models/pet.py
from enum import Enum
from typing import Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

STAT_MIN = 0.0
STAT_MAX = 100.0
INVENTORY_CAPACITY = 3


def new_id() -> str:
    return str(uuid4())


class Stage(str, Enum):
    EGG = "EGG"
    BABY = "BABY"
    TEEN = "TEEN"
    ABOMINATION = "ABOMINATION"


class Archetype(str, Enum):
    GLOOM = "GLOOM"
    SPARK = "SPARK"
    ECHO = "ECHO"


class ItemType(str, Enum):
    PURITY = "PURITY"
    ROT = "ROT"


class LogSource(str, Enum):
    SYSTEM = "SYSTEM"
    PET = "PET"


class DeathCause(str, Enum):
    STARVATION = "STARVATION"
    INSANITY = "INSANITY"


class ReactionType(str, Enum):
    COMFORT = "COMFORT"
    FEAR = "FEAR"
    LOVE = "LOVE"
    DREAD = "DREAD"
    HOPE = "HOPE"


class InsanityEvent(str, Enum):
    WHISPERS = "WHISPERS"
    SHADOWS = "SHADOWS"
    GLITCH = "GLITCH"
    INVERSION = "INVERSION"


class PetIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=50)
    archetype: Archetype
    color: int = Field(ge=0, le=0xFFFFFF)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class PetStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    hunger: float = Field(default=0, ge=STAT_MIN, le=STAT_MAX)  # 0 = satisfied, 100 = starving
    sanity: float = Field(default=100, ge=STAT_MIN, le=STAT_MAX)  # 100 = stable, 0 = gone
    corruption: float = Field(default=0, ge=STAT_MIN, le=STAT_MAX)  # hidden from players


class Offering(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    type: ItemType
    description: str
    icon: str


class NarrativeLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    text: str
    source: LogSource
    timestamp: float = Field(ge=0)  # game-minutes at creation
    pending: bool = False
    reaction: Optional[ReactionType] = None  # at most one per entry


class UserSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    master_volume: float = Field(default=0.7, ge=0, le=1)
    sfx_volume: float = Field(default=0.8, ge=0, le=1)
    ambient_volume: float = Field(default=0.5, ge=0, le=1)
    is_muted: bool = False


class DeathRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    cause: DeathCause
    age: float
    stage: Stage
    final_stats: PetStats
    died_at: float  # wall-clock seconds


class PetState(BaseModel):
    """Everything the simulation knows about one pet.

    Instances are never mutated in place: every action builds a complete new
    state with ``model_copy(update=...)`` and swaps it in.
    """

    model_config = ConfigDict(frozen=True)

    identity: Optional[PetIdentity] = None
    pet_id: Optional[str] = None  # new for every hatched egg, even with the same identity
    stats: PetStats = Field(default_factory=PetStats)
    stage: Stage = Stage.EGG
    age: float = Field(default=0, ge=0)  # game-minutes
    is_alive: bool = True
    inventory: Tuple[Offering, ...] = Field(default=(), max_length=INVENTORY_CAPACITY)
    daily_feeds: int = Field(default=0, ge=0)
    game_day: int = Field(default=0, ge=0)
    logs: Tuple[NarrativeLogEntry, ...] = ()
    last_tick_at: float = 0.0  # wall-clock seconds, only used for offline catch-up
    settings: UserSettings = Field(default_factory=UserSettings)
    death: Optional[DeathRecord] = None
    last_placate_at: Optional[float] = None  # game-minutes (age) of the last placate

    @property
    def is_initialized(self) -> bool:
        return self.identity is not None

    @property
    def name(self) -> str:
        return self.identity.name if self.identity else ""


# --- Views exposed to the presentation layer ---

class OfferingView(BaseModel):
    id: str
    description: str
    icon: str


class StatsView(BaseModel):
    hunger: float
    sanity: float


class PetView(BaseModel):
    """Public projection of ``PetState``: no offering types, no corruption."""

    is_initialized: bool
    identity: Optional[PetIdentity]
    stats: StatsView
    stage: Stage
    age: float
    is_alive: bool
    inventory: Tuple[OfferingView, ...]
    daily_feeds: int
    game_day: int
    logs: Tuple[NarrativeLogEntry, ...]
    settings: UserSettings
    death_cause: Optional[DeathCause] = None
    placate_cooldown: float = 0  # game-minutes until placate is available again

    @classmethod
    def from_state(cls, state: PetState, placate_cooldown: float = 0) -> "PetView":
        return cls(
            is_initialized=state.is_initialized,
            identity=state.identity,
            stats=StatsView(hunger=state.stats.hunger, sanity=state.stats.sanity),
            stage=state.stage,
            age=state.age,
            is_alive=state.is_alive,
            inventory=tuple(
                OfferingView(id=o.id, description=o.description, icon=o.icon)
                for o in state.inventory
            ),
            daily_feeds=state.daily_feeds,
            game_day=state.game_day,
            logs=state.logs,
            settings=state.settings,
            death_cause=state.death.cause if state.death else None,
            placate_cooldown=placate_cooldown,
        )
