# creepy_companion/engine/decay.py
"""
Decay & Evolution Engine.

``step(state, elapsed_minutes)`` is a pure function of its inputs: it never
touches the clock, the logs or any collaborator. Decay is linear with
clamping, hunger and sanity are quantized to STAT_PRECISION decimals after
every step, and stage thresholds only depend on the final age. One call with
``n`` whole minutes therefore lands on exactly the same state as ``n`` calls
with one minute each. Offline catch-up relies on that.
"""
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from creepy_companion.models.pet import (
    STAT_MAX,
    STAT_MIN,
    DeathCause,
    InsanityEvent,
    PetState,
    PetStats,
    Stage,
)

# Real time to game time: 1000 ms of wall clock = 1 game-minute
REAL_MS_PER_GAME_MINUTE = 1000

HUNGER_PER_MINUTE = 0.05
SANITY_PER_MINUTE = 0.02
MINUTES_PER_DAY = 24 * 60

HATCH_AGE = 5
TEEN_AGE = MINUTES_PER_DAY
CORRUPTION_LIMIT = 80
DAILY_FEED_LIMIT = 3

# Decimals kept on hunger and sanity; float noise lives far below this
STAT_PRECISION = 6

INSANITY_SANITY_THRESHOLD = 30
INSANITY_CHANCE = 0.01


class CriticalEvent(str, Enum):
    STARVING = "starving"
    SANITY_LOST = "sanity_lost"
    OVERFED = "overfed"


WARNING_TEXTS = {
    CriticalEvent.STARVING: "WARNING: {name} is starving!",
    CriticalEvent.SANITY_LOST: "WARNING: {name} has lost all sanity!",
    CriticalEvent.OVERFED: "WARNING: {name} has eaten too much today!",
}


Transition = Tuple[Stage, Stage]


@dataclass(frozen=True)
class StepResult:
    previous: PetState
    state: PetState
    transitions: Tuple[Transition, ...] = ()
    days_crossed: int = 0

    @property
    def evolved(self) -> bool:
        return bool(self.transitions)


def clamp(value: float, lo: float = STAT_MIN, hi: float = STAT_MAX) -> float:
    """Clamp a value between lo and hi bounds."""
    return lo if value < lo else hi if value > hi else value


def quantize(value: float) -> float:
    return round(value, STAT_PRECISION)


def real_ms_to_game_minutes(ms: float) -> float:
    return ms / REAL_MS_PER_GAME_MINUTE


def next_stage(stage: Stage, age: float, corruption: float) -> Optional[Stage]:
    """One evaluation of the evolution precedence chain, or None if nothing applies."""
    if stage == Stage.ABOMINATION:
        return None
    if corruption > CORRUPTION_LIMIT:
        return Stage.ABOMINATION
    if stage == Stage.EGG and age >= HATCH_AGE:
        return Stage.BABY
    if stage == Stage.BABY and age >= TEEN_AGE:
        return Stage.TEEN
    return None


def evolve(stage: Stage, age: float, corruption: float) -> Tuple[Stage, Tuple[Transition, ...]]:
    """Re-run the precedence chain until no further transition applies."""
    transitions: List[Transition] = []
    target = next_stage(stage, age, corruption)
    while target is not None:
        transitions.append((stage, target))
        stage = target
        target = next_stage(stage, age, corruption)
    return stage, tuple(transitions)


def step(state: PetState, elapsed_minutes: float) -> StepResult:
    """Advance ``state`` by ``elapsed_minutes`` of game time."""
    elapsed = max(0.0, float(elapsed_minutes))

    new_age = state.age + elapsed
    hunger = quantize(clamp(state.stats.hunger + HUNGER_PER_MINUTE * elapsed))
    sanity = quantize(clamp(state.stats.sanity - SANITY_PER_MINUTE * elapsed))

    days_crossed = int(new_age // MINUTES_PER_DAY) - int(state.age // MINUTES_PER_DAY)
    daily_feeds = state.daily_feeds
    game_day = state.game_day
    if days_crossed > 0:
        daily_feeds = 0
        game_day += days_crossed

    stage, transitions = evolve(state.stage, new_age, state.stats.corruption)

    new_state = state.model_copy(update={
        "age": new_age,
        "stats": state.stats.model_copy(update={"hunger": hunger, "sanity": sanity}),
        "daily_feeds": daily_feeds,
        "game_day": game_day,
        "stage": stage,
    })
    return StepResult(previous=state, state=new_state, transitions=transitions,
                      days_crossed=max(0, days_crossed))


def detect_crossings(previous: PetState, current: PetState) -> Tuple[CriticalEvent, ...]:
    """Edge-triggered thresholds: only report a crossing, never a sustained condition."""
    events = []
    if previous.stats.hunger < STAT_MAX <= current.stats.hunger:
        events.append(CriticalEvent.STARVING)
    if previous.stats.sanity > STAT_MIN >= current.stats.sanity:
        events.append(CriticalEvent.SANITY_LOST)
    if previous.daily_feeds <= DAILY_FEED_LIMIT < current.daily_feeds:
        events.append(CriticalEvent.OVERFED)
    return tuple(events)


def death_cause(stats: PetStats) -> Optional[DeathCause]:
    """Starvation wins when both limits are reached at once."""
    if stats.hunger >= STAT_MAX:
        return DeathCause.STARVATION
    if stats.sanity <= STAT_MIN:
        return DeathCause.INSANITY
    return None


def minutes_until_death(stats: PetStats) -> int:
    """Whole game-minutes of decay until ``death_cause`` first applies (0 if it already does)."""
    to_starve = math.ceil(quantize((STAT_MAX - stats.hunger) / HUNGER_PER_MINUTE))
    to_lose_mind = math.ceil(quantize((stats.sanity - STAT_MIN) / SANITY_PER_MINUTE))
    return max(0, min(to_starve, to_lose_mind))


def roll_insanity_event(stats: PetStats, rng: random.Random) -> Optional[InsanityEvent]:
    """A small chance per tick of a hallucination, only while sanity is low."""
    if stats.sanity >= INSANITY_SANITY_THRESHOLD:
        return None
    if rng.random() >= INSANITY_CHANCE:
        return None
    return rng.choice(list(InsanityEvent))
