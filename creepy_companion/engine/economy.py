# creepy_companion/engine/economy.py
"""Stat deltas caused by what the player does, starting with offerings."""
import random
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from creepy_companion.engine import logbook
from creepy_companion.engine.decay import DAILY_FEED_LIMIT, clamp, quantize
from creepy_companion.models.pet import (
    INVENTORY_CAPACITY,
    ItemType,
    Offering,
    PetState,
    PetStats,
    ReactionType,
    new_id,
)


@dataclass(frozen=True)
class StatDelta:
    hunger: float = 0
    sanity: float = 0
    corruption: float = 0


FEED_EFFECTS: Dict[ItemType, StatDelta] = {
    ItemType.PURITY: StatDelta(hunger=-20, sanity=10, corruption=-5),
    ItemType.ROT: StatDelta(hunger=-20, sanity=-15, corruption=10),
}
OVERFEED_PENALTY = StatDelta(sanity=-20)

PLACATE_EFFECT = StatDelta(hunger=5, sanity=15)
# A calm, mostly uncorrupted pet gets less out of being placated
PLACATE_CALM_EFFECT = StatDelta(hunger=5, sanity=5)
PLACATE_CALM_SANITY = 80
PLACATE_CALM_CORRUPTION = 50
PLACATE_COOLDOWN_MINUTES = 30

REACTION_EFFECTS: Dict[ReactionType, StatDelta] = {
    ReactionType.COMFORT: StatDelta(sanity=5),
    ReactionType.FEAR: StatDelta(sanity=-5),
    ReactionType.LOVE: StatDelta(sanity=3, corruption=-2),
    ReactionType.DREAD: StatDelta(sanity=-3, corruption=2),
    ReactionType.HOPE: StatDelta(sanity=2, corruption=-1),
}

ITEM_ICONS = {
    ItemType.PURITY: "✨",
    ItemType.ROT: "🦴",
}


@dataclass(frozen=True)
class FeedResult:
    previous: PetState
    state: PetState
    offering: Offering
    overfed: bool


def has_capacity(state: PetState) -> bool:
    return len(state.inventory) < INVENTORY_CAPACITY


def roll_item_type(rng: random.Random) -> ItemType:
    return ItemType.PURITY if rng.random() < 0.5 else ItemType.ROT


def make_offering(item_type: ItemType, description: str,
                  id_factory: Callable[[], str] = new_id) -> Offering:
    return Offering(id=id_factory(), type=item_type, description=description,
                    icon=ITEM_ICONS[item_type])


def add_offering(state: PetState, offering: Offering) -> Optional[PetState]:
    """Append to the inventory, or None when it is already full."""
    if not has_capacity(state):
        return None
    return state.model_copy(update={"inventory": state.inventory + (offering,)})


def find_offering(state: PetState, item_id: str) -> Optional[Offering]:
    return next((o for o in state.inventory if o.id == item_id), None)


def apply_delta(stats: PetStats, delta: StatDelta) -> PetStats:
    # Each stat is clamped on its own
    return PetStats(
        hunger=quantize(clamp(stats.hunger + delta.hunger)),
        sanity=quantize(clamp(stats.sanity + delta.sanity)),
        corruption=quantize(clamp(stats.corruption + delta.corruption)),
    )


def apply_feeding(state: PetState, item_id: str) -> Optional[FeedResult]:
    """Consume an offering. Returns None when ``item_id`` is not in the inventory."""
    offering = find_offering(state, item_id)
    if offering is None:
        return None

    stats = apply_delta(state.stats, FEED_EFFECTS[offering.type])
    daily_feeds = state.daily_feeds + 1
    overfed = daily_feeds > DAILY_FEED_LIMIT
    if overfed:
        stats = apply_delta(stats, OVERFEED_PENALTY)

    new_state = state.model_copy(update={
        "stats": stats,
        "inventory": tuple(o for o in state.inventory if o.id != item_id),
        "daily_feeds": daily_feeds,
    })
    return FeedResult(previous=state, state=new_state, offering=offering, overfed=overfed)


def reorder_inventory(inventory: Tuple[Offering, ...], from_index: int,
                      to_index: int) -> Tuple[Offering, ...]:
    """Move one offering to a new slot; out-of-range or equal indices leave it untouched."""
    size = len(inventory)
    if from_index == to_index or not (0 <= from_index < size and 0 <= to_index < size):
        return inventory
    items = list(inventory)
    moved = items.pop(from_index)
    items.insert(to_index, moved)
    return tuple(items)


def placate_cooldown_remaining(state: PetState) -> float:
    if state.last_placate_at is None:
        return 0
    return max(0, PLACATE_COOLDOWN_MINUTES - (state.age - state.last_placate_at))


def placate_effect(stats: PetStats) -> StatDelta:
    if stats.sanity >= PLACATE_CALM_SANITY and stats.corruption < PLACATE_CALM_CORRUPTION:
        return PLACATE_CALM_EFFECT
    return PLACATE_EFFECT


def apply_placate(state: PetState) -> Optional[PetState]:
    """Soothe the pet at the cost of a little hunger. None while the cooldown is running."""
    if placate_cooldown_remaining(state) > 0:
        return None
    return state.model_copy(update={
        "stats": apply_delta(state.stats, placate_effect(state.stats)),
        "last_placate_at": state.age,
    })


def apply_reaction(state: PetState, entry_id: str, reaction: ReactionType) -> Optional[PetState]:
    """React to one log entry. None if the entry is gone or already carries a reaction."""
    reacted = logbook.set_reaction(state, entry_id, reaction)
    if reacted is None:
        return None
    return reacted.model_copy(update={
        "stats": apply_delta(reacted.stats, REACTION_EFFECTS[reaction]),
    })
