# creepy_companion/services/narrator.py
"""
Narrator - turns game events into prompts for the narrative collaborator.

Every ``narrate_*`` coroutine resolves to usable text: when the collaborator
reports an error the event-specific fallback line is used instead of its
generic filler.
"""
import random
from typing import Dict, List, Optional, Sequence

import structlog

from creepy_companion.models.pet import (
    Archetype,
    DeathCause,
    InsanityEvent,
    ItemType,
    NarrativeLogEntry,
    PetStats,
    Stage,
)
from creepy_companion.services.narrative_client import NarrativeClient, NarrativeRequest

log = structlog.get_logger(__name__)

MEMORY_ENTRIES = 5
MEMORY_ENTRY_CHARS = 100
MEMORY_MAX_CHARS = 2000
SIGNIFICANT_SWING = 20

FALLBACK_LINES: Dict[str, List[str]] = {
    "feed_purity": [
        "consumes the offering with an unsettling gentleness.",
        "absorbs the purity, its form briefly luminescent.",
        "accepts the gift. Something shifts within.",
    ],
    "feed_rot": [
        "devours the corruption eagerly, growing darker.",
        "writhes with pleasure as decay spreads through it.",
        "consumes the rot. Its eyes gleam with hunger.",
    ],
    "vomit": [
        "convulses violently, expelling what it cannot contain.",
        "retches and heaves, its form rejecting the excess.",
        "spasms uncontrollably. Greed has consequences.",
    ],
    "hatch": [
        "emerges from the egg, wet and trembling.",
        "breaks free, its first breath a rattling gasp.",
        "hatches into existence, already watching.",
    ],
    "evolution": [
        "transforms, shedding its former self like dead skin.",
        "writhes as new appendages emerge from within.",
        "screams silently as it becomes something else.",
    ],
    "death_starvation": [
        "succumbs to the gnawing emptiness within.",
        "withers into silence, starved of sustenance.",
    ],
    "death_insanity": [
        "loses itself to the void between thoughts.",
        "dissolves into the madness that claimed it.",
    ],
    "placate": [
        "finds momentary peace in your presence.",
        "calms slightly, though darkness still lingers.",
        "settles into an uneasy stillness.",
    ],
    "insanity_whispers": [
        "hears voices that aren't there, whispering secrets from the void.",
        "catches fragments of impossible conversations echoing in its mind.",
    ],
    "insanity_shadows": [
        "sees shapes moving in the corners, shadows that shouldn't exist.",
        "glimpses figures that vanish when observed, leaving only dread.",
    ],
    "insanity_glitch": [
        "flickers as reality stutters around it, moments repeating in broken loops.",
        "watches the world skip, pieces of existence sliding apart.",
    ],
    "insanity_inversion": [
        "feels everything turn inside out, familiar things becoming alien and wrong.",
        "stares as up becomes down and light becomes dark.",
    ],
}

INSANITY_IMAGERY = {
    InsanityEvent.WHISPERS: "hearing whispers and voices from nowhere",
    InsanityEvent.SHADOWS: "seeing shadows move on their own, shapes that shouldn't exist",
    InsanityEvent.GLITCH: "watching reality glitch and fragment, moments stuttering and repeating",
    InsanityEvent.INVERSION: "perceiving everything as inverted, the world turned inside out",
}

PLACATE_IMAGERY = {
    Archetype.GLOOM: "responds to the darkness within your comfort, finding solace in shared shadows",
    Archetype.SPARK: "brightens at your touch, its inner light flickering with renewed hope",
    Archetype.ECHO: "resonates with your presence, its form rippling with the echoes of your care",
}


def placeholder_text(event: str, pet_name: str, stage: Optional[Stage] = None) -> str:
    """Text shown while the real narrative is still being generated."""
    if event == "feed":
        return f"{pet_name} consumes the offering..."
    if event == "vomit":
        return f"{pet_name} convulses violently..."
    if event == "hatch":
        return f"{pet_name} stirs within the egg... it emerges as a {stage.value}."
    if event == "evolution":
        return f"{pet_name} begins to transform into a {stage.value}..."
    if event == "death":
        return f"{pet_name} grows still..."
    if event == "placate":
        return f"{pet_name} responds to your comfort..."
    if event == "insanity":
        return f"{pet_name} perceives something disturbing..."
    return f"{pet_name}..."


def format_memory(logs: Sequence[NarrativeLogEntry], current: Optional[PetStats] = None,
                  previous: Optional[PetStats] = None) -> str:
    """Short recap of recent events for prompt continuity, capped at MEMORY_MAX_CHARS."""
    lines = []
    if current is not None and previous is not None:
        sanity_change = current.sanity - previous.sanity
        corruption_change = current.corruption - previous.corruption
        if abs(sanity_change) > SIGNIFICANT_SWING:
            lines.append(f"Sanity has changed significantly ({sanity_change:+.0f}).")
        if abs(corruption_change) > SIGNIFICANT_SWING:
            lines.append(f"Corruption has changed significantly ({corruption_change:+.0f}).")

    recent = [e for e in logs if not e.pending][-MEMORY_ENTRIES:]
    if recent:
        lines.append("Recent narrative:")
        for entry in recent:
            text = entry.text
            if len(text) > MEMORY_ENTRY_CHARS:
                text = text[:MEMORY_ENTRY_CHARS] + "..."
            lines.append(f"- {text}")

    memory = "\n".join(lines)
    if len(memory) > MEMORY_MAX_CHARS:
        memory = memory[:MEMORY_MAX_CHARS] + "..."
    return memory


def _with_memory(prompt: str, memory: str) -> str:
    return f"{prompt}\n\nContext:\n{memory}" if memory else prompt


class Narrator:
    def __init__(self, client: NarrativeClient, rng: Optional[random.Random] = None):
        self.client = client
        self._rng = rng or random.Random()

    def fallback(self, event: str, pet_name: str) -> str:
        return f"{pet_name} {self._rng.choice(FALLBACK_LINES[event])}"

    async def _narrate(self, event: str, pet_name: str, prompt: str) -> str:
        response = await self.client.generate(NarrativeRequest(prompt=prompt))
        if response.error or not response.text.strip():
            log.warning("narrative_fallback_used", narrative_event=event, error=response.error)
            return self.fallback(event, pet_name)
        return response.text.strip()

    async def describe_offering(self, item_type: ItemType) -> str:
        flavour = "pure" if item_type == ItemType.PURITY else "rotting"
        prompt = (f"Generate a one-sentence abstract description for a mysterious {flavour} "
                  "offering. Be cryptic and unsettling.")
        response = await self.client.generate(NarrativeRequest(prompt=prompt, max_tokens=50))
        return response.text

    async def narrate_feeding(self, pet_name: str, stage: Stage, archetype: Archetype,
                              stats: PetStats, item_description: str, item_type: ItemType,
                              memory: str = "") -> str:
        prompt = (
            f"{pet_name} the {stage.value.lower()} {archetype.value.lower()} creature consumes "
            f"\"{item_description}\" (a {item_type.value.lower()} offering). "
            f"Current sanity: {stats.sanity:.0f}%, corruption: {stats.corruption:.0f}%. "
            "Generate 1-2 sentences of atmospheric horror narrative describing this feeding."
        )
        event = "feed_purity" if item_type == ItemType.PURITY else "feed_rot"
        return await self._narrate(event, pet_name, _with_memory(prompt, memory))

    async def narrate_vomit(self, pet_name: str, stage: Stage, archetype: Archetype,
                            stats: PetStats, memory: str = "") -> str:
        prompt = (
            f"{pet_name} the {stage.value.lower()} {archetype.value.lower()} creature has been "
            f"overfed and is violently rejecting the excess. Sanity: {stats.sanity:.0f}%, "
            f"corruption: {stats.corruption:.0f}%. Generate 1-2 sentences of visceral horror "
            "narrative about this rejection. Be disturbing but not gratuitous."
        )
        return await self._narrate("vomit", pet_name, _with_memory(prompt, memory))

    async def narrate_evolution(self, pet_name: str, archetype: Archetype, from_stage: Stage,
                                to_stage: Stage, stats: PetStats, memory: str = "") -> str:
        if from_stage == Stage.EGG:
            event = "hatch"
            prompt = (
                f"{pet_name} the {archetype.value.lower()} creature hatches from its egg, "
                f"emerging as a {to_stage.value.lower()}. Generate 1-2 sentences of "
                "atmospheric horror narrative about this birth."
            )
        else:
            event = "evolution"
            prompt = (
                f"{pet_name} the {archetype.value.lower()} creature evolves from "
                f"{from_stage.value.lower()} to {to_stage.value.lower()}. "
                f"Sanity: {stats.sanity:.0f}%, corruption: {stats.corruption:.0f}%. "
                "Generate 1-2 sentences of body-horror narrative about this transformation."
            )
        return await self._narrate(event, pet_name, _with_memory(prompt, memory))

    async def narrate_death(self, pet_name: str, archetype: Archetype, stage: Stage,
                            age: float, cause: DeathCause) -> str:
        hours = int(age // 60)
        prompt = (
            f"{pet_name} the {stage.value.lower()} {archetype.value.lower()} creature has died "
            f"of {cause.value.lower()} after {hours} hours. Generate 2-3 sentences of somber, "
            "haunting narrative about its final moments."
        )
        return await self._narrate(f"death_{cause.value.lower()}", pet_name, prompt)

    async def narrate_placate(self, pet_name: str, stage: Stage, archetype: Archetype,
                              stats: PetStats, memory: str = "") -> str:
        prompt = (
            f"{pet_name} the {stage.value.lower()} {archetype.value.lower()} creature "
            f"{PLACATE_IMAGERY[archetype]}. Current sanity: {stats.sanity:.0f}%, "
            f"corruption: {stats.corruption:.0f}%. Generate 1-2 sentences of atmospheric "
            "narrative describing how this creature responds to being comforted."
        )
        return await self._narrate("placate", pet_name, _with_memory(prompt, memory))

    async def narrate_insanity(self, pet_name: str, stage: Stage, archetype: Archetype,
                               stats: PetStats, event: InsanityEvent, memory: str = "") -> str:
        prompt = (
            f"{pet_name} the {stage.value.lower()} {archetype.value.lower()} creature is "
            f"experiencing a moment of insanity: {INSANITY_IMAGERY[event]}. "
            f"Sanity: {stats.sanity:.0f}%, corruption: {stats.corruption:.0f}%. Generate 1-2 "
            "sentences of atmospheric horror narrative describing this hallucination."
        )
        return await self._narrate(f"insanity_{event.value.lower()}", pet_name,
                                   _with_memory(prompt, memory))
