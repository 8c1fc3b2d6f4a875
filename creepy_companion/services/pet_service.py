# creepy_companion/services/pet_service.py
"""
State Store.

``PetService`` owns the one ``PetState`` of a running game. Every action reads
a snapshot, computes the complete next state through the engine, commits it
(which saves it), and only then hands narration and sound requests to the
background dispatcher. Collaborator results come back as by-id log patches.
"""
import random
import time
from functools import partial
from typing import Awaitable, Callable, List, Optional, Tuple

import structlog

from creepy_companion.engine import decay, economy, logbook
from creepy_companion.engine.decay import Transition
from creepy_companion.models.pet import (
    Archetype,
    DeathCause,
    DeathRecord,
    InsanityEvent,
    ItemType,
    LogSource,
    Offering,
    PetIdentity,
    PetState,
    PetView,
    ReactionType,
    Stage,
    UserSettings,
    new_id,
)
from creepy_companion.services.dispatch import BackgroundDispatcher
from creepy_companion.services.narrator import Narrator, format_memory, placeholder_text
from creepy_companion.services.persistence import PersistenceGateway
from creepy_companion.services.scheduler import Scheduler
from creepy_companion.services.sound_selector import STAGE_AMBIENT, SoundContext, SoundSelector

log = structlog.get_logger(__name__)

# (log entry id, coroutine factory producing the final text)
PendingNarration = Tuple[str, Callable[[], Awaitable[str]]]


def _clamp_volume(value: float) -> float:
    return decay.clamp(float(value), 0.0, 1.0)


class PetService:
    def __init__(self, scheduler: Scheduler, gateway: PersistenceGateway, narrator: Narrator,
                 sound_selector: Optional[SoundSelector] = None,
                 dispatcher: Optional[BackgroundDispatcher] = None,
                 clock: Callable[[], float] = time.time,
                 rng: Optional[random.Random] = None,
                 id_factory: Callable[[], str] = new_id):
        self.scheduler = scheduler
        self.gateway = gateway
        self.narrator = narrator
        self.sound_selector = sound_selector
        self.dispatcher = dispatcher or BackgroundDispatcher()
        self._clock = clock
        self._rng = rng or random.Random()
        self._id_factory = id_factory
        self._state = PetState(last_tick_at=clock())
        self._ticking = False

    @property
    def state(self) -> PetState:
        return self._state

    def view(self) -> PetView:
        return PetView.from_state(self._state,
                                  placate_cooldown=economy.placate_cooldown_remaining(self._state))

    # --- lifecycle ---

    def hydrate(self) -> PetState:
        """Load the saved pet, apply offline catch-up and save the result."""
        loaded = self.gateway.load(self._clock(), id_factory=self._id_factory)
        self._commit(loaded)
        log.info("pet_state_hydrated", initialized=loaded.is_initialized, alive=loaded.is_alive,
                 stage=loaded.stage.value, age=loaded.age)
        return self._state

    def start(self) -> bool:
        return self.scheduler.start(self.tick)

    async def stop(self) -> None:
        await self.scheduler.stop()

    async def drain(self) -> None:
        await self.dispatcher.drain()

    # --- actions ---

    def initialize_pet(self, name: str, archetype: Archetype, color: int) -> PetState:
        identity = PetIdentity(name=name, archetype=archetype, color=color)
        state = PetState(identity=identity, pet_id=self._id_factory(),
                         settings=self._state.settings, last_tick_at=self._clock())
        self._commit(state)
        log.info("pet_initialized", name=identity.name, archetype=identity.archetype.value,
                 color=f"#{identity.color:06x}")
        return self._state

    def tick(self) -> PetState:
        if self._ticking:
            log.debug("tick_skipped_reentrant")
            return self._state
        snapshot = self._state
        if not self._can_act(snapshot, "tick"):
            return snapshot

        self._ticking = True
        try:
            minutes = decay.real_ms_to_game_minutes(self.scheduler.interval_ms)
            result = decay.step(snapshot, minutes)
            state = result.state.model_copy(update={"last_tick_at": self._clock()})
            state, narrations = self._record_transitions(snapshot, state, result.transitions)
            state = self._record_crossings(snapshot, state)
            self._commit(state)
        finally:
            self._ticking = False

        if result.days_crossed:
            log.info("game_day_advanced", game_day=state.game_day, days_crossed=result.days_crossed)
        self._dispatch_narrations(narrations)
        for _, to_stage in result.transitions:
            self._cue_sound("evolution", self._state, ambient_hint=STAGE_AMBIENT[to_stage])

        cause = decay.death_cause(self._state.stats)
        if cause is not None:
            self.trigger_death(cause)
            return self._state
        insanity = decay.roll_insanity_event(self._state.stats, self._rng)
        if insanity is not None:
            self._trigger_insanity(insanity)
        return self._state

    async def scavenge(self) -> Optional[Offering]:
        """Find one offering, if the inventory has room. The description comes from the narrator."""
        snapshot = self._state
        if not self._can_act(snapshot, "scavenge"):
            return None
        if not economy.has_capacity(snapshot):
            log.debug("action_skipped", action="scavenge", reason="inventory_full")
            return None

        item_type = economy.roll_item_type(self._rng)
        description = await self.narrator.describe_offering(item_type)

        # Other actions may have committed while the description was generated
        current = self._state
        if current.pet_id != snapshot.pet_id or not current.is_alive:
            log.debug("action_skipped", action="scavenge", reason="pet_changed")
            return None
        offering = economy.make_offering(item_type, description, self._id_factory)
        updated = economy.add_offering(current, offering)
        if updated is None:
            log.debug("action_skipped", action="scavenge", reason="inventory_full")
            return None

        self._commit(updated)
        log.info("offering_found", offering_id=offering.id, inventory_size=len(updated.inventory))
        self._cue_sound("scavenge", self._state, item_type=item_type)
        return offering

    def feed(self, item_id: str) -> Optional[str]:
        """Consume an offering. Returns the id of the placeholder log entry, or None on no-op."""
        snapshot = self._state
        if not self._can_act(snapshot, "feed"):
            return None
        fed = economy.apply_feeding(snapshot, item_id)
        if fed is None:
            log.debug("action_skipped", action="feed", reason="unknown_offering", item_id=item_id)
            return None

        settled = decay.step(fed.state, 0)
        event = "vomit" if fed.overfed else "feed"
        state, entry_id = logbook.append(settled.state, placeholder_text(event, snapshot.name),
                                         LogSource.PET, pending=True, id_factory=self._id_factory)
        state, narrations = self._record_transitions(snapshot, state, settled.transitions)
        state = self._record_crossings(snapshot, state)
        self._commit(state)

        log.info("pet_fed", item_id=item_id, item_type=fed.offering.type.value,
                 overfed=fed.overfed, daily_feeds=state.daily_feeds)

        memory = format_memory(snapshot.logs, current=state.stats, previous=snapshot.stats)
        identity = snapshot.identity
        if fed.overfed:
            make_text = partial(self.narrator.narrate_vomit, identity.name, state.stage,
                                identity.archetype, state.stats, memory=memory)
        else:
            make_text = partial(self.narrator.narrate_feeding, identity.name, state.stage,
                                identity.archetype, state.stats, fed.offering.description,
                                fed.offering.type, memory=memory)
        self._dispatch_narrations([(entry_id, make_text)] + narrations)

        self._cue_sound(event, self._state, item_type=fed.offering.type)
        for _, to_stage in settled.transitions:
            self._cue_sound("evolution", self._state, ambient_hint=STAGE_AMBIENT[to_stage])
        return entry_id

    def placate(self) -> Optional[str]:
        """Comfort the pet. Returns the placeholder log id, or None while on cooldown."""
        snapshot = self._state
        if not self._can_act(snapshot, "placate"):
            return None
        placated = economy.apply_placate(snapshot)
        if placated is None:
            log.debug("action_skipped", action="placate", reason="cooldown",
                      remaining=economy.placate_cooldown_remaining(snapshot))
            return None

        state, entry_id = logbook.append(placated, placeholder_text("placate", snapshot.name),
                                         LogSource.PET, pending=True, id_factory=self._id_factory)
        self._commit(state)
        log.info("pet_placated", sanity=state.stats.sanity, hunger=state.stats.hunger)

        memory = format_memory(snapshot.logs, current=state.stats, previous=snapshot.stats)
        identity = snapshot.identity
        self._dispatch_narrations([(entry_id, partial(
            self.narrator.narrate_placate, identity.name, state.stage, identity.archetype,
            state.stats, memory=memory))])
        self._cue_sound("placate", self._state)
        return entry_id

    def add_reaction(self, entry_id: str, reaction: ReactionType) -> bool:
        """One reaction per log entry; reacting nudges the pet's stats."""
        if not self._can_act(self._state, "reaction"):
            return False
        reacted = economy.apply_reaction(self._state, entry_id, reaction)
        if reacted is None:
            log.debug("action_skipped", action="reaction", reason="missing_or_reacted",
                      entry_id=entry_id)
            return False
        self._commit(reacted)
        log.info("reaction_added", entry_id=entry_id, reaction=reaction.value)
        return True

    def add_log(self, text: str, source: LogSource = LogSource.SYSTEM, pending: bool = False) -> str:
        state, entry_id = logbook.append(self._state, text, source, pending=pending,
                                         id_factory=self._id_factory)
        self._commit(state)
        return entry_id

    def update_log_text(self, entry_id: str, text: str) -> bool:
        """Patch one entry's text if it still exists. A missing entry is not an error."""
        patched = logbook.patch_text(self._state, entry_id, text)
        if patched is None:
            log.debug("log_patch_dropped", entry_id=entry_id)
            return False
        self._commit(patched)
        return True

    def reorder_inventory(self, from_index: int, to_index: int) -> bool:
        inventory = economy.reorder_inventory(self._state.inventory, from_index, to_index)
        if inventory == self._state.inventory:
            log.debug("action_skipped", action="reorder_inventory", reason="no_change",
                      from_index=from_index, to_index=to_index)
            return False
        self._commit(self._state.model_copy(update={"inventory": inventory}))
        return True

    def update_settings(self, master_volume: Optional[float] = None,
                        sfx_volume: Optional[float] = None,
                        ambient_volume: Optional[float] = None,
                        is_muted: Optional[bool] = None) -> UserSettings:
        update = {}
        if master_volume is not None:
            update["master_volume"] = _clamp_volume(master_volume)
        if sfx_volume is not None:
            update["sfx_volume"] = _clamp_volume(sfx_volume)
        if ambient_volume is not None:
            update["ambient_volume"] = _clamp_volume(ambient_volume)
        if is_muted is not None:
            update["is_muted"] = bool(is_muted)
        if update:
            settings = self._state.settings.model_copy(update=update)
            self._commit(self._state.model_copy(update={"settings": settings}))
            log.info("settings_updated", **update)
        return self._state.settings

    def trigger_death(self, cause: DeathCause) -> Optional[str]:
        snapshot = self._state
        if not self._can_act(snapshot, "death"):
            return None
        record = DeathRecord(cause=cause, age=snapshot.age, stage=snapshot.stage,
                             final_stats=snapshot.stats, died_at=self._clock())
        state = snapshot.model_copy(update={"is_alive": False, "death": record})
        state, entry_id = logbook.append(state, placeholder_text("death", snapshot.name),
                                         LogSource.SYSTEM, pending=True,
                                         id_factory=self._id_factory)
        self._commit(state)
        log.warning("pet_died", name=snapshot.name, cause=cause.value, age=snapshot.age,
                    stage=snapshot.stage.value)

        identity = snapshot.identity
        make_text = partial(self.narrator.narrate_death, identity.name, identity.archetype,
                            snapshot.stage, snapshot.age, cause)
        self._dispatch_narrations([(entry_id, make_text)])
        self._cue_sound("death", self._state)
        return entry_id

    def reset(self) -> PetState:
        """Discard the pet entirely. User settings survive."""
        self._commit(PetState(settings=self._state.settings, last_tick_at=self._clock()))
        log.info("pet_reset")
        return self._state

    # --- internals ---

    def _can_act(self, state: PetState, action: str) -> bool:
        if not state.is_initialized:
            log.debug("action_skipped", action=action, reason="not_initialized")
            return False
        if not state.is_alive:
            log.debug("action_skipped", action=action, reason="pet_dead")
            return False
        return True

    def _commit(self, state: PetState) -> None:
        # The gateway may hand back a copy with trimmed logs
        self._state = self.gateway.save(state)

    def _record_transitions(self, previous: PetState, state: PetState,
                            transitions: Tuple[Transition, ...]) -> Tuple[PetState, List[PendingNarration]]:
        narrations: List[PendingNarration] = []
        identity = previous.identity
        for from_stage, to_stage in transitions:
            event = "hatch" if from_stage == Stage.EGG else "evolution"
            state, entry_id = logbook.append(state, placeholder_text(event, identity.name, to_stage),
                                             LogSource.SYSTEM, pending=True,
                                             id_factory=self._id_factory)
            log.info("pet_evolved", name=identity.name, from_stage=from_stage.value,
                     to_stage=to_stage.value, age=state.age)
            memory = format_memory(previous.logs, current=state.stats, previous=previous.stats)
            narrations.append((entry_id, partial(self.narrator.narrate_evolution, identity.name,
                                                 identity.archetype, from_stage, to_stage,
                                                 state.stats, memory=memory)))
        return state, narrations

    def _record_crossings(self, previous: PetState, state: PetState) -> PetState:
        events = decay.detect_crossings(previous, state)
        for event in events:
            log.warning("critical_threshold_crossed", threshold=event.value, name=previous.name,
                        hunger=state.stats.hunger, sanity=state.stats.sanity,
                        daily_feeds=state.daily_feeds)
        return logbook.append_warnings(state, events, id_factory=self._id_factory)

    def _trigger_insanity(self, event: InsanityEvent) -> str:
        snapshot = self._state
        state, entry_id = logbook.append(snapshot, placeholder_text("insanity", snapshot.name),
                                         LogSource.PET, pending=True, id_factory=self._id_factory)
        self._commit(state)
        log.info("insanity_event_triggered", insanity_event=event.value, sanity=state.stats.sanity)

        identity = snapshot.identity
        memory = format_memory(snapshot.logs)
        self._dispatch_narrations([(entry_id, partial(
            self.narrator.narrate_insanity, identity.name, state.stage, identity.archetype,
            state.stats, event, memory=memory))])
        sound = "insanity_whispers" if event == InsanityEvent.WHISPERS else "insanity_stinger"
        self._cue_sound(sound, self._state)
        return entry_id

    def _dispatch_narrations(self, narrations: List[PendingNarration]) -> None:
        for entry_id, make_text in narrations:
            self.dispatcher.submit(self._narrate_into(entry_id, make_text), name=f"narrate:{entry_id}")

    async def _narrate_into(self, entry_id: str, make_text: Callable[[], Awaitable[str]]) -> None:
        text = await make_text()
        self.update_log_text(entry_id, text)

    def _cue_sound(self, event_type: str, state: PetState, item_type: Optional[ItemType] = None,
                   ambient_hint: Optional[str] = None) -> None:
        if self.sound_selector is None or state.settings.is_muted or not state.is_initialized:
            return
        context = SoundContext(
            pet_name=state.name,
            stage=state.stage,
            archetype=state.identity.archetype,
            sanity=state.stats.sanity,
            corruption=state.stats.corruption,
            item_type=item_type,
            ambient_hint=ambient_hint,
        )
        self.dispatcher.submit(self.sound_selector.select(event_type, context),
                               name=f"sound:{event_type}")
