# creepy_companion/engine/logbook.py
"""
Narrative log arena.

Entries are only ever appended, patched in place by id, or trimmed to the most
recent N. Patching is apply-if-present: a patch for an entry that has been
trimmed away in the meantime is simply dropped.
"""
from typing import Callable, Iterable, Optional, Tuple

from creepy_companion.engine.decay import WARNING_TEXTS, CriticalEvent
from creepy_companion.models.pet import (
    LogSource,
    NarrativeLogEntry,
    PetState,
    ReactionType,
    new_id,
)

Logs = Tuple[NarrativeLogEntry, ...]


def find(logs: Logs, entry_id: str) -> Optional[NarrativeLogEntry]:
    return next((e for e in logs if e.id == entry_id), None)


def append(state: PetState, text: str, source: LogSource, pending: bool = False,
           id_factory: Callable[[], str] = new_id) -> Tuple[PetState, str]:
    """Return the state with a new entry stamped at the current game age, plus its id."""
    entry = NarrativeLogEntry(id=id_factory(), text=text, source=source,
                              timestamp=state.age, pending=pending)
    return state.model_copy(update={"logs": state.logs + (entry,)}), entry.id


def patch_text(state: PetState, entry_id: str, text: str) -> Optional[PetState]:
    """Replace the text of one entry and clear its pending flag; None if the id is gone."""
    if find(state.logs, entry_id) is None:
        return None
    logs = tuple(
        e.model_copy(update={"text": text, "pending": False}) if e.id == entry_id else e
        for e in state.logs
    )
    return state.model_copy(update={"logs": logs})


def trim(state: PetState, keep: int) -> PetState:
    if len(state.logs) <= keep:
        return state
    logs = state.logs[-keep:] if keep > 0 else ()
    return state.model_copy(update={"logs": logs})


def set_reaction(state: PetState, entry_id: str, reaction: ReactionType) -> Optional[PetState]:
    """Attach the player's reaction to one entry; None if the id is gone or already reacted to."""
    entry = find(state.logs, entry_id)
    if entry is None or entry.reaction is not None:
        return None
    logs = tuple(e.model_copy(update={"reaction": reaction}) if e.id == entry_id else e
                 for e in state.logs)
    return state.model_copy(update={"logs": logs})


def append_warnings(state: PetState, events: Iterable[CriticalEvent],
                    id_factory: Callable[[], str] = new_id) -> PetState:
    for event in events:
        state, _ = append(state, WARNING_TEXTS[event].format(name=state.name), LogSource.SYSTEM,
                          id_factory=id_factory)
    return state
