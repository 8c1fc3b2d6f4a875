# creepy_companion/services/persistence.py
"""
Persistence Gateway.

Saves a whitelisted, versioned snapshot of ``PetState`` under one storage key,
and restores it on startup with offline catch-up applied. Nothing here raises
into gameplay: quota failures trim the logs and retry once, unreadable
snapshots are discarded in favour of a fresh state.
"""
import json
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from creepy_companion.core.storage import StorageBackend, StorageError, StorageQuotaExceeded
from creepy_companion.engine import decay, logbook
from creepy_companion.models.pet import DeathRecord, LogSource, PetState, new_id

log = structlog.get_logger(__name__)

SNAPSHOT_VERSION = 1
DEFAULT_TRIM_LIMIT = 50
AWAY_NOTICE_MINUTES = 60

PERSISTED_FIELDS = {
    "identity",
    "pet_id",
    "stats",
    "stage",
    "age",
    "is_alive",
    "inventory",
    "daily_feeds",
    "game_day",
    "logs",
    "last_tick_at",
    "settings",
    "death",
    "last_placate_at",
}


class CorruptSnapshotError(Exception):
    """The stored record cannot be turned back into a ``PetState``."""


def serialize(state: PetState) -> str:
    payload = {
        "version": SNAPSHOT_VERSION,
        "state": state.model_dump(mode="json", include=PERSISTED_FIELDS),
    }
    return json.dumps(payload, ensure_ascii=False)


def deserialize(raw: str) -> PetState:
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise CorruptSnapshotError(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise CorruptSnapshotError("Snapshot is not an object")
    if payload.get("version") != SNAPSHOT_VERSION:
        raise CorruptSnapshotError(f"Unsupported snapshot version: {payload.get('version')!r}")
    try:
        return PetState.model_validate(payload.get("state"))
    except ValidationError as e:
        raise CorruptSnapshotError(f"Snapshot failed validation: {e.error_count()} error(s)") from e


def catch_up(state: PetState, now: float, id_factory: Callable[[], str] = new_id) -> PetState:
    """Apply the time that passed while nothing was ticking, as one engine step."""
    if not state.is_initialized or not state.is_alive:
        return state

    elapsed_seconds = int(now - state.last_tick_at)
    if elapsed_seconds <= 0:
        return state

    minutes = decay.real_ms_to_game_minutes(elapsed_seconds * 1000)
    # Live ticking stops at the minute the pet dies; so does the jump
    lived = min(minutes, decay.minutes_until_death(state.stats))
    result = decay.step(state, lived)
    restored = result.state.model_copy(update={"last_tick_at": state.last_tick_at + elapsed_seconds})

    for _, to_stage in result.transitions:
        restored, _ = logbook.append(
            restored, f"While you were away, {state.name} became a {to_stage.value}.",
            LogSource.SYSTEM, id_factory=id_factory,
        )
    restored = logbook.append_warnings(restored, decay.detect_crossings(state, result.state),
                                       id_factory=id_factory)

    cause = decay.death_cause(restored.stats)
    if cause is not None:
        died_at = state.last_tick_at + lived * decay.REAL_MS_PER_GAME_MINUTE / 1000
        record = DeathRecord(cause=cause, age=restored.age, stage=restored.stage,
                             final_stats=restored.stats, died_at=died_at)
        restored = restored.model_copy(update={"is_alive": False, "death": record})
        restored, _ = logbook.append(
            restored, f"While you were away, {state.name} died of {cause.value.lower()}.",
            LogSource.SYSTEM, id_factory=id_factory,
        )
        log.warning("pet_died_offline", name=state.name, cause=cause.value, age=restored.age)

    if minutes >= AWAY_NOTICE_MINUTES:
        away = elapsed_seconds // 60
        notice = f"You were away for {away} minute{'' if away == 1 else 's'}."
        if restored.is_alive:
            notice += f" {state.name} has been waiting..."
        restored, _ = logbook.append(restored, notice, LogSource.SYSTEM, id_factory=id_factory)

    log.info("offline_catch_up_applied", elapsed_minutes=minutes, days_crossed=result.days_crossed,
             from_stage=state.stage.value, to_stage=restored.stage.value)
    return restored


class PersistenceGateway:
    def __init__(self, storage: StorageBackend, key: str = "creepy-companion-storage",
                 trim_limit: int = DEFAULT_TRIM_LIMIT):
        self.storage = storage
        self.key = key
        self.trim_limit = trim_limit

    def save(self, state: PetState) -> PetState:
        """Persist ``state``. Returns the state that was actually written (logs may be trimmed)."""
        try:
            self.storage.write(self.key, serialize(state))
            return state
        except StorageQuotaExceeded as e:
            log.warning("storage_quota_exceeded_trimming_logs", key=self.key, error=str(e),
                        log_count=len(state.logs), keep=self.trim_limit)
        except StorageError as e:
            log.critical("state_save_failed", key=self.key, error=str(e))
            return state

        trimmed = logbook.trim(state, self.trim_limit)
        try:
            self.storage.write(self.key, serialize(trimmed))
        except StorageError as e:
            log.critical("state_save_failed_after_trimming", key=self.key, error=str(e))
            return state
        return trimmed

    def read(self) -> Optional[PetState]:
        """The stored state as saved, or None when nothing usable is stored."""
        try:
            raw = self.storage.read(self.key)
        except StorageError as e:
            log.critical("state_read_failed", key=self.key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return deserialize(raw)
        except CorruptSnapshotError as e:
            log.critical("stored_state_corrupted_discarding", key=self.key, error=str(e))
            self.clear()
            return None

    def load(self, now: float, id_factory: Callable[[], str] = new_id) -> PetState:
        stored = self.read()
        if stored is None:
            return PetState(last_tick_at=now)
        return catch_up(stored, now, id_factory=id_factory)

    def clear(self) -> None:
        try:
            self.storage.remove(self.key)
        except StorageError as e:
            log.error("state_remove_failed", key=self.key, error=str(e))
