# creepy_companion/services/sound_selector.py
"""Audio-selection collaborator client.

Playback happens elsewhere; the core only asks which sounds fit an event and
logs the answer. Failures are absorbed and logged, never raised.
"""
from typing import List, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from creepy_companion.models.pet import Archetype, ItemType, Stage

log = structlog.get_logger(__name__)

STAGE_AMBIENT = {
    Stage.EGG: "ambient_suburban_neighborhood_morning",
    Stage.BABY: "ambient_rain_medium_2",
    Stage.TEEN: "ambient_creepy_ambience_3",
    Stage.ABOMINATION: "ambient_drone_doom",
}


class SoundContext(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pet_name: str
    stage: Stage
    archetype: Archetype
    sanity: float
    corruption: float
    item_type: Optional[ItemType] = None
    narrative_text: Optional[str] = None
    ambient_hint: Optional[str] = None


class SoundSelection(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    primary_sound: str
    secondary_sounds: List[str] = []
    ambient_sound: Optional[str] = None
    volume: float = 1.0
    cached: bool = False


class SoundSelector:
    def __init__(self, url: str, timeout_seconds: float = 10.0):
        self.url = url
        self.timeout_seconds = timeout_seconds

    async def select(self, event_type: str, context: SoundContext) -> Optional[SoundSelection]:
        body = {
            "eventType": event_type,
            "context": context.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                resp = await client.post(self.url, json=body)
                resp.raise_for_status()
            selection = SoundSelection.model_validate(resp.json())
        except Exception as e:
            log.error("sound_selection_failed", event_type=event_type, error=str(e))
            return None
        log.info("sound_selected", event_type=event_type, primary_sound=selection.primary_sound,
                 ambient_sound=selection.ambient_sound, cached=selection.cached)
        return selection
