# creepy_companion/api/v1/endpoints/pet_interactions.py
from typing import Optional

from fastapi import APIRouter, Body, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from creepy_companion.models.pet import Archetype, DeathCause, OfferingView, PetView, ReactionType
from creepy_companion.services.pet_service import PetService

router = APIRouter()


class CreatePetRequest(BaseModel):  # Pydantic model for request body
    name: str
    archetype: Archetype
    color: int


class ReorderRequest(BaseModel):
    from_index: int
    to_index: int


class SettingsUpdateRequest(BaseModel):
    master_volume: Optional[float] = None
    sfx_volume: Optional[float] = None
    ambient_volume: Optional[float] = None
    is_muted: Optional[bool] = None


class DeathRequest(BaseModel):
    cause: DeathCause


class ReactionRequest(BaseModel):
    reaction: ReactionType


class SchedulerStatus(BaseModel):
    is_running: bool
    interval_ms: int = Field(gt=0)
    ticks_fired: int


def get_pet_service(request: Request) -> PetService:
    return request.app.state.pet_service


@router.get("/pet", response_model=PetView)
async def get_pet_endpoint(request: Request):
    """Current public view of the pet."""
    return get_pet_service(request).view()


@router.post("/pet", response_model=PetView, status_code=201)
async def create_pet_endpoint(request: Request, payload: CreatePetRequest = Body(...)):
    """Hatch a new egg, replacing whatever was there."""
    service = get_pet_service(request)
    try:
        service.initialize_pet(payload.name, payload.archetype, payload.color)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    return service.view()


@router.post("/pet/tick", response_model=PetView)
async def tick_endpoint(request: Request):
    service = get_pet_service(request)
    service.tick()
    return service.view()


@router.post("/pet/scavenge", response_model=Optional[OfferingView])
async def scavenge_endpoint(request: Request):
    """Search for an offering. Returns null when nothing could be found."""
    offering = await get_pet_service(request).scavenge()
    if offering is None:
        return None
    return OfferingView(id=offering.id, description=offering.description, icon=offering.icon)


@router.post("/pet/feed/{item_id}", response_model=PetView)
async def feed_endpoint(request: Request, item_id: str):
    service = get_pet_service(request)
    service.feed(item_id)
    return service.view()


@router.post("/pet/placate", response_model=PetView)
async def placate_endpoint(request: Request):
    """Comfort the pet. Does nothing while the cooldown is running."""
    service = get_pet_service(request)
    service.placate()
    return service.view()


@router.post("/pet/logs/{entry_id}/reaction", response_model=PetView)
async def reaction_endpoint(request: Request, entry_id: str, payload: ReactionRequest = Body(...)):
    service = get_pet_service(request)
    service.add_reaction(entry_id, payload.reaction)
    return service.view()


@router.post("/pet/inventory/reorder", response_model=PetView)
async def reorder_endpoint(request: Request, payload: ReorderRequest = Body(...)):
    service = get_pet_service(request)
    service.reorder_inventory(payload.from_index, payload.to_index)
    return service.view()


@router.patch("/pet/settings", response_model=PetView)
async def settings_endpoint(request: Request, payload: SettingsUpdateRequest = Body(...)):
    service = get_pet_service(request)
    service.update_settings(**payload.model_dump(exclude_none=True))
    return service.view()


@router.post("/pet/death", response_model=PetView)
async def death_endpoint(request: Request, payload: DeathRequest = Body(...)):
    service = get_pet_service(request)
    service.trigger_death(payload.cause)
    return service.view()


@router.post("/pet/reset", response_model=PetView)
async def reset_endpoint(request: Request):
    service = get_pet_service(request)
    service.reset()
    return service.view()


@router.get("/pet/scheduler", response_model=SchedulerStatus)
async def scheduler_endpoint(request: Request):
    scheduler = get_pet_service(request).scheduler
    return SchedulerStatus(is_running=scheduler.is_running, interval_ms=scheduler.interval_ms,
                           ticks_fired=scheduler.ticks_fired)
