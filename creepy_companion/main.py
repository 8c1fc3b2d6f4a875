# creepy_companion/main.py
from typing import Optional

import structlog
from fastapi import FastAPI

from creepy_companion.api.v1.endpoints import pet_interactions
from creepy_companion.core.logging_config import setup_logging
from creepy_companion.core.settings import Settings, settings
from creepy_companion.core.storage import build_storage
from creepy_companion.services.narrative_client import NarrativeClient
from creepy_companion.services.narrator import Narrator
from creepy_companion.services.persistence import PersistenceGateway
from creepy_companion.services.pet_service import PetService
from creepy_companion.services.scheduler import Scheduler
from creepy_companion.services.sound_selector import SoundSelector

setup_logging(log_level_str=settings.LOG_LEVEL)
log = structlog.get_logger(__name__)


def build_service(config: Settings = settings) -> PetService:
    """Wire a PetService from configuration."""
    gateway = PersistenceGateway(build_storage(config), key=config.STORAGE_KEY,
                                 trim_limit=config.LOG_TRIM_LIMIT)
    client = NarrativeClient(config.NARRATIVE_API_URL,
                             timeout_seconds=config.NARRATIVE_TIMEOUT_SECONDS,
                             retry_delay_seconds=config.NARRATIVE_RETRY_DELAY_SECONDS)
    return PetService(
        scheduler=Scheduler(interval_ms=config.TICK_INTERVAL_MS),
        gateway=gateway,
        narrator=Narrator(client),
        sound_selector=SoundSelector(config.SOUND_API_URL,
                                     timeout_seconds=config.NARRATIVE_TIMEOUT_SECONDS),
    )


def create_app(service: Optional[PetService] = None) -> FastAPI:
    app = FastAPI(title=settings.PROJECT_NAME)
    app.state.pet_service = service or build_service()

    @app.on_event("startup")
    async def startup_event():
        log.info("Application startup: restoring pet and starting scheduler.")
        pet_service = app.state.pet_service
        pet_service.hydrate()
        pet_service.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        log.info("Application shutdown: stopping scheduler.")
        pet_service = app.state.pet_service
        await pet_service.stop()
        await pet_service.drain()
        log.info("Application shutdown complete.")

    app.include_router(pet_interactions.router, prefix=settings.API_V1_STR, tags=["pet"])

    @app.get("/")
    async def root():
        return {"message": f"Welcome to the {settings.PROJECT_NAME} API!"}

    return app


app = create_app()
