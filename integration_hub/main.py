"""Main FastAPI application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from integration_hub.core.config import get_settings
from integration_hub.core.database import database
from integration_hub.api import health
from integration_hub.services import IntegrationService, IntegrationScheduler
from integration_hub.store import MongoIntegrationStore
from integration_hub.utils.logging import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Get settings
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting up integration hub...")
    logger.info(f"Service: {settings.service_name}, environment: {settings.environment}")
    await database.connect()

    store = MongoIntegrationStore(database)
    await store.ensure_indexes()

    service = IntegrationService(store)
    scheduler = IntegrationScheduler(service)
    service.attach_scheduler(scheduler)
    await scheduler.initialize()

    app.state.integration_service = service
    app.state.scheduler = scheduler

    yield

    # Shutdown
    logger.info("Shutting down integration hub...")
    scheduler.stop()
    await scheduler.drain()
    await database.disconnect()


# Create FastAPI app
app = FastAPI(
    title="Integration Hub",
    description="Integration sync scheduling and event notification service",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "integration_hub.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
    )
