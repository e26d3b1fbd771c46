"""
Wheelcast - FastAPI Application
Main entry point for the backend server.

Run with:
    uvicorn wheelcast.app:app --reload --host 0.0.0.0 --port 3000
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wheelcast import __version__, config
from wheelcast.api.schemas import HealthResponse
from wheelcast.core.errors import register_exception_handlers
from wheelcast.core.logging import configure_logging
from wheelcast.eventsub import EventSubListener
from wheelcast.routers import auth, capability, items, owners, realtime
from wheelcast.services import Services, build_services

configure_logging()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan (startup / shutdown)
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Runs once on startup, yields for the lifetime of the app, then cleans up."""
    services: Services = app.state.services

    logger.info("Initialising database...")
    await asyncio.to_thread(services.startup)
    logger.info("Database ready.")

    stop_event = asyncio.Event()
    eventsub_task: Optional[asyncio.Task] = None
    if config.eventsub_configured():
        listener = EventSubListener(services.spin)
        eventsub_task = asyncio.create_task(listener.run_forever(stop_event))
        logger.info("Twitch EventSub listener started.")
    else:
        logger.info("Twitch EventSub not configured; reward spins disabled.")

    yield  # Application is running

    stop_event.set()
    if eventsub_task is not None:
        eventsub_task.cancel()
        await asyncio.gather(eventsub_task, return_exceptions=True)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(
        title="Wheelcast",
        version=__version__,
        description="Multi-tenant spin wheel with realtime room sync",
        lifespan=lifespan,
    )
    app.state.services = services or build_services()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(items.router)
    app.include_router(capability.router)
    app.include_router(owners.router)
    app.include_router(realtime.router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health():
        """Simple health/status endpoint."""
        channel = app.state.services.channel
        return HealthResponse(
            version=__version__,
            websocket_clients=channel.client_count,
            rooms=channel.room_count,
        )

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Development entry-point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "wheelcast.app:app",
        host="0.0.0.0",
        port=config.PORT,
        reload=True,
    )
