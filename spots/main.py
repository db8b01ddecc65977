import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spots.api import (
    cards_router,
    collection_router,
    dashboard_router,
    health_router,
    sets_router,
    sync_router,
    trackers_router,
)
from spots.config import settings
from spots.db.database import async_session_factory, init_db
from spots.db.operations import clear_interrupted_sync
from spots.jobs.sync_scheduler import SyncScheduler
from spots.models.failure import KnownError
from spots.services.catalog_client import CatalogClient
from spots.services.reconciliation import Reconciler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()

    # No sync can be running in a process that has just started
    async with async_session_factory() as session:
        if await clear_interrupted_sync(session):
            logger.warning("Cleared the syncing flag left by an interrupted run")
        await session.commit()

    client = CatalogClient()
    reconciler = Reconciler(client, async_session_factory)
    app.state.catalog_client = client
    app.state.reconciler = reconciler
    app.state.scheduler = None

    if settings.sync_enabled:
        scheduler = SyncScheduler(reconciler, async_session_factory)
        scheduler.start()
        app.state.scheduler = scheduler
    else:
        logger.info("Background sync disabled")

    try:
        yield
    finally:
        if app.state.scheduler is not None:
            await app.state.scheduler.stop()
        await client.aclose()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("spots"),
    lifespan=lifespan,
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Render a classified failure as its status code and detail body."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_detail().model_dump(mode="json"),
    )


app.include_router(cards_router)
app.include_router(collection_router)
app.include_router(dashboard_router)
app.include_router(health_router)
app.include_router(sets_router)
app.include_router(sync_router)
app.include_router(trackers_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
