"""MapDash API - FastAPI application entry point.

Route planning backend for the map dashboard: multi-mode trip planning
through the AMap Web Service API and persisted route/place search history.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from mapdash.api.v1 import history, routes
from mapdash.config import get_settings
from mapdash.core.exceptions import MapDashException
from mapdash.core.logging_config import get_logger, setup_logging
from mapdash.core.middleware import RequestLoggingMiddleware
from mapdash.dependencies import get_kv_store, get_place_history_store, get_route_history_store
from mapdash.storage.kv_store import RedisStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    settings = get_settings()
    setup_logging()
    logger = get_logger(__name__)
    logger.info(f"Starting MapDash API in {settings.APP_ENV} mode")

    # Hydrate the shared histories once at startup
    routes_loaded = len(await run_in_threadpool(get_route_history_store))
    places_loaded = len(await run_in_threadpool(get_place_history_store))
    logger.info(f"Loaded {routes_loaded} route and {places_loaded} place history entries")
    yield

    store = get_kv_store()
    if isinstance(store, RedisStore):
        store.close()
    logger.info("Shutting down MapDash API")


app = FastAPI(
    title="MapDash API",
    description="Route planning and search history backend for the map dashboard.",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Health checks"},
        {"name": "routes", "description": "Multi-mode route planning"},
        {"name": "history", "description": "Route and place search history"},
    ],
)

settings = get_settings()

app.add_middleware(RequestLoggingMiddleware)

# Added last, executes first
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MapDashException)
async def mapdash_exception_handler(request: Request, exc: MapDashException):
    """Handle MapDash custom exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "path": request.url.path,
        },
    )


@app.get("/health", tags=["health"])
async def health_check():
    """Liveness plus the storage and routing setup this process runs with."""
    return {
        "status": "ok",
        "history_backend": settings.HISTORY_BACKEND,
        "routing_configured": bool(settings.AMAP_SERVICE_KEY),
    }


app.include_router(routes.router, prefix="/api/v1/routes", tags=["routes"])
app.include_router(history.router, prefix="/api/v1/history", tags=["history"])
