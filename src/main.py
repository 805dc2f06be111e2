"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import settings
from src.qc_common.database import check_database, engine
from src.qc_common.errors import AppError, InvalidInputError, RequestValidationFailedError
from src.qc_common.redis_client import close_redis
from src.qc_common.response import error_response
from src.qc_gateway.api.router import router as auth_router
from src.qc_gateway.middleware.request_log import RequestLogMiddleware
from src.qc_listing.api.router import router as listing_router
from src.qc_listing.application.service import ListingService
from src.qc_realtime.api.router import router as realtime_router
from src.qc_realtime.hub import ConnectionHub
from src.qc_realtime.publisher import build_publisher, relay_channel_to_hub

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, start the Redis relay if configured. Shutdown: dispose."""
    if not await check_database():
        raise RuntimeError("Database is not reachable")

    relay: asyncio.Task[None] | None = None
    if settings.BROADCAST_BACKEND == "redis":
        relay = asyncio.create_task(
            relay_channel_to_hub(settings.LISTINGS_CHANNEL, app.state.hub)
        )
    yield
    if relay is not None:
        relay.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await relay
        await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Process-wide fan-out state, injected into the service rather than imported.
app.state.hub = ConnectionHub(send_timeout=settings.WS_SEND_TIMEOUT_SECONDS)
app.state.listing_service = ListingService(
    publisher=build_publisher(settings.BROADCAST_BACKEND, app.state.hub, settings.LISTINGS_CHANNEL),
)

app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    data = {"errors": exc.errors} if isinstance(exc, InvalidInputError) and exc.errors else None
    resp = error_response(request, exc.code, exc.message, data)
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return await app_error_handler(request, RequestValidationFailedError(errors))


app.include_router(auth_router, prefix="/api/v1")
app.include_router(listing_router, prefix="/api/v1")
app.include_router(realtime_router)


@app.get("/health")
async def health() -> dict[str, object]:
    db_ok = await check_database()
    return {
        "status": "ok" if db_ok else "degraded",
        "version": "0.1.0",
        "db": "connected" if db_ok else "disconnected",
        "subscribers": app.state.hub.client_count,
    }
