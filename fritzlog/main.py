# fritzlog/main.py
"""
FastAPI application entry point.
Serves the reconciled router log and runs the FRITZ!Box log poller in the background.

    uvicorn fritzlog.main:app --host 0.0.0.0 --port 8080
"""

import asyncio
import secrets
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from fritzlog.routers import health, logs
from fritzlog.database import create_tables
from fritzlog.config import settings
from fritzlog.services.log_poller import LogPoller
from fritzlog.services.router_client import RouterClient
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="FRITZ!Box Log Collector API",
    description="Polls the FRITZ!Box event log and keeps an ordered, deduplicated copy.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


# ── API Key Middleware ───────────────────────────────────────────────────────
OPEN_PATHS = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional API key for the log views. Health and docs stay open so a
    monitor can poll them. Set API_KEY in .env, leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        if request.url.path in OPEN_PATHS:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key") or ""
        if not secrets.compare_digest(api_key.encode(), settings.API_KEY.encode()):
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(logs.router,   prefix="/api/v1", tags=["📜 Router Logs"])
app.include_router(health.router, prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 FRITZ!Box log collector starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"📡 Router: {settings.BASE_URL} as {settings.FRITZBOX_USERNAME}")
    logger.info("📖 API docs at /docs")

    app.state.poller = None
    if not settings.POLLING_ENABLED:
        logger.warning("Polling disabled (POLLING_ENABLED=false), serving stored logs only.")
        return

    app.state.router_client = RouterClient()
    app.state.poller = LogPoller.from_settings(app.state.router_client)
    app.state.stop_event = asyncio.Event()
    app.state.poll_task = asyncio.create_task(
        app.state.poller.run(app.state.stop_event), name="fritz-log-poller"
    )


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 FRITZ!Box log collector shutting down...")
    if getattr(app.state, "poller", None) is None:
        return

    # Let the running cycle finish its commit, then the loop exits and logs out
    app.state.stop_event.set()
    await app.state.poll_task
    await app.state.router_client.close()
