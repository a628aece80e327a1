"""
TypeArena API entrypoint (FastAPI).

This module wires together:
- App startup/shutdown (lifespan): migrations in db mode + background maintenance tasks
- Global middleware: request logging + CORS
- Error rendering: `ArenaError` -> `{"detail": <code>}` with the mapped status
- Router registration under `/api`
"""

# -------------------- Standard library imports --------------------
import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from time import time

# -------------------- Third-party imports --------------------
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Env must be loaded before local modules read their os.getenv constants.
load_dotenv()

# -------------------- Local application imports --------------------
from typearena.api.auth import router as auth_router
from typearena.api.events import router as events_router
from typearena.api.health import router as health_router
from typearena.api.live import router as live_router
from typearena.api.results import router as results_router
from typearena.api.sessions import router as sessions_router
from typearena.errors import ArenaError
from typearena.rate_limit import cleanup_rate_limit_data
from typearena.storage import STORAGE_MODE, is_json_mode

# -------------------- Logging --------------------
# stdout for containers/terminal, plus a local file kept for the day of the event
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout), logging.FileHandler("typearena.log")],
)

logger = logging.getLogger(__name__)

_jwt_secret = os.getenv("JWT_SECRET")
if not _jwt_secret or _jwt_secret == "dev-secret-change-me":
    logger.warning(
        "JWT_SECRET is missing or uses the default value; set a strong JWT_SECRET in the environment for production."
    )

RATE_LIMIT_CLEANUP_INTERVAL_MIN = int(os.getenv("RATE_LIMIT_CLEANUP_INTERVAL_MIN", "5"))

rate_limit_cleanup_task: asyncio.Task | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events for the FastAPI application."""
    logger.info("TypeArena API starting up (storage=%s)", STORAGE_MODE)

    if not is_json_mode():
        from typearena.db.migrate import run_migrations

        await run_migrations()

    async def _rate_limit_cleanup_loop():
        while True:
            try:
                await asyncio.sleep(max(RATE_LIMIT_CLEANUP_INTERVAL_MIN, 1) * 60)
                cleanup_rate_limit_data()
                logger.debug("Rate limit data cleanup completed")
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.warning("Rate limit cleanup failed: %s", exc)

    global rate_limit_cleanup_task
    if RATE_LIMIT_CLEANUP_INTERVAL_MIN > 0:
        rate_limit_cleanup_task = asyncio.create_task(_rate_limit_cleanup_loop())
    else:
        rate_limit_cleanup_task = None

    yield

    logger.info("TypeArena API shutting down")
    if rate_limit_cleanup_task:
        rate_limit_cleanup_task.cancel()
        try:
            await rate_limit_cleanup_task
        except asyncio.CancelledError:
            pass


# -------------------- FastAPI app --------------------
app = FastAPI(title="TypeArena API", lifespan=lifespan)

# -------------------- CORS --------------------
DEFAULT_ORIGINS = "http://localhost:5173,http://localhost:3000"
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", DEFAULT_ORIGINS).split(",")

# Classroom deployments: *.local and private LAN ranges
DEFAULT_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1|[a-zA-Z0-9-]+\.local|192\.168\.\d{1,3}\.\d{1,3}|10\.\d{1,3}\.\d{1,3}\.\d{1,3})(:\d+)?$"
ALLOWED_ORIGIN_REGEX = os.getenv("ALLOWED_ORIGIN_REGEX", DEFAULT_ORIGIN_REGEX)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_origin_regex=ALLOWED_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ArenaError)
async def arena_error_handler(request: Request, exc: ArenaError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=headers)


@app.middleware("http")
async def log_requests(request, call_next):
    start_time = time()
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.error(
            "%s %s - Error: %s - Duration: %.3fs",
            request.method,
            request.url.path,
            str(exc),
            time() - start_time,
            exc_info=True,
        )
        raise
    logger.info(
        "%s %s - Status: %s - Duration: %.3fs - Client: %s",
        request.method,
        request.url.path,
        response.status_code,
        time() - start_time,
        request.client.host if request.client else "unknown",
    )
    return response


# -------------------- Router registration --------------------
app.include_router(sessions_router, prefix="/api")
app.include_router(results_router, prefix="/api")
app.include_router(live_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(health_router, prefix="/api")
