import asyncio
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from alembic import command  # type: ignore
from alembic.config import Config
from sqlalchemy import text

from attendance_api.config import settings
from attendance_api.database import engine
from attendance_api.exceptions import AttendanceError, OutcomeKind, RateLimited
from attendance_api.redis_config import build_cache_client
from attendance_api.routers import attendance_router, health_router, students_router
from attendance_api.services.embedding import build_embedding_client
from attendance_api.services.rate_limiter import (
    CacheCooldownStore,
    InMemoryCooldownStore,
    SessionRateLimiter,
)
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)


def run_migrations() -> None:
    root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    alembic_cfg = Config(os.path.join(root_dir, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(root_dir, "alembic"))
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, "head")


# Lifecycle Manager
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Server starting up... DB URL: {settings.DATABASE_URL.split('@')[-1]}")
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Checking for database migrations...")
            # env.py drives its own event loop, so it runs off the server loop
            await asyncio.to_thread(run_migrations)
            logger.info("Database is up to date.")
        except Exception as e:
            logger.warning(f"Migration Warning: {e}")
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established.")
    except Exception as e:
        logger.critical(f"Database connection failed! {e}")

    cache = None
    if settings.CACHE_BACKEND.strip().lower() != "memory":
        cache = await build_cache_client()
        app.state.rate_limiter = SessionRateLimiter(
            CacheCooldownStore(cache), settings.SESSION_CREATION_COOLDOWN_SECONDS
        )
    app.state.embedding_client = build_embedding_client()

    yield

    logger.info("Server shutting down...")
    await app.state.embedding_client.close()
    if cache is not None:
        await cache.close()
    await engine.dispose()


app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

# Replaced by a shared-cache limiter at startup when CACHE_BACKEND is not "memory"
app.state.rate_limiter = SessionRateLimiter(
    InMemoryCooldownStore(), settings.SESSION_CREATION_COOLDOWN_SECONDS
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AttendanceError)
async def attendance_error_handler(request: Request, exc: AttendanceError):
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.kind == OutcomeKind.UPSTREAM_FAILURE:
        logger.error(f"{request.method} {request.url.path} failed upstream: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=headers
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "outcome": OutcomeKind.VALIDATION_ERROR.value,
            "message": "Invalid request",
            "errors": jsonable_errors(exc),
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "outcome": OutcomeKind.UPSTREAM_FAILURE.value,
            "message": "Internal server error",
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


# --- Register Routers ---
app.include_router(attendance_router)
app.include_router(students_router)
app.include_router(health_router)


def start():
    import uvicorn

    uvicorn.run(
        "attendance_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "docs": "/docs",
        "version": settings.VERSION,
    }
