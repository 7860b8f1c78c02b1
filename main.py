"""Application entry point: MedEcare Auth API."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import get_settings
from app.core.dependencies import get_password_hasher
from app.core.exceptions import AuthError, ConfigurationError
from app.core.security import utcnow
from app.db import AsyncSessionLocal, close_db, init_db
from app.api.routes import api_router
from app.repositories import RefreshTokenStore

# ─────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────
settings = get_settings()

log_level = logging.DEBUG if settings.debug else logging.INFO

logging.basicConfig(
    level=log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("medecare")

# Suppress verbose SQLAlchemy logs in production
if not settings.debug:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
# passlib chatters about bcrypt's version attribute
logging.getLogger("passlib").setLevel(logging.ERROR)


# ─────────────────────────────────────────────────────────────
# Error responses: AuthError -> its status, anything else -> 500
# ─────────────────────────────────────────────────────────────
async def catch_exceptions_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        # Path only; query strings may carry tokens
        logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}")
        content = {"error": "INTERNAL_ERROR", "detail": "Internal server error"}
        if settings.debug:
            content["exception"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=500, content=content)


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.debug(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


# ─────────────────────────────────────────────────────────────
# Background sweep of expired refresh tokens
# ─────────────────────────────────────────────────────────────
async def sweep_expired_refresh_tokens(interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with AsyncSessionLocal() as session:
                await RefreshTokenStore(session).purge_expired(utcnow())
        except Exception as exc:
            logger.error(f"Refresh token sweep failed: {exc}")


# ─────────────────────────────────────────────────────────────
# Lifespan: Startup + Shutdown
# ─────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    # ─── Startup ───
    logger.info(f"Starting up {settings.app_name} v{app.version} ({settings.app_env})...")

    if settings.signing_secret is None:
        raise ConfigurationError("JWT_SECRET_KEY must be set in production")
    if not settings.jwt_secret_key:
        logger.warning("JWT_SECRET_KEY not set - using the development signing secret")

    await init_db()
    logger.info("Database tables initialized")

    # bcrypt setup (dummy hash) off the event loop
    await asyncio.to_thread(get_password_hasher, settings)

    sweeper: Optional[asyncio.Task] = None
    if settings.refresh_token_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            sweep_expired_refresh_tokens(settings.refresh_token_sweep_interval_seconds)
        )

    logger.info("Application startup complete")
    yield

    # ─── Shutdown ───
    logger.info("Shutting down application...")
    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    await close_db()


# ─────────────────────────────────────────────────────────────
# FastAPI App
# ─────────────────────────────────────────────────────────────
app = FastAPI(
    title=settings.app_name,
    description="Session authentication for the MedEcare roster backend",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,  # Hide docs in prod
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
    default_response_class=JSONResponse,
)

app.add_exception_handler(AuthError, auth_error_handler)

# ─────────────────────────────────────────────────────────────
# Security Middleware
# ─────────────────────────────────────────────────────────────
app.add_middleware(BaseHTTPMiddleware, dispatch=catch_exceptions_middleware)

# Trusted hosts (prevent DNS rebinding, host header attacks)
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts_list,
)

# CORS: credentials on, session cookies must cross origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=600,
)

# ─────────────────────────────────────────────────────────────
# API Router
# ─────────────────────────────────────────────────────────────
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name, "version": "1.0.0"}


# ─────────────────────────────────────────────────────────────
# Run with Uvicorn (only when running directly)
# ─────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug",
    )
