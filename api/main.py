"""
api/main.py -- FastAPI application entry point for BannerBoard.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds every shared object once -- stores, AuthConfig, token issuer
and verifier, image store -- and puts them on app.state. Route handlers and
auth dependencies read them from there; nothing reads secrets globally.

The revocation sweep runs as a background task started in lifespan: expired
blacklist entries are deleted on a timer, never on the request path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import FileResponse, JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.banners import router as banners_router
from auth.store import RevocationStore, UserStore
from auth.tokens import AuthConfig, TokenIssuer, TokenVerifier
from banners.files import URL_PREFIX, BannerImageStore
from banners.store import BannerStore
from core.config import get_settings
from core.errors import AppError, InfrastructureError, NotFound, StoreUnavailable

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("bannerboard.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: float) -> None:
    """Delete expired blacklist entries every `interval` seconds.

    A failing sweep is logged and retried on the next tick; the loop only
    ends when lifespan shutdown cancels it.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            removed = app.state.revocation_store.purge_expired()
        except StoreUnavailable:
            logger.warning("Revocation purge skipped: store unavailable")
            continue
        except Exception:
            logger.exception("Revocation purge failed")
            continue
        if removed:
            logger.info("Purged %d expired revoked tokens", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build shared resources on startup and release them on shutdown.

    Startup order matters: the verifier needs both stores, and the purge task
    references app.state.revocation_store.
    """
    settings = get_settings()
    logger.info("BannerBoard API starting up")

    auth_config = AuthConfig.from_settings(settings)
    app.state.auth_config = auth_config
    app.state.user_store = UserStore(settings.database_url, timeout=settings.db_timeout_seconds)
    app.state.revocation_store = RevocationStore(settings.database_url, timeout=settings.db_timeout_seconds)
    app.state.token_issuer = TokenIssuer(auth_config)
    app.state.token_verifier = TokenVerifier(auth_config, app.state.user_store, app.state.revocation_store)
    logger.info("Auth initialized (token ttl=%ds)", auth_config.token_ttl_seconds)

    app.state.banner_store = BannerStore(settings.database_url, timeout=settings.db_timeout_seconds)
    app.state.banner_images = BannerImageStore(settings.upload_dir, max_bytes=settings.max_upload_bytes)
    logger.info("Banner storage initialized (uploads in %s)", settings.upload_dir)

    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.revocation_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    try:
        await app.state.purge_task
    except asyncio.CancelledError:
        pass
    app.state.banner_store.close()
    app.state.revocation_store.close()
    app.state.user_store.close()
    logger.info("BannerBoard API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="BannerBoard API",
    description="User accounts with token auth and role-gated banner management.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack -- register in the order requests should meet them
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["localhost", "127.0.0.1", "*.localhost", "testserver"],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(banners_router, prefix="/api/v1", tags=["Banners"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors with their stable code and mapped status.

    Infrastructure errors keep their status and code but drop the message and
    detail: the client learns that the server failed, not how.
    """
    if isinstance(exc, InfrastructureError):
        logger.error("%s on %s %s: %s", exc.__class__.__name__, request.method, request.url.path, exc.detail)
        return _error_response(exc.status_code, exc.code, exc.default_message)
    response = _error_response(exc.status_code, exc.code, exc.message, exc.detail)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404 routes, 405 methods)."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Uploaded images
#
# Served through a route rather than a static mount so the directory comes
# from app.state (set in lifespan) instead of being fixed at import time.
# ---------------------------------------------------------------------------


@app.get(URL_PREFIX + "{filename}", include_in_schema=False)
async def banner_image(request: Request, filename: str) -> FileResponse:
    images: BannerImageStore = request.app.state.banner_images
    path = images.path_for(URL_PREFIX + filename)
    if path is None or not path.is_file():
        raise NotFound("Image not found")
    return FileResponse(path)


# ---------------------------------------------------------------------------
# Health endpoint -- no rate limit, no auth
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
