"""
api/main.py -- FastAPI application entry point for HomeCinema.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. log_requests         -- method, path, status, latency for every request
  2. SlowAPIMiddleware    -- enforces per-route rate limits from api.limiter
  3. CORSMiddleware       -- adds CORS headers for allowed browser origins
  4. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Authorization is not a middleware: every route, including the ones declared
directly on the app, is a GatedRoute (auth/dependencies.py) and decides
allow/deny before its handler runs.

Lifespan handles startup (stores, role seeding, membership service) and
shutdown (dispose engines) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.account import router as account_router
from api.routes.v1.movies import router as movies_router
from auth.dependencies import GatedRoute
from auth.gate import allow_anonymous
from auth.membership import MembershipService
from auth.store import UserStore
from catalog.store import CatalogStore
from core.config import get_settings

API_VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("homecinema.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters: the user store must exist and hold the reference
    roles before the membership service (and therefore the gate) can answer
    a single request.
    """
    settings = get_settings()
    logger.info("HomeCinema API starting up")
    app.state.user_store = UserStore(settings.auth_db_url) if settings.auth_db_url else UserStore()
    roles = app.state.user_store.ensure_roles(settings.seed_roles)
    logger.info("Roles available: %s", ", ".join(f"{r.id}={r.name}" for r in roles))
    app.state.membership = MembershipService(app.state.user_store)
    app.state.catalog = CatalogStore(settings.catalog_db_url) if settings.catalog_db_url else CatalogStore()
    logger.info("Catalog initialized")

    yield

    app.state.catalog.close()
    app.state.user_store.close()
    logger.info("HomeCinema API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="HomeCinema Admin API",
    description="Membership, authorization and movie catalog administration.",
    version=API_VERSION,
    lifespan=lifespan,
    # Built-in schema and docs routes are plain APIRoutes that would bypass
    # the gate. Gated equivalents are registered below.
    openapi_url=None,
    docs_url=None,
    redoc_url=None,
)

# Routes declared with @app.get/@app.post below are gated like router routes.
app.router.route_class = GatedRoute

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() and @app.middleware() both insert at the front of the
# stack, so the LAST registration is the OUTERMOST layer.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# Attach the shared limiter to app.state so SlowAPIMiddleware can locate it.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered last so it is outermost: denied and throttled requests are
# logged too.
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

app.include_router(account_router, prefix="/api/v1", tags=["Account"])
app.include_router(movies_router, prefix="/api/v1", tags=["Movies"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
#
# These routes carry no access marker, so the gate requires valid Basic
# credentials before anyone can browse the schema.
# ---------------------------------------------------------------------------


@app.get("/openapi.json", include_in_schema=False)
async def openapi_schema() -> JSONResponse:
    """OpenAPI schema -- requires authentication."""
    return JSONResponse(app.openapi())


@app.get("/docs", include_in_schema=False)
async def docs():
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="HomeCinema Admin API")


@app.get("/redoc", include_in_schema=False)
async def redoc():
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="HomeCinema Admin API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error and a Retry-After hint."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail=ErrorDetail(...).model_dump()
    (a dict). When detail is already a structured dict, use it directly as the
    error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Public and never rate limited.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
@allow_anonymous
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    try:
        db_ok = request.app.state.user_store.ping() and request.app.state.catalog.ping()
    except SQLAlchemyError:
        logger.exception("Health check database ping failed")
        db_ok = False
    return HealthResponse(
        version=API_VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
