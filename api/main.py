"""
api/main.py -- FastAPI application entry point for BloodLink.

Run with:      uvicorn api.main:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the single-page frontend
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan opens the user store and the audit log on startup and closes both on
shutdown. Settings (and therefore SECRET_KEY) are resolved at import: a
missing key stops the process before the server binds.
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
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.logs import router as logs_router
from api.routes.v1.users import router as users_router
from audit.store import AuditLog
from auth.errors import AuthError
from auth.store import UserStore
from core.config import get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("bloodlink.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores on startup and dispose of their engines on shutdown."""
    logger.info("BloodLink API starting up")
    app.state.user_store = UserStore()
    app.state.audit_log = AuditLog()
    logger.info("Auth initialized (has_users=%s)", app.state.user_store.has_users())

    yield

    app.state.audit_log.close()
    app.state.user_store.close()
    logger.info("BloodLink API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="BloodLink API",
    description="Authentication, profiles and role-gated administration for blood donation management.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
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
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(logs_router, prefix="/api/v1", tags=["Audit"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )
    if status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render the auth taxonomy: 401 unauthorized / bad_credentials, 403 forbidden, 409 conflict."""
    response = _error(exc.status_code, exc.code, exc.message)
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation.

    Input values are stripped from the detail so a rejected password is never
    echoed back.
    """
    errors = [{"loc": e.get("loc"), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
    return _error(422, "validation_error", "Request validation failed.", str(errors))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail={"code": ..., "message": ...}.
    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        response = JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
        if exc.status_code == 401:
            response.headers["WWW-Authenticate"] = "Bearer"
        return response
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No auth and no rate limit -- load balancers must always reach it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    components = {"app": "ok"}
    try:
        request.app.state.user_store.ping()
        components["database"] = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        components["database"] = "error"
    status = "healthy" if components["database"] == "ok" else "degraded"
    return HealthResponse(status=status, version=API_VERSION, components=components)
