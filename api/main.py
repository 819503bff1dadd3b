"""
api/main.py -- FastAPI application entry point for the Acquisitions API.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with latency
  2. security_headers      -- nosniff, frame denial, referrer policy, CSP, HSTS in production
  3. CORSMiddleware        -- adds CORS headers for allowed browser origins
  4. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Admission control is NOT middleware: enforce_admission is a router-level
dependency on every /api router, so its rejections flow through the same
exception handlers as everything else. /, /health and sign-out are exempt.

Lifespan opens the UserStore and builds the AdmissionGate on startup and
closes the store on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from admission.gate import AdmissionGate, AdmissionRejected, RateLimitExceeded
from api.admission import enforce_admission
from api.models import ErrorDetail, ErrorResponse, FieldError, HealthResponse, MessageResponse
from api.routes.auth import router as auth_router
from api.routes.auth import session_router
from api.routes.users import router as users_router
from auth.errors import AuthError, DuplicateEmailError, HashingError, InvalidCredentialsError, InvalidTokenError
from auth.store import UserStore
from core.config import get_settings

VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("acquisitions.api")

_STARTED_AT = time.monotonic()


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    logger.info("Acquisitions API starting up (environment=%s)", _settings.environment)
    app.state.user_store = UserStore(_settings.database_url)
    logger.info("User store initialized")
    app.state.admission_gate = AdmissionGate.from_settings(_settings)
    logger.info(
        "Admission gate initialized (storage=%s, fail_open=%s)",
        _settings.rate_limit_storage_uri,
        _settings.admission_fail_open,
    )

    yield

    app.state.user_store.close()
    logger.info("Acquisitions API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Acquisitions API",
    description="User signup/signin and role-aware user management.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Each registration wraps everything registered before it, so the last one
# added (log_requests) is outermost and sees every response, including
# TrustedHost rejections.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}

# The interactive docs load Swagger UI / ReDoc assets from a CDN.
_CSP = "default-src 'self'; frame-ancestors 'none'; object-src 'none'; base-uri 'self'"
_DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if not request.url.path.startswith(_DOCS_PATHS):
        response.headers.setdefault("Content-Security-Policy", _CSP)
    if _settings.is_production:
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


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

_admission = [Depends(enforce_admission)]

app.include_router(auth_router, prefix="/api", tags=["Auth"], dependencies=_admission)
app.include_router(session_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"], dependencies=_admission)


@app.get("/api", tags=["Meta"], dependencies=_admission)
async def api_index() -> MessageResponse:
    return MessageResponse(message="Welcome to the Acquisitions API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, **extra)).model_dump(exclude_none=True),
    )


_ADMISSION_STATUS = {"bot": 403, "shield": 403, "rate-limit": 429, "unavailable": 503}

_AUTH_STATUS: dict[type[AuthError], int] = {
    DuplicateEmailError: 409,
    InvalidCredentialsError: 401,
    InvalidTokenError: 401,
}


@app.exception_handler(AdmissionRejected)
async def admission_handler(request: Request, exc: AdmissionRejected) -> JSONResponse:
    """Return 403 / 429 / 503 with the decision reason.

    Retry-After tells rate-limited clients how many seconds to wait.
    """
    decision = exc.decision
    response = _error(
        _ADMISSION_STATUS[decision.reason],
        exc.code,
        exc.message,
        detail=decision.reason,
    )
    if isinstance(exc, RateLimitExceeded) and decision.retry_after:
        response.headers["Retry-After"] = str(decision.retry_after)
    return response


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map auth domain errors to client errors; HashingError is a server fault.

    The message is the class's fixed message, so signin failures look the same
    whichever check failed.
    """
    if isinstance(exc, HashingError) or type(exc) not in _AUTH_STATUS:
        logger.error(
            "Auth infrastructure error on %s %s: %s",
            request.method,
            request.url.path,
            exc.code,
            exc_info=exc,
        )
        return _error(500, "internal_error", "An unexpected error occurred.")
    response = _error(_AUTH_STATUS[type(exc)], exc.code, exc.message)
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with one entry per invalid field."""
    fields = [
        FieldError(
            field=".".join(str(part) for part in err.get("loc", ()) if part != "body") or "body",
            message=err.get("msg", "Invalid value."),
        )
        for err in exc.errors()
    ]
    return _error(422, "validation_error", "Request validation failed.", fields=fields)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a {"code", "message"} dict as
    detail. When detail is already a dict, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Root and health
#
# Defined directly on the app (not in a router) and outside admission control
# so probes from load balancers and monitoring are never throttled.
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root() -> MessageResponse:
    logger.info("hello acquisitions api")
    return MessageResponse(message="Hello, World!")


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, uptime, and database reachability."""
    try:
        database = "ok" if request.app.state.user_store.ping() else "error"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - _STARTED_AT, 3),
        version=VERSION,
        components={"app": "ok", "database": database},
    )
