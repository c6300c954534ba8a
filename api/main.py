"""
api/main.py -- FastAPI application entry point for ProjectHub.

Run with:      python main.py serve
               uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the SPA origins; credentials
                              allowed so the refresh cookie travels
  3. log_requests          -- method, path, status, latency, client
  4. catch_unhandled       -- turns any unexpected exception into a 500 envelope
  5. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan opens the user and project stores on startup and disposes their
engines on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from api.limiter import limiter
from api.models import Envelope, HealthResponse, error_response
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.members import router as members_router
from api.routes.projects import router as projects_router
from api.routes.tasks import router as tasks_router
from api.routes.users import router as users_router
from auth.store import UserStore
from core.config import get_settings
from core.database import is_store_unavailable
from core.errors import AppError, Internal, InvalidInput, ServiceUnavailable
from projects.store import ProjectStore

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("projecthub.api")

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open both stores before the first request; close them after the last.

    The stores share DATABASE_URL but own separate engines, so either can be
    pointed at its own database in tests.
    """
    logger.info("ProjectHub API starting up")
    app.state.user_store = UserStore()
    app.state.project_store = ProjectStore()
    if not app.state.user_store.has_users():
        logger.warning("No users yet -- create the first admin with: python main.py create-admin")

    yield

    app.state.project_store.close()
    app.state.user_store.close()
    logger.info("ProjectHub API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ProjectHub API",
    description="Projects, members and tasks with JWT authentication and role-based access.",
    version=_settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if _settings.debug else None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette makes the LAST registered middleware the outermost one, so the
# registrations below run innermost-first: SlowAPI, catch_unhandled,
# log_requests, CORS, TrustedHost. A request meets them in reverse.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# Catch-all for unexpected failures. An @app.exception_handler(Exception)
# would be routed through Starlette's ServerErrorMiddleware, which re-raises.
@app.middleware("http")
async def catch_unhandled(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:  # noqa: BLE001 -- last line of defence, logged with traceback
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return error_response(Internal(error=str(exc)))


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


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(projects_router, prefix="/api", tags=["Projects"])
app.include_router(members_router, prefix="/api", tags=["Members"])
app.include_router(tasks_router, prefix="/api", tags=["Tasks"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(admin_router, prefix="/api", tags=["Admin"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {clientMsg, error} envelope so API clients can
# parse errors uniformly.
# ---------------------------------------------------------------------------


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(exc)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=Envelope(client_msg="Too many requests. Try again later!", error=str(exc)).model_dump(by_alias=True),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or malformed body fields and non-integer ids are 400, not FastAPI's 422."""
    return error_response(InvalidInput(error=str(exc.errors())))


@app.exception_handler(OperationalError)
@app.exception_handler(PoolTimeoutError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Store timeouts and lock waits are 503; any other operational failure is 500."""
    if is_store_unavailable(exc):
        logger.warning("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
        return error_response(ServiceUnavailable(error=str(exc)))
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return error_response(Internal(error=str(exc)))


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and whether the database answers."""
    database = "ok"
    try:
        with request.app.state.user_store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Health check: database unavailable: %s", exc)
        database = "unavailable"
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        version=_settings.app_version,
        components={"app": "ok", "database": database},
    )
