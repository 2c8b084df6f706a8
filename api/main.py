"""
api/main.py -- FastAPI application entry point for TokenGate.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- allowed browser origins; exposes the renewal headers
                          so browser clients can read them
  2. SlowAPIMiddleware -- enforces the rate limit from api.limiter
  3. log_requests      -- one log line per request with status and latency

Lifespan builds the credential table, the token store, and the AuthEngine
into app.state, and closes the token store on shutdown.

Deployment note: with the default in-memory token store every worker process
has its own tokens. Run a single worker, or set TOKEN_STORE_URL so all
workers share one SqlTokenStore.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import HealthResponse
from api.responses import EXPIRES_AT_HEADER, RENEWED_HEADER, PrettyJSONResponse, error_response
from api.routes.dispatch import router as dispatch_router
from auth.credentials import CredentialStore
from auth.engine import AuthEngine
from auth.errors import AuthError
from auth.store import build_token_store
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tokengate.api")

_settings = get_settings()


def build_engine() -> AuthEngine:
    """Assemble the AuthEngine from settings."""
    settings = get_settings()
    return AuthEngine(
        CredentialStore(rounds=settings.bcrypt_rounds),
        build_token_store(settings.secret_key, settings.token_store_url),
        token_lifetime=settings.token_lifetime,
        renew_window=settings.renew_window,
        token_bytes=settings.token_bytes,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth machinery on startup and release it on shutdown."""
    logger.info("TokenGate API starting up")
    app.state.auth = build_engine()
    logger.info(
        "Auth initialized (token_lifetime=%ds, renew_window=%ds)",
        app.state.auth.token_lifetime,
        app.state.auth.renew_window,
    )

    yield

    app.state.auth.tokens.close()
    logger.info("TokenGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TokenGate API",
    description="Bearer-token login with sliding renewal.",
    version=__version__,
    lifespan=lifespan,
    default_response_class=PrettyJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=[RENEWED_HEADER, EXPIRES_AT_HEADER],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s?endpoint=%s %d %.1fms %s",
        request.method,
        request.url.path,
        request.query_params.get("endpoint", ""),
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(dispatch_router, tags=["API"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns {"error": "<message>"} so clients can parse failures
# without choosing a schema by status code.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> PrettyJSONResponse:
    """Render a domain error. Keeps renewal headers if the token was renewed first."""
    principal = getattr(request.state, "principal", None)
    return error_response(exc.message, exc.status_code, principal)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> PrettyJSONResponse:
    """Return 429 with Retry-After when the rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = error_response("Too many requests", 429)
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PrettyJSONResponse:
    """Framework-level errors (unknown path, unsupported verb) in the same envelope."""
    response = error_response(str(exc.detail), exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> PrettyJSONResponse:
    """Catch-all for unexpected server errors.

    The traceback goes to the server log only, never into the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response("Internal server error", 500)


# ---------------------------------------------------------------------------
# Health endpoint
#
# No auth and no rate limit -- load balancers must not be throttled.
# ---------------------------------------------------------------------------


@limiter.exempt
@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
