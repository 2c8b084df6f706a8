"""
api/routes/dispatch.py -- The single API entry point, dispatched by ?endpoint=.

Routes:
  POST /api?endpoint=login      -- public; exchanges credentials for a token
  GET  /api?endpoint=example    -- requires bearer token; greeting
  POST /api?endpoint=example    -- requires bearer token; greeting + echo

Dispatch order:
  1. endpoint == "login"        -> login handler (no token check)
  2. anything else              -> validate bearer token first (401 on failure)
  3. (endpoint, method) in ROUTES -> handler
  4. endpoint known, method not -> 405
  5. endpoint unknown           -> 404

Errors are raised as auth.errors.AuthError subclasses and rendered by the
handler in api/main.py. Renewal headers survive onto 404/405/400 responses
because authenticate() records the Principal on request.state before the
route lookup.

Security:
  [C1] engine.login() runs bcrypt even for unknown users -- never inline a
       username lookup here.
  [M5] Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from api.models import ErrorResponse, ExampleResponse, LoginRequest, LoginResponse
from api.responses import PrettyJSONResponse, write_response
from auth.dependencies import authenticate, get_engine
from auth.engine import AuthEngine
from auth.errors import EndpointNotFound, InvalidCredentials, InvalidInput, MethodNotAllowed
from auth.models import Principal

router = APIRouter()

LOGIN_ENDPOINT = "login"


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


async def read_json(request: Request) -> Any:
    """Return the decoded JSON body. An empty body decodes to {}.

    Malformed JSON raises InvalidInput. That includes bytes that are not
    UTF-8, the non-standard constants NaN and Infinity, and nesting deep
    enough to exhaust the decoder's recursion limit.
    """
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        raise InvalidInput() from exc


def _greeting(principal: Principal) -> str:
    return f"Hello {principal.username} ({','.join(principal.roles)})"


# ---------------------------------------------------------------------------
# Protected endpoint handlers
# ---------------------------------------------------------------------------

Handler = Callable[[Request, Principal], Awaitable[dict]]


async def example_get(request: Request, principal: Principal) -> dict:
    return ExampleResponse(message=f"{_greeting(principal)}, this is a GET example").model_dump(exclude_none=True)


async def example_post(request: Request, principal: Principal) -> dict:
    data = await read_json(request)
    return ExampleResponse(message=f"{_greeting(principal)}, you posted data", data=data).model_dump()


# (endpoint, method) -> handler. Adding an endpoint means adding rows here.
ROUTES: dict[tuple[str, str], Handler] = {
    ("example", "GET"): example_get,
    ("example", "POST"): example_post,
}

KNOWN_ENDPOINTS = frozenset(name for name, _method in ROUTES)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def login(request: Request, engine: AuthEngine) -> PrettyJSONResponse:
    """Authenticate with username and password; return token, expiry, roles.

    Returns the same error for wrong username and wrong password to avoid
    leaking username existence.
    """
    if request.method != "POST":
        raise MethodNotAllowed()
    data = await read_json(request)
    try:
        body = LoginRequest.model_validate(data if isinstance(data, dict) else {})
    except ValidationError as exc:
        # Non-string username/password can never match a credential.
        raise InvalidCredentials() from exc

    # bcrypt is deliberately slow; keep it off the event loop.
    result = await run_in_threadpool(engine.login, body.username, body.password)
    resp = write_response(LoginResponse.from_result(result).model_dump(by_alias=True))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


@router.api_route(
    "/api",
    # HEAD and OPTIONS included so every verb reaches the token check first.
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
    },
)
async def dispatch(
    request: Request,
    endpoint: str = "",
    engine: AuthEngine = Depends(get_engine),
) -> PrettyJSONResponse:
    """Route a request to login or to a token-protected endpoint."""
    if endpoint == LOGIN_ENDPOINT:
        return await login(request, engine)

    # Store access may block (DB I/O, store lock); keep it off the event loop.
    principal = await run_in_threadpool(authenticate, request)

    handler = ROUTES.get((endpoint, request.method))
    if handler is None:
        if endpoint in KNOWN_ENDPOINTS:
            raise MethodNotAllowed()
        raise EndpointNotFound()
    body = await handler(request, principal)
    return write_response(body, principal=principal)
