"""
auth/dependencies.py -- FastAPI helpers that bind the AuthEngine to a request.

get_engine() is a Depends() provider for the engine built in the app
lifespan. authenticate() validates the request's Authorization header and
returns the Principal; the router calls it for every endpoint except login,
so it is a plain function rather than a route-level dependency.

Layer rule: no imports from api/ or client/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.engine import AuthEngine
from auth.models import Principal


def get_engine(request: Request) -> AuthEngine:
    """Return the AuthEngine stored on app.state by the lifespan."""
    return request.app.state.auth


def authenticate(request: Request) -> Principal:
    """Validate the bearer token on this request.

    Raises MissingToken, InvalidToken, or TokenExpired; the app's AuthError
    handler turns those into 401 responses. The Principal is also stored on
    request.state so an error raised later in the request can still carry
    the renewal headers.
    """
    principal = get_engine(request).validate(request.headers.get("Authorization"))
    request.state.principal = principal
    return principal
