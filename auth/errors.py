"""
auth/errors.py -- Error taxonomy for the token machinery.

Every failure the engine or router can produce is an AuthError subclass with a
fixed HTTP status and a client-facing message. api/main.py registers a single
exception handler that renders any AuthError as {"error": message}.

All of these are terminal from the server's point of view: the client must
fix the request (log in again, send valid JSON, use another method).

Layer rule: no imports from api/, client/, or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code: int = 400
    message: str = "Bad request"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MethodNotAllowed(AuthError):
    status_code = 405
    message = "Method not allowed"


class InvalidInput(AuthError):
    """Request body is not valid JSON."""

    status_code = 400
    message = "Invalid JSON"


class InvalidCredentials(AuthError):
    """Unknown user or wrong password. The two cases are indistinguishable."""

    status_code = 401
    message = "Invalid credentials"


class MissingToken(AuthError):
    """No Authorization header, or one that is not 'Bearer <token>'."""

    status_code = 401
    message = "Missing token"


class InvalidToken(AuthError):
    status_code = 401
    message = "Invalid token"


class TokenExpired(AuthError):
    """Token was past its renewal window. It has been deleted."""

    status_code = 401
    message = "Token expired"


class EndpointNotFound(AuthError):
    status_code = 404
    message = "Endpoint not found"
