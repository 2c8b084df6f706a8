"""
api/responses.py -- Wire format for every TokenGate response.

Bodies are always a JSON object, pretty-printed with 4-space indent and
non-ASCII characters left as-is, sent as application/json; charset=utf-8.
Error bodies are always {"error": "<message>"}.

When validation renewed the caller's token, two headers tell the client to
refresh its cached expiry without logging in again:

    X-Token-Renewed: true
    X-Token-Expires-At: <unix seconds>
"""

from __future__ import annotations

import json
from typing import Any

from fastapi.responses import JSONResponse

from auth.models import Principal

RENEWED_HEADER = "X-Token-Renewed"
EXPIRES_AT_HEADER = "X-Token-Expires-At"


class PrettyJSONResponse(JSONResponse):
    """JSONResponse that renders human-readable, UTF-8 JSON."""

    media_type = "application/json; charset=utf-8"

    def render(self, content: Any) -> bytes:
        return json.dumps(content, ensure_ascii=False, allow_nan=False, indent=4).encode("utf-8")


def write_response(body: dict, status_code: int = 200, principal: Principal | None = None) -> PrettyJSONResponse:
    """Serialize body with status_code, adding renewal headers when due."""
    response = PrettyJSONResponse(status_code=status_code, content=body)
    if principal is not None and principal.renewed:
        response.headers[RENEWED_HEADER] = "true"
        response.headers[EXPIRES_AT_HEADER] = str(principal.new_expires_at)
    return response


def error_response(message: str, status_code: int, principal: Principal | None = None) -> PrettyJSONResponse:
    """Serialize an {"error": message} body.

    A principal is passed when the token was already validated (and possibly
    renewed) before the request failed, e.g. a 404 for an unknown endpoint.
    The client still needs to learn about the renewal in that case.
    """
    return write_response({"error": message}, status_code, principal)
