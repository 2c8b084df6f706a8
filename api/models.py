"""
API request and response models for TokenGate endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Request bodies are NOT parsed through these models: the login and example
endpoints accept any JSON (or an empty body) and must answer malformed JSON
with 400 {"error": "Invalid JSON"}, not FastAPI's 422 validation envelope.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import LoginResult

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Login body. Missing fields default to "" and fail as bad credentials."""

    model_config = ConfigDict(extra="ignore")

    username: str = ""
    password: str = ""


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Response for POST ?endpoint=login."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str
    expires_at: int = Field(serialization_alias="expiresAt", validation_alias="expiresAt")
    roles: list[str]

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(token=result.token, expires_at=result.expires_at, roles=list(result.roles))


class ExampleResponse(BaseModel):
    """Response for the example endpoint. data is only present on POST."""

    model_config = ConfigDict(frozen=True)

    message: str
    data: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Every 4xx/5xx body: {"error": "<message>"}."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
