"""
client/api_client.py -- Python client for the TokenGate API.

Keeps the token, its expiry, and the role snapshot from login, sends the
bearer header on every protected call, and follows server-side renewal: when
a response carries X-Token-Renewed: true, the cached expiry is replaced with
X-Token-Expires-At, so the client never has to log in again while it keeps
using the token.

Usage:
    client = ApiClient("http://localhost:8000/api")
    client.login("alice", "password1")
    client.get_example()             # {"message": "Hello alice (admin,editor), ..."}
    client.post_example({"k": 1})    # {"message": ..., "data": {"k": 1}}

Every failure (transport, non-2xx status, non-JSON body) raises
ApiClientError.

Layer rule: no imports from api/, auth/, or core/ -- the client talks HTTP only.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import requests

logger = logging.getLogger("tokengate.client")

RENEWED_HEADER = "X-Token-Renewed"
EXPIRES_AT_HEADER = "X-Token-Expires-At"


class ApiClientError(RuntimeError):
    """Raised for any failed API interaction. status is None for transport errors."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ApiClient:
    def __init__(self, base_url: str, timeout: float = 10, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token: Optional[str] = None
        self.expires_at = 0  # unix seconds
        self._roles: list[str] = []
        self._session = session or requests.Session()

    @property
    def roles(self) -> list[str]:
        """Roles captured at login."""
        return list(self._roles)

    def is_token_expired(self) -> bool:
        """Client-side check only. The server may still renew an expired token."""
        return self.token is None or time.time() > self.expires_at

    def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in and cache token, expiry, and roles.

        Returns {"token", "expiresAt", "roles"}.
        """
        data = self._send("login", "POST", {"username": username, "password": password})
        if not all(key in data for key in ("token", "expiresAt", "roles")):
            raise ApiClientError("Invalid login response")

        self.token = data["token"]
        self.expires_at = int(data["expiresAt"])
        self._roles = list(data["roles"])
        logger.info("Logged in as %s (expires_at=%d)", username, self.expires_at)
        return {"token": self.token, "expiresAt": self.expires_at, "roles": self.roles}

    def get_example(self) -> dict[str, Any]:
        return self.request("example", "GET")

    def post_example(self, data: Any) -> dict[str, Any]:
        return self.request("example", "POST", data)

    def request(self, endpoint: str, method: str, body: Any = None) -> dict[str, Any]:
        """Call a protected endpoint with the cached bearer token."""
        if self.token is None:
            raise ApiClientError("No token. Please login first.")
        return self._send(endpoint, method, body, bearer=self.token)

    def _send(self, endpoint: str, method: str, body: Any = None, bearer: Optional[str] = None) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if bearer is not None:
            headers["Authorization"] = f"Bearer {bearer}"
        try:
            resp = self._session.request(
                method,
                self.base_url,
                params={"endpoint": endpoint},
                json=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApiClientError(f"Request failed: {e}") from e

        if resp.headers.get(RENEWED_HEADER) == "true" and EXPIRES_AT_HEADER in resp.headers:
            self.expires_at = int(resp.headers[EXPIRES_AT_HEADER])
            logger.info("Token renewed until %d", self.expires_at)

        data = self._decode(resp)
        if not 200 <= resp.status_code < 300:
            message = data.get("error", "Unknown error") if isinstance(data, dict) else "Unknown error"
            raise ApiClientError(f"API error ({resp.status_code}): {message}", status=resp.status_code)
        return data

    @staticmethod
    def _decode(resp: requests.Response) -> Any:
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise ApiClientError(f"Invalid JSON response: {e}", status=resp.status_code) from e

    def close(self) -> None:
        self._session.close()
