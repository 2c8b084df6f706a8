"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the engine
do the work; routes map these onto the wire format.

All timestamps are integer unix seconds.

Layer rule: no imports from api/, client/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Credential:
    """A login identity from the static credential table.

    password_hash is a bcrypt hash. The plaintext password is only seen while
    the table is loaded and is never kept.
    """

    username: str
    password_hash: str
    roles: tuple[str, ...]


@dataclass
class TokenRecord:
    """A live bearer token.

    roles is a snapshot taken at login. It is never re-read from the
    credential table, so a role change does not affect issued tokens.

    Invariant: expires_at == issued_at + token lifetime right after creation
    or renewal, and issued_at <= expires_at for any stored record.
    """

    token: str
    username: str
    roles: tuple[str, ...]
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class LoginResult:
    """What a successful login hands back to the client."""

    token: str
    expires_at: int
    roles: tuple[str, ...]


@dataclass(frozen=True)
class Principal:
    """The authenticated identity behind a protected request.

    renewed is True when this validation extended the token; new_expires_at
    then carries the expiry the client should cache.
    """

    username: str
    roles: tuple[str, ...]
    renewed: bool = False
    new_expires_at: int | None = None
