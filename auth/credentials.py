"""
auth/credentials.py -- Static credential table and password verification.

The credential table is read-only at runtime: a fixed username -> {password,
roles} mapping hashed once at startup. There is no user management; the table
exists to exercise the token machinery.

Passwords: bcrypt directly (no passlib wrapper). The source table ships
plaintext demo passwords; they are hashed when CredentialStore is built and
only the hashes are kept.

Timing equalization [C1]: authenticate() always runs bcrypt, against a dummy
hash when the username is unknown, so response time does not reveal which
usernames exist.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import bcrypt

from auth.models import Credential

logger = logging.getLogger("tokengate.auth")

# Demo identities. Roles are listed in the order they are reported to clients.
DEFAULT_USERS: dict[str, dict] = {
    "alice": {"password": "password1", "roles": ["admin", "editor"]},
    "bob": {"password": "password2", "roles": ["viewer"]},
}


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt 4.x rather than
    compared in full; the demo table stays well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


class CredentialStore:
    """Read-only username -> Credential lookup.

    Usage:
        creds = CredentialStore()
        cred = creds.authenticate("alice", "password1")   # Credential or None
    """

    def __init__(self, users: Mapping[str, Mapping] | None = None, rounds: int = 12) -> None:
        table = DEFAULT_USERS if users is None else users
        self._credentials: dict[str, Credential] = {
            username: Credential(
                username=username,
                password_hash=hash_password(entry["password"], rounds),
                roles=tuple(entry["roles"]),
            )
            for username, entry in table.items()
        }
        # Same cost factor as the real hashes, so a miss costs what a hit does.
        self._dummy_hash = hash_password("tokengate_timing_dummy", rounds)
        logger.info("Credential table loaded (%d users)", len(self._credentials))

    def __len__(self) -> int:
        return len(self._credentials)

    def get(self, username: str) -> Credential | None:
        return self._credentials.get(username)

    def authenticate(self, username: str, password: str) -> Credential | None:
        """Return the Credential when username and password match, else None.

        Do NOT return early before bcrypt runs -- that re-introduces the
        username enumeration timing leak [C1].
        """
        cred = self._credentials.get(username)
        if cred is None:
            verify_password(password, self._dummy_hash)
            return None
        if not verify_password(password, cred.password_hash):
            return None
        return cred
