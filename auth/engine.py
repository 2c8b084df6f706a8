"""
auth/engine.py -- Token issuance and validation.

Token lifecycle, per token:

    Active  --(now > expires_at, now <= issued_at + renew_window)-->  Renewed
    Renewed --(same rule, issued_at is now the renewal time)------->  Renewed | Expired
    Active  --(now > expires_at, now >  issued_at + renew_window)-->  Expired

Expired is not a flag: the record is deleted and the token is unknown from
then on. Because renewal moves issued_at, the renewal window rolls with it.
A token presented at least once every token_lifetime + renew_window seconds
stays usable indefinitely.

Tokens: secrets.token_hex(token_bytes), at least 16 random bytes, so guessing
a live token is computationally infeasible.

The engine never reads the clock directly; it takes a clock callable so tests
and callers can pin "now".

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from collections.abc import Callable

from auth.credentials import CredentialStore
from auth.errors import InvalidCredentials, InvalidToken, MissingToken, TokenExpired
from auth.models import LoginResult, Principal, TokenRecord
from auth.store import TokenStore

logger = logging.getLogger("tokengate.auth")

TOKEN_LIFETIME = 600  # 10 minutes
RENEW_WINDOW = 1800  # 30 minutes

_BEARER_RE = re.compile(r"^Bearer (\S+)$")


def _unix_now() -> int:
    return int(time.time())


def parse_bearer(header: str | None) -> str:
    """Return the token from an 'Authorization: Bearer <token>' value.

    Raises MissingToken for an absent header, another scheme, or an empty
    token.
    """
    match = _BEARER_RE.match(header or "")
    if match is None:
        raise MissingToken()
    return match.group(1)


class AuthEngine:
    """Login and protected-request validation over injected stores.

    Usage:
        engine = AuthEngine(CredentialStore(), MemoryTokenStore(key))
        result = engine.login("alice", "password1")
        principal = engine.validate(f"Bearer {result.token}")
    """

    def __init__(
        self,
        credentials: CredentialStore,
        tokens: TokenStore,
        token_lifetime: int = TOKEN_LIFETIME,
        renew_window: int = RENEW_WINDOW,
        token_bytes: int = 16,
        clock: Callable[[], int] = _unix_now,
    ) -> None:
        self.credentials = credentials
        self.tokens = tokens
        self.token_lifetime = token_lifetime
        self.renew_window = renew_window
        self.token_bytes = token_bytes
        self.clock = clock

    def login(self, username: str, password: str) -> LoginResult:
        """Check credentials and mint a token.

        Unknown username and wrong password raise the same InvalidCredentials,
        after the same amount of bcrypt work.
        """
        cred = self.credentials.authenticate(username, password)
        if cred is None:
            logger.info("Login failed for %r", username)
            raise InvalidCredentials()

        now = self.clock()
        record = TokenRecord(
            token=secrets.token_hex(self.token_bytes),
            username=cred.username,
            roles=tuple(cred.roles),
            issued_at=now,
            expires_at=now + self.token_lifetime,
        )
        self.tokens.add(record)
        logger.info("Issued token for %s (expires_at=%d)", cred.username, record.expires_at)
        return LoginResult(token=record.token, expires_at=record.expires_at, roles=record.roles)

    def validate(self, authorization: str | None, now: int | None = None) -> Principal:
        """Resolve an Authorization header to a Principal, renewing if due.

        Raises MissingToken, InvalidToken, or TokenExpired. The error is raised
        only after the store transaction has committed, so deleting an expired
        token is not rolled back by the exception.
        """
        token = parse_bearer(authorization)
        if now is None:
            now = self.clock()

        error: Exception | None = None
        principal: Principal | None = None
        with self.tokens.transaction(token) as handle:
            record = handle.record
            if record is None:
                error = InvalidToken()
            elif now <= record.expires_at:
                principal = Principal(username=record.username, roles=record.roles)
            elif now <= record.issued_at + self.renew_window:
                record.issued_at = now
                record.expires_at = now + self.token_lifetime
                handle.save(record)
                principal = Principal(
                    username=record.username,
                    roles=record.roles,
                    renewed=True,
                    new_expires_at=record.expires_at,
                )
            else:
                handle.delete()
                error = TokenExpired()

        if error is not None:
            if isinstance(error, TokenExpired):
                logger.info("Token for %s expired past renewal window; deleted", record.username)
            raise error
        if principal.renewed:
            logger.info("Renewed token for %s (expires_at=%d)", principal.username, principal.new_expires_at)
        return principal
