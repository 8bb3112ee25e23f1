"""Signed bearer tokens and their process-local revocation set."""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from jose import JWTError, jwt

from .errors import TokenExpired, TokenInvalid, TokenRevoked
from .models import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller resolved from a verified token."""

    user_id: int
    role: Role


class RevokedTokens:
    """
    Tokens logged out before their natural expiry.

    Entries are kept only until the token's own ``exp``; after that the
    signature check alone rejects the token, so the entry is pruned.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._tokens: dict[str, float] = {}

    def add(self, token: str, expires_at: float) -> None:
        with self._lock:
            self._prune()
            self._tokens[token] = expires_at

    def __contains__(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def __len__(self) -> int:
        with self._lock:
            self._prune()
            return len(self._tokens)

    def _prune(self) -> None:
        now = self._clock()
        expired = [token for token, exp in self._tokens.items() if exp <= now]
        for token in expired:
            del self._tokens[token]


class SessionIssuer:
    """
    Issue, verify and revoke signed session tokens.

    Tokens are HMAC-signed JWTs carrying ``userId``, ``role``, ``iat``,
    ``exp`` and a random ``jti``. A token moves from valid to expired or
    revoked and never back.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        default_ttl: timedelta = timedelta(days=7),
        revocations: RevokedTokens | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.default_ttl = default_ttl
        self.clock = clock
        self.revocations = revocations or RevokedTokens(clock)

    def issue(self, user_id: int, role: Role, ttl: timedelta | None = None) -> str:
        """
        Create a signed token for ``user_id``.

        Args:
            user_id (int): Identifier of the authenticated user.
            role (Role): Role granted for the token's lifetime.
            ttl (timedelta | None): Token lifetime; defaults to ``default_ttl``.

        Returns:
            str: Encoded JWT.
        """
        now = self.clock()
        lifetime = self.default_ttl if ttl is None else ttl
        payload = {
            "userId": user_id,
            "role": Role(role).value,
            "iat": int(now),
            "exp": int(now + lifetime.total_seconds()),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def _decode(self, token: str) -> dict:
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as exc:
            raise TokenInvalid() from exc

    def verify(self, token: str) -> Identity:
        """
        Resolve a token to the identity it was issued for.

        Raises:
            TokenInvalid: Bad signature or malformed payload.
            TokenRevoked: The token was logged out.
            TokenExpired: ``exp`` has been reached.

        Returns:
            Identity: User id and role carried by the token.
        """
        payload = self._decode(token)
        user_id = payload.get("userId")
        exp = payload.get("exp")
        if not isinstance(user_id, int) or not isinstance(exp, (int, float)):
            raise TokenInvalid()
        try:
            role = Role(payload.get("role"))
        except ValueError as exc:
            raise TokenInvalid() from exc

        if token in self.revocations:
            raise TokenRevoked()
        if self.clock() >= exp:
            raise TokenExpired()
        return Identity(user_id=user_id, role=role)

    def revoke(self, token: str) -> None:
        """Add ``token`` to the revocation set. Revoking twice is a no-op."""
        payload = self._decode(token)
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            raise TokenInvalid()
        self.revocations.add(token, float(exp))
        logger.info("Revoked session token for user %s", payload.get("userId"))
