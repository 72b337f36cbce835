"""Capability issuing and verification for docgate.

Two interchangeable managers implement the same contract:

* :class:`TokenAuthorizationManager` signs the capability into a JWT and
  keeps no server-side state, so any number of instances can verify it.
* :class:`SessionAuthorizationManager` keeps the capability in memory and
  hands the client an opaque session id to carry in a cookie.

Whatever goes wrong during verification, the caller only ever sees
:class:`UnauthorizedError`.
"""

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Protocol, runtime_checkable

from jose import jwt
from jose.exceptions import JOSEError

from docgate.auth.models import Capability, IssuedCapability, Scope
from docgate.core.clock import Clock, system_clock
from docgate.core.exceptions import SigningError, UnauthorizedError
from docgate.core.locks import StripedLocks
from docgate.core.settings import DocGateSettings

logger = logging.getLogger(__name__)

TOKEN_TYPE = "upload_capability"
DEFAULT_TTL = timedelta(minutes=5)


@runtime_checkable
class AuthorizationManager(Protocol):
    """Issues capabilities and verifies presented credentials."""

    async def begin_session(self) -> IssuedCapability:
        """Issue a new upload capability."""
        ...

    async def verify(
        self, credential: str | None, action: Scope = Scope.UPLOAD
    ) -> Capability:
        """Return the capability behind ``credential`` or raise UnauthorizedError."""
        ...


def _reject(reason: str) -> UnauthorizedError:
    # The reason stays in the server log; the client gets the bare error
    logger.debug(f"Capability rejected: {reason}")
    return UnauthorizedError()


class TokenAuthorizationManager:
    """Stateless capabilities carried as HMAC-signed JWTs.

    The token holds its own claims (``iat``, ``exp``, ``scope``, ``jti`` and
    ``typ``), so verification needs only the signing secret. Timestamps are
    fractional seconds so that expiry happens exactly ``ttl`` after issue.
    There is no revocation: a token dies when it expires.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock | None = None,
    ):
        """Initialize the manager.

        Args:
            secret_key: Secret used to sign and verify tokens
            algorithm: JWT HMAC algorithm
            ttl: How long an issued capability stays valid
            clock: Time source for issue and expiry checks
        """
        if not secret_key:
            raise ValueError("secret_key must be provided")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = ttl
        self.clock = clock or system_clock

    def create_token(self, capability: Capability) -> str:
        """Sign a capability into a compact JWT.

        Raises:
            SigningError: If the token cannot be encoded
        """
        claims = {
            "iat": capability.issued_at.timestamp(),
            "exp": capability.expires_at.timestamp(),
            "scope": sorted(scope.value for scope in capability.scope),
            "jti": str(uuid.uuid4()),
            "typ": TOKEN_TYPE,
        }
        try:
            return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)
        except JOSEError as e:
            logger.error(f"Failed to sign capability token: {e}")
            raise SigningError() from e

    async def begin_session(self) -> IssuedCapability:
        capability = Capability.issue(self.clock.now(), self.ttl)
        return IssuedCapability(
            credential=self.create_token(capability),
            capability=capability,
        )

    def decode_token(self, token: str) -> Dict[str, Any]:
        """Check the signature and return the raw claims.

        Expiry is deliberately not checked here; :meth:`verify` does it
        against the injected clock.

        Raises:
            UnauthorizedError: If the token is malformed or the signature is wrong
        """
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JOSEError as e:
            raise _reject(f"invalid token ({e})") from None

    async def verify(
        self, credential: str | None, action: Scope = Scope.UPLOAD
    ) -> Capability:
        if not credential:
            raise _reject("missing credential")

        claims = self.decode_token(credential)
        if claims.get("typ") != TOKEN_TYPE:
            raise _reject("wrong token type")

        try:
            capability = Capability(
                issued_at=datetime.fromtimestamp(float(claims["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(float(claims["exp"]), tz=timezone.utc),
                scope=frozenset(
                    Scope(value)
                    for value in claims.get("scope", [])
                    if value in Scope._value2member_map_
                ),
            )
        except (KeyError, TypeError, ValueError, OverflowError, OSError):
            raise _reject("malformed claims") from None

        now = self.clock.now()
        if capability.is_expired(now):
            raise _reject("expired")
        if not capability.allows(action, now):
            raise _reject(f"scope lacks {action.value}")
        return capability


class SessionStore:
    """In-memory session table shared by concurrent requests.

    Session ids are stored hashed, so the table never holds a usable
    credential. Writes to one id are serialized through the lock table.
    """

    def __init__(self, locks: StripedLocks | None = None):
        self._sessions: Dict[str, Capability] = {}
        self._locks = locks or StripedLocks()

    @staticmethod
    def _hash_id(session_id: str) -> str:
        return hashlib.sha256(session_id.encode()).hexdigest()

    def __len__(self) -> int:
        return len(self._sessions)

    async def put(self, session_id: str, capability: Capability) -> None:
        key = self._hash_id(session_id)
        async with self._locks.hold(key):
            self._sessions[key] = capability

    async def get(self, session_id: str) -> Capability | None:
        key = self._hash_id(session_id)
        async with self._locks.hold(key):
            return self._sessions.get(key)

    async def delete(self, session_id: str) -> bool:
        key = self._hash_id(session_id)
        async with self._locks.hold(key):
            return self._sessions.pop(key, None) is not None

    def purge(self, now: datetime) -> int:
        """Drop every expired session and return how many were removed."""
        expired = [key for key, cap in self._sessions.items() if cap.is_expired(now)]
        for key in expired:
            del self._sessions[key]
        return len(expired)


class SessionAuthorizationManager:
    """Stateful capabilities held server-side and referenced by a session id.

    The transport is expected to persist the id in a cookie. Unlike tokens,
    sessions can be revoked before they expire.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock | None = None,
        store: SessionStore | None = None,
    ):
        """Initialize the manager.

        Args:
            ttl: How long an issued capability stays valid
            clock: Time source for issue and expiry checks
            store: Session table (a fresh one if not given)
        """
        self.ttl = ttl
        self.clock = clock or system_clock
        self.store = store or SessionStore()

    async def begin_session(self) -> IssuedCapability:
        session_id = secrets.token_urlsafe(32)
        capability = Capability.issue(self.clock.now(), self.ttl)
        await self.store.put(session_id, capability)
        return IssuedCapability(
            credential=session_id,
            capability=capability,
            token_type="cookie",
        )

    async def verify(
        self, credential: str | None, action: Scope = Scope.UPLOAD
    ) -> Capability:
        if not credential:
            raise _reject("missing credential")

        capability = await self.store.get(credential)
        if capability is None:
            raise _reject("unknown session")

        now = self.clock.now()
        if capability.is_expired(now):
            await self.store.delete(credential)
            raise _reject("expired")
        if not capability.allows(action, now):
            raise _reject(f"scope lacks {action.value}")
        return capability

    async def revoke(self, session_id: str) -> bool:
        """Invalidate a session before it expires.

        Returns:
            True if the session existed
        """
        return await self.store.delete(session_id)

    def purge_expired(self) -> int:
        removed = self.store.purge(self.clock.now())
        if removed:
            logger.debug(f"Purged {removed} expired sessions")
        return removed


def create_authorization_manager(
    settings: DocGateSettings,
    clock: Clock | None = None,
) -> AuthorizationManager:
    """Build the manager selected by ``settings.session_mode``."""
    ttl = timedelta(seconds=settings.capability_ttl_seconds)
    if settings.session_mode == "cookie":
        return SessionAuthorizationManager(ttl=ttl, clock=clock)
    return TokenAuthorizationManager(
        secret_key=settings.secret_key,
        algorithm=settings.algorithm,
        ttl=ttl,
        clock=clock,
    )
