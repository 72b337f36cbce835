"""Capability models for docgate."""

from datetime import datetime, timedelta
from enum import Enum
from typing import FrozenSet

from pydantic import BaseModel, ConfigDict


class Scope(str, Enum):
    """Actions a capability can permit.

    Deleting a stored document is covered by the upload scope.
    """

    UPLOAD = "upload"


class Capability(BaseModel):
    """A time-boxed, scope-limited permission to upload.

    A capability is valid while ``now < expires_at`` and only for the
    actions in ``scope``. Once expired it never becomes valid again.
    """

    model_config = ConfigDict(frozen=True)

    issued_at: datetime
    expires_at: datetime
    scope: FrozenSet[Scope] = frozenset({Scope.UPLOAD})

    @classmethod
    def issue(
        cls,
        now: datetime,
        ttl: timedelta,
        scope: FrozenSet[Scope] = frozenset({Scope.UPLOAD}),
    ) -> "Capability":
        return cls(issued_at=now, expires_at=now + ttl, scope=scope)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def allows(self, action: Scope, now: datetime) -> bool:
        """Check whether this capability permits ``action`` at ``now``."""
        return not self.is_expired(now) and action in self.scope

    @property
    def ttl_seconds(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())


class IssuedCapability(BaseModel):
    """A freshly issued capability and the credential that proves it.

    ``credential`` is a signed token for the stateless manager and an opaque
    session id for the stateful one.
    """

    credential: str
    capability: Capability
    token_type: str = "bearer"
