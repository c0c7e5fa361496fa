"""Identity contract between the marketplace and whatever issues tokens.

The marketplace never authenticates anyone itself. It receives an
``Identity`` (user id + role) from an ``IdentityProvider`` and checks
roles and ownership against it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from inkwell.marketplace.errors import UnauthorizedError

# Actor id recorded for automatic (date-driven) transitions
SYSTEM_ACTOR = "system"


class Role(str, Enum):
    """User roles. Fixed at account creation."""

    CLIENT = "client"
    WRITER = "writer"
    ADMIN = "admin"


VALID_ROLE_VALUES = frozenset(r.value for r in Role)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller.

    ``token`` is the raw bearer credential, kept so file links can be signed
    on the caller's behalf when the blob store supports it.
    """

    user_id: str
    role: Role
    token: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_client(self) -> bool:
        return self.role == Role.CLIENT

    @property
    def is_writer(self) -> bool:
        return self.role == Role.WRITER


class IdentityProvider(Protocol):
    """Issues and verifies identity tokens."""

    def issue(self, user_id: str, role: Role) -> str:
        """Create a signed token for a user."""
        ...

    def verify(self, token: str) -> Identity:
        """Verify a token. Raises InvalidTokenError."""
        ...


def require_role(identity: Identity, *roles: Role) -> None:
    """Raise UnauthorizedError unless the identity holds one of ``roles``."""
    if identity.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise UnauthorizedError(f"{allowed.capitalize()} access required")
