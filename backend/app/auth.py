"""Authentication utilities for Inkwell backend."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Annotated

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from inkwell.marketplace.errors import InvalidTokenError
from inkwell.marketplace.identity import VALID_ROLE_VALUES, Identity, Role, require_role

from .config import Settings

# Cookie name for httpOnly auth
AUTH_COOKIE_NAME = "inkwell_auth"

# Bearer token scheme
# Make bearer optional to allow cookie fallback
security = HTTPBearer(auto_error=False)


def generate_user_id() -> str:
    """Generate a user id."""
    return str(uuid.uuid4())


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        return False


def create_access_token(
    user_id: str,
    role: Role,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token carrying the user id and role."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode = {
        "sub": user_id,
        "role": role.value if isinstance(role, Role) else role,
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token. Raises InvalidTokenError."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise InvalidTokenError("Invalid or expired token") from e


class JWTIdentityProvider:
    """Issues and verifies HS256 JWTs for marketplace identities."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def issue(self, user_id: str, role: Role) -> str:
        return create_access_token(user_id, role, self.settings)

    def verify(self, token: str) -> Identity:
        payload = decode_token(token, self.settings)
        user_id = payload.get("sub")
        role = payload.get("role")
        if not user_id or role not in VALID_ROLE_VALUES or payload.get("type") != "access":
            raise InvalidTokenError("Invalid token payload")
        return Identity(user_id=user_id, role=Role(role), token=token)


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    request: Request,
) -> Identity:
    """Resolve the caller from the Authorization header, falling back to the auth cookie."""
    token = credentials.credentials if credentials else request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        raise InvalidTokenError("Not authenticated - provide Authorization header or auth cookie")
    return request.app.state.context.identity.verify(token)


# Type alias for dependency injection
CurrentUser = Annotated[Identity, Depends(get_current_identity)]


def _role_dependency(role: Role):
    async def dependency(identity: CurrentUser) -> Identity:
        require_role(identity, role)
        return identity

    dependency.__name__ = f"require_{role.value}"
    return dependency


ClientUser = Annotated[Identity, Depends(_role_dependency(Role.CLIENT))]
WriterUser = Annotated[Identity, Depends(_role_dependency(Role.WRITER))]
AdminUser = Annotated[Identity, Depends(_role_dependency(Role.ADMIN))]
