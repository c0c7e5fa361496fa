"""Marketplace users.

Clients sign up themselves, writers are provisioned by an admin, and the
first admin is bootstrapped from configuration at startup. Roles never
change after creation.
"""

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from inkwell.marketplace.errors import DuplicateUserError
from inkwell.marketplace.identity import VALID_ROLE_VALUES, Role
from inkwell.types import format_datetime, parse_datetime, utc_now

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_NAME_LENGTH = 120


@dataclass
class User:
    """A marketplace account."""

    id: str
    email: str
    password_hash: str
    role: str
    name: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.email = (self.email or "").strip().lower()
        if not EMAIL_PATTERN.match(self.email):
            raise ValueError(f"Invalid email: {self.email!r}")
        if isinstance(self.role, Role):
            self.role = self.role.value
        if self.role not in VALID_ROLE_VALUES:
            raise ValueError(f"Invalid role: {self.role}. Must be one of {sorted(VALID_ROLE_VALUES)}")
        if not self.password_hash:
            raise ValueError("Password hash is required")
        if self.name and len(self.name) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} chars)")

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "password_hash": self.password_hash,
            "role": self.role,
            "name": self.name,
            "phone": self.phone,
            "created_at": format_datetime(self.created_at),
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialize without the password hash."""
        data = self.to_dict()
        data.pop("password_hash")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            email=data["email"],
            password_hash=data["password_hash"],
            role=data["role"],
            name=data.get("name"),
            phone=data.get("phone"),
            created_at=parse_datetime(data.get("created_at")),
        )


class UserStorage(Protocol):
    """Protocol for user persistence backends."""

    def save_user(self, user: User) -> str:
        """Save a new user. Raises DuplicateUserError if the email is taken."""
        ...

    def get_user(self, user_id: str) -> Optional[User]:
        ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def list_users(self, role: Optional[Role] = None, limit: int = 100) -> List[User]:
        ...


class InMemoryUserStorage:
    """In-memory user storage for testing and local development."""

    def __init__(self):
        self._users: dict[str, User] = {}
        self._lock = threading.Lock()

    def save_user(self, user: User) -> str:
        with self._lock:
            if any(u.email == user.email for u in self._users.values()):
                raise DuplicateUserError("Email already exists")
            if user.created_at is None:
                user.created_at = utc_now()
            self._users[user.id] = user
        logger.debug(f"User saved | id={user.id} | role={user.role}")
        return user.id

    def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    def list_users(self, role: Optional[Role] = None, limit: int = 100) -> List[User]:
        users = list(self._users.values())
        if role is not None:
            role_val = role.value if isinstance(role, Role) else role
            users = [u for u in users if u.role == role_val]
        users.sort(key=lambda u: u.created_at or utc_now())
        return users[:limit]

