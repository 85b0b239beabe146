"""
auth/models.py -- Domain dataclasses for membership entities.

Pattern: Data class (pure data container, zero logic beyond derived
properties). Mirrors catalog/models.py -- dataclasses own domain shape; the
store and the membership service do the work.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered account.

    salt and hashed_password are both produced by auth.passwords. The
    plaintext password is never stored and never leaves the hasher.

    is_locked is absolute: a locked user is never validated, whatever the
    password. Locking is a normal denial, not an error.
    """

    username: str
    email: str
    salt: str
    hashed_password: str
    id: int | None = None
    is_locked: bool = False
    date_created: str | None = None  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class Role:
    """Reference role (e.g. "Admin"). Frozen so roles can live in sets."""

    id: int
    name: str


@dataclass(frozen=True)
class UserRole:
    """Association row between a user and a role. The pair is unique."""

    user_id: int
    role_id: int


@dataclass(frozen=True)
class MembershipContext:
    """Request-scoped principal produced by MembershipService.validate_user().

    Never persisted. An empty context (user=None, no roles) is the single
    shape of every failed validation, so callers cannot tell an unknown
    username from a wrong password or a locked account.
    """

    user: User | None = None
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def username(self) -> str | None:
        return self.user.username if self.user is not None else None

    def has_any_role(self, required: frozenset[str]) -> bool:
        return bool(self.roles & required)


@dataclass(frozen=True)
class AuthenticationResult:
    """Boolean-only outcome exposed to the login endpoint."""

    authenticated: bool


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a successful registration. Failures raise typed errors."""

    created: bool
    user: User | None = None
