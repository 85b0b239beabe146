"""
auth/gate.py -- Allow/deny decisions for protected endpoints.

Three inputs decide every request:
  1. the endpoint's AccessPolicy (public, any authenticated user, or a set
     of roles of which the caller must hold at least one);
  2. the credentials claimed by the request (or None);
  3. the MembershipContext that validate_user() builds from them.

The outcome keeps "who are you?" (UNAUTHENTICATED -> log in) apart from
"you may not" (UNAUTHORIZED -> forbidden), because clients react to the two
differently.

Policies are attached to route functions with decorators and read back by
GatedRoute in auth/dependencies.py when each route is built:

    @router.get("/movies/latest")
    @allow_anonymous
    def latest(...): ...

    @router.post("/movies/add")
    @require_roles("Admin")
    def add(...): ...

Functions without a marker get DEFAULT_POLICY (any authenticated user).

Layer rule: pure logic, no FastAPI imports. No imports from api/ or catalog/.
"""

from __future__ import annotations

import base64
import binascii
import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from auth.models import MembershipContext

if TYPE_CHECKING:
    from auth.membership import MembershipService

_POLICY_ATTR = "__access_policy__"

# Administrative role guarding account management and catalog writes.
ADMIN_ROLE = "Admin"


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccessPolicy:
    is_public: bool = False
    required_roles: frozenset[str] = field(default_factory=frozenset)


DEFAULT_POLICY = AccessPolicy()
PUBLIC_POLICY = AccessPolicy(is_public=True)


def allow_anonymous(func):
    """Mark an endpoint as reachable without credentials."""
    setattr(func, _POLICY_ATTR, PUBLIC_POLICY)
    return func


def require_authenticated(func):
    """Mark an endpoint as open to any authenticated principal."""
    setattr(func, _POLICY_ATTR, DEFAULT_POLICY)
    return func


def require_roles(*roles: str):
    """Mark an endpoint as requiring at least one of roles."""
    if not roles:
        raise ValueError("require_roles() needs at least one role name")
    policy = AccessPolicy(required_roles=frozenset(roles))

    def _mark(func):
        setattr(func, _POLICY_ATTR, policy)
        return func

    return _mark


def policy_for(endpoint) -> AccessPolicy:
    return getattr(endpoint, _POLICY_ATTR, DEFAULT_POLICY)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


def parse_basic_credentials(header: str | None) -> Credentials | None:
    """Decode an "Authorization: Basic ..." header value.

    Returns None for a missing header, another scheme, bad base64, non-UTF-8
    bytes or a payload without a colon. Only the first colon separates the
    username from the password, so passwords may contain colons.
    """
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded.strip():
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep or not username:
        return None
    return Credentials(username=username, password=password)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class DenyReason(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    principal: MembershipContext = field(default_factory=MembershipContext)
    reason: DenyReason | None = None

    @classmethod
    def allow(cls, principal: MembershipContext | None = None) -> "AccessDecision":
        return cls(allowed=True, principal=principal or MembershipContext())

    @classmethod
    def deny(cls, reason: DenyReason, principal: MembershipContext | None = None) -> "AccessDecision":
        return cls(allowed=False, principal=principal or MembershipContext(), reason=reason)


def authorize(
    membership: MembershipService,
    credentials: Credentials | None,
    *,
    is_public: bool,
    required_roles: frozenset[str] | set[str] = frozenset(),
) -> AccessDecision:
    """Decide whether a request may reach its endpoint.

    Public endpoints are allowed without consulting membership at all. An
    empty required_roles means any authenticated principal passes.
    """
    if is_public:
        return AccessDecision.allow()
    if credentials is None:
        return AccessDecision.deny(DenyReason.UNAUTHENTICATED)

    principal = membership.validate_user(credentials.username, credentials.password)
    if not principal.is_authenticated:
        return AccessDecision.deny(DenyReason.UNAUTHENTICATED)

    required = frozenset(required_roles)
    if required and not principal.has_any_role(required):
        return AccessDecision.deny(DenyReason.UNAUTHORIZED, principal)
    return AccessDecision.allow(principal)
