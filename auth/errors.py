"""
auth/errors.py -- Typed membership failures.

Creation failures are explicit so the route layer can render a specific
message. Authentication failures are deliberately NOT modelled here as
distinct types per cause: validate_user() returns an empty context instead.
UnauthenticatedError / UnauthorizedError supply the code and message of the
gate's 401 and 403 bodies (auth/dependencies.py).

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations


class MembershipError(Exception):
    """Base class for every error raised by the membership core."""

    code = "membership_error"


class ConflictError(MembershipError):
    """A user with the same username already exists."""

    code = "conflict"


class NotFoundError(MembershipError):
    """A lookup by identifier found nothing."""

    code = "not_found"


class RoleNotFoundError(NotFoundError):
    code = "role_not_found"

    def __init__(self, role_id: int) -> None:
        super().__init__(f"Role {role_id} doesn't exist.")
        self.role_id = role_id


class UserNotFoundError(NotFoundError):
    code = "user_not_found"

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} doesn't exist.")
        self.user_id = user_id


class UnauthenticatedError(MembershipError):
    """Missing or invalid credentials."""

    code = "unauthenticated"


class UnauthorizedError(MembershipError):
    """Valid identity, insufficient role."""

    code = "unauthorized"
