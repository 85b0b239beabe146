"""
auth/membership.py -- Credential validation, user creation and role resolution.

MembershipService is the only component that decides whether a username and
password amount to an authenticated principal. Everything above it (the HTTP
gate, the login route, the CLI) consumes its MembershipContext.

Validation is a single, complete decision per call:

    Lookup --not found--> Deny
      |found
    CheckPassword --mismatch--> Deny
      |match
    CheckLock --locked--> Deny
      |unlocked
    ResolveRoles --> Allow

Every Deny returns the same empty MembershipContext. The reason is logged for
auditing but never returned, so callers cannot enumerate usernames or learn
whether an account is locked.

No caching: every call re-reads the store.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth import passwords
from auth.errors import ConflictError, RoleNotFoundError, UserNotFoundError
from auth.models import AuthenticationResult, MembershipContext, RegistrationResult, Role, User, UserRole
from auth.store import UserStore

logger = logging.getLogger("homecinema.auth")


class MembershipService:
    def __init__(self, store: UserStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_user(self, username: str, password: str) -> MembershipContext:
        """Return a populated context for valid, unlocked credentials, else an empty one."""
        user = self._store.get_by_username(username)
        if user is None:
            # Burn the same bcrypt work as a real check before denying.
            passwords.hash_password(password, passwords.DUMMY_SALT)
            logger.info("Authentication denied (unknown_user)")
            return MembershipContext()

        if not passwords.passwords_match(password, user.salt, user.hashed_password):
            logger.info("Authentication denied for user_id=%s (bad_password)", user.id)
            return MembershipContext()

        if user.is_locked:
            logger.info("Authentication denied for user_id=%s (locked)", user.id)
            return MembershipContext()

        roles = self.get_user_roles(user.username)
        return MembershipContext(user=user, roles=frozenset(r.name for r in roles))

    def authenticate(self, username: str, password: str) -> AuthenticationResult:
        """Boolean-only login decision. Never reveals why authentication failed."""
        return AuthenticationResult(authenticated=self.validate_user(username, password).is_authenticated)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_user(self, username: str, email: str, password: str, role_ids: list[int] | None) -> User:
        """Create a user and assign roles.

        Two phases, each committed on its own:
          1. the user row (salted hash, unlocked, timestamped);
          2. all role associations, in one transaction.

        Raises ConflictError if the username is taken, either at the pre-check
        or when the UNIQUE constraint fires at insert time. Raises
        RoleNotFoundError if any role id does not resolve; the user row from
        phase 1 remains and no association is written.
        """
        if self._store.get_by_username(username) is not None:
            raise ConflictError("Username is already in use.")

        salt = passwords.create_salt()
        user = User(
            username=username,
            email=email,
            salt=salt,
            hashed_password=passwords.hash_password(password, salt),
            is_locked=False,
            date_created=datetime.now(timezone.utc).isoformat(),
        )
        try:
            user.id = self._store.create_user(user)
        except IntegrityError as exc:
            # Lost the race against a concurrent registration of the same name.
            raise ConflictError("Username is already in use.") from exc
        logger.info("Created user_id=%s", user.id)

        unique_ids = list(dict.fromkeys(role_ids or []))
        for role_id in unique_ids:
            if self._store.get_role(role_id) is None:
                logger.warning("Role assignment failed for user_id=%s: role %s does not exist", user.id, role_id)
                raise RoleNotFoundError(role_id)
        self._store.add_user_roles([UserRole(user.id, role_id) for role_id in unique_ids])

        return user

    def register(self, username: str, email: str, password: str, role_ids: list[int]) -> RegistrationResult:
        """Registration boundary. The caller decides the default role set."""
        user = self.create_user(username, email, password, role_ids)
        return RegistrationResult(created=True, user=user)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> User | None:
        return self._store.get_by_id(user_id)

    def get_user_roles(self, username: str) -> set[Role]:
        """Distinct roles held by username; empty for an unknown username."""
        return self._store.get_roles_for_username(username)

    def list_users(self) -> list[User]:
        return self._store.list_users()

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_locked(self, user_id: int, locked: bool) -> User:
        if not self._store.set_locked(user_id, locked):
            raise UserNotFoundError(user_id)
        logger.info("user_id=%s %s", user_id, "locked" if locked else "unlocked")
        return self._store.get_by_id(user_id)
