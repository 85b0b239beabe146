"""
api/routes/v1/account.py -- Login, registration and user management endpoints.

Routes:
  POST  /api/v1/account/authenticate      -- check credentials; {"authenticated": bool}
  POST  /api/v1/account/register          -- self-registration with the default role set
  GET   /api/v1/account/me                -- current principal (any authenticated user)
  GET   /api/v1/account/users             -- list users (Admin)
  POST  /api/v1/account/users             -- create user with explicit roles (Admin)
  GET   /api/v1/account/users/{user_id}   -- user detail (Admin)
  PATCH /api/v1/account/users/{user_id}   -- lock / unlock (Admin)
  GET   /api/v1/account/roles/{username}  -- roles held by a user (Admin)

Security:
  Every route is a GatedRoute; the access marker on each handler decides who
  reaches it.
  POST /authenticate and /register are rate-limited per IP. The route
  decorator sits outermost so the rate-limited callable is what FastAPI
  registers.
  /authenticate always answers 200 with a bare boolean: unknown user, wrong
  password, locked account and malformed input are indistinguishable to the
  caller.
  Cache-Control: no-store on /authenticate responses.
  PATCH /users/{id} blocks an admin from locking their own account.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ErrorDetail,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegistrationRequest,
    RegistrationResponse,
    RoleResponse,
    UserCreate,
    UserPatch,
    UserResponse,
)
from auth.dependencies import GatedRoute, get_current_user, get_principal
from auth.errors import ConflictError, MembershipError, NotFoundError
from auth.gate import ADMIN_ROLE, allow_anonymous, require_authenticated, require_roles
from auth.membership import MembershipService
from auth.models import MembershipContext, User
from core.config import get_settings

_settings = get_settings()

router = APIRouter(route_class=GatedRoute)


def _membership_error(exc: MembershipError) -> HTTPException:
    """Translate a typed membership failure into an HTTP error."""
    if isinstance(exc, ConflictError):
        status_code = 409
    elif isinstance(exc, NotFoundError):
        status_code = 404
    else:
        status_code = 400
    return HTTPException(
        status_code=status_code,
        detail=ErrorDetail(code=exc.code, message=str(exc)).model_dump(),
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/account/authenticate", response_model=LoginResponse)
@limiter.limit(_settings.login_rate_limit)
@allow_anonymous
def authenticate(request: Request, body: Optional[LoginRequest] = None) -> JSONResponse:
    """Check a username/password pair.

    The answer is a single boolean. Why a login failed is recorded in the
    server log only. A missing body, an empty username or an oversized
    password is answered false without touching the user store.
    """
    authenticated = False
    if body is not None and body.is_well_formed:
        membership: MembershipService = request.app.state.membership
        authenticated = membership.authenticate(body.username, body.password).authenticated
    resp = JSONResponse(status_code=200, content=LoginResponse(authenticated=authenticated).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/account/register", response_model=RegistrationResponse, status_code=201)
@limiter.limit(_settings.register_rate_limit)
@allow_anonymous
def register(request: Request, body: RegistrationRequest) -> RegistrationResponse:
    """Create an account holding the configured default roles."""
    settings = get_settings()
    if not settings.self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail=ErrorDetail(code="registration_disabled", message="Self-registration is disabled.").model_dump(),
        )
    membership: MembershipService = request.app.state.membership
    try:
        result = membership.register(body.username, body.email, body.password, settings.default_role_ids)
    except MembershipError as exc:
        raise _membership_error(exc) from exc
    return RegistrationResponse(created=result.created, user=UserResponse.from_user(result.user))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/account/me", response_model=MeResponse)
@require_authenticated
def me(
    principal: MembershipContext = Depends(get_principal),
    current_user: User = Depends(get_current_user),
) -> MeResponse:
    return MeResponse(
        user_id=current_user.id,
        username=current_user.username,
        email=current_user.email,
        roles=sorted(principal.roles),
    )


# ---------------------------------------------------------------------------
# User management (Admin)
# ---------------------------------------------------------------------------


@router.get("/account/users", response_model=list[UserResponse])
@require_roles(ADMIN_ROLE)
def list_users(request: Request) -> list[UserResponse]:
    membership: MembershipService = request.app.state.membership
    return [UserResponse.from_user(u) for u in membership.list_users()]


@router.post("/account/users", response_model=UserResponse, status_code=201)
@require_roles(ADMIN_ROLE)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    """Create a user with an explicit role set.

    A bad role id is reported as 404 role_not_found. The user row has already
    been written at that point; the error says so explicitly rather than
    leaving a silently role-less account.
    """
    membership: MembershipService = request.app.state.membership
    try:
        user = membership.create_user(body.username, body.email, body.password, body.role_ids)
    except MembershipError as exc:
        raise _membership_error(exc) from exc
    return UserResponse.from_user(user)


@router.get("/account/users/{user_id}", response_model=UserResponse)
@require_roles(ADMIN_ROLE)
def get_user(request: Request, user_id: int) -> UserResponse:
    membership: MembershipService = request.app.state.membership
    user = membership.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(code="user_not_found", message="User not found.").model_dump(),
        )
    return UserResponse.from_user(user)


@router.patch("/account/users/{user_id}", response_model=UserResponse)
@require_roles(ADMIN_ROLE)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Lock or unlock an account. An admin cannot lock themselves out."""
    if body.is_locked and user_id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(code="self_lock", message="You cannot lock your own account.").model_dump(),
        )
    membership: MembershipService = request.app.state.membership
    try:
        user = membership.set_locked(user_id, body.is_locked)
    except MembershipError as exc:
        raise _membership_error(exc) from exc
    return UserResponse.from_user(user)


@router.get("/account/roles/{username}", response_model=list[RoleResponse])
@require_roles(ADMIN_ROLE)
def user_roles(request: Request, username: str) -> list[RoleResponse]:
    """Roles held by username, sorted by id. Unknown usernames give an empty list."""
    membership: MembershipService = request.app.state.membership
    roles = sorted(membership.get_user_roles(username), key=lambda r: r.id)
    return [RoleResponse(id=r.id, name=r.name) for r in roles]
