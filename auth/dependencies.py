"""
auth/dependencies.py -- Request-boundary enforcement for FastAPI.

GatedRoute is the APIRoute class every router in the application uses. Its
handler wraps FastAPI's own request handler, so the policy is read from the
route's real endpoint when the route is built, never looked up per request:

  1. read the endpoint's AccessPolicy (see auth/gate.py);
  2. pull Basic credentials from the Authorization header;
  3. refuse with 429 if this client has used up its failed-credential budget;
  4. call authorize() -- bcrypt work runs in the thread pool;
  5. short-circuit with 401/403, or attach the principal to request.state
     and run the endpoint (body parsing and validation happen only after
     the decision).

Usage:
    router = APIRouter(route_class=GatedRoute)

Failed credential checks are counted per client address against the shared
limiter on app.state.limiter, so guessing passwords through any protected
route costs the same budget. The budget is AUTH_FAILURE_RATE_LIMIT.

get_principal() / get_current_user() are the Depends() helpers route
handlers use to read the principal the gate attached. Identity is passed
explicitly through the request, never through module or thread-local state.

Layer rule: no imports from api/ or catalog/.
  auth/dependencies.py may import from fastapi/starlette because this module
  is part of the FastAPI request pipeline.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, Response
from fastapi.routing import APIRoute
from limits import parse
from starlette.concurrency import run_in_threadpool

from auth.errors import MembershipError, UnauthenticatedError, UnauthorizedError
from auth.gate import AccessPolicy, Credentials, DenyReason, authorize, parse_basic_credentials, policy_for
from auth.models import MembershipContext, User
from core.config import get_settings

logger = logging.getLogger("homecinema.auth")

_REALM = 'Basic realm="HomeCinema", charset="UTF-8"'

_DENY_ERRORS: dict[DenyReason, tuple[int, MembershipError]] = {
    DenyReason.UNAUTHENTICATED: (401, UnauthenticatedError("Authentication required.")),
    DenyReason.UNAUTHORIZED: (403, UnauthorizedError("You do not have permission to access this resource.")),
}

_AUTH_FAILURE_SCOPE = "auth-failure"
_AUTH_FAILURE_LIMIT = parse(get_settings().auth_failure_rate_limit)


def deny_response(reason: DenyReason) -> JSONResponse:
    status_code, error = _DENY_ERRORS[reason]
    resp = JSONResponse(status_code=status_code, content={"error": {"code": error.code, "message": str(error)}})
    if reason is DenyReason.UNAUTHENTICATED:
        resp.headers["WWW-Authenticate"] = _REALM
    return resp


# ---------------------------------------------------------------------------
# Failed-credential throttling
# ---------------------------------------------------------------------------


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _active_limiter(request: Request):
    """Return the app's slowapi Limiter if rate limiting is switched on, else None."""
    limiter = getattr(request.app.state, "limiter", None)
    if limiter is None or not limiter.enabled:
        return None
    return limiter


def _failure_budget_exhausted(request: Request) -> bool:
    limiter = _active_limiter(request)
    if limiter is None:
        return False
    return not limiter.limiter.test(_AUTH_FAILURE_LIMIT, _AUTH_FAILURE_SCOPE, _client_key(request))


def _record_failure(request: Request) -> None:
    limiter = _active_limiter(request)
    if limiter is not None:
        limiter.limiter.hit(_AUTH_FAILURE_LIMIT, _AUTH_FAILURE_SCOPE, _client_key(request))


def _throttled_response() -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": {"code": "rate_limited", "message": "Too many failed sign-in attempts."}},
        headers={"Retry-After": str(_AUTH_FAILURE_LIMIT.get_expiry())},
    )


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


async def enforce_policy(request: Request, policy: AccessPolicy) -> Response | None:
    """Decide the request against policy.

    Returns a deny response, or None after attaching the principal to
    request.state.
    """
    credentials: Credentials | None = None
    if not policy.is_public:
        credentials = parse_basic_credentials(request.headers.get("Authorization"))
        if credentials is not None and _failure_budget_exhausted(request):
            logger.warning("Credential check throttled for client %s", _client_key(request))
            return _throttled_response()

    decision = await run_in_threadpool(
        authorize,
        request.app.state.membership,
        credentials,
        is_public=policy.is_public,
        required_roles=policy.required_roles,
    )
    if not decision.allowed:
        if decision.reason is DenyReason.UNAUTHENTICATED and credentials is not None:
            _record_failure(request)
        return deny_response(decision.reason)

    request.state.principal = decision.principal
    return None


class GatedRoute(APIRoute):
    """APIRoute that authorizes each request before its endpoint runs."""

    def get_route_handler(self) -> Callable[[Request], Awaitable[Response]]:
        handler = super().get_route_handler()
        policy = policy_for(self.endpoint)

        async def gated_handler(request: Request) -> Response:
            denied = await enforce_policy(request, policy)
            if denied is not None:
                return denied
            return await handler(request)

        return gated_handler


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_principal(request: Request) -> MembershipContext:
    """Return the principal attached by the gate (empty on public routes)."""
    return getattr(request.state, "principal", MembershipContext())


def get_current_user(request: Request) -> User:
    """Require an authenticated principal. Raises HTTP 401 otherwise.

    The gate already rejects unauthenticated requests on protected routes;
    this guards handlers that are mistakenly marked public.
    """
    principal = get_principal(request)
    if principal.user is None:
        error = UnauthenticatedError("Authentication required.")
        raise HTTPException(
            status_code=401,
            detail={"code": error.code, "message": str(error)},
            headers={"WWW-Authenticate": _REALM},
        )
    return principal.user
