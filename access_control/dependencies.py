"""
Authorization dependencies for FastAPI.

Two ways to protect a route:

1. Dependency factory:

    @router.get("/users", dependencies=[Depends(require_permissions(
        {"action": Action.READ, "subject": "User"}
    ))])

2. Marker decorator plus router-wide enforcement:

    router = APIRouter(dependencies=[Depends(enforce_permissions)])

    @router.delete("/users/{user_id}")
    @check_permissions({"action": Action.DELETE, "subject": "User"})
    async def delete_user(user_id: str): ...

Both read the guard from request.app.state.guard and translate access
control errors into HTTPException with generic messages.
"""

from fastapi import HTTPException, Request
from loguru import logger

from access_control.errors import AccessControlError
from access_control.guard import AuthorizationGuard, RuleLike, required_rules_for
from auth.principal_middleware import resolve_request_principal
from permissions.schemas import Principal


def to_http_exception(error: AccessControlError) -> HTTPException:
    """Map an access control error to its HTTP status with the generic message"""
    headers = {"WWW-Authenticate": "Bearer"} if error.status_code == 401 else None
    return HTTPException(status_code=error.status_code, detail=error.message, headers=headers)


def get_guard(request: Request) -> AuthorizationGuard:
    guard = getattr(request.app.state, "guard", None)
    if guard is None:
        logger.error("[GUARD] Authorization guard not configured on app.state")
        raise HTTPException(status_code=500, detail="Error while checking permissions.")
    return guard


def _authorize(request: Request, rules) -> Principal:
    try:
        return get_guard(request).authorize(rules, request)
    except AccessControlError as e:
        raise to_http_exception(e)


async def enforce_permissions(request: Request) -> Principal:
    """
    Dependency: enforce the rules attached to the matched endpoint by
    check_permissions. Endpoints without a marker pass through.
    """
    endpoint = request.scope.get("endpoint")
    return _authorize(request, required_rules_for(endpoint))


def require_permissions(*rules: RuleLike):
    """
    Dependency factory: require every given (action, subject) rule.
    """
    async def _require_permissions(request: Request) -> Principal:
        return _authorize(request, rules)

    return _require_permissions


async def get_current_principal(request: Request) -> Principal:
    """
    Dependency: the authenticated principal, or 401.
    """
    principal = resolve_request_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail="Authenticated user not found in request context.",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return principal
