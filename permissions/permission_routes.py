"""
Permission management API endpoints.

Exposed endpoints:
- GET    /api/permissions/me/can          - Check an action for the current user
- GET    /api/permissions/cache/stats     - Permission cache statistics
- POST   /api/permissions/cache/invalidate - Drop cached rules (one user or all)
- GET    /api/permissions/users/{user_id} - List a user's override rules
- POST   /api/permissions                 - Create an override rule
- GET    /api/permissions/{id}            - Get one override rule
- PATCH  /api/permissions/{id}            - Update an override rule
- DELETE /api/permissions/{id}            - Delete an override rule
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from access_control.ability import Action
from access_control.dependencies import enforce_permissions, get_current_principal, to_http_exception
from access_control.errors import AccessControlError
from access_control.guard import check_permissions
from permissions.schemas import (
    AbilityCheckResponse,
    CacheStatsResponse,
    CreatePermissionRequest,
    InvalidateCacheRequest,
    PermissionRule,
    Principal,
    UpdatePermissionRequest,
)

logger = logging.getLogger(__name__)

PERMISSION_SUBJECT = "Permission"

router = APIRouter(
    prefix="/api/permissions",
    tags=["permissions"],
    dependencies=[Depends(enforce_permissions)],
)


def _service(request: Request):
    return request.app.state.permission_service


@router.get("/me/can", response_model=AbilityCheckResponse)
async def check_my_ability(
    request: Request,
    action: Action = Query(...),
    subject: str = Query(..., min_length=1),
    principal: Principal = Depends(get_current_principal),
):
    """
    Ask whether the current user may perform `action` on `subject`.

    Returns:
        {"action": "update", "subject": "Post", "allowed": false}
    """
    try:
        ability = request.app.state.ability_builder.build(principal)
    except Exception as e:
        logger.error(f"Ability build failed for user {principal.id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error while checking permissions.")

    return AbilityCheckResponse(
        action=action.value,
        subject=subject,
        allowed=ability.can(action, subject)
    )


@router.get("/cache/stats", response_model=CacheStatsResponse)
@check_permissions({"action": Action.MANAGE, "subject": PERMISSION_SUBJECT})
async def cache_stats(request: Request):
    return request.app.state.permission_cache.stats()


@router.post("/cache/invalidate")
@check_permissions({"action": Action.MANAGE, "subject": PERMISSION_SUBJECT})
async def invalidate_cache(request: Request, body: Optional[InvalidateCacheRequest] = None):
    """Invalidate one user's cached rules, or the whole cache when no user_id is given"""
    cache = request.app.state.permission_cache
    if body is not None and body.user_id:
        removed = 1 if cache.invalidate(body.user_id) else 0
    else:
        removed = cache.invalidate_all()
    return {"removed": removed}


@router.get("/users/{user_id}", response_model=List[PermissionRule])
@check_permissions({"action": Action.READ, "subject": PERMISSION_SUBJECT})
async def list_user_permissions(user_id: str, request: Request):
    try:
        return _service(request).find_user_permissions(user_id)
    except AccessControlError as e:
        raise to_http_exception(e)


@router.post("", response_model=PermissionRule, status_code=201)
@check_permissions({"action": Action.CREATE, "subject": PERMISSION_SUBJECT})
async def create_permission(data: CreatePermissionRequest, request: Request):
    """
    Create an override rule.

    Example request:
        {
            "user_id": "u1",
            "action": "create",
            "subject": "Post",
            "inverted": false
        }
    """
    try:
        return _service(request).create_permission(data)
    except AccessControlError as e:
        raise to_http_exception(e)


@router.get("/{permission_id}", response_model=PermissionRule)
@check_permissions({"action": Action.READ, "subject": PERMISSION_SUBJECT})
async def get_permission(permission_id: str, request: Request):
    try:
        return _service(request).get_permission(permission_id)
    except AccessControlError as e:
        raise to_http_exception(e)


@router.patch("/{permission_id}", response_model=PermissionRule)
@check_permissions({"action": Action.UPDATE, "subject": PERMISSION_SUBJECT})
async def update_permission(permission_id: str, data: UpdatePermissionRequest, request: Request):
    try:
        return _service(request).update_permission(permission_id, data)
    except AccessControlError as e:
        raise to_http_exception(e)


@router.delete("/{permission_id}", response_model=PermissionRule)
@check_permissions({"action": Action.DELETE, "subject": PERMISSION_SUBJECT})
async def delete_permission(permission_id: str, request: Request):
    try:
        return _service(request).delete_permission(permission_id)
    except AccessControlError as e:
        raise to_http_exception(e)
