"""Per-user permission endpoints: effective set, checks and overrides."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from gatekeeper.api.deps import get_db, get_resolver, path_param, require_permission
from gatekeeper.api.middleware.audit import AuditLogger
from gatekeeper.api.schemas.common import SuccessResponse
from gatekeeper.api.schemas.rbac import (
    PermissionCheckResponse,
    PermissionOverrideInfo,
    PermissionOverrideRequest,
    UserPermissionsResponse,
)
from gatekeeper.core.errors import NotFoundError, PermissionCheckError
from gatekeeper.core.rbac import GateResult, OverrideService, PermissionResolver, RBACStore

router = APIRouter(prefix="/users", tags=["user-permissions"])

# Users may always inspect their own permissions
read_own_or_any = require_permission(
    "user.read", "user.manage_roles", allow_self=True, get_self_id=path_param("user_id")
)


@router.get("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: UUID,
    db: Session = Depends(get_db),
    resolver: PermissionResolver = Depends(get_resolver),
    gate: GateResult = Depends(read_own_or_any),
):
    """Effective permissions of a user, plus the overrides behind them."""
    user = RBACStore(db).get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")

    overrides = OverrideService(db).list_overrides(user_id)
    return UserPermissionsResponse(
        user_id=user.id,
        role=user.role.name if user.role else None,
        permissions=sorted(resolver.effective_permission_set(user_id)),
        overrides=[PermissionOverrideInfo(permission=name, granted=granted) for name, granted in overrides],
    )


@router.get("/{user_id}/permissions/check", response_model=PermissionCheckResponse)
async def check_user_permissions(
    user_id: UUID,
    permission: List[str] = Query(..., description="Permission name; repeat for several"),
    require_all: bool = Query(False),
    resolver: PermissionResolver = Depends(get_resolver),
    gate: GateResult = Depends(read_own_or_any),
):
    """Whether the user holds any (or all) of the given permissions.

    A check that could not be completed is a 500, not ``allowed=false``.
    """
    resolution = resolver.evaluate(user_id, permission, require_all=require_all)
    if resolution.failed:
        raise PermissionCheckError(permission)
    return PermissionCheckResponse(
        user_id=user_id,
        permissions=permission,
        require_all=require_all,
        allowed=resolution.allowed,
    )


@router.post("/{user_id}/permissions/grant", response_model=SuccessResponse)
async def grant_user_permission(
    user_id: UUID,
    override: PermissionOverrideRequest,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("user.manage_roles")),
):
    """Grant a permission to a user regardless of their role."""
    OverrideService(db).grant_permission(user_id, override.permission)

    AuditLogger(db, request, gate.principal_id).log(
        action="grant_permission",
        resource_type="user",
        resource_id=user_id,
        details={"permission": override.permission},
    )
    db.commit()

    return SuccessResponse(message="Permission granted successfully")


@router.post("/{user_id}/permissions/revoke", response_model=SuccessResponse)
async def revoke_user_permission(
    user_id: UUID,
    override: PermissionOverrideRequest,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("user.manage_roles")),
):
    """Revoke a permission from a user regardless of their role."""
    OverrideService(db).revoke_permission(user_id, override.permission)

    AuditLogger(db, request, gate.principal_id).log(
        action="revoke_permission",
        resource_type="user",
        resource_id=user_id,
        details={"permission": override.permission},
    )
    db.commit()

    return SuccessResponse(message="Permission revoked successfully")


@router.delete("/{user_id}/permissions/{permission_name}", response_model=SuccessResponse)
async def clear_user_permission_override(
    user_id: UUID,
    permission_name: str,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("user.manage_roles")),
):
    """Remove an override so the user's role decides again."""
    removed = OverrideService(db).clear_override(user_id, permission_name)

    AuditLogger(db, request, gate.principal_id).log(
        action="clear_permission_override",
        resource_type="user",
        resource_id=user_id,
        details={"permission": permission_name, "removed": removed},
    )
    db.commit()

    message = "Permission override removed" if removed else "No override to remove"
    return SuccessResponse(message=message)
