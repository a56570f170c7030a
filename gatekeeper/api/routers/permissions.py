"""Permission catalog API endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from gatekeeper.api.deps import get_db, require_permission
from gatekeeper.api.middleware.audit import AuditLogger
from gatekeeper.api.schemas.common import SuccessResponse
from gatekeeper.api.schemas.rbac import (
    GroupedPermissionsResponse,
    PermissionBulkCreate,
    PermissionCreate,
    PermissionDetailResponse,
    PermissionResponse,
    PermissionRoleInfo,
    PermissionUpdate,
    PermissionUserInfo,
)
from gatekeeper.core.rbac import GateResult, PermissionCatalog, PermissionSpec

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("", response_model=List[PermissionResponse])
async def list_permissions(
    resource: Optional[str] = Query(None, description="Only permissions for this resource"),
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("permission.read")),
):
    """List permissions ordered by resource and action."""
    return PermissionCatalog(db).list_permissions(resource)


@router.get("/grouped", response_model=GroupedPermissionsResponse)
async def list_permissions_grouped(
    resource: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("permission.read")),
):
    """Permissions grouped by resource."""
    grouped = PermissionCatalog(db).group_by_resource(resource)
    return GroupedPermissionsResponse(
        resources={
            res: [PermissionResponse.model_validate(p) for p in perms]
            for res, perms in grouped.items()
        }
    )


@router.get("/resources", response_model=List[str])
async def list_resources(
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("permission.read")),
):
    """Distinct resource names."""
    return PermissionCatalog(db).list_resources()


@router.get("/{permission_id}", response_model=PermissionDetailResponse)
async def get_permission(
    permission_id: UUID,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("permission.read")),
):
    """Get a permission, the roles that hold it and the users with an override on it."""
    catalog = PermissionCatalog(db)
    detail = PermissionDetailResponse.model_validate(catalog.get_permission(permission_id))
    detail.roles = [
        PermissionRoleInfo.model_validate(r) for r in catalog.get_permission_roles(permission_id)
    ]
    detail.users = [
        PermissionUserInfo(id=h.user.id, email=h.user.email, name=h.user.name, granted=h.granted)
        for h in catalog.get_permission_users(permission_id)
    ]
    return detail


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission_data: PermissionCreate,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("permission.create")),
):
    """Create a permission named '<resource>.<action>'."""
    permission = PermissionCatalog(db).create_permission(
        permission_data.name,
        description=permission_data.description,
        resource=permission_data.resource,
        action=permission_data.action,
    )

    AuditLogger(db, request, gate.principal_id).log(
        action="create",
        resource_type="permission",
        resource_id=permission.id,
        details={"name": permission.name},
    )
    db.commit()

    return permission


@router.post("/bulk", response_model=List[PermissionResponse], status_code=status.HTTP_201_CREATED)
async def bulk_create_permissions(
    bulk_data: PermissionBulkCreate,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("permission.create")),
):
    """Create several permissions. Either all are created or none."""
    permissions = PermissionCatalog(db).bulk_create_permissions(
        PermissionSpec(
            name=item.name,
            description=item.description,
            resource=item.resource,
            action=item.action,
        )
        for item in bulk_data.permissions
    )

    AuditLogger(db, request, gate.principal_id).log(
        action="bulk_create",
        resource_type="permission",
        details={"names": [p.name for p in permissions]},
    )
    db.commit()

    return permissions


@router.put("/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: UUID,
    permission_data: PermissionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("permission.update")),
):
    """Update a permission's description, or rename an unused one."""
    permission = PermissionCatalog(db).update_permission(
        permission_id,
        name=permission_data.name,
        description=permission_data.description,
    )

    AuditLogger(db, request, gate.principal_id).log(
        action="update",
        resource_type="permission",
        resource_id=permission.id,
        details=permission_data.model_dump(exclude_none=True),
    )
    db.commit()

    return permission


@router.delete("/{permission_id}", response_model=SuccessResponse)
async def delete_permission(
    permission_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("permission.delete")),
):
    """Delete a permission along with its role assignments and user overrides."""
    PermissionCatalog(db).delete_permission(permission_id)

    AuditLogger(db, request, gate.principal_id).log(
        action="delete",
        resource_type="permission",
        resource_id=permission_id,
    )
    db.commit()

    return SuccessResponse(message="Permission deleted successfully")
