"""Role management API endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from gatekeeper.api.deps import get_db, require_permission
from gatekeeper.api.middleware.audit import AuditLogger
from gatekeeper.api.schemas.common import SuccessResponse
from gatekeeper.api.schemas.rbac import (
    PermissionResponse,
    RoleCreate,
    RoleDetailResponse,
    RoleListItem,
    RolePermissionSync,
    RoleResponse,
    RoleUpdate,
    RoleUserInfo,
)
from gatekeeper.core.rbac import GateResult, RoleCatalog, RoleSynchronizer

router = APIRouter(prefix="/roles", tags=["roles"])


def _role_detail(catalog: RoleCatalog, role_id: UUID) -> RoleDetailResponse:
    role = catalog.get_role(role_id)
    detail = RoleDetailResponse.model_validate(role)
    detail.permissions = [
        PermissionResponse.model_validate(p) for p in catalog.get_role_permissions(role_id)
    ]
    return detail


@router.get("", response_model=List[RoleListItem])
async def list_roles(
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.read")),
):
    """List all roles with user and permission counts."""
    return [
        RoleListItem(
            id=summary.role.id,
            name=summary.role.name,
            description=summary.role.description,
            is_system_role=summary.role.is_system_role,
            created_at=summary.role.created_at,
            updated_at=summary.role.updated_at,
            user_count=summary.user_count,
            permission_count=summary.permission_count,
        )
        for summary in RoleCatalog(db).list_roles()
    ]


@router.get("/{role_id}", response_model=RoleDetailResponse)
async def get_role(
    role_id: UUID,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.read")),
):
    """Get a role with its permissions."""
    return _role_detail(RoleCatalog(db), role_id)


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_data: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.create")),
):
    """Create a custom (non-system) role."""
    role = RoleCatalog(db).create_role(role_data.name, role_data.description)

    AuditLogger(db, request, gate.principal_id).log(
        action="create",
        resource_type="role",
        resource_id=role.id,
        details={"name": role.name},
    )
    db.commit()

    return role


@router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: UUID,
    role_data: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.update")),
):
    """Update a custom role. System roles cannot be modified."""
    role = RoleCatalog(db).update_role(
        role_id, name=role_data.name, description=role_data.description
    )

    AuditLogger(db, request, gate.principal_id).log(
        action="update",
        resource_type="role",
        resource_id=role.id,
        details=role_data.model_dump(exclude_none=True),
    )
    db.commit()

    return role


@router.delete("/{role_id}", response_model=SuccessResponse)
async def delete_role(
    role_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.delete")),
):
    """Delete a custom role. Fails while users are still assigned to it."""
    RoleCatalog(db).delete_role(role_id)

    AuditLogger(db, request, gate.principal_id).log(
        action="delete",
        resource_type="role",
        resource_id=role_id,
    )
    db.commit()

    return SuccessResponse(message="Role deleted successfully")


@router.get("/{role_id}/permissions", response_model=List[PermissionResponse])
async def get_role_permissions(
    role_id: UUID,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.read")),
):
    """List the permissions assigned to a role."""
    return RoleCatalog(db).get_role_permissions(role_id)


@router.put("/{role_id}/permissions", response_model=RoleDetailResponse)
async def sync_role_permissions(
    role_id: UUID,
    sync_data: RolePermissionSync,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.update")),
):
    """Replace the role's whole permission set in one transaction."""
    assigned = RoleSynchronizer(db).sync_role_permissions(role_id, sync_data.permission_ids)

    AuditLogger(db, request, gate.principal_id).log(
        action="sync_permissions",
        resource_type="role",
        resource_id=role_id,
        details={"permission_ids": [str(pid) for pid in assigned]},
    )
    db.commit()

    return _role_detail(RoleCatalog(db), role_id)


@router.post("/{role_id}/permissions/{permission_id}", response_model=SuccessResponse)
async def add_role_permission(
    role_id: UUID,
    permission_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.update")),
):
    """Assign a single permission to a role."""
    RoleSynchronizer(db).add_permission(role_id, permission_id)

    AuditLogger(db, request, gate.principal_id).log(
        action="assign_permission",
        resource_type="role",
        resource_id=role_id,
        details={"permission_id": str(permission_id)},
    )
    db.commit()

    return SuccessResponse(message="Permission assigned to role successfully")


@router.delete("/{role_id}/permissions/{permission_id}", response_model=SuccessResponse)
async def remove_role_permission(
    role_id: UUID,
    permission_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.update")),
):
    """Remove a single permission from a role."""
    removed = RoleSynchronizer(db).remove_permission(role_id, permission_id)

    AuditLogger(db, request, gate.principal_id).log(
        action="remove_permission",
        resource_type="role",
        resource_id=role_id,
        details={"permission_id": str(permission_id), "removed": removed},
    )
    db.commit()

    message = "Permission removed from role successfully" if removed else "Permission was not assigned"
    return SuccessResponse(message=message)


@router.get("/{role_id}/users", response_model=List[RoleUserInfo])
async def get_role_users(
    role_id: UUID,
    db: Session = Depends(get_db),
    gate: GateResult = Depends(require_permission("role.read")),
):
    """List users assigned to a role."""
    return RoleCatalog(db).get_role_users(role_id)
