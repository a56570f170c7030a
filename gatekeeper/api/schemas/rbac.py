"""Role, permission and override schemas."""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


# Permissions
class PermissionBase(BaseModel):
    name: str = Field(..., min_length=3, max_length=100, description="'<resource>.<action>'")
    description: Optional[str] = None


class PermissionCreate(PermissionBase):
    resource: Optional[str] = Field(None, max_length=50)
    action: Optional[str] = Field(None, max_length=50)


class PermissionBulkCreate(BaseModel):
    permissions: List[PermissionCreate] = Field(..., min_length=1)


class PermissionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = None


class PermissionResponse(PermissionBase):
    id: UUID
    resource: str
    action: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PermissionRoleInfo(BaseModel):
    id: UUID
    name: str

    class Config:
        from_attributes = True


class PermissionUserInfo(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    granted: bool


class PermissionDetailResponse(PermissionResponse):
    roles: List[PermissionRoleInfo] = Field(default_factory=list)
    users: List[PermissionUserInfo] = Field(default_factory=list)


class GroupedPermissionsResponse(BaseModel):
    resources: Dict[str, List[PermissionResponse]]


# Roles
class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class RoleCreate(RoleBase):
    pass


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class RoleResponse(RoleBase):
    id: UUID
    is_system_role: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleListItem(RoleResponse):
    user_count: int = 0
    permission_count: int = 0


class RoleDetailResponse(RoleResponse):
    permissions: List[PermissionResponse] = Field(default_factory=list)


class RolePermissionSync(BaseModel):
    """The complete new permission set of a role. An empty list is allowed."""
    permission_ids: List[UUID]


class RoleUserInfo(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    is_active: Optional[bool] = None

    class Config:
        from_attributes = True


# User overrides
class PermissionOverrideRequest(BaseModel):
    permission: str = Field(..., description="Permission name, e.g. 'course.create'")


class PermissionOverrideInfo(BaseModel):
    permission: str
    granted: bool


class UserPermissionsResponse(BaseModel):
    user_id: UUID
    role: Optional[str] = None
    permissions: List[str]
    overrides: List[PermissionOverrideInfo]


class PermissionCheckResponse(BaseModel):
    user_id: UUID
    permissions: List[str]
    require_all: bool
    allowed: bool
