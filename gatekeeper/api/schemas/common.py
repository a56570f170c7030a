"""Common schemas for the Gatekeeper API."""

from typing import Any, List, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    message: str


class AuthErrorResponse(BaseModel):
    """401 response body."""
    success: bool = False
    error: str


class PermissionDeniedResponse(ErrorResponse):
    """403 response body. Lists the whole required set, never the failing one."""
    required_permissions: List[str] = Field(default_factory=list, alias="requiredPermissions")


class RoleDeniedResponse(ErrorResponse):
    """403 response body for role-gated endpoints."""
    required_roles: List[str] = Field(default_factory=list, alias="requiredRoles")


class SuccessResponse(BaseModel):
    """Standard success response."""
    success: bool = True
    message: str
    data: Optional[Any] = None
