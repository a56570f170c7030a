"""Database models for Gatekeeper."""

from gatekeeper.db.models.permission import Permission
from gatekeeper.db.models.role import Role, RolePermission
from gatekeeper.db.models.user import User
from gatekeeper.db.models.user_permission import UserPermissionOverride
from gatekeeper.db.models.audit import AuditLog, AuditSeverity

__all__ = [
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserPermissionOverride",
    "AuditLog",
    "AuditSeverity",
]
