"""RBAC (Role-Based Access Control) module for Gatekeeper.

This module defines the permission naming convention, the default roles,
permission resolution with per-user overrides, and the authorization gate.
"""

from .permissions import PermissionName, PERMISSION_DEFINITIONS, is_valid_permission_name
from .resolver import Decision, PermissionResolver, Resolution, decide
from .store import RBACStore
from .sync import RoleSynchronizer
from .overrides import OverrideService
from .catalog import PermissionCatalog, PermissionHolder, PermissionSpec, RoleCatalog
from .gate import AuthorizationGate, DenialEvent, GateConfig, GateResult

__all__ = [
    "PermissionName",
    "PERMISSION_DEFINITIONS",
    "is_valid_permission_name",
    "Decision",
    "PermissionResolver",
    "Resolution",
    "decide",
    "RBACStore",
    "RoleSynchronizer",
    "OverrideService",
    "PermissionCatalog",
    "PermissionHolder",
    "PermissionSpec",
    "RoleCatalog",
    "AuthorizationGate",
    "DenialEvent",
    "GateConfig",
    "GateResult",
]
