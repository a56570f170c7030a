"""API routers for Gatekeeper."""

from . import roles
from . import permissions
from . import user_permissions

__all__ = [
    "roles",
    "permissions",
    "user_permissions",
]
