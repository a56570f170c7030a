"""Error taxonomy for Gatekeeper.

Catalog operations raise these directly; the API layer maps each class to
an HTTP status via ``status_code``.
"""

from typing import Optional, Sequence


class GatekeeperError(Exception):
    """Base class for all Gatekeeper errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequiredError(GatekeeperError):
    """Raised when a protected operation is invoked without a principal."""

    status_code = 401

    def __init__(self, path: Optional[str] = None, method: Optional[str] = None):
        super().__init__("Access token required")
        self.path = path
        self.method = method


class PermissionDeniedError(GatekeeperError):
    """Raised when an authenticated principal lacks the required permissions.

    Carries the full required set only; which individual permission failed
    is never recorded.
    """

    status_code = 403

    def __init__(
        self,
        required_permissions: Sequence[str],
        *,
        path: Optional[str] = None,
        method: Optional[str] = None,
    ):
        super().__init__("You do not have permission to perform this action")
        self.required_permissions = list(required_permissions)
        self.path = path
        self.method = method


class PermissionCheckError(GatekeeperError):
    """Raised when a permission check could not be completed (storage failure).

    The request is denied, but reported as an internal error rather than a
    policy denial.
    """

    status_code = 500

    def __init__(
        self,
        required_permissions: Sequence[str],
        *,
        path: Optional[str] = None,
        method: Optional[str] = None,
    ):
        super().__init__("Error checking permissions")
        self.required_permissions = list(required_permissions)
        self.path = path
        self.method = method


class NotFoundError(GatekeeperError):
    """Raised when a role, permission or user id does not exist."""

    status_code = 404


class ConflictError(GatekeeperError):
    """Raised on duplicate names and protected-role or in-use violations."""

    status_code = 409


class ValidationError(GatekeeperError):
    """Raised for malformed permission names and empty update payloads."""

    status_code = 400


class RoleDeniedError(GatekeeperError):
    """Raised when a principal has no role, or a role outside the allowed set."""

    status_code = 403

    def __init__(
        self,
        required_roles: Sequence[str],
        *,
        has_role: bool = True,
        path: Optional[str] = None,
        method: Optional[str] = None,
    ):
        if has_role:
            message = "You do not have the required role to perform this action"
        else:
            message = "User has no assigned role"
        super().__init__(message)
        self.required_roles = list(required_roles)
        self.path = path
        self.method = method


class RoleCheckError(GatekeeperError):
    """Raised when the principal's role could not be read."""

    status_code = 500

    def __init__(self, required_roles: Sequence[str], *, path: Optional[str] = None, method: Optional[str] = None):
        super().__init__("Error checking role")
        self.required_roles = list(required_roles)
        self.path = path
        self.method = method
