from typing import Any, Callable, Generator, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from gatekeeper.api.middleware.audit import AuditLogger
from gatekeeper.core.config import get_settings
from gatekeeper.core.rbac import AuthorizationGate, GateConfig, GateResult, PermissionResolver, RBACStore
from gatekeeper.core.rbac.roles import ADMIN_ROLE, SUPER_ADMIN_ROLE
from gatekeeper.core.security import decode_token
from gatekeeper.db.session import SessionLocal

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_principal_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[UUID]:
    """User id from the bearer token. Missing or invalid tokens give None."""
    if credentials is None or not credentials.credentials:
        return None
    return decode_token(credentials.credentials)


def get_resolver(db: Session = Depends(get_db)) -> PermissionResolver:
    return PermissionResolver(RBACStore(db))


def get_gate(
    request: Request,
    db: Session = Depends(get_db),
    resolver: PermissionResolver = Depends(get_resolver),
) -> AuthorizationGate:
    sinks = []
    if get_settings().audit_denials:
        sinks.append(AuditLogger(db, request).log_denial)
    return AuthorizationGate(resolver, sinks)


def path_param(name: str) -> Callable[[Request], Any]:
    """Self-id extractor reading a path parameter, e.g. ``path_param("user_id")``."""
    def extract(request: Request) -> Any:
        return request.path_params.get(name)
    return extract


class PermissionDependency:
    """
    FastAPI dependency for permission checking.

    On success the effective permission set is attached to
    ``request.state.user_permissions`` and the ``GateResult`` is returned.

    Usage:
        @router.get("/roles", dependencies=[Depends(PermissionDependency("role.read"))])
        async def list_roles():
            ...
    """

    def __init__(
        self,
        *permissions: str,
        require_all: bool = False,
        allow_self: bool = False,
        get_self_id: Optional[Callable[[Request], Any]] = None,
    ):
        self.config = GateConfig(
            required_permissions=permissions,
            require_all=require_all,
            allow_self=allow_self,
            self_id_extractor=get_self_id,
        )

    def __call__(
        self,
        request: Request,
        principal_id: Optional[UUID] = Depends(get_principal_id),
        gate: AuthorizationGate = Depends(get_gate),
    ) -> GateResult:
        result = gate.check(principal_id, self.config, request)
        request.state.principal_id = result.principal_id
        request.state.user_permissions = result.effective_permissions
        return result


def require_permission(
    *permissions: str,
    require_all: bool = False,
    allow_self: bool = False,
    get_self_id: Optional[Callable[[Request], Any]] = None,
) -> PermissionDependency:
    """
    Build a permission dependency for an endpoint.

    Usage:
        @router.put("/users/{user_id}")
        async def update_user(
            gate: GateResult = Depends(require_permission(
                "user.update", allow_self=True, get_self_id=path_param("user_id"),
            )),
        ):
            ...
    """
    return PermissionDependency(
        *permissions,
        require_all=require_all,
        allow_self=allow_self,
        get_self_id=get_self_id,
    )


class RoleDependency:
    """
    FastAPI dependency that admits principals whose role is one of ``roles``.

    The role name is attached to ``request.state.user_role`` and returned.
    Permission overrides are not consulted.
    """

    def __init__(self, *roles: str):
        if not roles:
            raise ValueError("RoleDependency needs at least one role")
        self.roles = tuple(roles)

    def __call__(
        self,
        request: Request,
        principal_id: Optional[UUID] = Depends(get_principal_id),
        gate: AuthorizationGate = Depends(get_gate),
    ) -> str:
        role_name = gate.check_role(principal_id, self.roles, request)
        request.state.principal_id = principal_id
        request.state.user_role = role_name
        return role_name


def require_role(*roles: str) -> RoleDependency:
    """
    Build a role dependency for an endpoint.

    Usage:
        @router.post("/providers", dependencies=[Depends(require_role("admin", "super_admin"))])
        async def create_provider():
            ...
    """
    return RoleDependency(*roles)


require_super_admin = require_role(SUPER_ADMIN_ROLE)
require_admin = require_role(ADMIN_ROLE, SUPER_ADMIN_ROLE)
