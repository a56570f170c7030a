"""Request-time authorization gate.

The gate is framework-neutral: it accepts any request object and only reads
``request.url.path`` (or ``request.path``) and ``request.method`` for denial
reporting. The FastAPI wiring lives in ``gatekeeper.api.deps``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from gatekeeper.common.logger import OUTCOME_CHECK_FAILED, OUTCOME_DENIED
from gatekeeper.core.errors import (
    AuthenticationRequiredError,
    PermissionCheckError,
    PermissionDeniedError,
    RoleCheckError,
    RoleDeniedError,
)
from .resolver import PermissionResolver

logger = logging.getLogger(__name__)

SelfIdExtractor = Callable[[Any], Optional[Any]]

REASON_AUTHENTICATION_REQUIRED = "authentication_required"
REASON_PERMISSION_DENIED = "permission_denied"
REASON_ROLE_DENIED = "role_denied"
REASON_INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class GateConfig:
    """
    What a protected operation requires.

    Attributes:
        required_permissions: One or more permission names
        require_all: If True the principal needs every permission, otherwise any one
        allow_self: If True, a principal acting on its own record bypasses the checks
        self_id_extractor: Returns the owner id of the target resource from the request
    """
    required_permissions: Tuple[str, ...]
    require_all: bool = False
    allow_self: bool = False
    self_id_extractor: Optional[SelfIdExtractor] = None

    def __post_init__(self):
        if isinstance(self.required_permissions, str):
            object.__setattr__(self, "required_permissions", (self.required_permissions,))
        else:
            object.__setattr__(self, "required_permissions", tuple(self.required_permissions))
        if not self.required_permissions:
            raise ValueError("GateConfig needs at least one required permission")


@dataclass(frozen=True)
class DenialEvent:
    principal_id: Optional[UUID]
    required_permissions: Tuple[str, ...]
    path: Optional[str]
    method: Optional[str]
    reason_kind: str
    required_roles: Tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


DenialSink = Callable[[DenialEvent], None]


@dataclass(frozen=True)
class GateResult:
    """An allowed request.

    ``effective_permissions`` is None when access came from the self bypass,
    since no permission was checked.
    """
    principal_id: UUID
    effective_permissions: Optional[FrozenSet[str]]
    self_access: bool = False


def _request_path(request: Any) -> Optional[str]:
    if request is None:
        return None
    url = getattr(request, "url", None)
    if url is not None and getattr(url, "path", None) is not None:
        return url.path
    return getattr(request, "path", None)


def _request_method(request: Any) -> Optional[str]:
    return getattr(request, "method", None) if request is not None else None


def _same_principal(owner_id: Any, principal_id: UUID) -> bool:
    """Compare ids as UUIDs when the owner id parses as one, so case and hyphenation do not matter."""
    try:
        return UUID(str(owner_id)) == UUID(str(principal_id))
    except ValueError:
        return str(owner_id) == str(principal_id)


class AuthorizationGate:
    """Enforces a ``GateConfig`` for one principal and request."""

    def __init__(self, resolver: PermissionResolver, denial_sinks: Iterable[DenialSink] = ()):
        self.resolver = resolver
        self.denial_sinks: List[DenialSink] = list(denial_sinks)

    def _emit(self, event: DenialEvent) -> None:
        for sink in self.denial_sinks:
            try:
                sink(event)
            except Exception:
                logger.exception("Denial sink failed: reason=%s", event.reason_kind)

    def _deny(
        self,
        principal_id: Optional[UUID],
        required: Sequence[str],
        path: Optional[str],
        method: Optional[str],
        reason_kind: str,
        required_roles: Sequence[str] = (),
    ) -> None:
        self._emit(DenialEvent(
            principal_id=principal_id,
            required_permissions=tuple(required),
            path=path,
            method=method,
            reason_kind=reason_kind,
            required_roles=tuple(required_roles),
        ))

    def check(self, principal_id: Optional[UUID], config: GateConfig, request: Any = None) -> GateResult:
        """
        Authorize a request.

        Order: principal present, then the self bypass, then the resolver.

        Raises:
            AuthenticationRequiredError: No principal
            PermissionDeniedError: The principal lacks the required permissions
            PermissionCheckError: Storage failed while checking
        """
        path = _request_path(request)
        method = _request_method(request)
        required = config.required_permissions

        if principal_id is None:
            self._deny(None, required, path, method, REASON_AUTHENTICATION_REQUIRED)
            raise AuthenticationRequiredError(path=path, method=method)

        if config.allow_self and config.self_id_extractor is not None:
            owner_id = config.self_id_extractor(request)
            if owner_id is not None and _same_principal(owner_id, principal_id):
                logger.debug("Self access allowed: user_id=%s path=%s", principal_id, path)
                return GateResult(principal_id=principal_id, effective_permissions=None, self_access=True)

        resolution = self.resolver.evaluate(principal_id, required, require_all=config.require_all)

        if resolution.allowed:
            return GateResult(
                principal_id=principal_id,
                effective_permissions=self.resolver.effective_permission_set(principal_id),
            )

        if resolution.failed:
            logger.error(
                "Permission check error: user_id=%s required=%s path=%s method=%s",
                principal_id, list(required), path, method,
                extra={"outcome": OUTCOME_CHECK_FAILED},
            )
            self._deny(principal_id, required, path, method, REASON_INTERNAL_ERROR)
            raise PermissionCheckError(required, path=path, method=method)

        logger.warning(
            "Permission denied: user_id=%s required=%s path=%s method=%s",
            principal_id, list(required), path, method,
            extra={"outcome": OUTCOME_DENIED},
        )
        self._deny(principal_id, required, path, method, REASON_PERMISSION_DENIED)
        raise PermissionDeniedError(required, path=path, method=method)

    def check_role(self, principal_id: Optional[UUID], allowed_roles: Sequence[str], request: Any = None) -> str:
        """
        Authorize by role name instead of permissions. Overrides play no part.

        Returns:
            The principal's role name

        Raises:
            AuthenticationRequiredError: No principal
            RoleDeniedError: No role, or a role outside ``allowed_roles``
            RoleCheckError: Storage failed while reading the role
        """
        path = _request_path(request)
        method = _request_method(request)
        allowed = tuple(allowed_roles)

        if principal_id is None:
            self._deny(None, (), path, method, REASON_AUTHENTICATION_REQUIRED, allowed)
            raise AuthenticationRequiredError(path=path, method=method)

        try:
            role_name = self.resolver.store.get_role_name(principal_id)
        except Exception:
            logger.exception(
                "Role check error: user_id=%s required_roles=%s path=%s",
                principal_id, list(allowed), path,
                extra={"outcome": OUTCOME_CHECK_FAILED},
            )
            self.resolver.reset_session()
            self._deny(principal_id, (), path, method, REASON_INTERNAL_ERROR, allowed)
            raise RoleCheckError(allowed, path=path, method=method)

        if role_name in allowed:
            return role_name

        logger.warning(
            "Role check failed: user_id=%s role=%s required_roles=%s path=%s",
            principal_id, role_name, list(allowed), path,
            extra={"outcome": OUTCOME_DENIED},
        )
        self._deny(principal_id, (), path, method, REASON_ROLE_DENIED, allowed)
        raise RoleDeniedError(allowed, has_role=role_name is not None, path=path, method=method)
