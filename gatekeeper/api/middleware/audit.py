"""Audit logging for the Gatekeeper API.

``AuditLogger`` writes ``audit_logs`` rows. The authorization gate uses
``log_denial`` as its denial sink, so every 401, 403 and failed permission
check leaves a persisted record.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from gatekeeper.core.rbac.gate import (
    DenialEvent,
    REASON_AUTHENTICATION_REQUIRED,
    REASON_INTERNAL_ERROR,
)
from gatekeeper.db.models.audit import AuditLog, AuditSeverity

logger = logging.getLogger(__name__)

# Sensitive fields to redact from logs
SENSITIVE_FIELDS = {
    "password",
    "token",
    "access_token",
    "refresh_token",
    "api_key",
    "secret",
    "authorization",
}


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First entry is the original client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def redact_sensitive(data: Any) -> Any:
    """Redact sensitive fields from data."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if k.lower() in SENSITIVE_FIELDS else redact_sensitive(v)
            for k, v in data.items()
        }
    elif isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    return data


def denial_severity(reason_kind: str) -> AuditSeverity:
    if reason_kind == REASON_INTERNAL_ERROR:
        return AuditSeverity.ERROR
    if reason_kind == REASON_AUTHENTICATION_REQUIRED:
        return AuditSeverity.WARNING
    return AuditSeverity.CRITICAL


class AuditLogger:
    """
    Utility class for logging audit events from within endpoints.

    Usage:
        @router.put("/{role_id}/permissions")
        async def sync_role_permissions(
            request: Request,
            db: Session = Depends(get_db),
            gate: GateResult = Depends(require_permission("role.update")),
        ):
            # ... sync ...

            AuditLogger(db, request, gate.principal_id).log(
                action="sync_permissions",
                resource_type="role",
                resource_id=role_id,
            )
    """

    def __init__(self, db: Session, request: Request, user_id: Optional[uuid.UUID] = None):
        self.db = db
        self.request = request
        self.user_id = user_id

    def log(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[uuid.UUID] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: AuditSeverity = AuditSeverity.INFO,
        user_id: Optional[uuid.UUID] = None,
    ) -> AuditLog:
        """Log an audit event. The caller commits."""
        entry = AuditLog.create_entry(
            action=action,
            resource_type=resource_type,
            user_id=user_id or self.user_id,
            resource_id=resource_id,
            details=redact_sensitive(details) if details else None,
            ip_address=get_client_ip(self.request),
            user_agent=self.request.headers.get("user-agent"),
            severity=severity,
        )
        self.db.add(entry)
        return entry

    def log_denial(self, event: DenialEvent) -> AuditLog:
        """Persist a denial event and commit it."""
        details = {
            "reason": event.reason_kind,
            "required_permissions": list(event.required_permissions),
            "path": event.path,
            "method": event.method,
            "timestamp": event.timestamp.isoformat(),
        }
        if event.required_roles:
            details["required_roles"] = list(event.required_roles)
        entry = self.log(
            action="access_denied",
            resource_type="authorization",
            user_id=event.principal_id,
            details=details,
            severity=denial_severity(event.reason_kind),
        )
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return entry
