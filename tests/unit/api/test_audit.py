"""Tests for audit logging of authorization denials."""

import uuid
from types import SimpleNamespace

import pytest

from gatekeeper.api.middleware.audit import AuditLogger, get_client_ip, redact_sensitive
from gatekeeper.core.rbac.gate import (
    DenialEvent,
    REASON_INTERNAL_ERROR,
    REASON_PERMISSION_DENIED,
    REASON_ROLE_DENIED,
)
from gatekeeper.db.models import AuditLog, AuditSeverity


def make_request(headers=None, host="10.0.0.5"):
    return SimpleNamespace(headers=headers or {}, client=SimpleNamespace(host=host))


class TestClientIp:

    def test_forwarded_for(self):
        request = make_request({"x-forwarded-for": "203.0.113.7, 10.0.0.1"})
        assert get_client_ip(request) == "203.0.113.7"

    def test_real_ip(self):
        assert get_client_ip(make_request({"x-real-ip": "198.51.100.2"})) == "198.51.100.2"

    def test_direct_client(self):
        assert get_client_ip(make_request()) == "10.0.0.5"

    def test_unknown(self):
        assert get_client_ip(SimpleNamespace(headers={}, client=None)) == "unknown"


def test_redact_sensitive():
    data = {"permission": "course.create", "token": "abc", "nested": [{"Secret": "x"}]}
    assert redact_sensitive(data) == {
        "permission": "course.create",
        "token": "[REDACTED]",
        "nested": [{"Secret": "[REDACTED]"}],
    }


@pytest.mark.db
class TestLogDenial:

    def test_persists_denial(self, db_session):
        principal = uuid.uuid4()
        event = DenialEvent(
            principal_id=principal,
            required_permissions=("course.create",),
            path="/api/courses",
            method="POST",
            reason_kind=REASON_PERMISSION_DENIED,
        )
        AuditLogger(db_session, make_request({"user-agent": "pytest"})).log_denial(event)

        entry = db_session.query(AuditLog).one()
        assert entry.action == "access_denied"
        assert entry.user_id == principal
        assert entry.severity == AuditSeverity.CRITICAL.value
        assert entry.user_agent == "pytest"
        assert entry.details["required_permissions"] == ["course.create"]
        assert entry.details["reason"] == REASON_PERMISSION_DENIED

    def test_internal_error_severity(self, db_session):
        event = DenialEvent(
            principal_id=uuid.uuid4(),
            required_permissions=("course.read",),
            path=None,
            method=None,
            reason_kind=REASON_INTERNAL_ERROR,
        )
        AuditLogger(db_session, make_request()).log_denial(event)
        assert db_session.query(AuditLog).one().severity == AuditSeverity.ERROR.value

    def test_role_denial_records_required_roles(self, db_session):
        event = DenialEvent(
            principal_id=uuid.uuid4(),
            required_permissions=(),
            path="/api/admin",
            method="GET",
            reason_kind=REASON_ROLE_DENIED,
            required_roles=("admin", "super_admin"),
        )
        AuditLogger(db_session, make_request()).log_denial(event)

        entry = db_session.query(AuditLog).one()
        assert entry.details["reason"] == REASON_ROLE_DENIED
        assert entry.details["required_roles"] == ["admin", "super_admin"]
        assert entry.details["required_permissions"] == []
