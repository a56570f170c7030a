"""Tests for the Gatekeeper HTTP API."""

import uuid
from datetime import timedelta

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from gatekeeper.api.deps import get_db, require_admin, require_role, require_super_admin
from gatekeeper.api.main import app
from gatekeeper.core.rbac import RBACStore
from gatekeeper.core.security import create_access_token
from gatekeeper.db.models import Permission, Role
from gatekeeper.db.seed import seed_default_roles

from tests.factories import count_audit_logs, create_override, create_permission, create_role, create_user


pytestmark = [pytest.mark.db, pytest.mark.integration]

ROLE_ADMIN = ["role.read", "role.create", "role.update", "role.delete"]
PERMISSION_ADMIN = ["permission.read", "permission.create", "permission.update", "permission.delete"]


class TestHealthEndpoints:

    def test_basic_health_check(self, client: TestClient):
        """Test /health returns 200."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuthErrors:

    def test_missing_token(self, client: TestClient, db_session):
        response = client.get("/api/roles")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Access token required"}
        assert count_audit_logs(db_session, action="access_denied") == 1

    def test_invalid_token(self, client: TestClient):
        response = client.get("/api/roles", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token(self, client: TestClient, make_user):
        user = make_user(ROLE_ADMIN)
        token = create_access_token(user.id, expires_delta=timedelta(minutes=-5))
        response = client.get("/api/roles", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_missing_permission(self, client: TestClient, make_user, headers_for, db_session):
        user = make_user(["course.read"])
        response = client.get("/api/roles", headers=headers_for(user.id))

        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "You do not have permission to perform this action"
        assert body["requiredPermissions"] == ["role.read"]
        assert count_audit_logs(db_session, action="access_denied") == 1


class TestRolesAPI:

    def test_role_lifecycle(self, client: TestClient, make_user, headers_for, db_session):
        admin = make_user(ROLE_ADMIN)
        headers = headers_for(admin.id)
        perm = create_permission(db_session, name="report.view")
        db_session.commit()

        response = client.post("/api/roles", json={"name": "analyst", "description": "Reads reports"}, headers=headers)
        assert response.status_code == 201
        role_id = response.json()["id"]
        assert response.json()["is_system_role"] is False

        response = client.put(f"/api/roles/{role_id}/permissions", json={"permission_ids": [str(perm.id)]}, headers=headers)
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["permissions"]] == ["report.view"]

        response = client.get(f"/api/roles/{role_id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["name"] == "analyst"

        listed = {r["name"]: r for r in client.get("/api/roles", headers=headers).json()}
        assert listed["analyst"]["permission_count"] == 1

        response = client.put(f"/api/roles/{role_id}", json={"description": "Reads all reports"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["description"] == "Reads all reports"

        response = client.delete(f"/api/roles/{role_id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

        assert client.get(f"/api/roles/{role_id}", headers=headers).status_code == 404

    def test_single_permission_changes_are_audited(self, client: TestClient, make_user, headers_for, db_session):
        admin = make_user(ROLE_ADMIN)
        headers = headers_for(admin.id)
        role = create_role(db_session, name="analyst")
        perm = create_permission(db_session, name="report.view")
        db_session.commit()
        url = f"/api/roles/{role.id}/permissions/{perm.id}"

        assert client.post(url, headers=headers).status_code == 200
        assert client.delete(url, headers=headers).status_code == 200

        assert count_audit_logs(db_session, action="assign_permission") == 1
        assert count_audit_logs(db_session, action="remove_permission") == 1

    def test_sync_to_empty(self, client: TestClient, make_user, headers_for):
        admin = make_user(ROLE_ADMIN)
        role_id = str(admin.role_id)
        response = client.put(f"/api/roles/{role_id}/permissions", json={"permission_ids": []}, headers=headers_for(admin.id))
        assert response.status_code == 200
        assert response.json()["permissions"] == []

    def test_sync_unknown_permission(self, client: TestClient, make_user, headers_for):
        admin = make_user(ROLE_ADMIN)
        response = client.put(
            f"/api/roles/{admin.role_id}/permissions",
            json={"permission_ids": [str(uuid.uuid4())]},
            headers=headers_for(admin.id),
        )
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_system_role_delete_conflict(self, client: TestClient, make_user, headers_for, db_session):
        roles = seed_default_roles(db_session)
        db_session.commit()
        admin = make_user(ROLE_ADMIN)

        response = client.delete(f"/api/roles/{roles['super_admin'].id}", headers=headers_for(admin.id))
        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Cannot delete system roles"}
        assert db_session.query(Role).filter_by(name="super_admin").count() == 1

    def test_delete_role_in_use(self, client: TestClient, make_user, headers_for):
        admin = make_user(ROLE_ADMIN)
        response = client.delete(f"/api/roles/{admin.role_id}", headers=headers_for(admin.id))
        assert response.status_code == 409

    def test_duplicate_name(self, client: TestClient, make_user, headers_for):
        headers = headers_for(make_user(ROLE_ADMIN).id)
        assert client.post("/api/roles", json={"name": "dup"}, headers=headers).status_code == 201
        assert client.post("/api/roles", json={"name": "dup"}, headers=headers).status_code == 409

    def test_role_users(self, client: TestClient, make_user, headers_for):
        admin = make_user(ROLE_ADMIN)
        response = client.get(f"/api/roles/{admin.role_id}/users", headers=headers_for(admin.id))
        assert response.status_code == 200
        assert [u["id"] for u in response.json()] == [str(admin.id)]


class TestPermissionsAPI:

    def test_create_and_list(self, client: TestClient, make_user, headers_for):
        headers = headers_for(make_user(PERMISSION_ADMIN).id)

        response = client.post("/api/permissions", json={"name": "report.view"}, headers=headers)
        assert response.status_code == 201
        assert response.json()["resource"] == "report"

        names = [p["name"] for p in client.get("/api/permissions", headers=headers).json()]
        assert "report.view" in names
        assert "report" in client.get("/api/permissions/resources", headers=headers).json()

    def test_malformed_name(self, client: TestClient, make_user, headers_for):
        headers = headers_for(make_user(PERMISSION_ADMIN).id)
        response = client.post("/api/permissions", json={"name": "Report View"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_bulk_all_or_nothing(self, client: TestClient, make_user, headers_for, db_session):
        headers = headers_for(make_user(PERMISSION_ADMIN).id)
        response = client.post(
            "/api/permissions/bulk",
            json={"permissions": [{"name": "report.view"}, {"name": "report.view"}]},
            headers=headers,
        )
        assert response.status_code == 400
        assert db_session.query(Permission).filter_by(name="report.view").count() == 0

        response = client.post(
            "/api/permissions/bulk",
            json={"permissions": [{"name": "report.view"}, {"name": "report.export"}]},
            headers=headers,
        )
        assert response.status_code == 201
        assert len(response.json()) == 2

    def test_get_with_roles_and_delete(self, client: TestClient, make_user, headers_for):
        admin = make_user(PERMISSION_ADMIN)
        headers = headers_for(admin.id)
        perm_id = client.post("/api/permissions", json={"name": "report.view"}, headers=headers).json()["id"]

        detail = client.get(f"/api/permissions/{perm_id}", headers=headers).json()
        assert detail["roles"] == []
        assert detail["users"] == []

        assert client.delete(f"/api/permissions/{perm_id}", headers=headers).status_code == 200
        assert client.get(f"/api/permissions/{perm_id}", headers=headers).status_code == 404

    def test_detail_lists_override_users(self, client: TestClient, make_user, headers_for, db_session):
        admin = make_user(PERMISSION_ADMIN)
        perm = create_permission(db_session, name="report.view")
        holder = create_user(db_session, email="holder@example.com")
        create_override(db_session, user=holder, permission=perm, granted=False)
        db_session.commit()

        detail = client.get(f"/api/permissions/{perm.id}", headers=headers_for(admin.id)).json()

        assert detail["users"] == [
            {"id": str(holder.id), "email": "holder@example.com", "name": holder.name, "granted": False}
        ]


class TestUserPermissionsAPI:

    def test_self_access_without_permissions(self, client: TestClient, make_user, headers_for):
        """A user can always read their own permissions."""
        user = make_user([])
        response = client.get(f"/api/users/{user.id}/permissions", headers=headers_for(user.id))
        assert response.status_code == 200
        assert response.json()["permissions"] == []

    def test_other_user_requires_permission(self, client: TestClient, make_user, headers_for):
        user = make_user([])
        other = make_user(["course.read"])
        response = client.get(f"/api/users/{other.id}/permissions", headers=headers_for(user.id))
        assert response.status_code == 403
        assert response.json()["requiredPermissions"] == ["user.read", "user.manage_roles"]

    def test_grant_revoke_clear(self, client: TestClient, make_user, headers_for, db_session):
        manager = make_user(["user.manage_roles", "user.read"])
        target = make_user(["course.read"])
        create_permission(db_session, name="course.create")
        db_session.commit()
        headers = headers_for(manager.id)
        base = f"/api/users/{target.id}/permissions"

        assert client.post(f"{base}/grant", json={"permission": "course.create"}, headers=headers).status_code == 200
        assert "course.create" in client.get(base, headers=headers).json()["permissions"]

        assert client.post(f"{base}/revoke", json={"permission": "course.read"}, headers=headers).status_code == 200
        body = client.get(base, headers=headers).json()
        assert body["permissions"] == ["course.create"]
        assert {"permission": "course.read", "granted": False} in body["overrides"]

        check = client.get(f"{base}/check", params={"permission": ["course.read", "course.create"], "require_all": True}, headers=headers)
        assert check.json()["allowed"] is False

        assert client.delete(f"{base}/course.read", headers=headers).status_code == 200
        assert client.get(base, headers=headers).json()["permissions"] == ["course.create", "course.read"]

    def test_grant_unknown_permission(self, client: TestClient, make_user, headers_for):
        manager = make_user(["user.manage_roles"])
        target = make_user([])
        response = client.post(
            f"/api/users/{target.id}/permissions/grant",
            json={"permission": "course.teleport"},
            headers=headers_for(manager.id),
        )
        assert response.status_code == 404

    def test_grant_requires_manage_roles(self, client: TestClient, make_user, headers_for):
        user = make_user([])
        response = client.post(
            f"/api/users/{user.id}/permissions/grant",
            json={"permission": "course.create"},
            headers=headers_for(user.id),
        )
        assert response.status_code == 403

    def test_unknown_user(self, client: TestClient, make_user, headers_for):
        manager = make_user(["user.read"])
        response = client.get(f"/api/users/{uuid.uuid4()}/permissions", headers=headers_for(manager.id))
        assert response.status_code == 404

    def test_check_storage_failure_is_500(self, client: TestClient, make_user, headers_for, monkeypatch):
        """A failed check is reported as an error, never as ``allowed=false``."""
        user = make_user(["course.read"])

        def boom(self, *args, **kwargs):
            raise SQLAlchemyError("database is down")

        monkeypatch.setattr(RBACStore, "read_decision_inputs", boom)
        response = client.get(
            f"/api/users/{user.id}/permissions/check",
            params={"permission": "course.read"},
            headers=headers_for(user.id),
        )

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Error checking permissions"}


@pytest.fixture
def role_gated_client(db_session):
    """A small app with admin and super-admin endpoints, sharing the main app's error handlers."""
    role_app = FastAPI()
    for exc_class, handler in app.exception_handlers.items():
        role_app.add_exception_handler(exc_class, handler)

    @role_app.get("/admin")
    async def admin_only(role: str = Depends(require_admin)):
        return {"role": role}

    @role_app.get("/root")
    async def super_admin_only(role: str = Depends(require_super_admin)):
        return {"role": role}

    def override_get_db():
        yield db_session

    role_app.dependency_overrides[get_db] = override_get_db
    with TestClient(role_app) as test_client:
        yield test_client


class TestRoleDependencies:

    def test_admin_and_super_admin_allowed(self, role_gated_client, db_session, headers_for):
        roles = seed_default_roles(db_session)
        admin = create_user(db_session, role=roles["admin"])
        root = create_user(db_session, role=roles["super_admin"])
        db_session.commit()

        assert role_gated_client.get("/admin", headers=headers_for(admin.id)).json() == {"role": "admin"}
        assert role_gated_client.get("/admin", headers=headers_for(root.id)).json() == {"role": "super_admin"}
        assert role_gated_client.get("/root", headers=headers_for(admin.id)).status_code == 403

    def test_missing_token(self, role_gated_client):
        response = role_gated_client.get("/admin")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Access token required"}

    def test_no_role(self, role_gated_client, db_session, headers_for):
        user = create_user(db_session, role=None)
        db_session.commit()

        response = role_gated_client.get("/admin", headers=headers_for(user.id))

        assert response.status_code == 403
        assert response.json()["message"] == "User has no assigned role"

    def test_wrong_role(self, role_gated_client, make_user, headers_for, db_session):
        user = make_user(["course.read"])

        response = role_gated_client.get("/root", headers=headers_for(user.id))

        assert response.status_code == 403
        body = response.json()
        assert body["message"] == "You do not have the required role to perform this action"
        assert body["requiredRoles"] == ["super_admin"]
        assert count_audit_logs(db_session, action="access_denied") == 1

    def test_requires_a_role(self):
        with pytest.raises(ValueError):
            require_role()
