"""Tests for seeding the default catalog and system roles."""

import pytest

from gatekeeper.core.rbac.permissions import PERMISSION_DEFINITIONS
from gatekeeper.core.rbac.resolver import Decision
from gatekeeper.core.rbac.store import RBACStore
from gatekeeper.db.models import Permission, Role
from gatekeeper.db.seed import seed_default_permissions, seed_default_roles

from tests.factories import create_user


pytestmark = [pytest.mark.db]


class TestSeed:

    def test_seeds_catalog(self, db_session):
        permissions = seed_default_permissions(db_session)
        assert set(permissions) == set(PERMISSION_DEFINITIONS)
        assert permissions["course.create"].resource == "course"

    def test_seeds_system_roles(self, db_session):
        roles = seed_default_roles(db_session)
        db_session.commit()

        assert len(roles) == 6
        assert all(role.is_system_role for role in roles.values())
        store = RBACStore(db_session)
        assert len(store.get_role_permission_ids(roles["super_admin"].id)) == len(PERMISSION_DEFINITIONS)

    def test_idempotent(self, db_session):
        seed_default_roles(db_session)
        db_session.commit()
        seed_default_roles(db_session)
        db_session.commit()

        assert db_session.query(Role).count() == 6
        assert db_session.query(Permission).count() == len(PERMISSION_DEFINITIONS)

    def test_seeded_roles_resolve(self, db_session, resolver):
        roles = seed_default_roles(db_session)
        instructor = create_user(db_session, role=roles["instructor"])
        student = create_user(db_session, role=roles["student"])
        db_session.commit()

        assert resolver.resolve(instructor.id, "course.create") is Decision.ALLOW
        assert resolver.resolve(student.id, "course.create") is Decision.DENY
        assert resolver.resolve(student.id, "course.enroll") is Decision.ALLOW
