"""Pytest configuration and shared fixtures.

Each test gets a fresh in-memory SQLite database (``StaticPool`` keeps the
single connection alive) with foreign keys enforced.
"""

from typing import Iterable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from gatekeeper.api.deps import get_db
from gatekeeper.api.main import app
from gatekeeper.core.rbac import PermissionResolver, RBACStore
from gatekeeper.core.security import create_access_token
from gatekeeper.db.base import Base
from gatekeeper.db.session import create_db_engine
import gatekeeper.db.models  # noqa: F401

from tests.factories import create_permission, create_role, create_user


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Session:
    session = Session(bind=engine, autoflush=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def resolver(db_session) -> PermissionResolver:
    return PermissionResolver(RBACStore(db_session))


@pytest.fixture
def make_user(db_session):
    """Create a committed user whose role holds exactly ``permissions``.

    Missing permissions are created on the fly.
    """
    def _make(permissions: Iterable[str] = (), *, with_role: bool = True):
        role = None
        if with_role:
            perms = []
            for name in permissions:
                perm = db_session.query(gatekeeper.db.models.Permission).filter_by(name=name).first()
                perms.append(perm or create_permission(db_session, name=name))
            role = create_role(db_session, permissions=perms)
        user = create_user(db_session, role=role)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def client(db_session) -> TestClient:
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def auth_headers(user_id) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def headers_for():
    """Bearer auth headers for a user id."""
    return auth_headers
