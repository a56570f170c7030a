"""Seed the default permission catalog and system roles

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17

Creates every default permission and the six system roles (super_admin,
admin, instructor, student, user, guest) with their assignments.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.orm import Session

from gatekeeper.core.rbac.roles import DEFAULT_ROLES
from gatekeeper.db.seed import seed_default_roles

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create default permissions and system roles."""
    session = Session(bind=op.get_bind())
    seed_default_roles(session)
    session.flush()


def downgrade() -> None:
    """Remove the system roles. Permissions are left in place."""
    connection = op.get_bind()
    for role_name in DEFAULT_ROLES:
        connection.execute(
            sa.text("DELETE FROM roles WHERE name = :name AND is_system_role = :is_system"),
            {"name": role_name, "is_system": True},
        )
