"""Data access for role assignments and user overrides.

``RBACStore`` wraps an injected SQLAlchemy session. It performs reads and
row-level writes but never commits; the calling service owns the
transaction.
"""

import uuid
from datetime import datetime
from typing import List, NamedTuple, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, literal, select, union_all
from sqlalchemy.orm import Session

from gatekeeper.db.models import Permission, Role, RolePermission, User, UserPermissionOverride
from .roles import SUPER_ADMIN_ROLE


class PermissionGrantRow(NamedTuple):
    """One row contributing to a user's effective permission set."""
    name: str
    granted: bool
    source: str  # "role" or "override"


class RBACStore:
    """Storage primitives used by the resolver, synchronizer and override service."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Resolution reads
    # ------------------------------------------------------------------

    def _override_query(self, user_id: UUID, permission_name: str):
        return (
            select(UserPermissionOverride.granted)
            .join(Permission, Permission.id == UserPermissionOverride.permission_id)
            .where(
                and_(
                    UserPermissionOverride.user_id == user_id,
                    Permission.name == permission_name,
                )
            )
            .limit(1)
        )

    def _role_grants_query(self, user_id: UUID, permission_name: str):
        return (
            select(RolePermission.id)
            .join(User, User.role_id == RolePermission.role_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(and_(User.id == user_id, Permission.name == permission_name))
        )

    def get_override(self, user_id: UUID, permission_name: str) -> Optional[bool]:
        """Return the override's ``granted`` value, or None when there is no override."""
        granted = self.db.execute(self._override_query(user_id, permission_name)).scalar()
        return None if granted is None else bool(granted)

    def role_grants(self, user_id: UUID, permission_name: str) -> bool:
        """Whether the user's role is assigned the permission. No role means False."""
        stmt = select(self._role_grants_query(user_id, permission_name).exists())
        return bool(self.db.execute(stmt).scalar())

    def read_decision_inputs(self, user_id: UUID, permission_name: str) -> Tuple[Optional[bool], bool]:
        """Read the override value and the role assignment in one statement."""
        stmt = select(
            self._override_query(user_id, permission_name).scalar_subquery().label("granted"),
            self._role_grants_query(user_id, permission_name).exists().label("role_grants"),
        )
        row = self.db.execute(stmt).one()
        granted = None if row.granted is None else bool(row.granted)
        return granted, bool(row.role_grants)

    def get_permission_rows(self, user_id: UUID) -> List[PermissionGrantRow]:
        """Role-derived names and override rows for a user, in a single query."""
        role_rows = (
            select(
                Permission.name.label("name"),
                literal(True).label("granted"),
                literal("role").label("source"),
            )
            .select_from(User)
            .join(RolePermission, RolePermission.role_id == User.role_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(User.id == user_id)
        )
        override_rows = (
            select(
                Permission.name.label("name"),
                UserPermissionOverride.granted.label("granted"),
                literal("override").label("source"),
            )
            .join(Permission, Permission.id == UserPermissionOverride.permission_id)
            .where(UserPermissionOverride.user_id == user_id)
        )
        result = self.db.execute(union_all(role_rows, override_rows))
        return [
            PermissionGrantRow(name=row.name, granted=bool(row.granted), source=row.source)
            for row in result
        ]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_permission_by_name(self, name: str) -> Optional[Permission]:
        return self.db.query(Permission).filter(Permission.name == name).first()

    def get_role_name(self, user_id: UUID) -> Optional[str]:
        """Name of the user's role; None for unknown users and users without one."""
        stmt = (
            select(Role.name)
            .join(User, User.role_id == Role.id)
            .where(User.id == user_id)
        )
        return self.db.execute(stmt).scalar()

    def is_super_admin(self, user_id: UUID) -> bool:
        return self.get_role_name(user_id) == SUPER_ADMIN_ROLE

    def get_existing_permission_ids(self, permission_ids: List[UUID]) -> set:
        if not permission_ids:
            return set()
        rows = self.db.query(Permission.id).filter(Permission.id.in_(permission_ids)).all()
        return {row.id for row in rows}

    def get_role_permission_ids(self, role_id: UUID) -> set:
        rows = self.db.query(RolePermission.permission_id).filter(
            RolePermission.role_id == role_id
        ).all()
        return {row.permission_id for row in rows}

    def list_user_overrides(self, user_id: UUID) -> List[Tuple[UserPermissionOverride, Permission]]:
        return (
            self.db.query(UserPermissionOverride, Permission)
            .join(Permission, Permission.id == UserPermissionOverride.permission_id)
            .filter(UserPermissionOverride.user_id == user_id)
            .order_by(Permission.name)
            .all()
        )

    # ------------------------------------------------------------------
    # Writes (caller commits)
    # ------------------------------------------------------------------

    def _dialect_insert(self):
        """Return the dialect's INSERT supporting ON CONFLICT, if any."""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
            return insert
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
            return insert
        return None

    def insert_role_permission(self, role_id: UUID, permission_id: UUID) -> None:
        """Insert an assignment row; an existing pair is left untouched."""
        insert = self._dialect_insert()
        if insert is not None:
            stmt = insert(RolePermission).values(
                id=uuid.uuid4(), role_id=role_id, permission_id=permission_id
            ).on_conflict_do_nothing(index_elements=["role_id", "permission_id"])
            self.db.execute(stmt)
            return

        existing = self.db.query(RolePermission).filter(
            and_(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
        ).first()
        if existing is None:
            self.db.add(RolePermission(role_id=role_id, permission_id=permission_id))
            self.db.flush()

    def insert_role_permissions(self, role_id: UUID, permission_ids: List[UUID]) -> None:
        """Bulk insert assignment rows; the role must hold none of them yet."""
        self.db.add_all([
            RolePermission(role_id=role_id, permission_id=permission_id)
            for permission_id in permission_ids
        ])
        self.db.flush()

    def delete_role_permission(self, role_id: UUID, permission_id: UUID) -> int:
        return self.db.query(RolePermission).filter(
            and_(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
        ).delete(synchronize_session=False)

    def delete_role_permissions(self, role_id: UUID) -> int:
        return self.db.query(RolePermission).filter(
            RolePermission.role_id == role_id
        ).delete(synchronize_session=False)

    def upsert_override(self, user_id: UUID, permission_id: UUID, granted: bool) -> None:
        """Insert or flip the override for (user, permission)."""
        insert = self._dialect_insert()
        if insert is not None:
            stmt = insert(UserPermissionOverride).values(
                id=uuid.uuid4(), user_id=user_id, permission_id=permission_id, granted=granted
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "permission_id"],
                set_={"granted": granted, "updated_at": datetime.utcnow()},
            )
            self.db.execute(stmt)
            return

        existing = self.db.query(UserPermissionOverride).filter(
            and_(
                UserPermissionOverride.user_id == user_id,
                UserPermissionOverride.permission_id == permission_id,
            )
        ).first()
        if existing is None:
            self.db.add(UserPermissionOverride(
                user_id=user_id, permission_id=permission_id, granted=granted
            ))
        else:
            existing.granted = granted
        self.db.flush()

    def delete_override(self, user_id: UUID, permission_id: UUID) -> int:
        return self.db.query(UserPermissionOverride).filter(
            and_(
                UserPermissionOverride.user_id == user_id,
                UserPermissionOverride.permission_id == permission_id,
            )
        ).delete(synchronize_session=False)
