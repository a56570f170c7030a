"""Role and permission catalog management.

Catalog operations raise ``NotFoundError``, ``ConflictError`` or
``ValidationError`` and commit on success.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, NamedTuple, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gatekeeper.core.errors import ConflictError, NotFoundError, ValidationError
from gatekeeper.db.models import Permission, Role, RolePermission, User, UserPermissionOverride
from .permissions import PermissionName
from .store import RBACStore

logger = logging.getLogger(__name__)


class RoleSummary(NamedTuple):
    role: Role
    user_count: int
    permission_count: int


class PermissionHolder(NamedTuple):
    """A user with an override on a permission."""
    user: User
    granted: bool


class PermissionSpec(NamedTuple):
    """Input for creating a permission. Resource and action default to the name's parts."""
    name: str
    description: Optional[str] = None
    resource: Optional[str] = None
    action: Optional[str] = None


class RoleCatalog:
    """CRUD for roles, guarding system roles and roles still in use."""

    def __init__(self, db: Session):
        self.db = db
        self.store = RBACStore(db)

    def get_role(self, role_id: UUID) -> Role:
        role = self.db.query(Role).filter(Role.id == role_id).first()
        if role is None:
            raise NotFoundError("Role not found")
        return role

    def get_role_by_name(self, name: str) -> Optional[Role]:
        return self.db.query(Role).filter(Role.name == name).first()

    def list_roles(self) -> List[RoleSummary]:
        """All roles with their user and permission counts, ordered by name."""
        user_counts = (
            self.db.query(User.role_id, func.count(User.id).label("n"))
            .group_by(User.role_id)
            .subquery()
        )
        permission_counts = (
            self.db.query(RolePermission.role_id, func.count(RolePermission.id).label("n"))
            .group_by(RolePermission.role_id)
            .subquery()
        )
        rows = (
            self.db.query(
                Role,
                func.coalesce(user_counts.c.n, 0),
                func.coalesce(permission_counts.c.n, 0),
            )
            .outerjoin(user_counts, user_counts.c.role_id == Role.id)
            .outerjoin(permission_counts, permission_counts.c.role_id == Role.id)
            .order_by(Role.name)
            .all()
        )
        return [RoleSummary(role, int(users), int(perms)) for role, users, perms in rows]

    def create_role(self, name: str, description: Optional[str] = None) -> Role:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Role name is required")
        if self.get_role_by_name(name) is not None:
            raise ConflictError("Role name already exists")

        role = Role(name=name, description=description, is_system_role=False)
        self.db.add(role)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Role name already exists")
        self.db.refresh(role)

        logger.info("Role created: role_id=%s name=%s", role.id, role.name)
        return role

    def update_role(
        self,
        role_id: UUID,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Role:
        """Rename or redescribe a role. ``None`` leaves a field unchanged."""
        role = self.get_role(role_id)
        if role.is_system_role:
            raise ConflictError("Cannot modify system roles")
        if name is None and description is None:
            raise ValidationError("No valid fields to update")

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Role name cannot be empty")
            existing = self.get_role_by_name(name)
            if existing is not None and existing.id != role.id:
                raise ConflictError("Role name already exists")
            role.name = name
        if description is not None:
            role.description = description

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Role name already exists")
        self.db.refresh(role)

        logger.info("Role updated: role_id=%s", role_id)
        return role

    def delete_role(self, role_id: UUID) -> None:
        """Delete a non-system role that no user references, with its assignments."""
        role = self.get_role(role_id)
        if role.is_system_role:
            raise ConflictError("Cannot delete system roles")

        users_with_role = self.db.query(func.count(User.id)).filter(User.role_id == role_id).scalar()
        if users_with_role:
            raise ConflictError(
                f"Cannot delete role: {users_with_role} users are assigned to this role"
            )

        try:
            self.store.delete_role_permissions(role_id)
            self.db.delete(role)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Role deleted: role_id=%s", role_id)

    def get_role_permissions(self, role_id: UUID) -> List[Permission]:
        self.get_role(role_id)
        return (
            self.db.query(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role_id == role_id)
            .order_by(Permission.name)
            .all()
        )

    def get_role_users(self, role_id: UUID) -> List[User]:
        self.get_role(role_id)
        return (
            self.db.query(User)
            .filter(User.role_id == role_id)
            .order_by(User.created_at.desc())
            .all()
        )


def _validate_spec(spec: PermissionSpec) -> PermissionName:
    try:
        parsed = PermissionName.from_string(spec.name)
    except ValueError as e:
        raise ValidationError(str(e))
    if spec.resource is not None and spec.resource != parsed.resource:
        raise ValidationError(
            f"Resource '{spec.resource}' does not match permission name '{spec.name}'"
        )
    if spec.action is not None and spec.action != parsed.action:
        raise ValidationError(
            f"Action '{spec.action}' does not match permission name '{spec.name}'"
        )
    return parsed


class PermissionCatalog:
    """CRUD for permissions."""

    def __init__(self, db: Session):
        self.db = db

    def get_permission(self, permission_id: UUID) -> Permission:
        permission = self.db.query(Permission).filter(Permission.id == permission_id).first()
        if permission is None:
            raise NotFoundError("Permission not found")
        return permission

    def get_permission_by_name(self, name: str) -> Optional[Permission]:
        return self.db.query(Permission).filter(Permission.name == name).first()

    def list_permissions(self, resource: Optional[str] = None) -> List[Permission]:
        query = self.db.query(Permission)
        if resource:
            query = query.filter(Permission.resource == resource)
        return query.order_by(Permission.resource, Permission.action).all()

    def list_resources(self) -> List[str]:
        rows = self.db.query(Permission.resource).distinct().order_by(Permission.resource).all()
        return [row.resource for row in rows]

    def group_by_resource(self, resource: Optional[str] = None) -> Dict[str, List[Permission]]:
        grouped: Dict[str, List[Permission]] = {}
        for permission in self.list_permissions(resource):
            grouped.setdefault(permission.resource, []).append(permission)
        return grouped

    def create_permission(
        self,
        name: str,
        *,
        description: Optional[str] = None,
        resource: Optional[str] = None,
        action: Optional[str] = None,
    ) -> Permission:
        created = self.bulk_create_permissions(
            [PermissionSpec(name=name, description=description, resource=resource, action=action)]
        )
        return created[0]

    def bulk_create_permissions(self, specs: Iterable[PermissionSpec]) -> List[Permission]:
        """
        Create several permissions, all or none.

        The whole batch is validated first: malformed names and duplicates
        within the batch raise ``ValidationError``, names that already exist
        raise ``ConflictError``. Nothing is inserted in either case.
        """
        specs = list(specs)
        if not specs:
            raise ValidationError("Permissions array is required")

        parsed = [_validate_spec(spec) for spec in specs]

        duplicates = sorted(name for name, n in Counter(spec.name for spec in specs).items() if n > 1)
        if duplicates:
            raise ValidationError(f"Duplicate permission names in batch: {', '.join(duplicates)}")

        names = [spec.name for spec in specs]
        existing = self.db.query(Permission.name).filter(Permission.name.in_(names)).all()
        if existing:
            taken = ", ".join(sorted(row.name for row in existing))
            raise ConflictError(f"Permission already exists: {taken}")

        permissions = [
            Permission(
                name=spec.name,
                resource=perm.resource,
                action=perm.action,
                description=spec.description,
            )
            for spec, perm in zip(specs, parsed)
        ]
        self.db.add_all(permissions)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Permission already exists")

        for permission in permissions:
            self.db.refresh(permission)
        logger.info("Permissions created: count=%d", len(permissions))
        return permissions

    def _is_referenced(self, permission_id: UUID) -> bool:
        in_roles = self.db.query(RolePermission.id).filter(
            RolePermission.permission_id == permission_id
        ).first()
        if in_roles is not None:
            return True
        in_overrides = self.db.query(UserPermissionOverride.id).filter(
            UserPermissionOverride.permission_id == permission_id
        ).first()
        return in_overrides is not None

    def update_permission(
        self,
        permission_id: UUID,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Permission:
        """Update description, or rename a permission nothing references yet."""
        permission = self.get_permission(permission_id)
        if name is None and description is None:
            raise ValidationError("No valid fields to update")

        if name is not None and name != permission.name:
            parsed = _validate_spec(PermissionSpec(name=name))
            if self._is_referenced(permission_id):
                raise ConflictError("Cannot rename a permission assigned to roles or users")
            if self.get_permission_by_name(name) is not None:
                raise ConflictError("Permission already exists")
            permission.name = name
            permission.resource = parsed.resource
            permission.action = parsed.action
        if description is not None:
            permission.description = description

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Permission already exists")
        self.db.refresh(permission)

        logger.info("Permission updated: permission_id=%s", permission_id)
        return permission

    def delete_permission(self, permission_id: UUID) -> None:
        """Delete a permission with its role assignments and user overrides."""
        self.get_permission(permission_id)
        try:
            roles_removed = self.db.query(RolePermission).filter(
                RolePermission.permission_id == permission_id
            ).delete(synchronize_session=False)
            overrides_removed = self.db.query(UserPermissionOverride).filter(
                UserPermissionOverride.permission_id == permission_id
            ).delete(synchronize_session=False)
            self.db.query(Permission).filter(Permission.id == permission_id).delete(
                synchronize_session=False
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Permission deleted: permission_id=%s role_assignments=%d overrides=%d",
            permission_id, roles_removed, overrides_removed,
        )

    def get_permission_roles(self, permission_id: UUID) -> List[Role]:
        self.get_permission(permission_id)
        return (
            self.db.query(Role)
            .join(RolePermission, RolePermission.role_id == Role.id)
            .filter(RolePermission.permission_id == permission_id)
            .order_by(Role.name)
            .all()
        )

    def get_permission_users(self, permission_id: UUID) -> List[PermissionHolder]:
        """Users with a direct override on the permission, granted or revoked."""
        self.get_permission(permission_id)
        rows = (
            self.db.query(User, UserPermissionOverride.granted)
            .join(UserPermissionOverride, UserPermissionOverride.user_id == User.id)
            .filter(UserPermissionOverride.permission_id == permission_id)
            .order_by(User.email)
            .all()
        )
        return [PermissionHolder(user, bool(granted)) for user, granted in rows]
