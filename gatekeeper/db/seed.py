"""Database seeding for Gatekeeper.

Creates the default permission catalog and the system roles.
"""

from typing import Dict

from sqlalchemy.orm import Session

from gatekeeper.db.models import Permission, Role
from gatekeeper.core.rbac.permissions import PERMISSION_DEFINITIONS, get_permission_description
from gatekeeper.core.rbac.roles import DEFAULT_ROLES
from gatekeeper.core.rbac.store import RBACStore


def seed_default_permissions(db: Session) -> Dict[str, Permission]:
    """
    Create every permission of the default catalog.

    Idempotent: existing permissions are returned as they are.

    Args:
        db: Database session

    Returns:
        Dict mapping permission name to Permission object
    """
    existing = {p.name: p for p in db.query(Permission).all()}
    permissions = {}

    for name, perm in PERMISSION_DEFINITIONS.items():
        if name in existing:
            permissions[name] = existing[name]
            continue

        permission = Permission(
            name=name,
            resource=perm.resource,
            action=perm.action,
            description=get_permission_description(name),
        )
        db.add(permission)
        permissions[name] = permission

    db.flush()
    return permissions


def seed_default_roles(db: Session) -> Dict[str, Role]:
    """
    Create the system roles and assign their default permissions.

    Idempotent: existing roles are kept and only missing assignments are
    added. Permissions removed from a role by an administrator are added back.

    Args:
        db: Database session

    Returns:
        Dict mapping role name to Role object
    """
    permissions = seed_default_permissions(db)
    store = RBACStore(db)
    roles = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        role = db.query(Role).filter(Role.name == role_name).first()
        if role is None:
            role = Role(
                name=role_name,
                description=role_config["description"],
                is_system_role=True,
            )
            db.add(role)
            db.flush()

        for name in role_config["permissions"]:
            store.insert_role_permission(role.id, permissions[name].id)
        roles[role_name] = role

    db.flush()
    return roles


# CLI script for seeding
if __name__ == "__main__":
    import sys
    from gatekeeper.db.session import SessionLocal

    db = SessionLocal()
    try:
        permissions = seed_default_permissions(db)
        print(f"Seeded {len(permissions)} permissions")

        roles = seed_default_roles(db)
        db.commit()

        print(f"\nSeeded {len(roles)} system roles:")
        for role in roles.values():
            perm_count = len(RBACStore(db).get_role_permission_ids(role.id))
            print(f"  - {role.name}: {perm_count} permissions")

        print("\nSeeding complete!")

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()
