"""Role permission synchronization.

``sync_role_permissions`` replaces a role's whole assignment in one
transaction: readers see either the old set or the new set, never a
stripped or partial one. Concurrent syncs of the same role serialize on a
row lock of the role (``SELECT ... FOR UPDATE``); the last writer wins.
"""

import logging
from typing import Iterable, List
from uuid import UUID

from sqlalchemy.orm import Session

from gatekeeper.core.errors import NotFoundError
from gatekeeper.db.models import Role
from .store import RBACStore

logger = logging.getLogger(__name__)


class RoleSynchronizer:
    """Mutates role-permission assignments. Commits its own transactions."""

    def __init__(self, db: Session):
        self.db = db
        self.store = RBACStore(db)

    def _lock_role(self, role_id: UUID) -> Role:
        role = self.db.query(Role).filter(Role.id == role_id).with_for_update().first()
        if role is None:
            raise NotFoundError(f"Role {role_id} not found")
        return role

    def _require_permissions(self, permission_ids: List[UUID]) -> None:
        missing = set(permission_ids) - self.store.get_existing_permission_ids(permission_ids)
        if missing:
            ids = ", ".join(sorted(str(pid) for pid in missing))
            raise NotFoundError(f"Permission(s) not found: {ids}")

    def sync_role_permissions(self, role_id: UUID, permission_ids: Iterable[UUID]) -> List[UUID]:
        """
        Replace the role's permission assignment with exactly ``permission_ids``.

        An empty list leaves the role granting nothing by itself; user
        overrides are not touched.

        Args:
            role_id: Role to update
            permission_ids: The complete new set (duplicates are collapsed)

        Returns:
            The permission ids now assigned, in input order

        Raises:
            NotFoundError: If the role or any permission does not exist.
                Nothing is changed.
        """
        wanted = list(dict.fromkeys(permission_ids))

        try:
            self._lock_role(role_id)
            self._require_permissions(wanted)

            removed = self.store.delete_role_permissions(role_id)
            if wanted:
                self.store.insert_role_permissions(role_id, wanted)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning("Role permission sync rolled back: role_id=%s", role_id)
            raise

        logger.info(
            "Role permissions synced: role_id=%s removed=%d assigned=%d",
            role_id, removed, len(wanted),
        )
        return wanted

    def add_permission(self, role_id: UUID, permission_id: UUID) -> None:
        """Assign one permission to the role. Already assigned is a no-op."""
        try:
            self._lock_role(role_id)
            self._require_permissions([permission_id])
            self.store.insert_role_permission(role_id, permission_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Permission assigned to role: role_id=%s permission_id=%s", role_id, permission_id)

    def remove_permission(self, role_id: UUID, permission_id: UUID) -> bool:
        """Unassign one permission from the role. Returns False if it was not assigned."""
        try:
            self._lock_role(role_id)
            deleted = self.store.delete_role_permission(role_id, permission_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Permission removed from role: role_id=%s permission_id=%s removed=%s",
            role_id, permission_id, bool(deleted),
        )
        return bool(deleted)
