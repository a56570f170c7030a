"""Per-user permission overrides.

Grant and revoke both *write* a row (``granted`` true or false); calling one
after the other flips the existing row. Only ``clear_override`` removes the
row so that the user's role decides again.
"""

import logging
from typing import List, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from gatekeeper.core.errors import NotFoundError
from gatekeeper.db.models import Permission
from .store import RBACStore

logger = logging.getLogger(__name__)


class OverrideService:
    """Writes to the user override store. Commits its own transactions."""

    def __init__(self, db: Session):
        self.db = db
        self.store = RBACStore(db)

    def _resolve_target(self, user_id: UUID, permission_name: str) -> Permission:
        if self.store.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        permission = self.store.get_permission_by_name(permission_name)
        if permission is None:
            raise NotFoundError(f"Permission '{permission_name}' not found")
        return permission

    def _set(self, user_id: UUID, permission_name: str, granted: bool) -> None:
        try:
            permission = self._resolve_target(user_id, permission_name)
            self.store.upsert_override(user_id, permission.id, granted)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def grant_permission(self, user_id: UUID, permission_name: str) -> None:
        """Explicitly grant a permission, whatever the user's role says."""
        self._set(user_id, permission_name, True)
        logger.info("Permission granted to user: user_id=%s permission=%s", user_id, permission_name)

    def revoke_permission(self, user_id: UUID, permission_name: str) -> None:
        """Explicitly revoke a permission, whatever the user's role says."""
        self._set(user_id, permission_name, False)
        logger.info("Permission revoked from user: user_id=%s permission=%s", user_id, permission_name)

    def clear_override(self, user_id: UUID, permission_name: str) -> bool:
        """Remove the override row. Returns False if there was none."""
        try:
            permission = self._resolve_target(user_id, permission_name)
            deleted = self.store.delete_override(user_id, permission.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Permission override cleared: user_id=%s permission=%s removed=%s",
            user_id, permission_name, bool(deleted),
        )
        return bool(deleted)

    def list_overrides(self, user_id: UUID) -> List[Tuple[str, bool]]:
        """(permission name, granted) pairs for the user, sorted by name."""
        if self.store.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        return [
            (permission.name, bool(override.granted))
            for override, permission in self.store.list_user_overrides(user_id)
        ]
