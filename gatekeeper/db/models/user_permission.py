import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Boolean, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from gatekeeper.db.base import Base


class UserPermissionOverride(Base):
    """Per-user exception to the role's permission set.

    ``granted=True`` grants the permission regardless of role,
    ``granted=False`` revokes it regardless of role. No row means the role
    decides.
    """

    __tablename__ = "user_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "permission_id", name="uq_user_permissions_user_permission"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(
        Uuid, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    granted = Column(Boolean, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="permission_overrides")
    permission = relationship("Permission", back_populates="user_overrides")

    def __repr__(self) -> str:
        kind = "grant" if self.granted else "revoke"
        return f"<UserPermissionOverride {kind} {self.permission_id} for {self.user_id}>"
