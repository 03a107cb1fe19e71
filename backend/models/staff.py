"""Union staff accounts (local username/password login)."""

import enum

from sqlalchemy import Column, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from database import Base


class StaffPermission(str, enum.Enum):
    MANAGE_SCHOOLS = "manage_schools"


class UnionStaff(Base):
    """
    Alliance staff member. One-to-one with :class:`User`.

    ``permissions`` is a JSON list of :class:`StaffPermission` values.
    """

    __tablename__ = "union_staff"

    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    username = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    permissions = Column(JSON, nullable=False, default=list)

    user = relationship("User", back_populates="staff", lazy="selectin")

    def has_permission(self, permission: StaffPermission) -> bool:
        return permission.value in (self.permissions or [])

    def __repr__(self):
        return f"<UnionStaff {self.username} permissions={self.permissions}>"
