"""User model shared by student members and union staff."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from database import Base


class UserRole(str, enum.Enum):
    STUDENT_MEMBER = "student_member"
    UNION_STAFF = "union_staff"


class User(Base):
    """
    Account that can hold tokens and own devices.

    Roles are derived, not stored:
        student_member: the user has a :class:`StudentMember` row
        union_staff: the user has a :class:`UnionStaff` row
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    primary_email = Column(String(255), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    member = relationship(
        "StudentMember", back_populates="user", uselist=False, lazy="selectin"
    )
    staff = relationship(
        "UnionStaff",
        back_populates="user",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    federated_accounts = relationship(
        "FederatedAccount", back_populates="user", cascade="all, delete-orphan"
    )
    devices = relationship(
        "UserDevice", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User {self.id} email={self.primary_email}>"
