"""
Registered login devices and their append-only activity log.

A UserDevice is created once per successful login from a client. Every
later refresh-token use from that device appends a LoginActivity, whether
the device was trusted or not, so the activity table doubles as the IP
history used for trust scoring.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from database import Base


class DeviceClass(str, enum.Enum):
    Browser = "Browser"
    Mobile = "Mobile"
    Unknown = "Unknown"


class OsFamily(str, enum.Enum):
    Android = "Android"
    iOS = "iOS"
    Unknown = "Unknown"


class UserDevice(Base):
    """SQLAlchemy model for a user's login device."""

    __tablename__ = "user_devices"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Fingerprint captured at registration
    name = Column(String(255), nullable=False, default="Unknown")
    device_class = Column(
        Enum(DeviceClass, name="device_class", native_enum=False),
        nullable=False,
        default=DeviceClass.Unknown,
    )
    os_family = Column(
        Enum(OsFamily, name="os_family", native_enum=False),
        nullable=False,
        default=OsFamily.Unknown,
    )

    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    # Tombstone: set when the owner or staff revokes the device
    revoked_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="devices")
    login_activities = relationship(
        "LoginActivity",
        back_populates="device",
        cascade="all, delete-orphan",
        order_by="LoginActivity.created_at",
    )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self):
        return (
            f"<UserDevice(id={self.id}, user_id={self.user_id}, name={self.name}, "
            f"class={self.device_class}, os={self.os_family})>"
        )


class LoginActivity(Base):
    """One login or refresh attempt from a device. Never updated."""

    __tablename__ = "login_activities"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(
        Integer,
        ForeignKey("user_devices.id", ondelete="CASCADE"),
        nullable=False,
    )
    # IPv6 textual form is at most 45 characters
    ip_address = Column(String(45), nullable=True)
    success = Column(Boolean, default=True, nullable=False)
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    device = relationship("UserDevice", back_populates="login_activities")

    __table_args__ = (
        Index("idx_login_activity_device_created", "device_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<LoginActivity(id={self.id}, device_id={self.device_id}, "
            f"ip={self.ip_address}, success={self.success})>"
        )
