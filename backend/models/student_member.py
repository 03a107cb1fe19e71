"""Student members and their personal settings."""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from database import Base, as_utc


class MembershipPurchaseChannel(str, enum.Enum):
    Personal = "Personal"
    PartnerFree = "PartnerFree"


class StudentMember(Base):
    """
    Membership record for a student.

    Members created from a personal order have no user until the orderer
    links a federated account; ``activated_at`` stays NULL until then.
    ``expired_at`` is the contract end date in effect at registration.
    """

    __tablename__ = "student_members"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
        index=True,
    )
    school_attended_id = Column(
        Integer, ForeignKey("partner_schools.id"), nullable=False, index=True
    )
    student_id = Column(String(30), nullable=True)
    purchase_channel = Column(
        Enum(MembershipPurchaseChannel, name="purchase_channel", native_enum=False),
        nullable=False,
    )
    has_stickers = Column(Boolean, default=False, nullable=False)
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    activated_at = Column(DateTime, nullable=True)
    expired_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="member", lazy="selectin")
    school_attended = relationship("PartnerSchool", lazy="selectin")
    settings = relationship(
        "MemberSettings",
        back_populates="member",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def is_activated(self) -> bool:
        """Whether now falls inside the activated_at..expired_at window."""
        if self.activated_at is None or self.expired_at is None:
            return False
        now = datetime.now(timezone.utc)
        return as_utc(self.activated_at) <= now <= as_utc(self.expired_at)

    def __repr__(self):
        return f"<StudentMember {self.id} school={self.school_attended_id}>"


class MemberSettings(Base):
    """User-editable member preferences."""

    __tablename__ = "member_settings"

    member_id = Column(
        String(36),
        ForeignKey("student_members.id", ondelete="CASCADE"),
        primary_key=True,
    )
    nickname = Column(String(20), nullable=True)
    # Taiwan e-invoice mobile barcode, e.g. "/E7E6888"
    e_invoice_barcode = Column(String(8), nullable=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    member = relationship("StudentMember", back_populates="settings")

    def __repr__(self):
        return f"<MemberSettings member={self.member_id} nickname={self.nickname}>"
