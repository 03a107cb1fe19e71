"""Personal membership orders placed through the public form."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from database import Base


class PersonalMembershipOrder(Base):
    """
    An order for a personal membership.

    Payment is collected offline by the student council; ``is_paid`` is
    flipped by staff. The orderer holds an orderer token scoped to this row.
    """

    __tablename__ = "personal_membership_orders"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    member_id = Column(
        String(36),
        ForeignKey("student_members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    school_id = Column(Integer, ForeignKey("partner_schools.id"), nullable=False)
    class_name = Column("class", String(50), nullable=False)
    number = Column(String(10), nullable=False)
    real_name = Column(String(100), nullable=False)
    need_sticker = Column(Boolean, default=False, nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False)

    member = relationship("StudentMember", lazy="selectin")
    school = relationship("PartnerSchool", lazy="selectin")

    def __repr__(self):
        return f"<PersonalMembershipOrder {self.id} paid={self.is_paid}>"
