"""Partner schools and their Google Workspace account conventions."""

import enum

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from database import Base


class PartnerPlan(str, enum.Enum):
    Combined = "Combined"
    Personal = "Personal"
    GroupA = "GroupA"


class PartnerSchool(Base):
    """A school participating in the current alliance term."""

    __tablename__ = "partner_schools"

    id = Column(Integer, primary_key=True, index=True)
    short_name = Column(String(50), nullable=False)
    full_name = Column(String(255), nullable=False)
    plan = Column(
        Enum(PartnerPlan, name="partner_plan", native_enum=False),
        nullable=False,
        default=PartnerPlan.Personal,
    )

    # Optional allow-list of student IDs eligible for free membership
    enable_eligibility_check = Column(Boolean, default=False, nullable=False)
    eligible_student_ids = Column(JSON, nullable=False, default=list)

    google_account_config = relationship(
        "SchoolAccountConfig",
        back_populates="school",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<PartnerSchool {self.id} {self.short_name} plan={self.plan}>"


class SchoolAccountConfig(Base):
    """
    How a school's Google Workspace accounts are named.

    ``student_username_format`` is a regex whose first capture group is the
    student ID, e.g. ``s([0-9]{7})``.
    """

    __tablename__ = "school_account_configs"

    school_id = Column(
        Integer, ForeignKey("partner_schools.id", ondelete="CASCADE"), primary_key=True
    )
    username_format = Column(String(255), nullable=False)
    student_username_format = Column(String(255), nullable=False)
    password_format = Column(String(255), nullable=False)
    domain_name = Column(String(255), nullable=False)

    school = relationship("PartnerSchool", back_populates="google_account_config")

    def __repr__(self):
        return f"<SchoolAccountConfig school={self.school_id} domain={self.domain_name}>"
