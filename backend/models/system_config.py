"""Append-only system configuration history."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from database import Base


class SystemConfiguration(Base):
    """
    One row per configuration change; the row with the highest id is current.

    ``contract_end_date`` is the end of the current partnership contract and
    becomes ``expired_at`` for members registered while it is in effect.
    """

    __tablename__ = "system_configuration_updates"

    id = Column(Integer, primary_key=True, index=True)
    service_status = Column(String(20), default="Normal", nullable=False)
    contract_end_date = Column(DateTime, nullable=True)
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    def __repr__(self):
        return (
            f"<SystemConfiguration {self.id} status={self.service_status} "
            f"contract_end={self.contract_end_date}>"
        )
