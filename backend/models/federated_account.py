"""Federated (Google) identities linked to local users."""

import enum

from sqlalchemy import Column, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base


class FederatedProvider(str, enum.Enum):
    Google = "Google"
    GoogleWorkspace = "GoogleWorkspace"


class FederatedAccount(Base):
    """
    One external identity per (provider, provider_identifier).

    A user may link at most one account per provider.
    """

    __tablename__ = "federated_accounts"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(
        Enum(FederatedProvider, name="federated_provider", native_enum=False),
        nullable=False,
    )
    # Subject identifier issued by the provider (Google "sub")
    provider_identifier = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    user = relationship("User", back_populates="federated_accounts", lazy="selectin")

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_identifier", name="uq_federated_identity"
        ),
        UniqueConstraint("provider", "user_id", name="uq_federated_user_provider"),
    )

    def __repr__(self):
        return f"<FederatedAccount {self.provider.value}:{self.provider_identifier}>"
