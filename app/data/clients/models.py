"""Client model for care recipients."""
from sqlalchemy import Column, String, DateTime, Date, Text, ForeignKey, Integer, Numeric, Index
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.data.base import generate_id


class Client(Base):
    """Client model - a person receiving funded care services."""

    __tablename__ = "clients"

    id = Column(String, primary_key=True, default=lambda: generate_id("client"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    # Personal
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    emergency_contact_name = Column(String, nullable=True)
    emergency_contact_phone = Column(String, nullable=True)

    # Health (lists of free-text entries)
    medical_conditions = Column(JSONType, nullable=True)
    medications = Column(JSONType, nullable=True)
    support_goals = Column(JSONType, nullable=True)

    # Funding
    funding_type = Column(String, nullable=False, default="sah")  # "sah" | "hcp" | "ndis" | "private"
    sah_classification_level = Column(Integer, nullable=True)  # Support at Home level 1-8
    plan_budget = Column(Numeric(precision=15, scale=2), nullable=True)  # Annual budget for the level
    medicare_number = Column(String, nullable=True)
    pension_type = Column(String, nullable=True)
    myagedcare_number = Column(String, nullable=True)

    # Lifecycle
    status = Column(String, nullable=False, default="prospect")  # "prospect" | "active" | "deactivated"

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_clients_org_status", "organization_id", "status"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
