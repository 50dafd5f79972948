"""Service catalog model."""
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Boolean, Numeric
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.data.base import generate_id


class Service(Base):
    """Service model - a deliverable item in the organization's catalog."""

    __tablename__ = "services"

    id = Column(String, primary_key=True, default=lambda: generate_id("svc"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    service_code = Column(String, nullable=True, index=True)

    # Pricing
    base_cost = Column(Numeric(precision=15, scale=2), nullable=False)
    cost_currency = Column(String, nullable=False, default="AUD")
    unit = Column(String, nullable=False, default="hour")  # "hour" | "session" | "visit" | "item" | "km" ...
    has_variable_pricing = Column(Boolean, nullable=False, default=False)
    min_cost = Column(Numeric(precision=15, scale=2), nullable=True)
    max_cost = Column(Numeric(precision=15, scale=2), nullable=True)
    is_taxable = Column(Boolean, nullable=False, default=False)
    tax_rate = Column(Numeric(precision=5, scale=2), nullable=False, default=0)

    # Classification
    category = Column(String, nullable=True)
    subcategory = Column(String, nullable=True)
    tags = Column(JSONType, nullable=False, default=list)

    # Rules
    allow_discount = Column(Boolean, nullable=False, default=False)
    can_be_cancelled = Column(Boolean, nullable=False, default=True)
    requires_approval = Column(Boolean, nullable=False, default=False)

    # Lifecycle
    status = Column(String, nullable=False, default="draft")  # "draft" | "active" | "inactive" | "archived"

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_active(self) -> bool:
        return self.status == "active"
