"""Bucket template model - static definition of a funding container."""
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Boolean, Numeric
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.data.base import generate_id


class BucketTemplate(Base):
    """
    Bucket Template - what a funding bucket looks like before it is provisioned.

    Category, funding source and amounts are frozen once a live bucket
    references the template; characteristics may still be toggled.
    """

    __tablename__ = "bucket_templates"

    id = Column(String, primary_key=True, default=lambda: generate_id("tmpl"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False)  # "draw_down" | "fill_up" | "hybrid"
    funding_source = Column(String, nullable=False)  # "government" | "client" | "NDIS" | "Private" ...

    starting_amount = Column(Numeric(precision=15, scale=2), nullable=True)  # draw-down
    credit_limit = Column(Numeric(precision=15, scale=2), nullable=True)  # fill-up capacity

    # Ordered list of characteristic dicts, see app.funding.characteristics
    characteristics = Column(JSONType, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True)
    # Provision a client bucket from this template when a client is activated
    auto_provision = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
