"""Service agreement models."""
from sqlalchemy import Column, String, DateTime, Date, Text, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.data.base import generate_id


class ServiceAgreement(Base):
    """
    Service Agreement - groups a client's buckets under one agreement.

    Totals are derived on read by app.funding.aggregator; only the
    owner-set value for the fixed_allocation policy is stored.
    """

    __tablename__ = "service_agreements"

    id = Column(String, primary_key=True, default=lambda: generate_id("sa"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)

    agreement_number = Column(String, nullable=False)  # "SA-000001"
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="draft")  # "draft" | "current" | "expired" | "cancelled"

    allocation_policy = Column(String, nullable=False, default="sum_of_buckets")  # | "fixed_allocation"
    fixed_total_value = Column(Numeric(precision=15, scale=2), nullable=True)

    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    # Extended fields, saved best-effort after the core fields
    review_date = Column(Date, nullable=True)
    billing_frequency = Column(String, nullable=True)  # "weekly" | "fortnightly" | "monthly"
    notes = Column(Text, nullable=True)
    extra_terms = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    buckets = relationship(
        "AgreementBucket",
        back_populates="agreement",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "agreement_number", name="uq_agreement_number"),
    )


class AgreementBucket(Base):
    """Link between an agreement and one of the client's buckets."""

    __tablename__ = "agreement_buckets"

    id = Column(String, primary_key=True, default=lambda: generate_id("ab"))
    agreement_id = Column(String, ForeignKey("service_agreements.id", ondelete="CASCADE"), nullable=False, index=True)
    bucket_id = Column(String, ForeignKey("client_buckets.id"), nullable=False, index=True)

    custom_name = Column(String, nullable=True)
    custom_amount = Column(Numeric(precision=15, scale=2), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    agreement = relationship("ServiceAgreement", back_populates="buckets")

    __table_args__ = (
        UniqueConstraint("agreement_id", "bucket_id", name="uq_agreement_bucket"),
    )
