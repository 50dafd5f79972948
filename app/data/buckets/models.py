"""Client bucket and bucket alert models."""
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Numeric, Index
from sqlalchemy.sql import func

from app.database import Base
from app.data.base import generate_id, LedgerColumnsMixin


class ClientBucket(LedgerColumnsMixin, Base):
    """
    Client Bucket - a live funding container owned by a client.

    Balance columns come from LedgerColumnsMixin and are mutated only
    through the funding ledger. Buckets are closed, never deleted, once
    transactions reference them.
    """

    __tablename__ = "client_buckets"

    id = Column(String, primary_key=True, default=lambda: generate_id("bucket"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(String, ForeignKey("bucket_templates.id"), nullable=True, index=True)

    name = Column(String, nullable=False)
    funding_source = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_client_buckets_client_status", "client_id", "status"),
    )


class BucketAlert(Base):
    """Threshold alert emitted by the ledger after a transaction."""

    __tablename__ = "bucket_alerts"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(String, primary_key=True, default=lambda: generate_id("alert"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    # Exactly one of these is set
    bucket_id = Column(String, ForeignKey("client_buckets.id", ondelete="CASCADE"), nullable=True, index=True)
    box_id = Column(String, ForeignKey("contract_boxes.id", ondelete="CASCADE"), nullable=True, index=True)

    characteristic_id = Column(String, nullable=False)  # "low-balance-warning" | "threshold-alerts" | ...
    threshold = Column(Numeric(precision=15, scale=2), nullable=False)
    utilization = Column(Numeric(precision=7, scale=2), nullable=False)
    balance = Column(Numeric(precision=15, scale=2), nullable=False)
    message = Column(Text, nullable=False)
    transaction_id = Column(String, ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
