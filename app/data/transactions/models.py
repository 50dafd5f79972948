"""Ledger transaction model."""
from sqlalchemy import Column, String, DateTime, Date, Text, ForeignKey, Numeric, Integer, Index
from sqlalchemy.sql import func

from app.database import Base
from app.data.base import generate_id


class Transaction(Base):
    """
    Transaction - one append-only ledger entry against a bucket or box.

    balance_after is the bucket's balance immediately after this entry;
    the bucket's current_balance always equals the signed sum of its
    entries and the latest balance_after.
    """

    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: generate_id("txn"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)

    agreement_id = Column(String, ForeignKey("service_agreements.id"), nullable=True, index=True)
    contract_id = Column(String, ForeignKey("contracts.id"), nullable=True, index=True)

    # Exactly one of these is set
    bucket_id = Column(String, ForeignKey("client_buckets.id"), nullable=True, index=True)
    box_id = Column(String, ForeignKey("contract_boxes.id"), nullable=True, index=True)

    transaction_type = Column(String, nullable=False)  # "credit" | "debit" | "service_delivery" | "invoice_item"
    direction = Column(String, nullable=False)  # "credit" | "debit"
    amount = Column(Numeric(precision=15, scale=2), nullable=False)  # applied amount, always > 0
    requested_amount = Column(Numeric(precision=15, scale=2), nullable=False)
    balance_after = Column(Numeric(precision=15, scale=2), nullable=False)
    # Bucket version after this entry; orders entries within one bucket
    sequence = Column(Integer, nullable=False, default=0)

    # "manual_adjustment" | "service_transaction" | "government_allocation" | "client_payment"
    # | "opening_balance" | "allocation_adjustment" | "period_reset" | "auto_invoice" | "overflow"
    reference_type = Column(String, nullable=False, default="manual_adjustment")

    service_id = Column(String, ForeignKey("services.id"), nullable=True)
    unit_cost = Column(Numeric(precision=15, scale=2), nullable=True)
    quantity = Column(Numeric(precision=10, scale=2), nullable=True)

    description = Column(Text, nullable=True)
    transaction_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="completed")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_transactions_bucket_created", "bucket_id", "created_at"),
        Index("ix_transactions_box_created", "box_id", "created_at"),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def signed_amount(self):
        return self.amount if self.direction == "credit" else -self.amount
