"""Contract and contract box models."""
from sqlalchemy import Column, String, DateTime, Date, Text, ForeignKey, Numeric, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.data.base import generate_id, LedgerColumnsMixin


class Contract(Base):
    """Contract model - a client contract holding funding boxes."""

    __tablename__ = "contracts"

    id = Column(String, primary_key=True, default=lambda: generate_id("ct"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)

    contract_number = Column(String, nullable=False)  # "CT-000001", also used as the name
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="draft")  # "draft" | "active" | "expired" | "cancelled"

    allocation_policy = Column(String, nullable=False, default="sum_of_buckets")  # | "fixed_allocation"
    fixed_total_value = Column(Numeric(precision=15, scale=2), nullable=True)

    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    boxes = relationship(
        "ContractBox",
        back_populates="contract",
        order_by="ContractBox.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "contract_number", name="uq_contract_number"),
    )


class ContractBox(LedgerColumnsMixin, Base):
    """
    Contract Box - a funding container owned by a contract.

    Draw-down boxes open with their allocation; fill-up and hybrid boxes
    open at zero.
    """

    __tablename__ = "contract_boxes"

    id = Column(String, primary_key=True, default=lambda: generate_id("box"))
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    contract_id = Column(String, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    # Services posted to the box must carry this catalog category; None accepts any
    service_category = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    contract = relationship("Contract", back_populates="boxes")

    @property
    def box_type(self) -> str:
        return self.category
