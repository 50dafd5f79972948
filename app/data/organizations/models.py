"""Organization model - the tenant boundary."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.data.base import generate_id


class Organization(Base):
    """Organization model - an aged-care provider using CareFund."""

    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=lambda: generate_id("org"))
    name = Column(String, nullable=False)
    abn = Column(String, nullable=True)  # Australian Business Number
    phone = Column(String, nullable=True)
    plan = Column(String, nullable=False, default="starter")  # "starter" | "professional" | "enterprise"
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    users = relationship("User", back_populates="organization", cascade="all, delete-orphan")
