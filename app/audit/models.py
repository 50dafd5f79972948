"""
Audit Log model for tracking all data changes.

This provides an audit trail for compliance reporting and for understanding
how a client's funding moved over time.
"""
from sqlalchemy import Column, String, DateTime, Text, Index
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.data.base import generate_id


class AuditLog(Base):
    """
    Audit Log - Tracks data changes in the system.

    Every create, update, status transition and ledger posting is logged
    here, providing a trail for:
    - Funding compliance reviews
    - Debugging balance questions
    - Understanding who changed what
    """

    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=lambda: generate_id("audit"))

    # Tenant
    organization_id = Column(String, nullable=False, index=True)

    # What changed?
    entity_type = Column(String, nullable=False, index=True)
    # Options: "client", "bucket_template", "client_bucket", "contract", "contract_box",
    # "service_agreement", "service", "transaction", "form_config"

    entity_id = Column(String, nullable=False, index=True)

    # What kind of change?
    action = Column(String, nullable=False, index=True)
    # Options:
    # - "create": New record created
    # - "update": Record updated
    # - "delete": Record deleted (soft or hard)
    # - "status_change": Lifecycle transition
    # - "posting": Ledger transaction applied
    # - "reset": Funding period reset

    # What field changed? (for updates)
    field_name = Column(String, nullable=True)

    # What were the values?
    old_value = Column(JSONType, nullable=True)
    new_value = Column(JSONType, nullable=True)

    # Who made the change?
    user_id = Column(String, nullable=True, index=True)

    # What triggered the change?
    source = Column(String, nullable=False, default="api")
    # Options:
    # - "api": Direct API call
    # - "system": Provisioning, automatic invoicing
    # - "migration": Data migration
    # - "admin": Admin action

    # Additional context (named extra_data since 'metadata' is reserved in SQLAlchemy)
    extra_data = Column("extra_data", JSONType, nullable=True)

    notes = Column(Text, nullable=True)

    # When?
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Indexes for common queries
    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
        Index("ix_audit_log_org_time", "organization_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<AuditLog {self.id}: "
            f"{self.action} on {self.entity_type}/{self.entity_id} "
            f"at {self.created_at}>"
        )
