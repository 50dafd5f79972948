"""
Audit Service for logging data changes.

This service provides a simple interface for logging data operations,
making it easy to add audit logging to any part of the application.
"""
from decimal import Decimal
from datetime import date, datetime
from typing import Optional, Dict, Any, List, Literal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, desc

from app.audit.models import AuditLog
from app.auth.context import TenantContext


# Type aliases
EntityType = Literal[
    "client", "bucket_template", "client_bucket", "contract", "contract_box",
    "service_agreement", "service", "transaction", "form_config"
]
ActionType = Literal["create", "update", "delete", "status_change", "posting", "reset"]
SourceType = Literal["api", "system", "migration", "admin"]


def _jsonable(value: Any) -> Any:
    """Coerce Decimals and dates so values fit a JSON column."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class AuditService:
    """
    Service for logging audit events.

    Usage:
        audit = AuditService(db, tenant)
        await audit.log_create("client", client.id, {"first_name": "Ada"})
        await audit.log_update("client", client.id, {"phone": ("0400", "0411")})
        await audit.log_status_change("contract", contract.id, "draft", "active")
    """

    def __init__(self, db: AsyncSession, tenant: TenantContext, source: SourceType = "api"):
        self.db = db
        self.tenant = tenant
        self.source = source

    # ==========================================================================
    # Core Logging Methods
    # ==========================================================================

    async def log(
        self,
        entity_type: EntityType,
        entity_id: str,
        action: ActionType,
        field_name: Optional[str] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> AuditLog:
        """
        Log an audit event.

        Args:
            entity_type: Type of entity being changed
            entity_id: ID of the entity
            action: Type of action
            field_name: Optional specific field that changed
            old_value: Previous value (for updates/deletes)
            new_value: New value (for creates/updates)
            metadata: Additional context
            notes: Human-readable notes

        Returns:
            Created AuditLog
        """
        log = AuditLog(
            organization_id=self.tenant.organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            field_name=field_name,
            old_value=_jsonable(old_value),
            new_value=_jsonable(new_value),
            user_id=self.tenant.user_id,
            source=self.source,
            extra_data=_jsonable(metadata),
            notes=notes,
        )

        self.db.add(log)
        # Don't commit here - let caller manage transaction
        return log

    # ==========================================================================
    # Convenience Methods
    # ==========================================================================

    async def log_create(
        self,
        entity_type: EntityType,
        entity_id: str,
        new_value: Dict[str, Any],
        notes: Optional[str] = None,
    ) -> AuditLog:
        """Log a create operation."""
        return await self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            action="create",
            new_value=new_value,
            notes=notes,
        )

    async def log_update(
        self,
        entity_type: EntityType,
        entity_id: str,
        changes: Dict[str, tuple],
        notes: Optional[str] = None,
    ) -> List[AuditLog]:
        """
        Log an update operation.

        Args:
            changes: Dict mapping field names to (old_value, new_value) tuples

        Returns:
            List of AuditLogs (one per changed field)
        """
        logs = []
        for field_name, (old_value, new_value) in changes.items():
            if old_value != new_value:
                log = await self.log(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    action="update",
                    field_name=field_name,
                    old_value=old_value,
                    new_value=new_value,
                    notes=notes,
                )
                logs.append(log)
        return logs

    async def log_delete(
        self,
        entity_type: EntityType,
        entity_id: str,
        old_value: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> AuditLog:
        """Log a delete operation."""
        return await self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            action="delete",
            old_value=old_value,
            notes=notes,
        )

    async def log_status_change(
        self,
        entity_type: EntityType,
        entity_id: str,
        old_status: str,
        new_status: str,
    ) -> AuditLog:
        """Log a lifecycle transition."""
        return await self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            action="status_change",
            field_name="status",
            old_value=old_status,
            new_value=new_status,
        )

    async def log_posting(
        self,
        entity_type: EntityType,
        entity_id: str,
        transaction_id: str,
        direction: str,
        amount: Decimal,
        balance_before: Decimal,
        balance_after: Decimal,
        reference_type: str,
    ) -> AuditLog:
        """Log a ledger posting against a bucket or box."""
        return await self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            action="posting",
            field_name="current_balance",
            old_value=balance_before,
            new_value=balance_after,
            metadata={
                "transaction_id": transaction_id,
                "direction": direction,
                "amount": amount,
                "reference_type": reference_type,
            },
        )

    # ==========================================================================
    # Query Methods
    # ==========================================================================

    async def get_entity_history(
        self,
        entity_type: EntityType,
        entity_id: str,
        limit: int = 100,
    ) -> List[AuditLog]:
        """Get audit history for an entity."""
        query = (
            select(AuditLog)
            .where(
                and_(
                    AuditLog.organization_id == self.tenant.organization_id,
                    AuditLog.entity_type == entity_type,
                    AuditLog.entity_id == entity_id,
                )
            )
            .order_by(desc(AuditLog.created_at))
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
