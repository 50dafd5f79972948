"""Audit trail system for tracking data changes."""
from app.audit.models import AuditLog
from app.audit.services import AuditService
from app.audit.schemas import AuditLogResponse

__all__ = ["AuditLog", "AuditService", "AuditLogResponse"]
