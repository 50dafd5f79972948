"""Pydantic schemas for audit history."""
from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Any, Dict


class AuditLogResponse(BaseModel):
    """One recorded change to an entity."""
    id: str
    entity_type: str
    entity_id: str
    action: str
    field_name: Optional[str] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    user_id: Optional[str] = None
    source: str
    extra_data: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
