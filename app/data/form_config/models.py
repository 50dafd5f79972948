"""
Client Form Configuration Model

Per-organization layout of the client intake form: which sections are shown
and which fields each section asks for.
"""
import copy

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.data.base import generate_id


DEFAULT_FORM_CONFIG = [
    {
        "section": "Personal Information",
        "enabled": True,
        "fields": [
            {"name": "first_name", "label": "First Name", "type": "text", "required": True},
            {"name": "last_name", "label": "Last Name", "type": "text", "required": True},
        ],
    },
    {
        "section": "Health & Support Information",
        "enabled": True,
        "fields": [
            {"name": "allergies", "label": "Allergies", "type": "textarea"},
        ],
    },
    {
        "section": "Funding Information",
        "enabled": True,
        "fields": [
            {"name": "funding_source", "label": "Funding Source", "type": "select", "options": ["NDIS", "Private"]},
        ],
    },
]


def default_form_config() -> list:
    return copy.deepcopy(DEFAULT_FORM_CONFIG)


class FormConfig(Base):
    """
    Client form configuration - one record per organization.

    Organizations without a record get DEFAULT_FORM_CONFIG.
    """
    __tablename__ = "form_configs"

    id = Column(String, primary_key=True, default=lambda: generate_id("form"))
    organization_id = Column(
        String,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    config = Column(JSONType, nullable=False, default=default_form_config)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<FormConfig organization_id={self.organization_id} sections={len(self.config or [])}>"
