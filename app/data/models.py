"""
Consolidated data models.

IMPORTANT: Explicit imports only - no wildcards to prevent circular imports.
Use string-based forward references in relationships: relationship("Client", ...)
Importing this module registers every table on Base.metadata.
"""

# Base utilities
from app.data.base import generate_id, LedgerColumnsMixin

# Tenant and users
from app.data.organizations.models import Organization
from app.data.users.models import User

# Clients
from app.data.clients.models import Client

# Funding definitions and live containers
from app.data.templates.models import BucketTemplate
from app.data.buckets.models import ClientBucket, BucketAlert

# Agreements and contracts
from app.data.agreements.models import ServiceAgreement, AgreementBucket
from app.data.contracts.models import Contract, ContractBox

# Catalog
from app.data.catalog.models import Service

# Ledger
from app.data.transactions.models import Transaction

# Client form configuration
from app.data.form_config.models import FormConfig

# Audit
from app.audit.models import AuditLog


__all__ = [
    "generate_id",
    "LedgerColumnsMixin",
    "Organization",
    "User",
    "Client",
    "BucketTemplate",
    "ClientBucket",
    "BucketAlert",
    "ServiceAgreement",
    "AgreementBucket",
    "Contract",
    "ContractBox",
    "Service",
    "Transaction",
    "FormConfig",
    "AuditLog",
]
