"""Explicit tenant context passed into every funding operation."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TenantContext:
    """
    Who is acting, and inside which organization.

    Resolved once per request from the bearer token and handed to the
    ledger, aggregator and lifecycle guards; nothing reads the tenant from ambient state.
    user_id is None when a script acts on behalf of the organization.
    """
    organization_id: str
    user_id: Optional[str]
    role: str = "staff"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
