"""
Domain errors raised by the funding ledger, aggregator and lifecycle guards.

Three families, mirroring how callers react to them:
- LedgerValidationError: the request itself is malformed (HTTP 422)
- BusinessRuleViolation: the request is well-formed but breaks a rule (HTTP 409)
- NotFound: the referenced record does not exist in this tenant (HTTP 404)

Each error carries a stable `code`, a human-readable `message` naming the
violated rule, and optional `details` (e.g. the shortfall of a debit).
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional


class FundingError(Exception):
    """Base class for all funding domain errors."""

    code = "funding_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        details = {
            key: str(value) if isinstance(value, (Decimal, date)) else value
            for key, value in self.details.items()
        }
        return {"code": self.code, "message": self.message, "details": details}


# =============================================================================
# Validation
# =============================================================================

class LedgerValidationError(FundingError):
    code = "validation_error"
    status_code = 422


class InvalidAmount(LedgerValidationError):
    code = "invalid_amount"


class InvalidCharacteristics(LedgerValidationError):
    code = "invalid_characteristics"


# =============================================================================
# Business rules
# =============================================================================

class BusinessRuleViolation(FundingError):
    code = "business_rule_violation"
    status_code = 409


class InsufficientFunds(BusinessRuleViolation):
    code = "insufficient_funds"

    def __init__(self, balance: Decimal, amount: Decimal, overdraft_limit: Decimal):
        self.shortfall = amount - (balance + overdraft_limit)
        super().__init__(
            f"Insufficient funds: debit of {amount} exceeds available {balance + overdraft_limit} "
            f"by {self.shortfall}",
            {
                "shortfall": self.shortfall,
                "balance": balance,
                "amount": amount,
                "overdraft_limit": overdraft_limit,
            },
        )


class CreditLimitReached(BusinessRuleViolation):
    code = "credit_limit_reached"


class CapacityReached(BusinessRuleViolation):
    code = "capacity_reached"


class BucketNotActive(BusinessRuleViolation):
    code = "bucket_not_active"


class OwnerNotActive(BusinessRuleViolation):
    code = "owner_not_active"


class InvalidStatusTransition(BusinessRuleViolation):
    code = "invalid_status_transition"


class PreconditionFailed(BusinessRuleViolation):
    code = "precondition_failed"


class NotEditable(BusinessRuleViolation):
    code = "not_editable"


class TemplateInUse(BusinessRuleViolation):
    code = "template_in_use"


class ResetNotDue(BusinessRuleViolation):
    code = "reset_not_due"


class ResetNotConfigured(BusinessRuleViolation):
    code = "reset_not_configured"


class ConcurrentModification(BusinessRuleViolation):
    """Raised when the compare-and-swap keeps losing after every retry."""
    code = "concurrent_modification"


# =============================================================================
# Lookup
# =============================================================================

class NotFound(FundingError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": entity_id})
