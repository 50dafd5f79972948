"""Shared base utilities for data models."""
import secrets

from sqlalchemy import Column, String, Date, Integer, Numeric

from app.database import JSONType


def generate_id(prefix: str) -> str:
    """Generate a unique ID with a prefix."""
    return f"{prefix}_{secrets.token_hex(6)}"


class LedgerColumnsMixin:
    """
    Balance-bearing columns shared by client buckets and contract boxes.

    current_balance, spent_amount and version are written only by
    app.funding.ledger; everything else may change through the owning
    resource's routes.
    """

    # "draw_down" | "fill_up" | "hybrid"
    category = Column(String, nullable=False)

    # Nominal allocation (what the aggregator sums)
    allocated_amount = Column(Numeric(precision=15, scale=2), nullable=False, default=0)
    # Upper bound for draw-down, capacity for fill-up
    credit_limit = Column(Numeric(precision=15, scale=2), nullable=False, default=0)

    current_balance = Column(Numeric(precision=15, scale=2), nullable=False, default=0)
    spent_amount = Column(Numeric(precision=15, scale=2), nullable=False, default=0)

    # Snapshot of the template's characteristics (list of dicts)
    characteristics = Column(JSONType, nullable=False, default=list)

    status = Column(String, nullable=False, default="active")  # "active" | "closed"

    # Optimistic-concurrency counter, bumped on every balance write
    version = Column(Integer, nullable=False, default=0)

    # Draw-down periods
    period_start = Column(Date, nullable=True)
    period_end = Column(Date, nullable=True)
    rollover_count = Column(Integer, nullable=False, default=0)
