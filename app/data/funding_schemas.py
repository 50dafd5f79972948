"""Response schema for derived funding totals."""
from pydantic import BaseModel
from typing import Dict
from decimal import Decimal


class FundingSummaryResponse(BaseModel):
    """Agreement or contract totals, computed on every read."""
    total_value: Decimal
    total_allocated: Decimal
    remaining_balance: Decimal
    item_count: int
    counts: Dict[str, int]
    utilization: Dict[str, Decimal]

    model_config = {"from_attributes": True}
