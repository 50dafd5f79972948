"""Support at Home classification budgets."""
from decimal import Decimal
from typing import Optional

# Annual budget per Support at Home classification level (AUD)
SAH_ANNUAL_BUDGETS = {
    1: Decimal("10950.84"),
    2: Decimal("15981.68"),
    3: Decimal("21919.76"),
    4: Decimal("28763.16"),
    5: Decimal("36515.88"),
    6: Decimal("45177.92"),
    7: Decimal("54749.28"),
    8: Decimal("65229.96"),
}


def plan_budget_for_level(level: Optional[int]) -> Optional[Decimal]:
    """Annual plan budget for a classification level, or None when unset/unknown."""
    if level is None:
        return None
    return SAH_ANNUAL_BUDGETS.get(level)
