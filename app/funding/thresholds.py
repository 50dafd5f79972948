"""
Threshold evaluation after each ledger entry.

An alert fires only when utilization moves across a level, i.e. the
highest level t with previous < t <= current. Staying above a level never
re-fires it, so there is at most one alert per crossing.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from app.funding.characteristics import BucketCategory, CharacteristicSet
from app.funding.rules import BalanceState, utilization


@dataclass
class ThresholdHit:
    """One crossed threshold, ready to be stored as a BucketAlert."""
    characteristic_id: str
    threshold: Decimal
    utilization: Decimal
    balance: Decimal
    message: str


@dataclass
class ThresholdEvaluation:
    previous_utilization: Decimal
    current_utilization: Decimal
    hits: List[ThresholdHit] = field(default_factory=list)
    invoice_due: bool = False


def highest_crossed(previous: Decimal, current: Decimal, levels: Iterable[Decimal]) -> Optional[Decimal]:
    """Highest level crossed moving from previous to current, or None."""
    crossed = [level for level in levels if previous < level <= current]
    return max(crossed) if crossed else None


def evaluate_thresholds(
    characteristics: CharacteristicSet,
    before: BalanceState,
    after: BalanceState,
) -> ThresholdEvaluation:
    """Compare utilization before and after one entry against every enabled alert."""
    prev_util = utilization(before, characteristics)
    cur_util = utilization(after, characteristics)
    evaluation = ThresholdEvaluation(previous_utilization=prev_util, current_utilization=cur_util)

    low = characteristics.get("low-balance-warning")
    if low and after.category == BucketCategory.DRAW_DOWN:
        level = Decimal(100) - low.config.threshold_percentage
        crossed = highest_crossed(prev_util, cur_util, [level])
        if crossed is not None:
            evaluation.hits.append(ThresholdHit(
                characteristic_id=low.id,
                threshold=crossed,
                utilization=cur_util,
                balance=after.balance,
                message=f"Balance is down to {low.config.threshold_percentage}% of the limit ({after.balance} remaining)",
            ))
        elif before.balance > low.config.threshold_amount >= after.balance:
            evaluation.hits.append(ThresholdHit(
                characteristic_id=low.id,
                threshold=low.config.threshold_amount,
                utilization=cur_util,
                balance=after.balance,
                message=f"Balance fell below {low.config.threshold_amount} ({after.balance} remaining)",
            ))

    alerts = characteristics.get("threshold-alerts")
    if alerts and after.category == BucketCategory.FILL_UP:
        crossed = highest_crossed(prev_util, cur_util, alerts.config.alert_levels)
        if crossed is not None and alerts.config.notification_enabled:
            evaluation.hits.append(ThresholdHit(
                characteristic_id=alerts.id,
                threshold=crossed,
                utilization=cur_util,
                balance=after.balance,
                message=f"Fill level reached {crossed}% ({after.balance} accrued)",
            ))
        if alerts.config.auto_invoice and highest_crossed(prev_util, cur_util, [alerts.config.invoice_threshold]) is not None:
            evaluation.invoice_due = True

    compliance = characteristics.get("compliance-monitoring")
    if compliance and compliance.config.track_utilization:
        crossed = highest_crossed(prev_util, cur_util, [compliance.config.compliance_threshold])
        if crossed is not None:
            evaluation.hits.append(ThresholdHit(
                characteristic_id=compliance.id,
                threshold=crossed,
                utilization=cur_util,
                balance=after.balance,
                message=f"Utilization {cur_util}% is at or above the compliance threshold of {crossed}%",
            ))

    return evaluation
