"""
Bucket characteristics - optional, independently toggleable behaviors.

Each characteristic kind is its own pydantic model with a strongly typed
`config`; the union is discriminated on `id`, so stored JSON such as

    {"id": "low-balance-warning", "enabled": true, "config": {"threshold_percentage": 20}}

parses straight into LowBalanceWarning with a LowBalanceWarningConfig.

Applicability:
- draw_down_only: zero-behavior, low-balance-warning, allow-over-limit
- fill_up_only: threshold-alerts, capacity-management
- common: reset-timer, compliance-monitoring, rollover-policy
Hybrid buckets take the common kinds plus zero-behavior.
"""
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from app.funding.errors import InvalidCharacteristics


class BucketCategory(str, Enum):
    """How a funding container moves."""
    DRAW_DOWN = "draw_down"
    FILL_UP = "fill_up"
    HYBRID = "hybrid"


class Applicability(str, Enum):
    DRAW_DOWN_ONLY = "draw_down_only"
    FILL_UP_ONLY = "fill_up_only"
    COMMON = "common"


class CharacteristicCategory(str, Enum):
    BEHAVIOR = "behavior"
    ALERT = "alert"
    RESET = "reset"
    COMPLIANCE = "compliance"


Percentage = Annotated[Decimal, Field(ge=0, le=100)]
Money = Annotated[Decimal, Field(ge=0)]


# =============================================================================
# Per-kind configuration
# =============================================================================

class ZeroBehaviorConfig(BaseModel):
    action: Literal["block_services", "allow_overdraft", "switch_bucket"] = "block_services"
    overdraft_limit: Money = Decimal("0")
    fallback_bucket_id: Optional[str] = None
    notification_enabled: bool = True


class LowBalanceWarningConfig(BaseModel):
    threshold_percentage: Percentage = Decimal("20")
    threshold_amount: Money = Decimal("1000")
    notification_days_advance: int = Field(default=7, ge=0)
    escalation_enabled: bool = False


class ThresholdAlertsConfig(BaseModel):
    alert_levels: List[Percentage] = Field(
        default_factory=lambda: [Decimal("25"), Decimal("50"), Decimal("75"), Decimal("90")]
    )
    notification_enabled: bool = True
    auto_invoice: bool = False
    invoice_threshold: Percentage = Decimal("80")

    @field_validator("alert_levels")
    @classmethod
    def sort_levels(cls, v: List[Decimal]) -> List[Decimal]:
        return sorted(set(v))


class CapacityManagementConfig(BaseModel):
    max_capacity_action: Literal["stop_accumulation", "overflow_to_bucket", "create_invoice"] = "stop_accumulation"
    overflow_bucket_id: Optional[str] = None
    auto_invoice_at_capacity: bool = True


class ResetTimerConfig(BaseModel):
    reset_frequency: Literal["monthly", "quarterly", "annually"] = "quarterly"
    reset_day: int = Field(default=1, ge=1, le=31)
    reset_to_amount: Money = Decimal("0")
    carry_over_percentage: Percentage = Decimal("0")
    notification_days_before: int = Field(default=14, ge=0)


class ComplianceMonitoringConfig(BaseModel):
    track_utilization: bool = True
    compliance_threshold: Percentage = Decimal("95")
    audit_trail_enabled: bool = True
    monthly_reporting: bool = True


class RolloverPolicyConfig(BaseModel):
    rollover_type: Literal["percentage", "fixed_amount", "none"] = "percentage"
    rollover_percentage: Percentage = Decimal("100")
    rollover_amount: Money = Decimal("0")
    max_rollover_periods: int = Field(default=4, ge=0)


class AllowOverLimitConfig(BaseModel):
    pass


# =============================================================================
# Characteristic variants
# =============================================================================

class ZeroBehavior(BaseModel):
    id: Literal["zero-behavior"] = "zero-behavior"
    name: str = "Zero Balance Behavior"
    type: Literal["draw_down_only"] = "draw_down_only"
    category: Literal["behavior"] = "behavior"
    enabled: bool = True
    config: ZeroBehaviorConfig = Field(default_factory=ZeroBehaviorConfig)


class LowBalanceWarning(BaseModel):
    id: Literal["low-balance-warning"] = "low-balance-warning"
    name: str = "Low Balance Warning"
    type: Literal["draw_down_only"] = "draw_down_only"
    category: Literal["alert"] = "alert"
    enabled: bool = True
    config: LowBalanceWarningConfig = Field(default_factory=LowBalanceWarningConfig)


class ThresholdAlerts(BaseModel):
    id: Literal["threshold-alerts"] = "threshold-alerts"
    name: str = "Fill Level Alerts"
    type: Literal["fill_up_only"] = "fill_up_only"
    category: Literal["alert"] = "alert"
    enabled: bool = True
    config: ThresholdAlertsConfig = Field(default_factory=ThresholdAlertsConfig)


class CapacityManagement(BaseModel):
    id: Literal["capacity-management"] = "capacity-management"
    name: str = "Capacity Management"
    type: Literal["fill_up_only"] = "fill_up_only"
    category: Literal["behavior"] = "behavior"
    enabled: bool = True
    config: CapacityManagementConfig = Field(default_factory=CapacityManagementConfig)


class ResetTimer(BaseModel):
    id: Literal["reset-timer"] = "reset-timer"
    name: str = "Periodic Reset"
    type: Literal["common"] = "common"
    category: Literal["reset"] = "reset"
    enabled: bool = False
    config: ResetTimerConfig = Field(default_factory=ResetTimerConfig)


class ComplianceMonitoring(BaseModel):
    id: Literal["compliance-monitoring"] = "compliance-monitoring"
    name: str = "Compliance Monitoring"
    type: Literal["common"] = "common"
    category: Literal["compliance"] = "compliance"
    enabled: bool = True
    config: ComplianceMonitoringConfig = Field(default_factory=ComplianceMonitoringConfig)


class RolloverPolicy(BaseModel):
    id: Literal["rollover-policy"] = "rollover-policy"
    name: str = "Rollover Policy"
    type: Literal["common"] = "common"
    category: Literal["reset"] = "reset"
    enabled: bool = True
    config: RolloverPolicyConfig = Field(default_factory=RolloverPolicyConfig)


class AllowOverLimit(BaseModel):
    id: Literal["allow-over-limit"] = "allow-over-limit"
    name: str = "Allow Credits Over Limit"
    type: Literal["draw_down_only"] = "draw_down_only"
    category: Literal["behavior"] = "behavior"
    enabled: bool = False
    config: AllowOverLimitConfig = Field(default_factory=AllowOverLimitConfig)


Characteristic = Annotated[
    Union[
        ZeroBehavior,
        LowBalanceWarning,
        ThresholdAlerts,
        CapacityManagement,
        ResetTimer,
        ComplianceMonitoring,
        RolloverPolicy,
        AllowOverLimit,
    ],
    Field(discriminator="id"),
]

_characteristic_list = TypeAdapter(List[Characteristic])


def is_applicable(characteristic: Characteristic, category: Union[BucketCategory, str]) -> bool:
    """Whether a characteristic means anything on a bucket of this category."""
    category = BucketCategory(category)
    if characteristic.type == Applicability.COMMON.value:
        return True
    if category == BucketCategory.HYBRID:
        return characteristic.id == "zero-behavior"
    if category == BucketCategory.DRAW_DOWN:
        return characteristic.type == Applicability.DRAW_DOWN_ONLY.value
    return characteristic.type == Applicability.FILL_UP_ONLY.value


class CharacteristicSet:
    """Ordered, validated characteristics of one template or bucket."""

    def __init__(self, items: Iterable[Characteristic] = ()):
        self._items: List[Characteristic] = list(items)

    def __iter__(self) -> Iterator[Characteristic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, characteristic_id: str) -> Optional[Characteristic]:
        """Return the characteristic only when present and enabled."""
        for item in self._items:
            if item.id == characteristic_id and item.enabled:
                return item
        return None

    def find(self, characteristic_id: str) -> Optional[Characteristic]:
        """Return the characteristic whether or not it is enabled."""
        for item in self._items:
            if item.id == characteristic_id:
                return item
        return None

    def applicable_to(self, category: Union[BucketCategory, str]) -> "CharacteristicSet":
        return CharacteristicSet(item for item in self._items if is_applicable(item, category))

    def not_applicable_to(self, category: Union[BucketCategory, str]) -> List[str]:
        return [item.id for item in self._items if not is_applicable(item, category)]

    def toggled(self, characteristic_id: str, enabled: bool) -> "CharacteristicSet":
        """Copy with one characteristic switched on or off."""
        if self.find(characteristic_id) is None:
            raise InvalidCharacteristics(
                f"Characteristic '{characteristic_id}' is not configured",
                {"characteristic_id": characteristic_id},
            )
        return CharacteristicSet(
            item.model_copy(update={"enabled": enabled}) if item.id == characteristic_id else item
            for item in self._items
        )

    def to_json(self) -> List[Dict[str, Any]]:
        return [item.model_dump(mode="json") for item in self._items]


def parse_characteristics(raw: Optional[Iterable[Any]]) -> CharacteristicSet:
    """
    Validate stored or submitted characteristics.

    Unknown ids and malformed configs raise InvalidCharacteristics.
    """
    if raw is None:
        return CharacteristicSet()
    if isinstance(raw, CharacteristicSet):
        return raw
    try:
        return CharacteristicSet(_characteristic_list.validate_python(list(raw)))
    except ValidationError as e:
        raise InvalidCharacteristics(
            "Invalid characteristics",
            {"errors": [err["msg"] for err in e.errors()]},
        ) from e


def default_characteristics(category: Union[BucketCategory, str]) -> CharacteristicSet:
    """
    Preset characteristics for a new template.

    Category-specific presets start enabled; common presets start disabled.
    """
    category = BucketCategory(category)
    if category == BucketCategory.DRAW_DOWN:
        specific = [ZeroBehavior(), LowBalanceWarning(), AllowOverLimit()]
    elif category == BucketCategory.FILL_UP:
        specific = [ThresholdAlerts(), CapacityManagement()]
    else:
        specific = [ZeroBehavior()]

    common = [
        ResetTimer(enabled=False),
        ComplianceMonitoring(enabled=False),
        RolloverPolicy(enabled=False),
    ]
    return CharacteristicSet(specific + common)
