"""
Tests for the agreement/contract aggregator.

Summaries are derived from FundingItems, so these run without a database;
ORM-shaped inputs are built with SimpleNamespace.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from app.funding.aggregator import (
    AllocationPolicy,
    FundingItem,
    box_utilization,
    item_from_container,
    nominal_allocation,
    remaining_balance,
    summarize,
    summarize_agreement,
    summarize_contract,
    total_value,
)
from app.funding.characteristics import BucketCategory, default_characteristics

D = Decimal


def item(allocated="0", category=BucketCategory.DRAW_DOWN, balance="0", spent="0", **kwargs):
    return FundingItem(
        id=kwargs.pop("id", f"item-{allocated}"),
        name="Box",
        category=category,
        allocated_amount=D(allocated),
        current_balance=D(balance),
        spent_amount=D(spent),
        **kwargs,
    )


def container(id, category="draw_down", allocated="0", balance="0", spent="0", status="active", template_id=None):
    return SimpleNamespace(
        id=id,
        name=id,
        category=category,
        allocated_amount=D(allocated),
        credit_limit=D(allocated),
        current_balance=D(balance),
        spent_amount=D(spent),
        characteristics=default_characteristics(category).to_json(),
        status=status,
        template_id=template_id,
    )


# =============================================================================
# Totals
# =============================================================================

class TestTotalValue:

    def test_sum_of_buckets(self):
        items = [item("100"), item("250"), item("0")]
        assert total_value(AllocationPolicy.SUM_OF_BUCKETS, items) == D("350")

    def test_fixed_allocation_ignores_items(self):
        items = [item("100"), item("250")]
        assert total_value("fixed_allocation", items, D("5000")) == D("5000")

    def test_fixed_allocation_without_value(self):
        assert total_value("fixed_allocation", [item("100")], None) == D("0")

    def test_empty(self):
        assert total_value("sum_of_buckets", []) == D("0")


class TestNominalAllocation:
    """Custom amount, then allocation, then the template's amounts."""

    def test_custom_amount_wins(self):
        assert nominal_allocation(item("100", custom_amount=D("40"))) == D("40")

    def test_falls_back_to_template_starting_amount(self):
        assert nominal_allocation(item("0", template_starting_amount=D("700"))) == D("700")

    def test_falls_back_to_template_credit_limit(self):
        assert nominal_allocation(item("0", template_credit_limit=D("900"))) == D("900")

    def test_nothing_set(self):
        assert nominal_allocation(item("0")) == D("0")


class TestRemainingBalance:

    def test_formula_across_categories(self):
        items = [
            item("1000", spent="300"),
            item("0", category=BucketCategory.FILL_UP, balance="200"),
            item("0", category=BucketCategory.HYBRID, balance="50"),
        ]
        # 1000 - 300 - 200 + 50
        assert remaining_balance(items) == D("550")


class TestBoxUtilization:

    @pytest.mark.parametrize("allocated,spent,expected", [
        ("1000", "750", 75),
        ("3", "1", 33),
        ("3", "2", 67),
        ("0", "10", 0),
    ])
    def test_rounded_percentage(self, allocated, spent, expected):
        assert box_utilization(item(allocated, spent=spent)) == expected


class TestSummarize:

    def test_counts_per_category(self):
        summary = summarize("sum_of_buckets", [
            item("100", id="a"),
            item("200", id="b", category=BucketCategory.FILL_UP),
        ])
        assert summary.item_count == 2
        assert summary.counts == {"draw_down": 1, "fill_up": 1, "hybrid": 0}
        assert summary.total_allocated == D("300")


# =============================================================================
# ORM builders
# =============================================================================

class TestSummarizeContract:

    def test_closed_boxes_still_counted(self):
        contract = SimpleNamespace(
            allocation_policy="sum_of_buckets",
            fixed_total_value=None,
            boxes=[
                container("box-1", allocated="1000", balance="250", spent="750"),
                container("box-2", allocated="400", status="closed"),
            ],
        )
        summary = summarize_contract(contract)
        assert summary.total_value == D("1400")
        assert summary.item_count == 2
        assert summary.remaining_balance == D("650")
        assert summary.utilization == {"box-1": D("75.00"), "box-2": D("100.00")}


class TestSummarizeAgreement:

    def test_uses_link_custom_amounts_and_templates(self):
        buckets = {
            "b1": container("b1", allocated="100"),
            "b2": container("b2", allocated="0", template_id="t1"),
        }
        templates = {"t1": SimpleNamespace(starting_amount=D("250"), credit_limit=None)}
        agreement = SimpleNamespace(
            allocation_policy="sum_of_buckets",
            fixed_total_value=None,
            buckets=[
                SimpleNamespace(bucket_id="b1", custom_amount=None),
                SimpleNamespace(bucket_id="b2", custom_amount=None),
                SimpleNamespace(bucket_id="missing", custom_amount=D("999")),
            ],
        )
        assert summarize_agreement(agreement, buckets, templates).total_value == D("350")

    def test_item_from_container(self):
        built = item_from_container(container("b1", allocated="1000", balance="250"))
        assert built.category == BucketCategory.DRAW_DOWN
        assert built.utilization == D("75.00")
