"""
Pytest fixtures for the revenue engine test suite.

Provides:
- Structured logging configured for the whole session, plus a
  ``captured_logs`` fixture returning parsed JSON records
- The reference scenario: customer C with branches B1 (monthly contract)
  and B2 (no pricing), customer per-visit rate 50, March activity
- Small record builders exposed as fixtures
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from revenue_kernel.domain import (
    BillingSnapshot,
    Branch,
    CollectionReceipt,
    Customer,
    MaterialSale,
    PricingRule,
    SaleLine,
    SaleStatusFilter,
    Visit,
)
from revenue_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from revenue_engines.events import collect_events

SCENARIO_YEAR = 2024
MARCH = 3


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture revenue_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            aggregate_period(...)
            logs = captured_logs()
            assert any(r["message"] == "period_aggregation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("revenue_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Reference scenario
# =============================================================================


@pytest.fixture
def scenario_snapshot() -> BillingSnapshot:
    """C has B1 {monthly 500, per-visit 0} and B2 {no pricing}; C {per-visit 50}."""
    return BillingSnapshot.build(
        customers=[Customer("C", "Customer C")],
        branches=[
            Branch("B1", "C", "Branch One"),
            Branch("B2", "C", "Branch Two"),
        ],
        customer_pricing={"C": PricingRule(per_visit_price=Decimal("50"))},
        branch_pricing={
            "B1": PricingRule(monthly_price=Decimal("500"), per_visit_price=Decimal("0")),
        },
        version="v1",
    )


@pytest.fixture
def scenario_visits() -> list[Visit]:
    """March: three completed visits at B1, two at B2."""
    visits = [
        Visit(f"v-b1-{i}", "C", date(SCENARIO_YEAR, MARCH, 3 + i), "completed",
              branch_id="B1", report_number=f"R-10{i}")
        for i in range(3)
    ]
    visits += [
        Visit(f"v-b2-{i}", "C", date(SCENARIO_YEAR, MARCH, 10 + i), "completed",
              branch_id="B2", report_number=f"R-20{i}")
        for i in range(2)
    ]
    return visits


@pytest.fixture
def scenario_sales() -> list[MaterialSale]:
    """March: one material sale of 200 at B2."""
    return [
        MaterialSale(
            id="s-1",
            customer_id="C",
            branch_id="B2",
            occurred_at=date(SCENARIO_YEAR, MARCH, 15),
            status="approved",
            total_amount=Decimal("200"),
            line_items=(
                SaleLine("Bait Station", Decimal("2"), Decimal("75")),
                SaleLine("Glue Trap", Decimal("5"), Decimal("10"), vat_rate=Decimal("10")),
            ),
        )
    ]


@pytest.fixture
def scenario_events(scenario_snapshot, scenario_visits, scenario_sales):
    return collect_events(
        scenario_snapshot,
        scenario_visits,
        scenario_sales,
        SaleStatusFilter.any_status(),
    )


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_receipt():
    """Factory for collection receipts."""

    def _make(
        receipt_id: str,
        amount: str,
        customer_id: str = "C",
        checked: bool = False,
        received_at: date = date(SCENARIO_YEAR, 4, 1),
    ) -> CollectionReceipt:
        return CollectionReceipt(
            id=receipt_id,
            customer_id=customer_id,
            amount=Decimal(amount),
            received_at=received_at,
            receipt_no=f"NO-{receipt_id}",
            checked_by_admin=checked,
        )

    return _make
