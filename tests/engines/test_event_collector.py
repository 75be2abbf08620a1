"""
Tests for revenue_engines.events (EventCollector).
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from revenue_kernel.domain import EventKind, MaterialSale, SaleStatusFilter, Visit
from revenue_kernel.exceptions import (
    BranchOwnershipError,
    UnknownBranchError,
    UnknownCustomerError,
)
from revenue_engines.events import collect_events


def sale(sale_id: str, status: str, amount: str = "100", branch_id: str | None = "B2"):
    return MaterialSale(
        id=sale_id,
        customer_id="C",
        branch_id=branch_id,
        occurred_at=date(2024, 5, 1),
        status=status,
        total_amount=Decimal(amount),
    )


class TestVisitEvents:
    """Visits: only completed ones, priced through the resolver."""

    def test_scenario_visit_amounts(self, scenario_events):
        visits = [e for e in scenario_events if e.kind is EventKind.VISIT]
        assert len(visits) == 5
        b1 = [e.resolved_amount for e in visits if e.branch_id == "B1"]
        b2 = [e.resolved_amount for e in visits if e.branch_id == "B2"]
        assert b1 == [Decimal("0")] * 3
        assert b2 == [Decimal("50")] * 2

    def test_non_completed_visits_skipped(self, scenario_snapshot):
        visits = [
            Visit("v1", "C", date(2024, 1, 5), "planned", branch_id="B2"),
            Visit("v2", "C", date(2024, 1, 6), "cancelled", branch_id="B2"),
            Visit("v3", "C", date(2024, 1, 7), "completed", branch_id="B2"),
        ]
        events = collect_events(scenario_snapshot, visits, [], SaleStatusFilter.any_status())
        assert [e.source_id for e in events] == ["v3"]

    def test_invoiced_visits_excluded_on_request(self, scenario_snapshot):
        visits = [
            Visit("v1", "C", date(2024, 1, 5), "completed", branch_id="B2", is_invoiced=True),
            Visit("v2", "C", date(2024, 1, 6), "completed", branch_id="B2"),
        ]
        all_events = collect_events(scenario_snapshot, visits, [], SaleStatusFilter())
        unbilled = collect_events(
            scenario_snapshot, visits, [], SaleStatusFilter(), exclude_invoiced_visits=True
        )
        assert len(all_events) == 2
        assert [e.source_id for e in unbilled] == ["v2"]

    def test_report_number_carried(self, scenario_events):
        refs = {e.report_ref for e in scenario_events if e.kind is EventKind.VISIT}
        assert "R-100" in refs

    def test_visit_events_carry_no_monthly_fee(self, scenario_events):
        # B1 has a 500 monthly contract; none of it lands on a visit event.
        b1 = [e for e in scenario_events if e.branch_id == "B1"]
        assert sum(e.resolved_amount for e in b1) == Decimal("0")


class TestSaleEvents:
    """Material sales: status filter, total_amount as resolved amount."""

    def test_sale_amount_is_total(self, scenario_events):
        sales = [e for e in scenario_events if e.kind is EventKind.MATERIAL_SALE]
        assert len(sales) == 1
        assert sales[0].resolved_amount == Decimal("200")
        assert len(sales[0].lines) == 2

    def test_exclusion_filter(self, scenario_snapshot):
        sales = [sale("s1", "pending"), sale("s2", "invoiced"), sale("s3", "paid")]
        events = collect_events(
            scenario_snapshot, [], sales, SaleStatusFilter.excluding("invoiced", "paid")
        )
        assert [e.source_id for e in events] == ["s1"]

    def test_inclusion_filter(self, scenario_snapshot):
        sales = [sale("s1", "pending"), sale("s2", "approved")]
        events = collect_events(scenario_snapshot, [], sales, SaleStatusFilter.only("approved"))
        assert [e.source_id for e in events] == ["s2"]

    def test_sale_without_branch(self, scenario_snapshot):
        events = collect_events(
            scenario_snapshot, [], [sale("s1", "approved", branch_id=None)], SaleStatusFilter()
        )
        assert events[0].branch_id is None


class TestValidation:
    """Structurally invalid references fail fast."""

    def test_unknown_customer(self, scenario_snapshot):
        visit = Visit("v1", "ghost", date(2024, 1, 5), "completed")
        with pytest.raises(UnknownCustomerError) as exc_info:
            collect_events(scenario_snapshot, [visit], [], SaleStatusFilter())
        assert exc_info.value.customer_id == "ghost"
        assert exc_info.value.code == "UNKNOWN_CUSTOMER"

    def test_unknown_branch(self, scenario_snapshot):
        with pytest.raises(UnknownBranchError):
            collect_events(
                scenario_snapshot, [], [sale("s1", "approved", branch_id="B9")], SaleStatusFilter()
            )

    def test_ineligible_records_are_still_validated(self, scenario_snapshot):
        visit = Visit("v1", "C", date(2024, 1, 5), "planned", branch_id="B9")
        with pytest.raises(UnknownBranchError):
            collect_events(scenario_snapshot, [visit], [], SaleStatusFilter())

    def test_branch_of_other_customer(self, scenario_snapshot):
        from revenue_kernel.domain import BillingSnapshot, Branch, Customer

        snapshot = BillingSnapshot.build(
            customers=[Customer("C", "C"), Customer("D", "D")],
            branches=[Branch("B1", "C", "B1"), Branch("BD", "D", "BD")],
        )
        visit = Visit("v1", "C", date(2024, 1, 5), "completed", branch_id="BD")
        with pytest.raises(BranchOwnershipError) as exc_info:
            collect_events(snapshot, [visit], [], SaleStatusFilter())
        assert exc_info.value.owner_customer_id == "D"


class TestOrdering:
    """Output order is deterministic."""

    def test_sorted_by_date_then_kind(self, scenario_snapshot):
        visits = [
            Visit("v2", "C", datetime(2024, 2, 1, 15, 0), "completed", branch_id="B2"),
            Visit("v1", "C", date(2024, 1, 1), "completed", branch_id="B2"),
        ]
        sales = [sale("s1", "approved")]
        events = collect_events(scenario_snapshot, visits, sales, SaleStatusFilter())
        assert [e.id for e in events] == ["visit:v1", "visit:v2", "sale:s1"]

    def test_same_input_same_output(self, scenario_snapshot, scenario_visits, scenario_sales):
        first = collect_events(
            scenario_snapshot, scenario_visits, scenario_sales, SaleStatusFilter()
        )
        second = collect_events(
            scenario_snapshot, list(reversed(scenario_visits)), scenario_sales, SaleStatusFilter()
        )
        assert first == second
