"""
Tests for revenue_engines.projection (ReportProjector).
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from revenue_kernel.domain import BillingSnapshot, Customer, Expense, PricingRule
from revenue_engines.aggregation import MONTHS, aggregate_period
from revenue_engines.invoicing import group_invoices
from revenue_engines.projection import (
    INVOICE_SHEET_COLUMNS,
    ReportRow,
    entity_rows,
    grand_total,
    invoice_sheet_header,
    invoice_sheet_rows,
    monthly_totals,
    profit_and_loss,
    top_entities,
    unpriced_rows,
    visible_months,
)


@pytest.fixture
def branch_result(scenario_snapshot, scenario_events):
    return aggregate_period(scenario_snapshot, scenario_events, year=2024, mode="branch")


@pytest.fixture
def customer_result(scenario_snapshot, scenario_events):
    return aggregate_period(scenario_snapshot, scenario_events, year=2024, mode="customer")


@pytest.fixture
def sparse_result():
    snapshot = BillingSnapshot.build(
        customers=[
            Customer("A", "Acme Foods"),
            Customer("Z", "Zero Ltd"),
            Customer("N", "No Price"),
        ],
        customer_pricing={
            "A": PricingRule(monthly_price=Decimal("100")),
            "Z": PricingRule(per_visit_price=Decimal("30")),
        },
    )
    return aggregate_period(snapshot, [], year=2024, mode="customer")


# ============================================================================
# Table rows
# ============================================================================


class TestEntityRows:
    """Per-entity rows for the yearly tables."""

    def test_rows_reconcile_with_cells(self, branch_result):
        rows = entity_rows(branch_result)
        assert [r.entity_id for r in rows] == ["B1", "B2"]
        b1, b2 = rows
        assert b1.total == Decimal("6000")
        assert b2.monthly_totals[2] == Decimal("300")
        assert b2.total == Decimal("300")

    def test_zero_rows_hidden_by_default(self, sparse_result):
        assert [r.entity_id for r in entity_rows(sparse_result)] == ["A"]
        assert len(entity_rows(sparse_result, include_zero=True)) == 3

    def test_search_keeps_zero_rows(self, sparse_result):
        rows = entity_rows(sparse_result, search="  zero ")
        assert [r.name for r in rows] == ["Zero Ltd"]

    def test_search_is_case_insensitive(self, branch_result):
        assert [r.entity_id for r in entity_rows(branch_result, search="TWO")] == ["B2"]

    def test_unpriced_flag(self, sparse_result):
        rows = unpriced_rows(sparse_result)
        assert [r.entity_id for r in rows] == ["N"]
        assert rows[0].unpriced
        assert rows[0].total == Decimal("0")

    def test_row_total_derived(self):
        row = ReportRow("X", "X", (Decimal("1"), Decimal("2")))
        assert row.total == Decimal("3")


class TestTotals:
    """Column and grand totals."""

    def test_monthly_totals(self, branch_result):
        march = monthly_totals(branch_result)[2]
        assert march.month == 3
        assert march.monthly_fee == Decimal("500")
        assert march.per_visit_fee == Decimal("100")
        assert march.material_sales == Decimal("200")
        assert march.visit_count == 5
        assert march.total == Decimal("800")

    def test_grand_total_matches_result(self, branch_result):
        assert grand_total(branch_result) == branch_result.grand_total()
        assert grand_total(branch_result) == Decimal("6300")

    def test_subset_of_entities(self, branch_result):
        assert grand_total(branch_result, ["B2"]) == Decimal("300")

    def test_branch_and_customer_views_agree_here(self, branch_result, customer_result):
        # every branch of C is priced on its own, so fallback and rollup coincide
        assert grand_total(branch_result) == grand_total(customer_result)


class TestTopEntities:
    """Bar chart source."""

    def test_order_and_limit(self, branch_result):
        assert [r.entity_id for r in top_entities(branch_result)] == ["B1", "B2"]
        assert [r.entity_id for r in top_entities(branch_result, limit=1)] == ["B1"]

    def test_zero_entities_excluded(self, sparse_result):
        assert [r.entity_id for r in top_entities(sparse_result)] == ["A"]


class TestVisibleMonths:
    """Months shown for a selected year."""

    def test_past_year(self):
        assert visible_months(2023, date(2024, 5, 10)) == MONTHS

    def test_current_year(self):
        assert visible_months(2024, date(2024, 5, 10)) == (1, 2, 3, 4, 5)

    def test_future_year(self):
        assert visible_months(2025, date(2024, 5, 10)) == ()


class TestProfitAndLoss:
    """Yearly P&L from customer-mode revenue and manual expenses."""

    def test_monthly_net(self, customer_result):
        expenses = [
            Expense("x1", "Fuel", Decimal("120"), 3),
            Expense("x2", "Chemicals", Decimal("80"), 3),
            Expense("x3", "Rent", Decimal("600"), 7),
        ]
        pnl = profit_and_loss(customer_result, expenses)
        assert pnl.monthly_revenue[2] == Decimal("800")
        assert pnl.monthly_expenses[2] == Decimal("200")
        assert pnl.monthly_net[2] == Decimal("600")
        assert pnl.monthly_net[6] == Decimal("-100")
        assert pnl.total_revenue == Decimal("6300")
        assert pnl.total_expenses == Decimal("800")
        assert pnl.net_profit == Decimal("5500")

    def test_requires_customer_mode(self, branch_result):
        with pytest.raises(ValueError, match="customer-mode"):
            profit_and_loss(branch_result, [])


# ============================================================================
# Accounting-import sheet
# ============================================================================


class TestInvoiceSheet:
    """Row layout for the accounting import."""

    def test_header_order(self):
        assert invoice_sheet_header() == (
            "MÜŞTERİ ÜNVANI *",
            "FATURA İSMİ",
            "FATURA TARİHİ",
            "DÖVİZ CİNSİ",
            "DÖVİZ KURU",
            "VADE TARİHİ",
            "TAHSİLAT TL KARŞILIĞI",
            "FATURA TÜRÜ",
            "FATURA SERİ",
            "FATURA SIRA NO",
            "KATEGORİ",
            "HİZMET/ÜRÜN *",
            "HİZMET/ÜRÜN AÇIKLAMASI",
            "ÇIKIŞ DEPOSU *",
            "MİKTAR *",
            "BİRİM",
            "BİRİM FİYATI *",
            "İNDİRİM TUTARI",
            "KDV ORANI *",
            "ÖİV ORANI",
            "KONAKLAMA VERGİSİ ORANI",
        )
        assert len(INVOICE_SHEET_COLUMNS) == 21

    def test_rows(self, scenario_snapshot, scenario_events):
        drafts = group_invoices(scenario_snapshot, scenario_events)
        rows = invoice_sheet_rows(drafts)
        assert len(rows) == 5

        first_b2 = rows[2]
        assert first_b2[:11] == (
            "Customer C",
            "Branch Two MART Zararlı Mücadelesi",
            date(2024, 3, 29),
            None, None, None, None, None, None, None,
            "HİZMET",
        )
        assert first_b2[11:] == (
            "Zararlı Mücadelesi",
            "R-200, R-201",
            "Ana Depo",
            Decimal("2"),
            "Adet",
            Decimal("50"),
            Decimal("0"),
            Decimal("20"),
            None,
            None,
        )

    def test_standing_fee_row(self, scenario_snapshot, scenario_events):
        rows = invoice_sheet_rows(group_invoices(scenario_snapshot, scenario_events))
        fee = rows[1]
        assert fee[:11] == (None,) * 11
        assert fee[12] == "Branch One MART AYLIK SABİT ÜCRET"
        assert (fee[14], fee[16]) == (Decimal("1"), Decimal("500"))

    def test_filled_header_fields_exported(self, scenario_snapshot, scenario_events):
        draft = replace(
            group_invoices(scenario_snapshot, scenario_events)[0],
            currency="TRY",
            invoice_series="A",
            invoice_number="000123",
        )
        row = invoice_sheet_rows([draft])[0]
        assert (row[3], row[8], row[9]) == ("TRY", "A", "000123")

    def test_continuation_rows_blank_header(self, scenario_snapshot, scenario_events):
        rows = invoice_sheet_rows(group_invoices(scenario_snapshot, scenario_events))
        assert rows[3][:11] == (None,) * 11
        assert rows[3][11] == "Bait Station"
