"""
Module: revenue_engines.projection
Responsibility:
    Turn aggregation results and invoice drafts into the row/column views
    consumed by report screens and the accounting-import export.

Architecture position:
    Engines -- thin formatting layer over aggregation and invoicing.
    Zero I/O; renders nothing itself.

Invariants enforced:
    - Row totals, monthly totals and the grand total are all sums of the
      same aggregation cells, so every view reconciles.
    - The yearly P&L is built from a customer-mode aggregation only.
    - ``INVOICE_SHEET_COLUMNS`` order is a compatibility contract with
      the downstream import tool.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from revenue_kernel.domain.models import Expense, sum_amounts
from revenue_kernel.domain.values import ZERO
from revenue_engines.aggregation import MONTHS, AggregationMode, AggregationResult
from revenue_engines.invoicing import InvoiceDraft

DEFAULT_TOP_LIMIT = 10

# (field, header label) in import order. Do not reorder.
INVOICE_SHEET_COLUMNS: tuple[tuple[str, str], ...] = (
    ("customer_name", "MÜŞTERİ ÜNVANI *"),
    ("invoice_name", "FATURA İSMİ"),
    ("invoice_date", "FATURA TARİHİ"),
    ("currency", "DÖVİZ CİNSİ"),
    ("exchange_rate", "DÖVİZ KURU"),
    ("due_date", "VADE TARİHİ"),
    ("collection_equivalent", "TAHSİLAT TL KARŞILIĞI"),
    ("invoice_type", "FATURA TÜRÜ"),
    ("invoice_series", "FATURA SERİ"),
    ("invoice_number", "FATURA SIRA NO"),
    ("category", "KATEGORİ"),
    ("title", "HİZMET/ÜRÜN *"),
    ("description", "HİZMET/ÜRÜN AÇIKLAMASI"),
    ("warehouse", "ÇIKIŞ DEPOSU *"),
    ("quantity", "MİKTAR *"),
    ("unit", "BİRİM"),
    ("unit_price", "BİRİM FİYATI *"),
    ("discount", "İNDİRİM TUTARI"),
    ("vat_rate", "KDV ORANI *"),
    ("oiv_rate", "ÖİV ORANI"),
    ("accommodation_tax_rate", "KONAKLAMA VERGİSİ ORANI"),
)

_HEADER_FIELDS = frozenset(name for name, _ in INVOICE_SHEET_COLUMNS[:11])


@dataclass(frozen=True)
class ReportRow:
    """One entity's line in a yearly report table."""

    entity_id: str
    name: str
    monthly_totals: tuple[Decimal, ...]
    unpriced: bool = False
    total: Decimal = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "total", sum_amounts(self.monthly_totals))


@dataclass(frozen=True)
class MonthlyTotals:
    """Column totals for one month across a set of entities."""

    month: int
    material_sales: Decimal = ZERO
    monthly_fee: Decimal = ZERO
    per_visit_fee: Decimal = ZERO
    visit_count: int = 0
    total: Decimal = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "total", self.material_sales + self.monthly_fee + self.per_visit_fee
        )


@dataclass(frozen=True)
class ProfitAndLoss:
    """Yearly revenue against manually entered expenses, by month."""

    year: int
    monthly_revenue: tuple[Decimal, ...]
    monthly_expenses: tuple[Decimal, ...]

    @property
    def monthly_net(self) -> tuple[Decimal, ...]:
        return tuple(r - e for r, e in zip(self.monthly_revenue, self.monthly_expenses))

    @property
    def total_revenue(self) -> Decimal:
        return sum_amounts(self.monthly_revenue)

    @property
    def total_expenses(self) -> Decimal:
        return sum_amounts(self.monthly_expenses)

    @property
    def net_profit(self) -> Decimal:
        return self.total_revenue - self.total_expenses


# ============================================================================
# Aggregation views
# ============================================================================


def _row(result: AggregationResult, entity_id: str) -> ReportRow:
    return ReportRow(
        entity_id=entity_id,
        name=result.entity_names[entity_id],
        monthly_totals=tuple(c.total for c in result.cells_for(entity_id)),
        unpriced=entity_id in result.unpriced_entity_ids,
    )


def entity_rows(
    result: AggregationResult,
    *,
    include_zero: bool = False,
    search: str | None = None,
) -> tuple[ReportRow, ...]:
    """
    Table rows in snapshot order.

    Rows with a zero yearly total are hidden unless ``include_zero`` is
    set or a search term is given; a search term keeps rows whose name
    contains it (case-insensitive).
    """
    rows = [_row(result, eid) for eid in result.entity_ids]
    term = (search or "").strip().casefold()
    if term:
        return tuple(r for r in rows if term in r.name.casefold())
    if include_zero:
        return tuple(rows)
    return tuple(r for r in rows if r.total > 0)


def unpriced_rows(result: AggregationResult) -> tuple[ReportRow, ...]:
    """Entities with no usable pricing at any scope, whatever their total."""
    return tuple(
        _row(result, eid) for eid in result.entity_ids if eid in result.unpriced_entity_ids
    )


def monthly_totals(
    result: AggregationResult,
    entity_ids: Iterable[str] | None = None,
) -> tuple[MonthlyTotals, ...]:
    """Per-month column totals over the given entities (all by default)."""
    ids = tuple(result.entity_ids if entity_ids is None else entity_ids)
    totals: list[MonthlyTotals] = []
    for month in MONTHS:
        cells = [result.cell(eid, month) for eid in ids]
        totals.append(
            MonthlyTotals(
                month=month,
                material_sales=sum_amounts(c.material_sales for c in cells),
                monthly_fee=sum_amounts(c.monthly_fee for c in cells),
                per_visit_fee=sum_amounts(c.per_visit_fee for c in cells),
                visit_count=sum(c.visit_count for c in cells),
            )
        )
    return tuple(totals)


def grand_total(
    result: AggregationResult,
    entity_ids: Iterable[str] | None = None,
) -> Decimal:
    return sum_amounts(m.total for m in monthly_totals(result, entity_ids))


def top_entities(
    result: AggregationResult,
    limit: int = DEFAULT_TOP_LIMIT,
) -> tuple[ReportRow, ...]:
    """Highest-grossing entities with a positive total, for the bar chart."""
    rows = sorted(entity_rows(result), key=lambda r: r.total, reverse=True)
    return tuple(rows[:limit])


def visible_months(year: int, today: date) -> tuple[int, ...]:
    """
    Months that have started as of ``today``.

    Past years show all twelve, the current year shows up to the current
    month, future years show none.
    """
    if year < today.year:
        return MONTHS
    if year == today.year:
        return tuple(range(1, today.month + 1))
    return ()


def profit_and_loss(
    result: AggregationResult,
    expenses: Iterable[Expense],
) -> ProfitAndLoss:
    """
    Yearly P&L: customer-mode revenue minus expenses, per month.

    Raises:
        ValueError: if ``result`` was not aggregated in customer mode.
    """
    if result.mode is not AggregationMode.CUSTOMER:
        raise ValueError("profit_and_loss requires a customer-mode aggregation")

    revenue = tuple(m.total for m in monthly_totals(result))
    by_month = [ZERO] * 12
    for expense in expenses:
        by_month[expense.month - 1] += expense.amount

    return ProfitAndLoss(
        year=result.year,
        monthly_revenue=revenue,
        monthly_expenses=tuple(by_month),
    )


# ============================================================================
# Accounting-import sheet
# ============================================================================


def invoice_sheet_header() -> tuple[str, ...]:
    return tuple(label for _, label in INVOICE_SHEET_COLUMNS)


def invoice_sheet_rows(drafts: Sequence[InvoiceDraft]) -> tuple[tuple[Any, ...], ...]:
    """
    One row per line item in ``INVOICE_SHEET_COLUMNS`` order.

    The eleven invoice header cells (customer through category) are
    filled on the first line of each draft and left as None on
    continuation lines; drafts without lines are skipped. Optional
    header and tax cells the draft does not set stay None.
    """
    rows: list[tuple[Any, ...]] = []
    for draft in drafts:
        for index, line in enumerate(draft.line_items):
            values: list[Any] = []
            for name, _ in INVOICE_SHEET_COLUMNS:
                if name in _HEADER_FIELDS:
                    values.append(getattr(draft, name) if index == 0 else None)
                else:
                    values.append(getattr(line, name))
            rows.append(tuple(values))
    return tuple(rows)
