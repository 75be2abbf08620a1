"""
Module: revenue_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    billing engines.  This is the canonical import surface for report
    and export layers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import revenue_kernel (and sibling engine modules).
    MUST NOT import revenue_config.

Invariants enforced:
    - Purity: engines never read the clock, files or the network. Dates
      such as "today" are passed in by the caller.
    - Decimal-only arithmetic for every monetary amount.
    - Determinism: identical inputs always produce identical outputs.

Dependency order:
    pricing -> events -> aggregation -> {invoicing, balance} -> projection

Usage:
    from revenue_engines import (
        collect_events, aggregate_period, group_invoices, calculate_balances,
    )
"""

from revenue_engines.aggregation import (
    AggregationCell,
    AggregationMode,
    AggregationResult,
    aggregate_period,
)
from revenue_engines.balance import (
    UNBILLED_SALE_STATUSES,
    CustomerBalance,
    calculate_balance,
    calculate_balances,
    mark_receipt_checked,
    set_receipt_checked,
)
from revenue_engines.events import collect_events, sale_to_event, visit_to_event
from revenue_engines.invoicing import (
    InvoiceDraft,
    InvoiceLineItem,
    InvoiceSettings,
    LineKind,
    combine_by_customer,
    group_invoices,
    last_weekday_of_month,
)
from revenue_engines.pricing import (
    PricingBook,
    PricingScope,
    ResolvedPricing,
    StandingFee,
    branch_monthly_fee,
    customer_monthly_fee,
    has_monthly_contract,
    resolve_per_visit_fee,
    resolve_pricing,
)
from revenue_engines.projection import (
    INVOICE_SHEET_COLUMNS,
    MonthlyTotals,
    ProfitAndLoss,
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
from revenue_engines.tracer import traced_engine

__all__ = [
    # Pricing
    "PricingBook",
    "PricingScope",
    "ResolvedPricing",
    "StandingFee",
    "branch_monthly_fee",
    "customer_monthly_fee",
    "has_monthly_contract",
    "resolve_per_visit_fee",
    "resolve_pricing",
    # Events
    "collect_events",
    "sale_to_event",
    "visit_to_event",
    # Aggregation
    "AggregationCell",
    "AggregationMode",
    "AggregationResult",
    "aggregate_period",
    # Invoicing
    "InvoiceDraft",
    "InvoiceLineItem",
    "InvoiceSettings",
    "LineKind",
    "combine_by_customer",
    "group_invoices",
    "last_weekday_of_month",
    # Balance
    "UNBILLED_SALE_STATUSES",
    "CustomerBalance",
    "calculate_balance",
    "calculate_balances",
    "mark_receipt_checked",
    "set_receipt_checked",
    # Projection
    "INVOICE_SHEET_COLUMNS",
    "MonthlyTotals",
    "ProfitAndLoss",
    "ReportRow",
    "entity_rows",
    "grand_total",
    "invoice_sheet_header",
    "invoice_sheet_rows",
    "monthly_totals",
    "profit_and_loss",
    "top_entities",
    "unpriced_rows",
    "visible_months",
    # Tracing
    "traced_engine",
]
