"""
Domain layer -- immutable records, value objects and the billing snapshot.

Pure data with zero I/O. Engines in ``revenue_engines`` consume these
types; nothing here imports from the engines or from configuration.
"""

from revenue_kernel.domain.models import (
    VISIT_COMPLETED,
    BillableEvent,
    Branch,
    CollectionReceipt,
    Customer,
    EventKind,
    Expense,
    MaterialSale,
    PricingRule,
    SaleLine,
    SaleStatusFilter,
    Visit,
    sum_amounts,
)
from revenue_kernel.domain.snapshot import BillingSnapshot
from revenue_kernel.domain.values import (
    ZERO,
    BillingPeriod,
    as_date,
    optional_decimal,
    to_decimal,
)

__all__ = [
    "VISIT_COMPLETED",
    "ZERO",
    "BillableEvent",
    "BillingPeriod",
    "BillingSnapshot",
    "Branch",
    "CollectionReceipt",
    "Customer",
    "EventKind",
    "Expense",
    "MaterialSale",
    "PricingRule",
    "SaleLine",
    "SaleStatusFilter",
    "Visit",
    "as_date",
    "optional_decimal",
    "sum_amounts",
    "to_decimal",
]
