"""
Models -- Immutable records handed to, and produced by, the billing engines.

Responsibility:
    Typed, frozen shapes for the read-only collaborator data (customers,
    branches, pricing rules, visits, material sales, collection receipts,
    manual expenses) and for the normalized ``BillableEvent`` that every
    downstream engine consumes.

Architecture position:
    Kernel > Domain -- pure data, zero I/O. No engine logic lives here;
    pricing resolution belongs to ``revenue_engines.pricing``.

Invariants enforced:
    - Every amount is a Decimal (coerced at construction).
    - Prices, quantities and receipt amounts are non-negative.
    - A ``PricingRule`` keeps "not set" (None) distinct from zero.
    - A ``BillableEvent`` is frozen once produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable

from revenue_kernel.domain.values import (
    ZERO,
    BillingPeriod,
    optional_decimal,
    to_decimal,
)

VISIT_COMPLETED = "completed"


def _non_negative(obj: object, attr: str, *, optional: bool = False) -> None:
    raw = getattr(obj, attr)
    value = optional_decimal(raw, attr) if optional else to_decimal(raw, attr)
    if value is not None and value < 0:
        raise ValueError(f"{attr} must be non-negative")
    object.__setattr__(obj, attr, value)


# ============================================================================
# Billing scopes
# ============================================================================


@dataclass(frozen=True)
class Customer:
    """Root billing scope."""

    id: str
    display_name: str


@dataclass(frozen=True)
class Branch:
    """Child billing scope; every branch belongs to exactly one customer."""

    id: str
    customer_id: str
    display_name: str


@dataclass(frozen=True)
class PricingRule:
    """
    Pricing attached to either one customer or one branch.

    A field left as None means "not set", which is distinct from an
    explicit zero. For resolution both count as "no price"; only a value
    greater than zero is a usable price.
    """

    monthly_price: Decimal | None = None
    per_visit_price: Decimal | None = None

    def __post_init__(self) -> None:
        _non_negative(self, "monthly_price", optional=True)
        _non_negative(self, "per_visit_price", optional=True)

    @property
    def has_monthly_price(self) -> bool:
        """True if a standing monthly price greater than zero is set."""
        return self.monthly_price is not None and self.monthly_price > 0

    @property
    def has_per_visit_price(self) -> bool:
        """True if a per-visit price greater than zero is set."""
        return self.per_visit_price is not None and self.per_visit_price > 0

    @property
    def is_empty(self) -> bool:
        return not (self.has_monthly_price or self.has_per_visit_price)


# ============================================================================
# Collaborator records
# ============================================================================


@dataclass(frozen=True)
class Visit:
    """A field service visit as fetched from the scheduling collaborator."""

    id: str
    customer_id: str
    occurred_at: date | datetime
    status: str
    branch_id: str | None = None
    report_number: str | None = None
    is_invoiced: bool = False

    @property
    def is_completed(self) -> bool:
        return self.status == VISIT_COMPLETED


@dataclass(frozen=True)
class SaleLine:
    """One product line of a material sale."""

    product: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: Decimal | None = None
    product_id: str | None = None

    def __post_init__(self) -> None:
        _non_negative(self, "quantity")
        _non_negative(self, "unit_price")
        _non_negative(self, "vat_rate", optional=True)

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class MaterialSale:
    """A paid-material sale; ``total_amount`` is already resolved upstream."""

    id: str
    customer_id: str
    occurred_at: date | datetime
    status: str
    total_amount: Decimal
    branch_id: str | None = None
    line_items: tuple[SaleLine, ...] = ()

    def __post_init__(self) -> None:
        _non_negative(self, "total_amount")
        object.__setattr__(self, "line_items", tuple(self.line_items))


@dataclass(frozen=True)
class CollectionReceipt:
    """
    Money collected from a customer.

    ``checked_by_admin`` is a one-way acknowledgement: see
    ``revenue_engines.balance.mark_receipt_checked``.
    """

    id: str
    customer_id: str
    amount: Decimal
    received_at: date | datetime
    receipt_no: str
    branch_id: str | None = None
    checked_by_admin: bool = False

    def __post_init__(self) -> None:
        _non_negative(self, "amount")


@dataclass(frozen=True)
class Expense:
    """A manually entered operating expense for the yearly P&L view."""

    id: str
    name: str
    amount: Decimal
    month: int

    def __post_init__(self) -> None:
        _non_negative(self, "amount")
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")


# ============================================================================
# Normalized billable event
# ============================================================================


class EventKind(str, Enum):
    """Source of a billable event."""

    VISIT = "visit"
    MATERIAL_SALE = "material_sale"


@dataclass(frozen=True)
class BillableEvent:
    """
    A completed visit or an eligible material sale, with its worth resolved.

    For visits ``resolved_amount`` is the per-visit fee only; standing
    monthly fees are never attached to individual events. For sales it is
    the sale's ``total_amount`` and ``lines`` carries the product lines.
    ``is_invoiced`` mirrors the source visit's flag; sales track billing
    through ``status`` instead.
    """

    id: str
    kind: EventKind
    customer_id: str
    occurred_at: date | datetime
    resolved_amount: Decimal
    source_id: str
    status: str
    branch_id: str | None = None
    report_ref: str | None = None
    lines: tuple[SaleLine, ...] = field(default=())
    is_invoiced: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "resolved_amount", to_decimal(self.resolved_amount, "resolved_amount")
        )
        object.__setattr__(self, "kind", EventKind(self.kind))
        object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def period(self) -> BillingPeriod:
        return BillingPeriod.of(self.occurred_at)

    @property
    def fingerprint_token(self) -> str:
        """Compact identity hashed into engine trace fingerprints."""
        return "|".join((
            self.id,
            self.customer_id,
            self.branch_id or "",
            self.occurred_at.isoformat(),
            str(self.resolved_amount),
            self.status,
            "invoiced" if self.is_invoiced else "",
        ))


def sum_amounts(values: Iterable[Decimal]) -> Decimal:
    """Exact Decimal sum; an empty iterable sums to zero."""
    return sum(values, ZERO)


# ============================================================================
# Status predicate
# ============================================================================


@dataclass(frozen=True)
class SaleStatusFilter:
    """
    Caller-supplied predicate deciding which material-sale statuses bill.

    ``include`` of None means "every status"; ``exclude`` is always
    applied afterwards. Reports differ: the unbilled view excludes
    ``invoiced`` and ``paid`` while invoice export requires ``approved``.
    """

    include: frozenset[str] | None = None
    exclude: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.include is not None:
            object.__setattr__(self, "include", frozenset(self.include))
        object.__setattr__(self, "exclude", frozenset(self.exclude))

    @classmethod
    def any_status(cls) -> SaleStatusFilter:
        return cls()

    @classmethod
    def only(cls, *statuses: str) -> SaleStatusFilter:
        return cls(include=frozenset(statuses))

    @classmethod
    def excluding(cls, *statuses: str) -> SaleStatusFilter:
        return cls(exclude=frozenset(statuses))

    def allows(self, status: str) -> bool:
        if self.include is not None and status not in self.include:
            return False
        return status not in self.exclude
