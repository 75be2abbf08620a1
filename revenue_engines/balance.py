"""
Module: revenue_engines.balance
Responsibility:
    Net each customer's unbilled billable amounts against the collections
    recorded for that customer, keeping the itemized events and receipts
    for audit drill-down.  Also owns the one-way admin acknowledgement of
    collection receipts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``balance == total_debt - total_collections``.
    - Only unbilled events contribute: visits not flagged invoiced and
      sales whose status is not ``invoiced`` or ``paid`` (configurable).
    - ``total_debt == sum(e.resolved_amount for e in contributing_events)``.
    - ``total_collections == sum(r.amount for r in contributing_receipts)``.
    - ``checked_collections + unchecked_collections == total_collections``.
    - Receipt acknowledgement only moves unchecked -> checked.

Failure modes:
    - UnknownCustomerError for events or receipts whose customer is not
      in the snapshot.
    - ReceiptCheckReversalError when un-checking a checked receipt.

Audit relevance:
    Scalars are computed from the very tuples that are returned, with
    exact Decimal sums, so the drill-down always reconciles to the
    headline figure.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from decimal import Decimal

from revenue_kernel.domain.models import (
    BillableEvent,
    CollectionReceipt,
    EventKind,
    SaleStatusFilter,
    sum_amounts,
)
from revenue_kernel.domain.snapshot import BillingSnapshot
from revenue_kernel.exceptions import ReceiptCheckReversalError
from revenue_kernel.logging_config import get_logger
from revenue_engines.tracer import traced_engine

logger = get_logger("engines.balance")


@dataclass(frozen=True)
class CustomerBalance:
    """
    Debt, collections and balance for one customer.

    Contract:
        All scalar fields are derived from ``contributing_events`` and
        ``contributing_receipts`` at construction and cannot be passed in.
    """

    customer_id: str
    contributing_events: tuple[BillableEvent, ...] = ()
    contributing_receipts: tuple[CollectionReceipt, ...] = ()
    total_debt: Decimal = field(init=False)
    total_collections: Decimal = field(init=False)
    balance: Decimal = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "contributing_events", tuple(self.contributing_events))
        object.__setattr__(self, "contributing_receipts", tuple(self.contributing_receipts))
        debt = sum_amounts(e.resolved_amount for e in self.contributing_events)
        collected = sum_amounts(r.amount for r in self.contributing_receipts)
        object.__setattr__(self, "total_debt", debt)
        object.__setattr__(self, "total_collections", collected)
        object.__setattr__(self, "balance", debt - collected)

    @property
    def checked_collections(self) -> Decimal:
        return sum_amounts(r.amount for r in self.contributing_receipts if r.checked_by_admin)

    @property
    def unchecked_collections(self) -> Decimal:
        return sum_amounts(
            r.amount for r in self.contributing_receipts if not r.checked_by_admin
        )


UNBILLED_SALE_STATUSES = SaleStatusFilter.excluding("invoiced", "paid")


def is_unbilled(event: BillableEvent, sale_statuses: SaleStatusFilter) -> bool:
    """Visits count until flagged invoiced; sales while their status is allowed."""
    if event.kind is EventKind.VISIT:
        return not event.is_invoiced
    return sale_statuses.allows(event.status)


def calculate_balance(
    customer_id: str,
    events: Iterable[BillableEvent],
    receipts: Iterable[CollectionReceipt],
    sale_statuses: SaleStatusFilter = UNBILLED_SALE_STATUSES,
) -> CustomerBalance:
    """
    Balance for a single customer.

    Events already invoiced or paid are left out of the debt; records of
    other customers are ignored.
    """
    return CustomerBalance(
        customer_id=customer_id,
        contributing_events=tuple(
            e for e in events
            if e.customer_id == customer_id and is_unbilled(e, sale_statuses)
        ),
        contributing_receipts=tuple(r for r in receipts if r.customer_id == customer_id),
    )


@traced_engine(
    "balance_calculator", "1.1",
    fingerprint_fields=("snapshot", "events", "receipts", "sale_statuses"),
)
def calculate_balances(
    snapshot: BillingSnapshot,
    events: Iterable[BillableEvent],
    receipts: Iterable[CollectionReceipt],
    sale_statuses: SaleStatusFilter = UNBILLED_SALE_STATUSES,
) -> tuple[CustomerBalance, ...]:
    """
    Balances for every customer in the snapshot.

    Args:
        sale_statuses: Sale statuses that still count as debt; defaults
            to everything except ``invoiced`` and ``paid``.

    Returns:
        One ``CustomerBalance`` per customer, highest balance first
        (ties broken by snapshot order).

    Raises:
        UnknownCustomerError / UnknownBranchError / BranchOwnershipError
        when an event or receipt points outside the snapshot.
    """
    by_customer_events: dict[str, list[BillableEvent]] = {c.id: [] for c in snapshot.customers}
    by_customer_receipts: dict[str, list[CollectionReceipt]] = {
        c.id: [] for c in snapshot.customers
    }
    billed = 0

    for event in events:
        snapshot.validate_reference(event.customer_id, event.branch_id, f"event {event.id}")
        if not is_unbilled(event, sale_statuses):
            billed += 1
            continue
        by_customer_events[event.customer_id].append(event)
    for receipt in receipts:
        snapshot.validate_reference(
            receipt.customer_id, receipt.branch_id, f"receipt {receipt.receipt_no}"
        )
        by_customer_receipts[receipt.customer_id].append(receipt)

    balances = [
        CustomerBalance(
            customer_id=c.id,
            contributing_events=tuple(by_customer_events[c.id]),
            contributing_receipts=tuple(by_customer_receipts[c.id]),
        )
        for c in snapshot.customers
    ]
    # stable sort: equal balances keep snapshot order
    balances.sort(key=lambda b: b.balance, reverse=True)

    logger.info("customer_balances_calculated", extra={
        "customer_count": len(balances),
        "billed_events_skipped": billed,
        "total_debt": str(sum_amounts(b.total_debt for b in balances)),
        "total_collections": str(sum_amounts(b.total_collections for b in balances)),
    })
    return tuple(balances)


# ============================================================================
# Receipt acknowledgement
# ============================================================================


def mark_receipt_checked(receipt: CollectionReceipt) -> CollectionReceipt:
    """Admin acknowledgement: unchecked -> checked. Idempotent."""
    if receipt.checked_by_admin:
        return receipt
    logger.info("receipt_checked_by_admin", extra={
        "receipt_id": receipt.id,
        "receipt_no": receipt.receipt_no,
        "amount": str(receipt.amount),
    })
    return replace(receipt, checked_by_admin=True)


def set_receipt_checked(receipt: CollectionReceipt, checked: bool) -> CollectionReceipt:
    """
    Apply a requested checkbox state to a receipt.

    Raises:
        ReceiptCheckReversalError: when asked to un-check a checked receipt.
    """
    if checked:
        return mark_receipt_checked(receipt)
    if receipt.checked_by_admin:
        logger.warning("receipt_check_reversal_rejected", extra={
            "receipt_id": receipt.id,
            "receipt_no": receipt.receipt_no,
        })
        raise ReceiptCheckReversalError(receipt.id, receipt.receipt_no)
    return receipt
