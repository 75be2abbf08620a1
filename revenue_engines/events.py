"""
Module: revenue_engines.events
Responsibility:
    Normalize the two billable sources -- completed visits and eligible
    material sales -- into a single ``BillableEvent`` shape.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on revenue_engines.pricing for visit amounts.

Invariants enforced:
    - Only visits with status ``completed`` produce events.
    - Only sales whose status passes the caller's ``SaleStatusFilter``
      produce events.
    - Visit events carry the per-visit fee only; standing monthly fees
      are added per period by the aggregator, never per event.
    - Sale events carry the sale's own ``total_amount``; pricing rules
      are not consulted for sales.
    - Output order is deterministic for identical inputs.

Failure modes:
    - UnknownCustomerError / UnknownBranchError / BranchOwnershipError
      when any input record (eligible or not) points outside the
      snapshot. This is a caller error and is never absorbed.
"""

from __future__ import annotations

from collections.abc import Iterable

from revenue_kernel.domain.models import (
    BillableEvent,
    EventKind,
    MaterialSale,
    SaleStatusFilter,
    Visit,
)
from revenue_kernel.domain.snapshot import BillingSnapshot
from revenue_kernel.domain.values import as_date
from revenue_kernel.logging_config import get_logger
from revenue_engines.pricing import PricingBook
from revenue_engines.tracer import traced_engine

logger = get_logger("engines.events")

VISIT_EVENT_PREFIX = "visit"
SALE_EVENT_PREFIX = "sale"


def visit_to_event(visit: Visit, book: PricingBook) -> BillableEvent:
    """Build the billable event for one completed visit."""
    fee = book.per_visit_fee_for(visit.customer_id, visit.branch_id)
    return BillableEvent(
        id=f"{VISIT_EVENT_PREFIX}:{visit.id}",
        kind=EventKind.VISIT,
        customer_id=visit.customer_id,
        branch_id=visit.branch_id,
        occurred_at=visit.occurred_at,
        resolved_amount=fee,
        source_id=visit.id,
        status=visit.status,
        report_ref=visit.report_number,
        is_invoiced=visit.is_invoiced,
    )


def sale_to_event(sale: MaterialSale) -> BillableEvent:
    """Build the billable event for one eligible material sale."""
    return BillableEvent(
        id=f"{SALE_EVENT_PREFIX}:{sale.id}",
        kind=EventKind.MATERIAL_SALE,
        customer_id=sale.customer_id,
        branch_id=sale.branch_id,
        occurred_at=sale.occurred_at,
        resolved_amount=sale.total_amount,
        source_id=sale.id,
        status=sale.status,
        lines=sale.line_items,
    )


def _sort_key(event: BillableEvent) -> tuple:
    return (as_date(event.occurred_at), event.kind.value, event.source_id)


@traced_engine(
    "event_collector", "1.0",
    fingerprint_fields=("snapshot", "sale_statuses", "exclude_invoiced_visits"),
)
def collect_events(
    snapshot: BillingSnapshot,
    visits: Iterable[Visit],
    sales: Iterable[MaterialSale],
    sale_statuses: SaleStatusFilter,
    *,
    exclude_invoiced_visits: bool = False,
) -> tuple[BillableEvent, ...]:
    """
    Collect billable events from visits and material sales.

    Args:
        snapshot: Reference data every record must resolve against.
        visits: Visits of any status; only completed ones bill.
        sales: Material sales of any status.
        sale_statuses: Which sale statuses are eligible for this report.
        exclude_invoiced_visits: Drop visits already flagged invoiced
            (used by the unbilled-balance view).

    Returns:
        Billable events ordered by (date, kind, source id).

    Raises:
        UnknownCustomerError, UnknownBranchError, BranchOwnershipError.
    """
    book = PricingBook(snapshot)
    events: list[BillableEvent] = []
    skipped_visits = 0
    skipped_sales = 0

    for visit in visits:
        snapshot.validate_reference(
            visit.customer_id, visit.branch_id, f"visit {visit.id}"
        )
        if not visit.is_completed or (exclude_invoiced_visits and visit.is_invoiced):
            skipped_visits += 1
            continue
        events.append(visit_to_event(visit, book))

    for sale in sales:
        snapshot.validate_reference(
            sale.customer_id, sale.branch_id, f"material sale {sale.id}"
        )
        if not sale_statuses.allows(sale.status):
            skipped_sales += 1
            continue
        events.append(sale_to_event(sale))

    events.sort(key=_sort_key)

    logger.info("billable_events_collected", extra={
        "event_count": len(events),
        "visit_events": sum(1 for e in events if e.kind is EventKind.VISIT),
        "sale_events": sum(1 for e in events if e.kind is EventKind.MATERIAL_SALE),
        "skipped_visits": skipped_visits,
        "skipped_sales": skipped_sales,
    })
    return tuple(events)
