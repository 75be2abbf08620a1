"""
Module: revenue_engines.aggregation
Responsibility:
    Bucket billable events into (entity, calendar month) cells for one
    year, combining per-visit fees, standing monthly fees and material
    sale totals.  This is the single aggregation used by every report
    and export path (current-account sales, yearly P&L, charts).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Depends on revenue_engines.pricing for standing monthly fees.

Invariants enforced:
    - ``cell.total == cell.material_sales + cell.monthly_fee + cell.per_visit_fee``
      for every cell (total is derived at construction, never passed in).
    - Every target entity gets exactly 12 cells, one per month.
    - ``monthly_fee`` is identical across the 12 months of an entity and
      does not depend on visit occurrence.
    - Branch mode: monthly fee falls back to the parent customer's.
      Customer mode: monthly fee rolls up the customer's own price plus
      all of its branches' own prices.  The asymmetry is intentional.
    - Each event lands in at most one cell; duplicate event ids raise.
    - Identical inputs produce identical (equal) results.

Failure modes:
    - ValueError for an unknown mode or a non-positive year.
    - UnknownCustomerError / UnknownBranchError / BranchOwnershipError
      for events pointing outside the snapshot.
    - DuplicateEntityError when the same event id is passed twice.

Audit relevance:
    Unpriced entities still aggregate to zero, but are listed in
    ``AggregationResult.unpriced_entity_ids`` and logged at WARNING so
    under-billing is visible.  ``snapshot_fingerprint`` records which
    pricing rules produced the figures.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType

from revenue_kernel.domain.models import BillableEvent, EventKind, sum_amounts
from revenue_kernel.domain.snapshot import BillingSnapshot
from revenue_kernel.domain.values import ZERO
from revenue_kernel.exceptions import DuplicateEntityError
from revenue_kernel.logging_config import get_logger
from revenue_engines.pricing import PricingBook
from revenue_engines.tracer import traced_engine

logger = get_logger("engines.aggregation")

MONTHS = tuple(range(1, 13))


class AggregationMode(str, Enum):
    """Which entity the cells are keyed by."""

    CUSTOMER = "customer"
    BRANCH = "branch"


@dataclass(frozen=True)
class AggregationCell:
    """
    Revenue of one entity in one calendar month.

    ``total`` is computed from the three components and cannot be set.
    """

    entity_id: str
    month: int
    material_sales: Decimal = ZERO
    monthly_fee: Decimal = ZERO
    per_visit_fee: Decimal = ZERO
    visit_count: int = 0
    total: Decimal = field(init=False)

    def __post_init__(self) -> None:
        if self.month not in MONTHS:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")
        object.__setattr__(
            self, "total", self.material_sales + self.monthly_fee + self.per_visit_fee
        )


@dataclass(frozen=True, eq=False)
class AggregationResult:
    """
    The entity x month matrix for one year and mode.

    ``cells`` preserves snapshot order of entities; each value holds the
    cells for months 1..12 in order.
    """

    mode: AggregationMode
    year: int
    cells: Mapping[str, tuple[AggregationCell, ...]]
    entity_names: Mapping[str, str]
    unpriced_entity_ids: frozenset[str] = frozenset()
    unattributed_event_ids: tuple[str, ...] = ()
    snapshot_fingerprint: str = ""

    @property
    def entity_ids(self) -> tuple[str, ...]:
        return tuple(self.cells)

    def cells_for(self, entity_id: str) -> tuple[AggregationCell, ...]:
        return self.cells[entity_id]

    def cell(self, entity_id: str, month: int) -> AggregationCell:
        if month not in MONTHS:
            raise ValueError(f"month must be between 1 and 12, got {month}")
        return self.cells[entity_id][month - 1]

    def entity_total(self, entity_id: str) -> Decimal:
        return sum_amounts(c.total for c in self.cells[entity_id])

    def grand_total(self) -> Decimal:
        return sum_amounts(self.entity_total(eid) for eid in self.cells)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AggregationResult):
            return NotImplemented
        return (
            self.mode == other.mode
            and self.year == other.year
            and dict(self.cells) == dict(other.cells)
            and list(self.cells) == list(other.cells)
            and dict(self.entity_names) == dict(other.entity_names)
            and self.unpriced_entity_ids == other.unpriced_entity_ids
            and self.unattributed_event_ids == other.unattributed_event_ids
            and self.snapshot_fingerprint == other.snapshot_fingerprint
        )

    __hash__ = None  # type: ignore[assignment]


class _MonthAccumulator:
    """Mutable running sums for one cell while aggregating."""

    __slots__ = ("material_sales", "per_visit_fee", "visit_count")

    def __init__(self) -> None:
        self.material_sales = ZERO
        self.per_visit_fee = ZERO
        self.visit_count = 0


def _targets(
    snapshot: BillingSnapshot,
    book: PricingBook,
    mode: AggregationMode,
) -> list[tuple[str, str, Decimal, bool]]:
    """(entity_id, name, standing monthly fee, unpriced) per target entity."""
    if mode is AggregationMode.CUSTOMER:
        return [
            (
                c.id,
                c.display_name,
                book.monthly_fee_for_customer(c.id),
                book.is_unpriced_customer(c.id),
            )
            for c in snapshot.customers
        ]
    return [
        (
            b.id,
            b.display_name,
            book.monthly_fee_for_branch(b.id),
            book.is_unpriced_branch(b.id),
        )
        for b in snapshot.branches
    ]


@traced_engine(
    "period_aggregator", "1.0",
    fingerprint_fields=("snapshot", "events", "year", "mode"),
)
def aggregate_period(
    snapshot: BillingSnapshot,
    events: Iterable[BillableEvent],
    *,
    year: int,
    mode: AggregationMode | str,
) -> AggregationResult:
    """
    Build the 12-month revenue matrix for every customer or every branch.

    Args:
        snapshot: Reference data and current pricing rules.
        events: Billable events (typically from ``collect_events``).
        year: Calendar year to report; events from other years are ignored.
        mode: ``customer`` (rollup of standing fees) or ``branch``
            (fallback of standing fees).

    Returns:
        AggregationResult with 12 cells per entity.
    """
    mode = AggregationMode(mode)
    if isinstance(year, bool) or not isinstance(year, int) or year < 1:
        raise ValueError(f"year must be a positive integer, got {year!r}")

    book = PricingBook(snapshot)
    targets = _targets(snapshot, book, mode)
    months: dict[str, list[_MonthAccumulator]] = {
        entity_id: [_MonthAccumulator() for _ in MONTHS]
        for entity_id, _, _, _ in targets
    }

    seen: set[str] = set()
    unattributed: list[str] = []
    other_year = 0

    for event in events:
        if event.id in seen:
            raise DuplicateEntityError("event", event.id)
        seen.add(event.id)
        snapshot.validate_reference(event.customer_id, event.branch_id, f"event {event.id}")

        period = event.period
        if period.year != year:
            other_year += 1
            continue

        entity_id = event.customer_id if mode is AggregationMode.CUSTOMER else event.branch_id
        if entity_id is None:
            unattributed.append(event.id)
            continue

        bucket = months[entity_id][period.month - 1]
        if event.kind is EventKind.VISIT:
            bucket.per_visit_fee += event.resolved_amount
            bucket.visit_count += 1
        else:
            bucket.material_sales += event.resolved_amount

    cells: dict[str, tuple[AggregationCell, ...]] = {}
    for entity_id, _, monthly_fee, _ in targets:
        cells[entity_id] = tuple(
            AggregationCell(
                entity_id=entity_id,
                month=month,
                material_sales=acc.material_sales,
                monthly_fee=monthly_fee,
                per_visit_fee=acc.per_visit_fee,
                visit_count=acc.visit_count,
            )
            for month, acc in zip(MONTHS, months[entity_id])
        )

    unpriced = frozenset(entity_id for entity_id, _, _, flag in targets if flag)
    if unpriced:
        logger.warning("unpriced_entities_found", extra={
            "mode": mode.value,
            "year": year,
            "unpriced_count": len(unpriced),
            "unpriced_entity_ids": sorted(unpriced),
        })
    if unattributed:
        logger.info("events_without_target_entity", extra={
            "mode": mode.value,
            "event_count": len(unattributed),
        })

    result = AggregationResult(
        mode=mode,
        year=year,
        cells=MappingProxyType(cells),
        entity_names=MappingProxyType({eid: name for eid, name, _, _ in targets}),
        unpriced_entity_ids=unpriced,
        unattributed_event_ids=tuple(sorted(unattributed)),
        snapshot_fingerprint=snapshot.pricing_fingerprint,
    )

    logger.info("period_aggregation_completed", extra={
        "mode": mode.value,
        "year": year,
        "entity_count": len(cells),
        "event_count": len(seen),
        "events_other_years": other_year,
        "grand_total": str(result.grand_total()),
    })
    return result
