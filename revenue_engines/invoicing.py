"""
Module: revenue_engines.invoicing
Responsibility:
    Group billable events into invoice-ready drafts keyed by
    (customer, branch, calendar month), with an optional second pass
    that merges a customer's branch drafts per month.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Produces ``InvoiceDraft`` objects; spreadsheet row layout lives in
    ``revenue_engines.projection``.

Invariants enforced:
    - Every event id appears in exactly one draft. A visit sits on its
      group's single visit line; a sale with several product lines
      repeats its id on each of them. ``InvoiceDraft.event_ids`` lists
      each id once.
    - Material sales keep one line per original sale line; a sale with
      no lines becomes one line for its resolved amount.
    - All visits of a group collapse into one line: quantity = visit
      count, unit price = the group's per-visit rate, description = the
      distinct report references joined with ", ".
    - A draft whose own scope (the branch, or the customer for drafts
      without a branch) has a monthly contract gets one standing-fee
      line for that month. Fees are never taken from another scope, so
      the customer's contract is not billed once per branch.
    - Combine mode only drops ``branch_id`` from the key, never the
      month, and runs over already-built branch drafts.
    - ``draft.total`` always equals the sum of its line totals.

Failure modes:
    - UnknownCustomerError / UnknownBranchError / BranchOwnershipError
      for events pointing outside the snapshot.
    - DuplicateEntityError when the same event id is passed twice.

Usage:
    from revenue_engines.invoicing import group_invoices, InvoiceSettings

    drafts = group_invoices(snapshot, events, InvoiceSettings(), combine=True)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from revenue_kernel.domain.models import BillableEvent, EventKind, sum_amounts
from revenue_kernel.domain.snapshot import BillingSnapshot
from revenue_kernel.domain.values import ZERO, BillingPeriod
from revenue_kernel.exceptions import DuplicateEntityError
from revenue_kernel.logging_config import get_logger
from revenue_engines.pricing import PricingBook, PricingScope
from revenue_engines.tracer import traced_engine

logger = get_logger("engines.invoicing")

_SATURDAY = 5

TURKISH_MONTH_NAMES: tuple[str, ...] = (
    "OCAK", "ŞUBAT", "MART", "NİSAN", "MAYIS", "HAZİRAN",
    "TEMMUZ", "AĞUSTOS", "EYLÜL", "EKİM", "KASIM", "ARALIK",
)


class LineKind(str, Enum):
    """What an invoice line bills."""

    SERVICE = "service"
    STANDING_FEE = "standing_fee"
    MATERIAL = "material"


@dataclass(frozen=True)
class InvoiceSettings:
    """Labels and defaults applied while building drafts."""

    default_vat_rate: Decimal = Decimal("20")
    default_unit: str = "Adet"
    service_title: str = "Zararlı Mücadelesi"
    material_title: str = "Malzeme"
    material_description_suffix: str = "MALZEME BEDELİ"
    standing_fee_description: str = "AYLIK SABİT ÜCRET"
    no_branch_label: str = "Genel"
    all_branches_label: str = "Tüm Şubeler"
    service_category: str = "HİZMET"
    material_category: str = "MALZEME"
    warehouse_name: str = "Ana Depo"
    month_names: tuple[str, ...] = TURKISH_MONTH_NAMES

    def __post_init__(self) -> None:
        object.__setattr__(self, "month_names", tuple(self.month_names))
        if len(self.month_names) != 12:
            raise ValueError(f"month_names needs 12 entries, got {len(self.month_names)}")

    def month_label(self, period: BillingPeriod) -> str:
        return self.month_names[period.month - 1]


@dataclass(frozen=True)
class InvoiceLineItem:
    """
    One invoice line.

    The first seven fields follow the accounting-import column order
    (title, description, quantity, unit, unit price, discount, vat rate)
    and must not be reordered.
    """

    title: str
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    discount: Decimal
    vat_rate: Decimal
    kind: LineKind
    event_ids: tuple[str, ...] = ()
    warehouse: str = "Ana Depo"
    oiv_rate: Decimal | None = None
    accommodation_tax_rate: Decimal | None = None

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price - self.discount


@dataclass(frozen=True)
class InvoiceDraft:
    """
    An invoice ready for export; ``branch_id`` is None once combined.

    Currency, due date, series and numbering are left for the
    accounting tool unless a caller fills them in with ``replace``.
    """

    customer_id: str
    customer_name: str
    branch_id: str | None
    branch_name: str
    period: BillingPeriod
    invoice_date: date
    invoice_name: str
    category: str
    line_items: tuple[InvoiceLineItem, ...]
    currency: str | None = None
    exchange_rate: Decimal | None = None
    due_date: date | None = None
    collection_equivalent: Decimal | None = None
    invoice_type: str | None = None
    invoice_series: str | None = None
    invoice_number: str | None = None
    total: Decimal = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "line_items", tuple(self.line_items))
        object.__setattr__(self, "total", sum_amounts(li.total for li in self.line_items))

    @property
    def event_ids(self) -> tuple[str, ...]:
        """Ids of the events billed here, each once, in line order."""
        return tuple(dict.fromkeys(eid for li in self.line_items for eid in li.event_ids))


def last_weekday_of_month(period: BillingPeriod) -> date:
    """Invoice date: the month's last day, moved back to Friday on weekends."""
    last = period.last_day
    weekday = last.weekday()
    if weekday >= _SATURDAY:
        last -= timedelta(days=weekday - 4)
    return last


# ============================================================================
# Line builders
# ============================================================================


def _material_lines(
    event: BillableEvent,
    branch_name: str,
    period: BillingPeriod,
    settings: InvoiceSettings,
) -> list[InvoiceLineItem]:
    description = (
        f"{branch_name} {settings.month_label(period)} "
        f"{settings.material_description_suffix}"
    ).strip()
    if not event.lines:
        return [
            InvoiceLineItem(
                title=settings.material_title,
                description=description,
                quantity=Decimal("1"),
                unit=settings.default_unit,
                unit_price=event.resolved_amount,
                discount=ZERO,
                vat_rate=settings.default_vat_rate,
                kind=LineKind.MATERIAL,
                event_ids=(event.id,),
                warehouse=settings.warehouse_name,
            )
        ]
    return [
        InvoiceLineItem(
            title=line.product,
            description=description,
            quantity=line.quantity,
            unit=settings.default_unit,
            unit_price=line.unit_price,
            discount=ZERO,
            vat_rate=line.vat_rate if line.vat_rate is not None else settings.default_vat_rate,
            kind=LineKind.MATERIAL,
            event_ids=(event.id,),
            warehouse=settings.warehouse_name,
        )
        for line in event.lines
    ]


def _visit_line(
    visits: Sequence[BillableEvent],
    settings: InvoiceSettings,
) -> InvoiceLineItem:
    unit_price = visits[0].resolved_amount
    if any(v.resolved_amount != unit_price for v in visits):
        # Mixed rates inside one group are a caller data-quality issue.
        logger.warning("invoice_visit_rate_not_uniform", extra={
            "customer_id": visits[0].customer_id,
            "branch_id": visits[0].branch_id,
            "rates": sorted({str(v.resolved_amount) for v in visits}),
        })

    refs: list[str] = []
    for visit in visits:
        if visit.report_ref and visit.report_ref not in refs:
            refs.append(visit.report_ref)

    return InvoiceLineItem(
        title=settings.service_title,
        description=", ".join(refs),
        quantity=Decimal(len(visits)),
        unit=settings.default_unit,
        unit_price=unit_price,
        discount=ZERO,
        vat_rate=settings.default_vat_rate,
        kind=LineKind.SERVICE,
        event_ids=tuple(v.id for v in visits),
        warehouse=settings.warehouse_name,
    )


def _standing_fee_line(
    book: PricingBook,
    customer_id: str,
    branch_id: str | None,
    branch_name: str,
    period: BillingPeriod,
    settings: InvoiceSettings,
) -> InvoiceLineItem | None:
    scope = PricingScope.CUSTOMER if branch_id is None else PricingScope.BRANCH
    amount = sum_amounts(
        fee.amount
        for fee in book.resolve_for(customer_id, branch_id).standing_fees
        if fee.scope is scope
    )
    if amount <= ZERO:
        return None
    return InvoiceLineItem(
        title=settings.service_title,
        description=(
            f"{branch_name} {settings.month_label(period)} "
            f"{settings.standing_fee_description}"
        ).strip(),
        quantity=Decimal("1"),
        unit=settings.default_unit,
        unit_price=amount,
        discount=ZERO,
        vat_rate=settings.default_vat_rate,
        kind=LineKind.STANDING_FEE,
        warehouse=settings.warehouse_name,
    )


def _category(lines: Iterable[InvoiceLineItem], settings: InvoiceSettings) -> str:
    if any(li.kind is not LineKind.MATERIAL for li in lines):
        return settings.service_category
    return settings.material_category


def _invoice_name(
    branch_name: str,
    period: BillingPeriod,
    category: str,
    settings: InvoiceSettings,
) -> str:
    subject = (
        settings.service_title
        if category == settings.service_category
        else settings.material_description_suffix
    )
    return f"{branch_name} {settings.month_label(period)} {subject}".strip()


# ============================================================================
# Grouping
# ============================================================================


@traced_engine(
    "invoice_grouper", "1.1",
    fingerprint_fields=("snapshot", "events", "settings", "combine"),
)
def group_invoices(
    snapshot: BillingSnapshot,
    events: Iterable[BillableEvent],
    settings: InvoiceSettings | None = None,
    *,
    combine: bool = False,
) -> tuple[InvoiceDraft, ...]:
    """
    Group billable events into invoice drafts.

    Args:
        snapshot: Reference data for names and reference validation.
        events: Billable events to invoice.
        settings: Labels and defaults; ``InvoiceSettings()`` when omitted.
        combine: Merge each customer's branch drafts per month.

    Returns:
        Drafts ordered by customer (snapshot order), month, then branch.
        Lines within a draft: visit line, standing fee, material lines.
    """
    settings = settings or InvoiceSettings()
    book = PricingBook(snapshot)
    groups: dict[tuple[str, str | None, BillingPeriod], list[BillableEvent]] = {}
    seen: set[str] = set()

    for event in events:
        if event.id in seen:
            raise DuplicateEntityError("event", event.id)
        seen.add(event.id)
        snapshot.validate_reference(event.customer_id, event.branch_id, f"event {event.id}")
        key = (event.customer_id, event.branch_id, event.period)
        groups.setdefault(key, []).append(event)

    customer_order = {c.id: i for i, c in enumerate(snapshot.customers)}
    branch_order = {b.id: i for i, b in enumerate(snapshot.branches)}

    def order(key: tuple[str, str | None, BillingPeriod]) -> tuple:
        customer_id, branch_id, period = key
        branch_rank = -1 if branch_id is None else branch_order[branch_id]
        return (customer_order[customer_id], period, branch_rank)

    drafts: list[InvoiceDraft] = []
    for key in sorted(groups, key=order):
        customer_id, branch_id, period = key
        group = groups[key]
        branch_name = (
            snapshot.branch(branch_id).display_name
            if branch_id is not None
            else settings.no_branch_label
        )

        lines: list[InvoiceLineItem] = []
        visits = [e for e in group if e.kind is EventKind.VISIT]
        if visits:
            lines.append(_visit_line(visits, settings))
        standing = _standing_fee_line(book, customer_id, branch_id, branch_name, period, settings)
        if standing is not None:
            lines.append(standing)
        for event in group:
            if event.kind is EventKind.MATERIAL_SALE:
                lines.extend(_material_lines(event, branch_name, period, settings))

        category = _category(lines, settings)
        drafts.append(
            InvoiceDraft(
                customer_id=customer_id,
                customer_name=snapshot.customer(customer_id).display_name,
                branch_id=branch_id,
                branch_name=branch_name,
                period=period,
                invoice_date=last_weekday_of_month(period),
                invoice_name=_invoice_name(branch_name, period, category, settings),
                category=category,
                line_items=tuple(lines),
            )
        )

    logger.info("invoice_drafts_grouped", extra={
        "event_count": len(seen),
        "draft_count": len(drafts),
        "standing_fee_lines": sum(
            1 for d in drafts for li in d.line_items if li.kind is LineKind.STANDING_FEE
        ),
        "combine": combine,
    })

    if combine:
        return combine_by_customer(drafts, settings)
    return tuple(drafts)


def combine_by_customer(
    drafts: Sequence[InvoiceDraft],
    settings: InvoiceSettings | None = None,
) -> tuple[InvoiceDraft, ...]:
    """
    Merge per-branch drafts into one draft per (customer, month).

    Each line's description gets the source branch name appended so
    provenance survives the merge. Input order is preserved.
    """
    settings = settings or InvoiceSettings()
    merged: dict[tuple[str, BillingPeriod], list[InvoiceDraft]] = {}
    for draft in drafts:
        merged.setdefault((draft.customer_id, draft.period), []).append(draft)

    combined: list[InvoiceDraft] = []
    for (customer_id, period), parts in merged.items():
        lines: list[InvoiceLineItem] = []
        for part in parts:
            for line in part.line_items:
                suffix = f" ({part.branch_name})" if part.branch_name else ""
                lines.append(
                    replace(line, description=f"{line.description}{suffix}".strip())
                )
        category = _category(lines, settings)
        combined.append(
            InvoiceDraft(
                customer_id=customer_id,
                customer_name=parts[0].customer_name,
                branch_id=None,
                branch_name=settings.all_branches_label,
                period=period,
                invoice_date=last_weekday_of_month(period),
                invoice_name=_invoice_name(
                    settings.all_branches_label, period, category, settings
                ),
                category=category,
                line_items=tuple(lines),
            )
        )

    logger.info("invoice_drafts_combined", extra={
        "input_drafts": len(drafts),
        "combined_drafts": len(combined),
    })
    return tuple(combined)
