"""
Module: revenue_engines.pricing
Responsibility:
    Resolve what a visit is worth and which standing monthly fees apply,
    given the pricing rules of a customer and (optionally) one of its
    branches.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import revenue_kernel.

Invariants enforced:
    - Per-visit resolution order is fixed and has no ties:
        1. branch per-visit price, if > 0;
        2. customer per-visit price, ONLY when the branch has no standing
           monthly contract (suppression);
        3. zero.
    - Monthly fee for a branch falls back to the parent customer's
      monthly price when the branch has none (fallback).
    - Monthly fee for a customer is its own monthly price plus every
      branch's own monthly price (rollup); branches do not inherit here.
    - Missing pricing resolves to zero; it is never an exception.

Failure modes:
    - UnknownCustomerError / UnknownBranchError from ``PricingBook`` when
      asked about ids that are not in the snapshot.

Usage:
    from revenue_engines.pricing import PricingBook

    book = PricingBook(snapshot)
    fee = book.per_visit_fee_for("C1", "B1")
    monthly = book.monthly_fee_for_branch("B1")
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from revenue_kernel.domain.models import PricingRule, sum_amounts
from revenue_kernel.domain.snapshot import BillingSnapshot
from revenue_kernel.domain.values import ZERO
from revenue_kernel.logging_config import get_logger

logger = get_logger("engines.pricing")


class PricingScope(str, Enum):
    """Scope a pricing rule or standing fee is attached to."""

    CUSTOMER = "customer"
    BRANCH = "branch"


@dataclass(frozen=True)
class StandingFee:
    """A monthly charge billed once per month for one scope."""

    scope: PricingScope
    entity_id: str | None
    amount: Decimal


@dataclass(frozen=True)
class ResolvedPricing:
    """Effective per-visit fee plus the standing monthly fees to apply."""

    per_visit_fee: Decimal
    standing_fees: tuple[StandingFee, ...] = ()

    @property
    def monthly_total(self) -> Decimal:
        return sum_amounts(f.amount for f in self.standing_fees)


# ============================================================================
# Pure resolution rules
# ============================================================================


def has_monthly_contract(pricing: PricingRule | None) -> bool:
    """True if the rule carries a standing monthly price greater than zero."""
    return pricing is not None and pricing.has_monthly_price


def resolve_per_visit_fee(
    customer_pricing: PricingRule | None,
    branch_pricing: PricingRule | None,
    branch_has_monthly_contract: bool,
) -> Decimal:
    """
    Per-visit fee for one visit (suppression rule).

    A branch billed a flat monthly amount never inherits the customer's
    per-visit rate, so the same visits are not charged under two billing
    models.
    """
    if branch_pricing is not None and branch_pricing.has_per_visit_price:
        return branch_pricing.per_visit_price
    if branch_has_monthly_contract:
        return ZERO
    if customer_pricing is not None and customer_pricing.has_per_visit_price:
        return customer_pricing.per_visit_price
    return ZERO


def branch_monthly_fee(
    branch_pricing: PricingRule | None,
    customer_pricing: PricingRule | None,
) -> Decimal:
    """Standing monthly fee seen from a branch (fallback to the customer)."""
    if branch_pricing is not None and branch_pricing.has_monthly_price:
        return branch_pricing.monthly_price
    if customer_pricing is not None and customer_pricing.has_monthly_price:
        return customer_pricing.monthly_price
    return ZERO


def customer_monthly_fee(
    customer_pricing: PricingRule | None,
    branch_pricings: Iterable[PricingRule | None],
) -> Decimal:
    """Standing monthly fee seen from a customer (own price + branch rollup)."""
    own = customer_pricing.monthly_price if has_monthly_contract(customer_pricing) else ZERO
    rolled_up = sum_amounts(
        p.monthly_price for p in branch_pricings if has_monthly_contract(p)
    )
    return own + rolled_up


def resolve_pricing(
    customer_pricing: PricingRule | None,
    branch_pricing: PricingRule | None,
    branch_has_monthly_contract: bool,
    *,
    customer_id: str | None = None,
    branch_id: str | None = None,
) -> ResolvedPricing:
    """
    Resolve both pricing components for a customer/branch pair.

    Standing fees are listed once per scope that has a monthly price;
    they are independent of whether any visit happened.
    """
    standing: list[StandingFee] = []
    if has_monthly_contract(customer_pricing):
        standing.append(
            StandingFee(PricingScope.CUSTOMER, customer_id, customer_pricing.monthly_price)
        )
    if has_monthly_contract(branch_pricing):
        standing.append(
            StandingFee(PricingScope.BRANCH, branch_id, branch_pricing.monthly_price)
        )

    return ResolvedPricing(
        per_visit_fee=resolve_per_visit_fee(
            customer_pricing, branch_pricing, branch_has_monthly_contract
        ),
        standing_fees=tuple(standing),
    )


# ============================================================================
# Snapshot-bound facade
# ============================================================================


class PricingBook:
    """
    Answers pricing questions against one snapshot.

    Contract:
        Stateless apart from the snapshot reference; build one per
        snapshot. Reads the rules current in the snapshot, never rules
        as of an event's date.
    """

    def __init__(self, snapshot: BillingSnapshot):
        self._snapshot = snapshot

    @property
    def snapshot(self) -> BillingSnapshot:
        return self._snapshot

    def resolve_for(self, customer_id: str, branch_id: str | None = None) -> ResolvedPricing:
        self._snapshot.validate_reference(customer_id, branch_id)
        customer_pricing = self._snapshot.pricing_for_customer(customer_id)
        branch_pricing = self._snapshot.pricing_for_branch(branch_id)
        return resolve_pricing(
            customer_pricing,
            branch_pricing,
            has_monthly_contract(branch_pricing),
            customer_id=customer_id,
            branch_id=branch_id,
        )

    def per_visit_fee_for(self, customer_id: str, branch_id: str | None = None) -> Decimal:
        fee = self.resolve_for(customer_id, branch_id).per_visit_fee
        logger.debug("per_visit_fee_resolved", extra={
            "customer_id": customer_id,
            "branch_id": branch_id,
            "per_visit_fee": str(fee),
        })
        return fee

    def monthly_fee_for_branch(self, branch_id: str) -> Decimal:
        branch = self._snapshot.branch(branch_id)
        return branch_monthly_fee(
            self._snapshot.pricing_for_branch(branch.id),
            self._snapshot.pricing_for_customer(branch.customer_id),
        )

    def monthly_fee_for_customer(self, customer_id: str) -> Decimal:
        branches = self._snapshot.branches_of(customer_id)
        return customer_monthly_fee(
            self._snapshot.pricing_for_customer(customer_id),
            (self._snapshot.pricing_for_branch(b.id) for b in branches),
        )

    def is_unpriced_branch(self, branch_id: str) -> bool:
        """No usable price at the branch or at its parent customer."""
        branch = self._snapshot.branch(branch_id)
        return _is_empty(self._snapshot.pricing_for_branch(branch.id)) and _is_empty(
            self._snapshot.pricing_for_customer(branch.customer_id)
        )

    def is_unpriced_customer(self, customer_id: str) -> bool:
        """No usable price at the customer or at any of its branches."""
        if not _is_empty(self._snapshot.pricing_for_customer(customer_id)):
            return False
        return all(
            _is_empty(self._snapshot.pricing_for_branch(b.id))
            for b in self._snapshot.branches_of(customer_id)
        )


def _is_empty(pricing: PricingRule | None) -> bool:
    return pricing is None or pricing.is_empty
