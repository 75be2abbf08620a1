"""BillingSnapshot -- Frozen view of the customers, branches and pricing rules."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from revenue_kernel.domain.models import Branch, Customer, PricingRule
from revenue_kernel.exceptions import (
    BranchOwnershipError,
    DuplicateEntityError,
    UnknownBranchError,
    UnknownCustomerError,
)


@dataclass(frozen=True, eq=False)
class BillingSnapshot:
    """
    Immutable, already-fetched reference data for one report request.

    Contract:
        Pricing rules are read from the snapshot at resolution time, not
        frozen onto past events. Re-running a past period against a newer
        snapshot reflects the newer rules; ``pricing_fingerprint`` tells
        two such runs apart.

    Guarantees:
        - Customer and branch ids are unique.
        - Every branch belongs to a customer in the snapshot.
        - Every pricing rule is keyed by a known customer or branch.
        - Iteration order of customers and branches is the order given.

    Raises (at construction):
        DuplicateEntityError, UnknownCustomerError, UnknownBranchError.
    """

    customers: tuple[Customer, ...]
    branches: tuple[Branch, ...]
    customer_pricing: Mapping[str, PricingRule] = field(default_factory=dict)
    branch_pricing: Mapping[str, PricingRule] = field(default_factory=dict)
    version: str | None = None

    _customers_by_id: dict[str, Customer] = field(init=False, repr=False)
    _branches_by_id: dict[str, Branch] = field(init=False, repr=False)
    _branches_by_customer: dict[str, tuple[Branch, ...]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "customers", tuple(self.customers))
        object.__setattr__(self, "branches", tuple(self.branches))
        object.__setattr__(
            self, "customer_pricing", MappingProxyType(dict(self.customer_pricing))
        )
        object.__setattr__(
            self, "branch_pricing", MappingProxyType(dict(self.branch_pricing))
        )

        customers_by_id: dict[str, Customer] = {}
        for customer in self.customers:
            if customer.id in customers_by_id:
                raise DuplicateEntityError("customer", customer.id)
            customers_by_id[customer.id] = customer

        branches_by_id: dict[str, Branch] = {}
        grouped: dict[str, list[Branch]] = {c.id: [] for c in self.customers}
        for branch in self.branches:
            if branch.id in branches_by_id:
                raise DuplicateEntityError("branch", branch.id)
            if branch.customer_id not in customers_by_id:
                raise UnknownCustomerError(branch.customer_id, f"branch {branch.id}")
            branches_by_id[branch.id] = branch
            grouped[branch.customer_id].append(branch)

        for customer_id in self.customer_pricing:
            if customer_id not in customers_by_id:
                raise UnknownCustomerError(customer_id, "customer pricing")
        for branch_id in self.branch_pricing:
            if branch_id not in branches_by_id:
                raise UnknownBranchError(branch_id, "branch pricing")

        object.__setattr__(self, "_customers_by_id", customers_by_id)
        object.__setattr__(self, "_branches_by_id", branches_by_id)
        object.__setattr__(
            self,
            "_branches_by_customer",
            {cid: tuple(bs) for cid, bs in grouped.items()},
        )

    @classmethod
    def build(
        cls,
        customers: Iterable[Customer],
        branches: Iterable[Branch] = (),
        customer_pricing: Mapping[str, PricingRule] | None = None,
        branch_pricing: Mapping[str, PricingRule] | None = None,
        version: str | None = None,
    ) -> BillingSnapshot:
        """Convenience constructor accepting any iterables."""
        return cls(
            customers=tuple(customers),
            branches=tuple(branches),
            customer_pricing=customer_pricing or {},
            branch_pricing=branch_pricing or {},
            version=version,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def has_customer(self, customer_id: str) -> bool:
        return customer_id in self._customers_by_id

    def has_branch(self, branch_id: str) -> bool:
        return branch_id in self._branches_by_id

    def customer(self, customer_id: str) -> Customer:
        try:
            return self._customers_by_id[customer_id]
        except KeyError:
            raise UnknownCustomerError(customer_id) from None

    def branch(self, branch_id: str) -> Branch:
        try:
            return self._branches_by_id[branch_id]
        except KeyError:
            raise UnknownBranchError(branch_id) from None

    def branches_of(self, customer_id: str) -> tuple[Branch, ...]:
        """Branches owned by a customer, in snapshot order."""
        if customer_id not in self._customers_by_id:
            raise UnknownCustomerError(customer_id)
        return self._branches_by_customer[customer_id]

    def pricing_for_customer(self, customer_id: str) -> PricingRule | None:
        return self.customer_pricing.get(customer_id)

    def pricing_for_branch(self, branch_id: str | None) -> PricingRule | None:
        if branch_id is None:
            return None
        return self.branch_pricing.get(branch_id)

    def validate_reference(
        self,
        customer_id: str,
        branch_id: str | None,
        referenced_by: str | None = None,
    ) -> None:
        """
        Fail fast on a record pointing outside the snapshot.

        Raises:
            UnknownCustomerError: customer id not in the snapshot.
            UnknownBranchError: branch id not in the snapshot.
            BranchOwnershipError: branch owned by another customer.
        """
        if customer_id not in self._customers_by_id:
            raise UnknownCustomerError(customer_id, referenced_by)
        if branch_id is None:
            return
        branch = self._branches_by_id.get(branch_id)
        if branch is None:
            raise UnknownBranchError(branch_id, referenced_by)
        if branch.customer_id != customer_id:
            raise BranchOwnershipError(
                branch_id, customer_id, branch.customer_id, referenced_by
            )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def pricing_fingerprint(self) -> str:
        """
        SHA-256 over the snapshot version and every pricing rule.

        Any pricing change produces a new fingerprint, so it is safe to
        use as a cache key for resolved prices.
        """
        parts = [f"version={self.version or ''}"]
        for scope, rules in (
            ("customer", self.customer_pricing),
            ("branch", self.branch_pricing),
        ):
            for entity_id in sorted(rules):
                rule = rules[entity_id]
                parts.append(
                    f"{scope}:{entity_id}:{rule.monthly_price}:{rule.per_visit_price}"
                )
        canonical = "|".join(parts)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
