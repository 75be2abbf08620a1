"""
Typed Exception Hierarchy for the Revenue Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Report and export layers must be able to tell a caller programming error
(an event pointing at a customer that is not in the snapshot) apart from
an ordinary data gap (a customer with no pricing). The first is raised,
the second never is. Callers catch by type and read structured
attributes instead of parsing messages:

    try:
        events = collect_events(snapshot, visits, sales, statuses)
    except UnknownBranchError as e:
        log.error("bad snapshot", extra={"branch_id": e.branch_id})
        api_response(code=e.code, branch=e.branch_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RevenueKernelError (base)
    |
    +-- ReferenceValidationError
    |   +-- UnknownCustomerError
    |   +-- UnknownBranchError
    |   +-- BranchOwnershipError
    |   +-- DuplicateEntityError
    |
    +-- ReceiptError
        +-- ReceiptCheckReversalError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                       | When Raised
-----------|----------------------------|------------------------------------------
Reference  | UNKNOWN_CUSTOMER           | Record references a customer not in snapshot
           | UNKNOWN_BRANCH             | Record references a branch not in snapshot
           | BRANCH_OWNERSHIP_MISMATCH  | Branch belongs to a different customer
           | DUPLICATE_ENTITY           | Same id appears twice in the snapshot
-----------|----------------------------|------------------------------------------
Receipt    | RECEIPT_CHECK_REVERSAL     | Attempt to un-check an admin-checked receipt

Missing pricing is NOT an error: it resolves to zero and is reported as
an unpriced entity by the aggregation layer.
"""


class RevenueKernelError(Exception):
    """
    Base exception for all revenue kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "REVENUE_KERNEL_ERROR"


# Reference validation exceptions


class ReferenceValidationError(RevenueKernelError):
    """Base exception for structurally invalid snapshot references."""

    code: str = "REFERENCE_VALIDATION_ERROR"


class UnknownCustomerError(ReferenceValidationError):
    """A record references a customer id that is not in the snapshot."""

    code: str = "UNKNOWN_CUSTOMER"

    def __init__(self, customer_id: str, referenced_by: str | None = None):
        self.customer_id = customer_id
        self.referenced_by = referenced_by
        where = f" (referenced by {referenced_by})" if referenced_by else ""
        super().__init__(f"Unknown customer: {customer_id}{where}")


class UnknownBranchError(ReferenceValidationError):
    """A record references a branch id that is not in the snapshot."""

    code: str = "UNKNOWN_BRANCH"

    def __init__(self, branch_id: str, referenced_by: str | None = None):
        self.branch_id = branch_id
        self.referenced_by = referenced_by
        where = f" (referenced by {referenced_by})" if referenced_by else ""
        super().__init__(f"Unknown branch: {branch_id}{where}")


class BranchOwnershipError(ReferenceValidationError):
    """A record pairs a branch with a customer that does not own it."""

    code: str = "BRANCH_OWNERSHIP_MISMATCH"

    def __init__(
        self,
        branch_id: str,
        customer_id: str,
        owner_customer_id: str,
        referenced_by: str | None = None,
    ):
        self.branch_id = branch_id
        self.customer_id = customer_id
        self.owner_customer_id = owner_customer_id
        self.referenced_by = referenced_by
        super().__init__(
            f"Branch {branch_id} belongs to customer {owner_customer_id}, "
            f"not {customer_id}"
            + (f" (referenced by {referenced_by})" if referenced_by else "")
        )


class DuplicateEntityError(ReferenceValidationError):
    """The same entity id appears more than once in a snapshot."""

    code: str = "DUPLICATE_ENTITY"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"Duplicate {entity_type} id: {entity_id}")


# Receipt exceptions


class ReceiptError(RevenueKernelError):
    """Base exception for collection receipt errors."""

    code: str = "RECEIPT_ERROR"


class ReceiptCheckReversalError(ReceiptError):
    """
    Attempt to move a receipt from checked back to unchecked.

    The admin acknowledgement is one-way: unchecked -> checked.
    """

    code: str = "RECEIPT_CHECK_REVERSAL"

    def __init__(self, receipt_id: str, receipt_no: str):
        self.receipt_id = receipt_id
        self.receipt_no = receipt_no
        super().__init__(
            f"Receipt {receipt_no} ({receipt_id}) is already checked by an "
            f"administrator and cannot be unchecked"
        )
