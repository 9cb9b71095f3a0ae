"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Billing callers render an actionable message for every rejected operation
("invoice already paid", "payment exceeds balance due").  Parsing message
strings to decide which message to show is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Every exception has a REASON attribute naming its failure category
  4. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        item_service.create_item(auth, invoice_id, ...)
    except InvoiceNotDraftError as e:
        return {"error": e.code, "status": e.status}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingError (base)
    |
    +-- UnauthorizedError            reason=unauthorized   (no identity)
    +-- ForbiddenError               reason=forbidden      (not staff / not owner)
    +-- NotFoundError                reason=not_found
    |   +-- InvoiceNotFoundError
    |   +-- InvoiceItemNotFoundError
    +-- InvalidStateError            reason=invalid_state
    |   +-- InvoiceNotDraftError
    |   +-- InvalidTransitionError
    |   +-- AlreadyPaidError
    |   +-- OverpaymentError
    +-- ValidationError              reason=validation     (malformed input)
    +-- InternalError                reason=internal       (unexpected store failure)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                      | When Raised
--------------|---------------------------|------------------------------------
Auth          | UNAUTHORIZED              | No caller identity
              | FORBIDDEN                 | Caller lacks role / is not owner
--------------|---------------------------|------------------------------------
Lookup        | NOT_FOUND                 | Generic missing record
              | INVOICE_NOT_FOUND         | Invoice missing or soft-deleted
              | INVOICE_ITEM_NOT_FOUND    | Item missing or soft-deleted
--------------|---------------------------|------------------------------------
State         | INVALID_STATE             | Wrong status for the mutation
              | INVOICE_NOT_DRAFT         | Item mutation on non-draft invoice
              | INVALID_TRANSITION        | Workflow forbids the status change
              | ALREADY_PAID              | Payment on zero balance invoice
              | OVERPAYMENT               | Payment amount > balance_due
--------------|---------------------------|------------------------------------
Input         | VALIDATION_ERROR          | Malformed or out-of-range input
--------------|---------------------------|------------------------------------
Store         | INTERNAL_ERROR            | Unexpected database failure
"""

from decimal import Decimal


class BillingError(Exception):
    """
    Base exception for all billing errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and a `reason` naming the failure category.
    """

    code: str = "BILLING_ERROR"
    reason: str = "internal"


# Auth-related exceptions


class UnauthorizedError(BillingError):
    """No caller identity was supplied."""

    code: str = "UNAUTHORIZED"
    reason: str = "unauthorized"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(BillingError):
    """Caller is authenticated but not allowed to perform the action."""

    code: str = "FORBIDDEN"
    reason: str = "forbidden"

    def __init__(self, action: str, message: str | None = None):
        self.action = action
        super().__init__(message or f"Forbidden: insufficient permissions to {action}")


# Lookup-related exceptions


class NotFoundError(BillingError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"
    reason: str = "not_found"


class InvoiceNotFoundError(NotFoundError):
    """Invoice does not exist or has been soft-deleted."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class InvoiceItemNotFoundError(NotFoundError):
    """Invoice item does not exist or has been soft-deleted."""

    code: str = "INVOICE_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Invoice item not found: {item_id}")


# State-related exceptions


class InvalidStateError(BillingError):
    """Base exception for mutations rejected by the current record state."""

    code: str = "INVALID_STATE"
    reason: str = "invalid_state"


class InvoiceNotDraftError(InvalidStateError):
    """Line items can only be changed while the invoice is a draft."""

    code: str = "INVOICE_NOT_DRAFT"

    def __init__(self, invoice_id: str, status: str, action: str):
        self.invoice_id = invoice_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} items: only draft invoices can be modified "
            f"(invoice {invoice_id} is {status})"
        )


class InvalidTransitionError(InvalidStateError):
    """The invoice workflow does not allow the requested status change."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, invoice_id: str, from_status: str, action: str):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} invoice {invoice_id} in status {from_status}"
        )


class AlreadyPaidError(InvalidStateError):
    """Invoice has no remaining balance."""

    code: str = "ALREADY_PAID"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Already paid: invoice {invoice_id} has no remaining balance")


class OverpaymentError(InvalidStateError):
    """Payment amount exceeds the invoice's balance due."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: str, amount: Decimal, balance_due: Decimal):
        self.invoice_id = invoice_id
        self.amount = amount
        self.balance_due = balance_due
        super().__init__(
            f"Overpayment: payment amount {amount} cannot exceed the "
            f"remaining balance {balance_due}"
        )


# Input-related exceptions


class ValidationError(BillingError):
    """Malformed or out-of-range input."""

    code: str = "VALIDATION_ERROR"
    reason: str = "validation"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


# Store-related exceptions


class InternalError(BillingError):
    """Unexpected store failure; the enclosing transaction was rolled back."""

    code: str = "INTERNAL_ERROR"
    reason: str = "internal"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed and was rolled back: {detail}")
