"""
Statement Reconciler - merge invoices, payments and historical credits into
one chronological running-balance ledger.

Pure functions over already-fetched records.  The statement service does
the querying (status/date filters, customer scoping) and hands the rows
over as the small value objects below.

Merge rules:
    1. A historical credit whose id is referenced by any payment's
       ``transaction_id`` is the same money as that payment and is dropped.
    2. Invoices are debits (+total_amount); payments and surviving credits
       are credits (-|amount|).
    3. Entries sort by date ascending.  At equal timestamps invoices come
       before credits; otherwise input order is kept (stable sort).
    4. If any entries exist an opening row (balance 0) is prepended, dated
       at the first entry.
    5. The running balance is rounded to 2 dp after every addition;
       closing balance is the final running balance.

The outstanding balance is NOT derived from the entries.  It is the sum
of ``balance_due`` over the customer's open invoices regardless of the
date window, so it can legitimately differ from the closing balance.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from billing_engines.tracer import traced_engine
from billing_kernel.domain.money import ZERO, format_money, round_money, to_decimal

REFERENCE_SEPARATOR = " · "
OPENING_ENTRY_ID = "opening_balance"


class EntryType(str, Enum):
    """Kind of statement row."""

    OPENING_BALANCE = "opening_balance"
    INVOICE = "invoice"
    PAYMENT = "payment"


@dataclass(frozen=True)
class StatementInvoice:
    """An issued invoice as seen by the statement."""

    id: UUID
    invoice_number: str | None
    reference: str | None
    issue_date: datetime
    total_amount: Decimal


@dataclass(frozen=True)
class StatementPayment:
    """A recorded payment; ``invoice_number`` is None when unresolvable."""

    id: UUID
    amount: Decimal
    method: str
    paid_at: datetime
    reference: str | None = None
    invoice_number: str | None = None
    transaction_id: UUID | None = None


@dataclass(frozen=True)
class StatementCredit:
    """A completed historical payment-credit ledger transaction."""

    id: UUID
    amount: Decimal
    completed_at: datetime | None
    description: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatementEntry:
    """One row of the statement."""

    date: datetime
    reference: str
    description: str
    amount: Decimal
    balance: Decimal
    entry_type: EntryType
    entry_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "reference": self.reference,
            "description": self.description,
            "amount": format_money(self.amount),
            "balance": format_money(self.balance),
            "entry_type": self.entry_type.value,
            "entry_id": self.entry_id,
        }


@dataclass(frozen=True)
class AccountStatement:
    """Statement rows plus the summary balances."""

    statement: tuple[StatementEntry, ...]
    opening_balance: Decimal
    closing_balance: Decimal
    outstanding_balance: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "statement": [entry.to_dict() for entry in self.statement],
            "opening_balance": format_money(self.opening_balance),
            "closing_balance": format_money(self.closing_balance),
            "outstanding_balance": format_money(self.outstanding_balance),
        }


def invoice_reference(invoice: StatementInvoice) -> str:
    """``<number> · <reference>``; number falls back to the id prefix."""
    number = invoice.invoice_number or str(invoice.id)[:8]
    if invoice.reference:
        return f"{number}{REFERENCE_SEPARATOR}{invoice.reference}"
    return number


def payment_reference(payment: StatementPayment) -> str:
    bits = ["PAY"]
    if payment.invoice_number:
        bits.append(f"INV {payment.invoice_number}")
    if payment.reference:
        bits.append(f"REF {payment.reference}")
    return REFERENCE_SEPARATOR.join(bits)


def credit_reference(credit: StatementCredit) -> str:
    """``PAY`` followed by whichever metadata bits the credit carries."""
    meta = credit.metadata or {}
    bits: list[str] = []
    payment_number = meta.get("payment_number")
    if isinstance(payment_number, str) and payment_number:
        bits.append(payment_number)
    invoice_number = meta.get("invoice_number")
    if isinstance(invoice_number, str) and invoice_number:
        bits.append(f"INV {invoice_number}")
    kind = meta.get("transaction_type")
    if isinstance(kind, str) and kind:
        bits.append(kind)

    return REFERENCE_SEPARATOR.join(["PAY", *bits])


def _sort_key(entry: StatementEntry) -> tuple[datetime, int]:
    return (entry.date, 0 if entry.entry_type == EntryType.INVOICE else 1)


@traced_engine("statement", "1.0")
def build_statement(
    *,
    invoices: Sequence[StatementInvoice],
    payments: Sequence[StatementPayment],
    credits: Iterable[StatementCredit],
    outstanding_balance: Decimal,
    as_of: datetime,
) -> AccountStatement:
    """
    Build the running-balance statement.

    ``as_of`` dates a historical credit that has no completion timestamp.
    """
    linked_transaction_ids = {
        p.transaction_id for p in payments if p.transaction_id is not None
    }

    entries: list[StatementEntry] = []

    for inv in invoices:
        entries.append(
            StatementEntry(
                date=inv.issue_date,
                reference=invoice_reference(inv),
                description="Invoice issued",
                amount=round_money(to_decimal(inv.total_amount)),
                balance=ZERO,
                entry_type=EntryType.INVOICE,
                entry_id=str(inv.id),
            )
        )

    for pay in payments:
        entries.append(
            StatementEntry(
                date=pay.paid_at,
                reference=payment_reference(pay),
                description=f"Payment received ({pay.method})",
                amount=-abs(round_money(to_decimal(pay.amount))),
                balance=ZERO,
                entry_type=EntryType.PAYMENT,
                entry_id=str(pay.id),
            )
        )

    for credit in credits:
        if credit.id in linked_transaction_ids:
            continue
        entries.append(
            StatementEntry(
                date=credit.completed_at or as_of,
                reference=credit_reference(credit),
                description=credit.description or "Payment received",
                amount=-abs(round_money(to_decimal(credit.amount))),
                balance=ZERO,
                entry_type=EntryType.PAYMENT,
                entry_id=str(credit.id),
            )
        )

    entries.sort(key=_sort_key)

    opening_balance = ZERO
    running = opening_balance
    statement: list[StatementEntry] = []

    if entries:
        statement.append(
            StatementEntry(
                date=entries[0].date,
                reference="OPEN",
                description="Opening balance",
                amount=ZERO,
                balance=opening_balance,
                entry_type=EntryType.OPENING_BALANCE,
                entry_id=OPENING_ENTRY_ID,
            )
        )

    for entry in entries:
        running = round_money(running + entry.amount)
        statement.append(
            StatementEntry(
                date=entry.date,
                reference=entry.reference,
                description=entry.description,
                amount=entry.amount,
                balance=running,
                entry_type=entry.entry_type,
                entry_id=entry.entry_id,
            )
        )

    return AccountStatement(
        statement=tuple(statement),
        opening_balance=opening_balance,
        closing_balance=round_money(running),
        outstanding_balance=round_money(to_decimal(outstanding_balance)),
    )
