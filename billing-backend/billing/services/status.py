# billing/services/status.py
"""
Document status and payment status rules shared by invoices and quotations.

Stored ``status`` only ever moves through the transition tables below.
``overdue`` is never stored: ``display_status`` / ``display_payment_status``
compute it at read time from the due date and an explicit ``today``.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from billing.choices import DocumentKind, DocumentStatus, PaymentStatus, StatusEvent
from billing.services.totals import to_amount
from common.exceptions import InvalidTransition

INVOICE_TRANSITIONS = {
    (DocumentStatus.DRAFT, StatusEvent.SEND): DocumentStatus.SENT,
    (DocumentStatus.SENT, StatusEvent.SEND): DocumentStatus.SENT,
    (DocumentStatus.VIEWED, StatusEvent.SEND): DocumentStatus.VIEWED,
    (DocumentStatus.SENT, StatusEvent.VIEW): DocumentStatus.VIEWED,
    (DocumentStatus.VIEWED, StatusEvent.VIEW): DocumentStatus.VIEWED,
}

QUOTATION_TRANSITIONS = {
    **INVOICE_TRANSITIONS,
    (DocumentStatus.DRAFT, StatusEvent.ACCEPT): DocumentStatus.ACCEPTED,
    (DocumentStatus.SENT, StatusEvent.ACCEPT): DocumentStatus.ACCEPTED,
    (DocumentStatus.VIEWED, StatusEvent.ACCEPT): DocumentStatus.ACCEPTED,
    (DocumentStatus.DRAFT, StatusEvent.REJECT): DocumentStatus.REJECTED,
    (DocumentStatus.SENT, StatusEvent.REJECT): DocumentStatus.REJECTED,
    (DocumentStatus.VIEWED, StatusEvent.REJECT): DocumentStatus.REJECTED,
    (DocumentStatus.ACCEPTED, StatusEvent.CONVERT): DocumentStatus.CONVERTED,
}

TERMINAL_QUOTATION_STATUSES = frozenset({
    DocumentStatus.ACCEPTED,
    DocumentStatus.REJECTED,
    DocumentStatus.CONVERTED,
})

_PAYMENT_RANK = {
    PaymentStatus.UNPAID: 0,
    PaymentStatus.PARTIALLY_PAID: 1,
    PaymentStatus.PAID: 2,
}


def _table(kind):
    if kind == DocumentKind.INVOICE:
        return INVOICE_TRANSITIONS
    if kind == DocumentKind.QUOTATION:
        return QUOTATION_TRANSITIONS
    raise ValueError(f"Unknown document kind: {kind}")


def transition(kind: str, current: str, event: str) -> str:
    """Next stored status for ``event``; raises InvalidTransition otherwise."""
    table = _table(kind)
    try:
        return table[(DocumentStatus(current), StatusEvent(event))]
    except (KeyError, ValueError):
        raise InvalidTransition(
            f"A {kind} in '{current}' status cannot be {_past_tense(event)}.",
            kind=kind, status=current, event=event,
        )


def allowed_events(kind: str, current: str):
    table = _table(kind)
    return [ev.value for (st, ev) in table if st == current]


def ensure_editable(kind: str, current: str) -> None:
    if kind == DocumentKind.QUOTATION and current in TERMINAL_QUOTATION_STATUSES:
        raise InvalidTransition(
            f"This quotation is {current} and can no longer be edited.",
            kind=kind, status=current,
        )


def _past_tense(event: str) -> str:
    return {
        StatusEvent.SEND: "sent",
        StatusEvent.VIEW: "viewed",
        StatusEvent.ACCEPT: "accepted",
        StatusEvent.REJECT: "rejected",
        StatusEvent.CONVERT: "converted",
    }.get(event, str(event))


# ---------- payment status ----------

def derive_payment_status(paid_amount: Any, total: Any) -> str:
    paid = to_amount(paid_amount, "paid_amount", default=Decimal("0"))
    total = to_amount(total, "total", default=Decimal("0"))
    if paid == 0:
        return PaymentStatus.UNPAID
    if paid >= total:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIALLY_PAID


def next_payment_status(current: str, paid_amount: Any, total: Any, *, reversal: bool = False) -> str:
    """
    Re-derive payment status after paid_amount changed.

    Moving backwards (paid -> partially_paid -> unpaid) is only allowed when
    the change comes from a payment reversal or a total edit (``reversal``).
    """
    new = derive_payment_status(paid_amount, total)
    if not reversal and _PAYMENT_RANK.get(new, 0) < _PAYMENT_RANK.get(current, 0):
        raise InvalidTransition(
            f"Payment status cannot move from {current} back to {new} without a payment reversal.",
            status=current, to=new,
        )
    return new


def validate_payment_status_request(requested: str, paid_amount: Any, total: Any) -> str:
    """A manual payment-status change must agree with the recorded payments."""
    if requested == PaymentStatus.OVERDUE:
        raise InvalidTransition("Overdue is calculated from the due date and cannot be set.")
    derived = derive_payment_status(paid_amount, total)
    if requested != derived:
        raise InvalidTransition(
            f"Payment status must be {derived} for the recorded payments. "
            "Record or delete a payment instead.",
            requested=requested, derived=derived,
        )
    return derived


# ---------- read-time overlays ----------

def is_overdue(due_date: Optional[date], payment_status: str, today: date) -> bool:
    return due_date is not None and due_date < today and payment_status != PaymentStatus.PAID


def display_payment_status(payment_status: str, due_date: Optional[date], today: date) -> str:
    if is_overdue(due_date, payment_status, today):
        return PaymentStatus.OVERDUE
    return payment_status


def display_status(
    kind: str,
    status: str,
    due_date: Optional[date],
    today: date,
    payment_status: Optional[str] = None,
) -> str:
    if status not in (DocumentStatus.SENT, DocumentStatus.VIEWED) or due_date is None or due_date >= today:
        return status
    if kind == DocumentKind.INVOICE and payment_status == PaymentStatus.PAID:
        return status
    return DocumentStatus.OVERDUE
