# invoices/services.py
"""
Invoice write paths.

Every create/edit goes through ``recompute_invoice`` so stored totals are
always the calculator's output. ``paid_amount`` and ``payment_status`` are
re-derived from the payments table inside a row lock, never from values
the caller read earlier.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from billing.choices import DocumentKind, NumberingStrategy, PaymentStatus, StatusEvent
from billing.services.numbering import last_issued_number, next_document_number
from billing.services.status import (
    next_payment_status,
    transition,
    validate_payment_status_request,
)
from billing.services.totals import LineIn, money, to_amount
from common.exceptions import InvalidAmount, InvalidTransition
from subscriptions.services import enforce_limit

from .models import DebtCollection, Invoice, Payment

logger = logging.getLogger(__name__)

# Fields a caller may set directly; totals and states are always derived.
EDITABLE_FIELDS = (
    "client",
    "currency",
    "issue_date",
    "due_date",
    "discount_percentage",
    "discount_amount",
    "tax_percentage",
    "shipping_charge",
    "notes",
    "terms",
    "is_recurring",
    "recurring_frequency",
    "recurring_end_date",
    "template_invoice",
)


def invoice_prefix() -> str:
    return getattr(settings, "INVOICE_NUMBER_PREFIX", "INV")


def default_currency() -> str:
    return getattr(settings, "BILLING_DEFAULT_CURRENCY", "USD")


def next_invoice_number(user, strategy: str = NumberingStrategy.AUTO, today: Optional[date] = None,
                        manual_number: Optional[str] = None) -> str:
    prefix = invoice_prefix()
    last = None
    if strategy != NumberingStrategy.MANUAL:
        numbers = Invoice.objects.filter(
            user=user, invoice_number__startswith=f"{prefix}-"
        ).values_list("invoice_number", flat=True)
        last = last_issued_number(numbers, prefix)
    return next_document_number(
        prefix, strategy, last, today or timezone.localdate(), manual_number=manual_number
    )


def _check_fields(data: Dict[str, Any]) -> None:
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown invoice field(s): {', '.join(sorted(unknown))}")


def _check_client(user, client) -> None:
    if client is not None and client.user_id != user.pk:
        raise ValueError("Client not found")


def recompute_invoice(invoice: Invoice, lines: Optional[List[LineIn]] = None) -> None:
    """Apply calculator totals to ``invoice`` (not saved)."""
    totals = invoice.calculate_totals(lines)
    invoice.apply_totals(totals)


def create_invoice(
    user,
    data: Dict[str, Any],
    items: Iterable[LineIn],
    *,
    numbering: str = NumberingStrategy.AUTO,
    invoice_number: Optional[str] = None,
    today: Optional[date] = None,
) -> Invoice:
    """
    Create a draft invoice. Limit-gated on ``invoices`` inside the same
    transaction as the insert.
    """
    _check_fields(data)
    _check_client(user, data.get("client"))
    lines = list(items)
    today = today or timezone.localdate()

    with transaction.atomic():
        enforce_limit(user, "invoices")

        invoice = Invoice(user=user)
        invoice.set_fields(data)
        invoice.currency = (invoice.currency or default_currency()).upper()
        if not data.get("issue_date"):
            invoice.issue_date = today
        if invoice.due_date is None:
            due_days = int(getattr(settings, "INVOICE_DEFAULT_DUE_DAYS", 30))
            invoice.due_date = invoice.issue_date + timedelta(days=due_days)
        if invoice.is_recurring and not invoice.recurring_frequency:
            raise ValueError("recurring_frequency is required for recurring invoices")

        invoice.invoice_number = (
            invoice_number.strip() if invoice_number
            else next_invoice_number(user, numbering, today)
        )
        recompute_invoice(invoice, lines)
        invoice.paid_amount = Decimal("0")
        invoice.payment_status = PaymentStatus.UNPAID
        invoice.save_numbered()
        invoice.replace_items(lines)

    logger.info("Invoice %s created for user %s total=%s %s",
                invoice.invoice_number, user.pk, invoice.total_amount, invoice.currency)
    return invoice


def update_invoice(
    invoice: Invoice,
    data: Dict[str, Any],
    items: Optional[Iterable[LineIn]] = None,
    *,
    invoice_number: Optional[str] = None,
) -> Invoice:
    """
    Edit an invoice. Totals are recomputed from the (possibly new) items and
    payment status re-derived; an edit may lower the status (e.g. a raised
    total turns ``paid`` into ``partially_paid``).
    """
    _check_fields(data)
    _check_client(invoice.user, data.get("client"))

    with transaction.atomic():
        locked = Invoice.objects.select_for_update().get(pk=invoice.pk)
        locked.set_fields(data)
        if locked.is_recurring and not locked.recurring_frequency:
            raise ValueError("recurring_frequency is required for recurring invoices")
        if invoice_number:
            locked.invoice_number = invoice_number.strip()
        locked.currency = locked.currency.upper()

        lines = list(items) if items is not None else None
        recompute_invoice(locked, lines)
        locked.paid_amount = _sum_payments(locked.pk)
        locked.payment_status = next_payment_status(
            locked.payment_status, locked.paid_amount, locked.total_amount, reversal=True
        )
        locked.save_numbered()
        if lines is not None:
            locked.replace_items(lines)

    return locked


def transition_invoice(invoice: Invoice, event: str, at=None) -> Invoice:
    at = at or timezone.now()
    with transaction.atomic():
        locked = Invoice.objects.select_for_update().get(pk=invoice.pk)
        old = locked.status
        try:
            new = transition(DocumentKind.INVOICE, old, event)
        except InvalidTransition:
            logger.warning("Rejected invoice transition %s: %s --%s-->", locked.pk, old, event)
            raise
        locked.status = new
        if event == StatusEvent.SEND:
            locked.sent_at = at
        elif event == StatusEvent.VIEW:
            locked.last_viewed_at = at
        locked.log_status_change(old, new, event, at)
        locked.save(update_fields=["status", "sent_at", "last_viewed_at", "status_history", "updated_at"])
    return locked


# ---------- payments ----------

def _sum_payments(invoice_id) -> Decimal:
    total = Payment.objects.filter(invoice_id=invoice_id).aggregate(s=Sum("amount"))["s"]
    return total or Decimal("0")


def refresh_payment_state(invoice_id, *, reversal: bool = False) -> Optional[Invoice]:
    """
    Re-read the paid amount from the payments table and re-derive
    payment_status. Called from the Payment signals.
    """
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().filter(pk=invoice_id).first()
        if invoice is None:
            return None
        paid = _sum_payments(invoice_id)
        new = next_payment_status(invoice.payment_status, paid, invoice.total_amount, reversal=reversal)
        invoice.paid_amount = paid
        invoice.payment_status = new
        invoice.save(update_fields=["paid_amount", "payment_status", "updated_at"])
    return invoice


def record_payment(
    user,
    invoice: Optional[Invoice],
    amount: Any,
    *,
    payment_date: Optional[date] = None,
    payment_method: Optional[str] = None,
    reference: str = "",
    notes: str = "",
) -> Payment:
    amount = to_amount(amount, "amount")
    if amount <= 0:
        raise InvalidAmount("Payment amount must be greater than zero.", field="amount")
    if invoice is not None and invoice.user_id != user.pk:
        raise ValueError("Invoice not found")

    payment = Payment.objects.create(
        user=user,
        invoice=invoice,
        amount=money(amount),
        payment_date=payment_date or timezone.localdate(),
        payment_method=payment_method or None,
        reference=reference,
        notes=notes,
    )
    logger.info("Payment %s recorded amount=%s invoice=%s", payment.pk, payment.amount, payment.invoice_id)
    return payment


def delete_payment(payment: Payment) -> None:
    """A reversal: the signal re-derives (and may lower) the invoice status."""
    payment.delete()


def mark_invoice_paid(invoice: Invoice, *, payment_method: Optional[str] = None,
                      payment_date: Optional[date] = None) -> Payment:
    invoice.refresh_from_db()
    balance = invoice.balance_due
    if balance <= 0:
        raise InvalidTransition("This invoice is already paid.", invoice=invoice.invoice_number)
    return record_payment(
        invoice.user,
        invoice,
        balance,
        payment_date=payment_date,
        payment_method=payment_method,
        notes="Marked as paid",
    )


def set_payment_status(invoice: Invoice, requested: str) -> Invoice:
    """
    Manual status change. Only accepted when it matches what the recorded
    payments already imply; otherwise record or delete a payment.
    """
    invoice.refresh_from_db()
    derived = validate_payment_status_request(requested, invoice.paid_amount, invoice.total_amount)
    if derived != invoice.payment_status:
        invoice = refresh_payment_state(invoice.pk, reversal=True)
    return invoice


def record_debt_collection(invoice: Invoice, amount: Any, notes: str = "") -> DebtCollection:
    amount = to_amount(amount, "amount_collected")
    if amount <= 0:
        raise InvalidAmount("Collected amount must be greater than zero.", field="amount_collected")
    return DebtCollection.objects.create(
        user=invoice.user, invoice=invoice, amount_collected=money(amount), notes=notes
    )
