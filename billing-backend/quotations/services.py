# quotations/services.py
import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from billing.choices import DocumentKind, NumberingStrategy, StatusEvent
from billing.services.numbering import last_issued_number, next_document_number
from billing.services.status import ensure_editable, transition
from billing.services.totals import LineIn
from common.exceptions import InvalidTransition
from invoices.services import create_invoice, default_currency

from .models import Quotation

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "client",
    "currency",
    "issue_date",
    "valid_until",
    "discount_percentage",
    "discount_amount",
    "tax_percentage",
    "shipping_charge",
    "notes",
    "terms",
)

# Carried from the quotation into the invoice it converts to.
CONVERTED_FIELDS = (
    "client",
    "currency",
    "notes",
    "terms",
)


def quotation_prefix() -> str:
    return getattr(settings, "QUOTATION_NUMBER_PREFIX", "QUO")


def next_quotation_number(user, strategy: str = NumberingStrategy.AUTO, today: Optional[date] = None,
                          manual_number: Optional[str] = None) -> str:
    prefix = quotation_prefix()
    last = None
    if strategy != NumberingStrategy.MANUAL:
        numbers = Quotation.objects.filter(
            user=user, quotation_number__startswith=f"{prefix}-"
        ).values_list("quotation_number", flat=True)
        last = last_issued_number(numbers, prefix)
    return next_document_number(
        prefix, strategy, last, today or timezone.localdate(), manual_number=manual_number
    )


def _check(user, data: Dict[str, Any]) -> None:
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown quotation field(s): {', '.join(sorted(unknown))}")
    client = data.get("client")
    if client is not None and client.user_id != user.pk:
        raise ValueError("Client not found")


def create_quotation(
    user,
    data: Dict[str, Any],
    items: Iterable[LineIn],
    *,
    numbering: str = NumberingStrategy.AUTO,
    quotation_number: Optional[str] = None,
    today: Optional[date] = None,
) -> Quotation:
    _check(user, data)
    lines = list(items)
    today = today or timezone.localdate()

    with transaction.atomic():
        quotation = Quotation(user=user)
        quotation.set_fields(data)
        quotation.currency = (quotation.currency or default_currency()).upper()
        if not data.get("issue_date"):
            quotation.issue_date = today
        quotation.quotation_number = (
            quotation_number.strip() if quotation_number
            else next_quotation_number(user, numbering, today)
        )
        quotation.apply_totals(quotation.calculate_totals(lines))
        quotation.save_numbered()
        quotation.replace_items(lines)

    logger.info("Quotation %s created for user %s", quotation.quotation_number, user.pk)
    return quotation


def update_quotation(
    quotation: Quotation,
    data: Dict[str, Any],
    items: Optional[Iterable[LineIn]] = None,
    *,
    quotation_number: Optional[str] = None,
) -> Quotation:
    """Accepted, rejected and converted quotations are read-only."""
    _check(quotation.user, data)

    with transaction.atomic():
        locked = Quotation.objects.select_for_update().get(pk=quotation.pk)
        ensure_editable(DocumentKind.QUOTATION, locked.status)
        locked.set_fields(data)
        if quotation_number:
            locked.quotation_number = quotation_number.strip()
        locked.currency = locked.currency.upper()

        lines = list(items) if items is not None else None
        locked.apply_totals(locked.calculate_totals(lines))
        locked.save_numbered()
        if lines is not None:
            locked.replace_items(lines)
    return locked


def _apply(locked: Quotation, event: str, at) -> None:
    old = locked.status
    try:
        new = transition(DocumentKind.QUOTATION, old, event)
    except InvalidTransition:
        logger.warning("Rejected quotation transition %s: %s --%s-->", locked.pk, old, event)
        raise
    locked.status = new
    if event == StatusEvent.SEND:
        locked.sent_at = at
    elif event == StatusEvent.VIEW:
        locked.last_viewed_at = at
    elif event == StatusEvent.ACCEPT:
        locked.accepted_at = at
    locked.log_status_change(old, new, event, at)


def transition_quotation(quotation: Quotation, event: str, at=None) -> Quotation:
    """send / view / accept / reject. Conversion goes through ``convert_to_invoice``."""
    if event == StatusEvent.CONVERT:
        raise InvalidTransition("Use convert to invoice to convert a quotation.")
    at = at or timezone.now()
    with transaction.atomic():
        locked = Quotation.objects.select_for_update().get(pk=quotation.pk)
        _apply(locked, event, at)
        locked.save()
    return locked


def convert_to_invoice(quotation: Quotation, today: Optional[date] = None, due_date: Optional[date] = None):
    """
    Turn an accepted quotation into a new draft invoice.

    The invoice totals are recomputed from the quotation's items; the
    quotation moves to ``converted`` and keeps a reference to the invoice.
    Limit-gated like any invoice creation.
    """
    today = today or timezone.localdate()
    with transaction.atomic():
        locked = Quotation.objects.select_for_update().get(pk=quotation.pk)
        # validate before creating anything
        transition(DocumentKind.QUOTATION, locked.status, StatusEvent.CONVERT)

        data = {name: getattr(locked, name) for name in CONVERTED_FIELDS}
        data.update(locked.charge_inputs())
        data["issue_date"] = today
        data["due_date"] = due_date
        invoice = create_invoice(locked.user, data, locked.line_inputs(), today=today)

        _apply(locked, StatusEvent.CONVERT, timezone.now())
        locked.converted_invoice = invoice
        locked.save()

    logger.info("Quotation %s converted to invoice %s", locked.quotation_number, invoice.invoice_number)
    return invoice
