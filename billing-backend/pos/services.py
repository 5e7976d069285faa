# pos/services.py
import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from billing.choices import DEFAULT_PAYMENT_METHOD, NumberingStrategy
from billing.services.numbering import last_issued_number, next_document_number
from billing.services.totals import LineIn, money, to_amount
from common.exceptions import InvalidAmount
from invoices.services import create_invoice, default_currency, record_payment

from .models import POSSale

logger = logging.getLogger(__name__)

SALE_FIELDS = (
    "client",
    "currency",
    "discount_percentage",
    "discount_amount",
    "tax_percentage",
    "notes",
)


def sale_prefix() -> str:
    return getattr(settings, "POS_SALE_NUMBER_PREFIX", "POS")


def next_sale_number(user) -> str:
    prefix = sale_prefix()
    numbers = POSSale.objects.filter(
        user=user, sale_number__startswith=f"{prefix}-"
    ).values_list("sale_number", flat=True)
    return next_document_number(prefix, NumberingStrategy.AUTO, last_issued_number(numbers, prefix))


def create_pos_sale(
    user,
    data: Dict[str, Any],
    items: Iterable[LineIn],
    *,
    amount_paid: Any = None,
    payment_method: Optional[str] = None,
    generate_invoice: bool = False,
    today: Optional[date] = None,
) -> POSSale:
    """
    Ring up a sale. ``amount_paid`` defaults to the total and may not be
    lower; the difference is returned as change.

    With ``generate_invoice`` an invoice for the same lines is created
    (limit-gated like any invoice) and paid in full. That invoice is
    linked to the sale, which excludes it from analytics.
    """
    unknown = set(data) - set(SALE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown sale field(s): {', '.join(sorted(unknown))}")
    client = data.get("client")
    if client is not None and client.user_id != user.pk:
        raise ValueError("Client not found")

    lines = list(items)
    if not lines:
        raise ValueError("A sale needs at least one item.")
    today = today or timezone.localdate()
    method = payment_method or DEFAULT_PAYMENT_METHOD

    with transaction.atomic():
        sale = POSSale(user=user, issue_date=today, payment_method=method)
        sale.set_fields(data)
        sale.currency = (sale.currency or default_currency()).upper()
        sale.sale_number = next_sale_number(user)
        sale.apply_totals(sale.calculate_totals(lines))

        paid = sale.total_amount if amount_paid is None else money(to_amount(amount_paid, "amount_paid"))
        if paid < sale.total_amount:
            raise InvalidAmount(
                "Amount paid is less than the sale total.",
                field="amount_paid", total=sale.total_amount,
            )
        sale.amount_paid = paid
        sale.change_amount = paid - sale.total_amount
        sale.save_numbered()
        sale.replace_items(lines)

        if generate_invoice:
            invoice_data = {"client": sale.client, "currency": sale.currency}
            invoice_data.update(sale.charge_inputs())
            invoice_data["issue_date"] = today
            invoice_data["due_date"] = today
            invoice_data["notes"] = f"POS Sale {sale.sale_number}"
            invoice = create_invoice(user, invoice_data, lines, today=today)
            sale.invoice = invoice
            sale.save(update_fields=["invoice", "updated_at"])
            if invoice.total_amount > 0:
                record_payment(
                    user, invoice, invoice.total_amount,
                    payment_date=today, payment_method=method, notes=f"POS Sale {sale.sale_number}",
                )

    logger.info("POS sale %s recorded for user %s total=%s %s invoice=%s",
                sale.sale_number, user.pk, sale.total_amount, sale.currency, sale.invoice_id)
    return sale
