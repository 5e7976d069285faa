# analytics/reports/loaders.py
"""ORM rows -> the plain records the aggregation engine works on."""
from datetime import datetime
from typing import List

from django.utils import timezone

from billing.records import DebtCollectionRecord, DocumentRecord, PaymentRecord, POSSaleRecord
from invoices.models import DebtCollection, Invoice, Payment
from pos.models import POSSale
from quotations.models import Quotation


def _local_date(value):
    if isinstance(value, datetime):
        return timezone.localdate(value) if timezone.is_aware(value) else value.date()
    return value


def load_invoices(user) -> List[DocumentRecord]:
    rows = Invoice.objects.filter(user=user).values(
        "id", "currency", "created_at", "total_amount", "status", "payment_status",
        "paid_amount", "due_date", "client_id", "client__client_type",
    )
    return [
        DocumentRecord(
            id=r["id"],
            currency=r["currency"],
            created_at=_local_date(r["created_at"]),
            total_amount=r["total_amount"],
            status=r["status"],
            payment_status=r["payment_status"],
            paid_amount=r["paid_amount"],
            due_date=r["due_date"],
            client_id=r["client_id"],
            client_type=r["client__client_type"],
        )
        for r in rows
    ]


def load_payments(user) -> List[PaymentRecord]:
    rows = Payment.objects.filter(user=user).values(
        "id", "amount", "payment_date", "payment_method", "invoice_id"
    )
    return [PaymentRecord(**r) for r in rows]


def load_pos_sales(user) -> List[POSSaleRecord]:
    rows = POSSale.objects.filter(user=user, invoice__isnull=False).values("id", "invoice_id")
    return [POSSaleRecord(**r) for r in rows]


def load_debt_collections(user) -> List[DebtCollectionRecord]:
    rows = DebtCollection.objects.filter(user=user).values("id", "invoice_id", "amount_collected", "created_at")
    return [
        DebtCollectionRecord(
            id=r["id"],
            invoice_id=r["invoice_id"],
            amount_collected=r["amount_collected"],
            created_at=_local_date(r["created_at"]),
        )
        for r in rows
    ]


def load_quotations(user) -> List[DocumentRecord]:
    rows = Quotation.objects.filter(user=user).values(
        "id", "currency", "created_at", "total_amount", "status",
        "valid_until", "client_id", "client__client_type",
    )
    return [
        DocumentRecord(
            id=r["id"],
            currency=r["currency"],
            created_at=_local_date(r["created_at"]),
            total_amount=r["total_amount"],
            status=r["status"],
            payment_status="",
            due_date=r["valid_until"],
            client_id=r["client_id"],
            client_type=r["client__client_type"],
        )
        for r in rows
    ]
