# analytics/reports/aggregation.py
"""
Aggregation engine for invoice and quotation analytics.

Works on plain records (``billing.records``) so it can be driven from the
ORM loaders, from tests or from any other caller without a database.

Preprocessing runs in a fixed order:
    1. collect the ids of invoices referenced by a POS sale (derived invoices)
    2. drop derived invoices
    3. drop invoices in any other currency
    4. apply the caller's filters (all of them must match)

Payments and debt collections only count when they belong to an invoice
that survived steps 1-4. The date range is matched against their own date
(``payment_date`` and ``created_at``) instead of the invoice's. They are
in the invoice's currency unless the record says otherwise, and a record in
another currency raises CurrencyMismatch instead of being summed.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from billing.choices import DEFAULT_PAYMENT_METHOD, DocumentKind, DocumentStatus, PaymentStatus
from billing.records import DebtCollectionRecord, DocumentRecord, PaymentRecord, POSSaleRecord
from billing.services.status import display_payment_status, display_status
from billing.services.totals import HUNDRED, ZERO, money
from common.exceptions import CurrencyMismatch

BUCKET_MONTH = "month"
BUCKET_STATUS = "status"
BUCKET_PAYMENT_STATUS = "payment_status"
BUCKET_METHOD = "method"
BUCKET_CLIENT = "client"
BUCKET_CHOICES = (BUCKET_MONTH, BUCKET_STATUS, BUCKET_PAYMENT_STATUS, BUCKET_METHOD, BUCKET_CLIENT)

OUTSTANDING_STATUSES = (PaymentStatus.UNPAID, PaymentStatus.PARTIALLY_PAID)

# invoices contribute nothing to payment-method buckets
_SKIP = object()


@dataclass(frozen=True)
class AggregationFilters:
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    client_type: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    # reference date for the overdue overlay
    today: Optional[date] = None

    def __post_init__(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be before or equal to date_to")

    def in_range(self, d: date) -> bool:
        if self.date_from and d < self.date_from:
            return False
        if self.date_to and d > self.date_to:
            return False
        return True


@dataclass
class Bucket:
    key: Any
    invoice_count: int = 0
    invoiced: Decimal = ZERO
    payment_count: int = 0
    received: Decimal = ZERO


@dataclass
class AggregationResult:
    currency: str
    bucket_by: str
    buckets: List[Bucket] = field(default_factory=list)
    invoice_count: int = 0
    invoiced_total: Decimal = ZERO
    received_total: Decimal = ZERO
    outstanding_total: Decimal = ZERO
    debt_collected_total: Decimal = ZERO
    excluded_derived: int = 0


# ---------- months ----------

def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_keys(start: date, end: date) -> List[str]:
    """Every ``YYYY-MM`` from ``start``'s month through ``end``'s month, inclusive."""
    if start > end:
        return []
    keys = []
    y, m = start.year, start.month
    while (y, m) <= (end.year, end.month):
        keys.append(f"{y:04d}-{m:02d}")
        m += 1
        if m > 12:
            y, m = y + 1, 1
    return keys


def previous_period(date_from: date, date_to: date):
    """The window of the same length ending the day before ``date_from``."""
    if date_from > date_to:
        raise ValueError("date_from must be before or equal to date_to")
    length = (date_to - date_from).days
    prev_to = date_from - timedelta(days=1)
    return prev_to - timedelta(days=length), prev_to


def percent_change(current: Decimal, previous: Decimal) -> Decimal:
    """Change in percent, 2 dp. A zero previous value reports 0."""
    if not previous:
        return Decimal("0.00")
    return money((Decimal(current) - Decimal(previous)) / Decimal(previous) * HUNDRED)


# ---------- preprocessing ----------

def derived_invoice_ids(pos_sales: Iterable[POSSaleRecord]) -> set:
    return {s.invoice_id for s in pos_sales if s.invoice_id is not None}


def _matches(doc: DocumentRecord, filters: AggregationFilters, kind: str = DocumentKind.INVOICE) -> bool:
    """Non-date filters; the date range is applied per record type."""
    if filters.client_type and doc.client_type != filters.client_type:
        return False
    if filters.status:
        status = doc.status
        if filters.status == DocumentStatus.OVERDUE:
            status = display_status(
                kind, doc.status, doc.due_date,
                filters.today or date.today(), doc.payment_status,
            )
        if status != filters.status:
            return False
    if filters.payment_status:
        ps = doc.payment_status
        if filters.payment_status == PaymentStatus.OVERDUE:
            ps = display_payment_status(doc.payment_status, doc.due_date, filters.today or date.today())
        if ps != filters.payment_status:
            return False
    return True


def _candidates(documents, pos_sales, currency):
    derived = derived_invoice_ids(pos_sales)
    kept, excluded = [], 0
    for doc in documents:
        if doc.id in derived:
            excluded += 1
            continue
        if (doc.currency or "").upper() != currency:
            continue
        kept.append(doc)
    return kept, excluded


def _ensure_currency(record_currency: Optional[str], currency: str) -> None:
    if record_currency is not None and record_currency.upper() != currency:
        raise CurrencyMismatch(
            f"Cannot add {record_currency} amounts to a {currency} total.",
            expected=currency, got=record_currency,
        )


# ---------- engine ----------

def aggregate(
    documents: Iterable[DocumentRecord],
    payments: Iterable[PaymentRecord],
    pos_sales: Iterable[POSSaleRecord],
    currency: str,
    filters: Optional[AggregationFilters] = None,
    bucket_by: str = BUCKET_MONTH,
    debt_collections: Iterable[DebtCollectionRecord] = (),
) -> AggregationResult:
    """
    Bucket invoices and payments in ``currency``.

    month           invoices by ``created_at``, payments by ``payment_date``,
                    every month of the range present (zero-filled)
    status          invoices by stored status
    payment_status  invoices by stored payment status
    method          payments by method, empty methods counted as ``cash``
    client          invoices by client id (``None`` for invoices without a client)
    """
    if bucket_by not in BUCKET_CHOICES:
        raise ValueError(f"bucket_by must be one of: {', '.join(BUCKET_CHOICES)}")
    currency = (currency or "").strip().upper()
    if not currency:
        raise ValueError("A currency is required.")
    filters = filters or AggregationFilters()

    candidates, excluded = _candidates(documents, pos_sales, currency)
    linked = {d.id: d for d in candidates if _matches(d, filters)}
    kept = [d for d in linked.values() if filters.in_range(d.created_at)]
    kept_payments = [
        p for p in payments
        if p.invoice_id in linked and filters.in_range(p.payment_date)
    ]
    kept_debts = [
        c for c in debt_collections
        if c.invoice_id in linked and filters.in_range(c.created_at)
    ]

    result = AggregationResult(currency=currency, bucket_by=bucket_by, excluded_derived=excluded)
    buckets: "OrderedDict[Any, Bucket]" = OrderedDict()

    if bucket_by == BUCKET_MONTH:
        dates = [d.created_at for d in kept] + [p.payment_date for p in kept_payments]
        start = filters.date_from or (min(dates) if dates else None)
        end = filters.date_to or (max(dates) if dates else None)
        if start and end:
            for key in month_keys(start, end):
                buckets[key] = Bucket(key=key)

    def bucket(key) -> Bucket:
        if key not in buckets:
            buckets[key] = Bucket(key=key)
        return buckets[key]

    for doc in kept:
        result.invoice_count += 1
        result.invoiced_total += doc.total_amount
        if doc.payment_status in OUTSTANDING_STATUSES:
            result.outstanding_total += doc.total_amount - doc.paid_amount

        key = _document_key(doc, bucket_by)
        if key is _SKIP:
            continue
        b = bucket(key)
        b.invoice_count += 1
        b.invoiced += doc.total_amount

    for p in kept_payments:
        _ensure_currency(p.currency, currency)
        result.received_total += p.amount

        if bucket_by == BUCKET_MONTH:
            b = bucket(month_key(p.payment_date))
        elif bucket_by == BUCKET_METHOD:
            b = bucket(p.payment_method or DEFAULT_PAYMENT_METHOD)
        else:
            continue
        b.payment_count += 1
        b.received += p.amount

    for c in kept_debts:
        _ensure_currency(c.currency, currency)
        result.debt_collected_total += c.amount_collected

    result.buckets = list(buckets.values())
    if bucket_by == BUCKET_MONTH:
        result.buckets.sort(key=lambda b: b.key)
    return result


def _document_key(doc: DocumentRecord, bucket_by: str):
    if bucket_by == BUCKET_MONTH:
        return month_key(doc.created_at)
    if bucket_by == BUCKET_STATUS:
        return doc.status
    if bucket_by == BUCKET_PAYMENT_STATUS:
        return doc.payment_status
    if bucket_by == BUCKET_CLIENT:
        return doc.client_id
    # method buckets come from payments only
    return _SKIP


# ---------- quotations ----------

QUOTATION_BUCKET_CHOICES = (BUCKET_MONTH, BUCKET_STATUS, BUCKET_CLIENT)

# every stored quotation status shows up in status buckets, even when empty
QUOTATION_STATUSES = (
    DocumentStatus.DRAFT,
    DocumentStatus.SENT,
    DocumentStatus.VIEWED,
    DocumentStatus.ACCEPTED,
    DocumentStatus.REJECTED,
    DocumentStatus.CONVERTED,
)
WON_STATUSES = (DocumentStatus.ACCEPTED, DocumentStatus.CONVERTED)


@dataclass
class ValueBucket:
    key: Any
    count: int = 0
    value: Decimal = ZERO


@dataclass
class QuotationResult:
    currency: str
    bucket_by: str
    buckets: List[ValueBucket] = field(default_factory=list)
    quotation_count: int = 0
    won_count: int = 0
    total_value: Decimal = ZERO

    @property
    def average_value(self) -> Decimal:
        if not self.quotation_count:
            return ZERO
        return self.total_value / self.quotation_count

    @property
    def conversion_rate(self) -> Decimal:
        """Accepted or converted quotations, in percent of all of them."""
        if not self.quotation_count:
            return ZERO
        return Decimal(self.won_count) / Decimal(self.quotation_count) * HUNDRED


def aggregate_quotations(
    documents: Iterable[DocumentRecord],
    currency: str,
    filters: Optional[AggregationFilters] = None,
    bucket_by: str = BUCKET_MONTH,
) -> QuotationResult:
    """
    Bucket quotations in ``currency`` by month (``created_at``), stored
    status or client. Quotations are never derived, so only the currency
    and the caller's filters apply. ``due_date`` on the records is the
    quotation's ``valid_until``.
    """
    if bucket_by not in QUOTATION_BUCKET_CHOICES:
        raise ValueError(f"bucket_by must be one of: {', '.join(QUOTATION_BUCKET_CHOICES)}")
    currency = (currency or "").strip().upper()
    if not currency:
        raise ValueError("A currency is required.")
    filters = filters or AggregationFilters()

    candidates, _ = _candidates(documents, (), currency)
    kept = [
        d for d in candidates
        if _matches(d, filters, DocumentKind.QUOTATION) and filters.in_range(d.created_at)
    ]

    result = QuotationResult(currency=currency, bucket_by=bucket_by)
    buckets: "OrderedDict[Any, ValueBucket]" = OrderedDict()
    if bucket_by == BUCKET_STATUS:
        for status in QUOTATION_STATUSES:
            buckets[status.value] = ValueBucket(key=status.value)
    elif bucket_by == BUCKET_MONTH:
        dates = [d.created_at for d in kept]
        start = filters.date_from or (min(dates) if dates else None)
        end = filters.date_to or (max(dates) if dates else None)
        if start and end:
            for key in month_keys(start, end):
                buckets[key] = ValueBucket(key=key)

    for doc in kept:
        result.quotation_count += 1
        result.total_value += doc.total_amount
        if doc.status in WON_STATUSES:
            result.won_count += 1

        key = _document_key(doc, bucket_by)
        if key not in buckets:
            buckets[key] = ValueBucket(key=key)
        buckets[key].count += 1
        buckets[key].value += doc.total_amount

    result.buckets = list(buckets.values())
    return result


# ---------- output ----------

def serialize_bucket(b: Bucket) -> Dict:
    return {
        "key": b.key,
        "invoice_count": b.invoice_count,
        "invoiced": str(money(b.invoiced)),
        "payment_count": b.payment_count,
        "received": str(money(b.received)),
    }


def serialize_result(result: AggregationResult) -> Dict:
    return {
        "currency": result.currency,
        "bucket_by": result.bucket_by,
        "buckets": [serialize_bucket(b) for b in result.buckets],
        "totals": {
            "invoice_count": result.invoice_count,
            "invoiced": str(money(result.invoiced_total)),
            "received": str(money(result.received_total)),
            "outstanding": str(money(result.outstanding_total)),
            "debt_collected": str(money(result.debt_collected_total)),
        },
        "excluded_derived": result.excluded_derived,
    }


def serialize_quotation_result(result: QuotationResult) -> Dict:
    return {
        "currency": result.currency,
        "bucket_by": result.bucket_by,
        "buckets": [
            {"key": b.key, "count": b.count, "value": str(money(b.value))}
            for b in result.buckets
        ],
        "totals": {
            "quotation_count": result.quotation_count,
            "won_count": result.won_count,
            "total_value": str(money(result.total_value)),
            "average_value": str(money(result.average_value)),
            "conversion_rate": str(money(result.conversion_rate)),
        },
    }


def bucket_map(result) -> Dict[Any, Any]:
    return {b.key: b for b in result.buckets}