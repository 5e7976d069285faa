# analytics/reports/dashboard.py
"""
Dashboard headline numbers: the current window against the window of the
same length right before it, both computed by ``aggregate``.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from billing.records import DebtCollectionRecord, DocumentRecord, PaymentRecord, POSSaleRecord
from billing.services.totals import money

from .aggregation import (
    BUCKET_MONTH,
    AggregationFilters,
    aggregate,
    percent_change,
    previous_period,
    serialize_bucket,
)

METRICS = (
    ("total_invoiced", "invoiced_total"),
    ("revenue_received", "received_total"),
    ("outstanding", "outstanding_total"),
    ("debt_collected", "debt_collected_total"),
)


def _metric(current: Decimal, previous: Decimal) -> Dict[str, str]:
    return {
        "current": str(money(current)),
        "previous": str(money(previous)),
        "change_percent": str(percent_change(current, previous)),
    }


def compute_dashboard(
    documents: Iterable[DocumentRecord],
    payments: Iterable[PaymentRecord],
    pos_sales: Iterable[POSSaleRecord],
    debt_collections: Iterable[DebtCollectionRecord],
    currency: str,
    date_from: date,
    date_to: date,
    *,
    today: Optional[date] = None,
    client_type: Optional[str] = None,
) -> Dict[str, Any]:
    # the inputs are walked twice
    documents, payments = list(documents), list(payments)
    pos_sales, debt_collections = list(pos_sales), list(debt_collections)
    prev_from, prev_to = previous_period(date_from, date_to)

    def run(start, end):
        filters = AggregationFilters(date_from=start, date_to=end, client_type=client_type, today=today)
        return aggregate(
            documents, payments, pos_sales, currency, filters, BUCKET_MONTH,
            debt_collections=debt_collections,
        )

    current = run(date_from, date_to)
    previous = run(prev_from, prev_to)

    return {
        "currency": current.currency,
        "period": {"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        "previous_period": {"date_from": prev_from.isoformat(), "date_to": prev_to.isoformat()},
        "metrics": {
            name: _metric(getattr(current, attr), getattr(previous, attr))
            for name, attr in METRICS
        },
        "invoice_count": current.invoice_count,
        "previous_invoice_count": previous.invoice_count,
        "monthly": [serialize_bucket(b) for b in current.buckets],
    }
