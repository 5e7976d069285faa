# billing/records.py
"""
Plain records the pure core works on.

Services build these from ORM rows (see ``analytics.reports.loaders``) so the
calculator, state machine and aggregation engine never touch the database.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class DocumentRecord:
    id: int
    currency: str
    created_at: date
    total_amount: Decimal
    status: str
    payment_status: str
    paid_amount: Decimal = Decimal("0")
    due_date: Optional[date] = None
    client_id: Optional[int] = None
    client_type: Optional[str] = None


@dataclass(frozen=True)
class PaymentRecord:
    id: int
    amount: Decimal
    payment_date: date
    payment_method: Optional[str] = None
    invoice_id: Optional[int] = None
    # None means the invoice's currency
    currency: Optional[str] = None


@dataclass(frozen=True)
class POSSaleRecord:
    id: int
    invoice_id: Optional[int] = None


@dataclass(frozen=True)
class DebtCollectionRecord:
    id: int
    invoice_id: int
    amount_collected: Decimal
    created_at: date
    currency: Optional[str] = None


@dataclass(frozen=True)
class PlanLimits:
    max_clients: int
    max_invoices: int
    max_pdfs: int
    max_emails: int

    def for_resource(self, resource: str) -> int:
        return getattr(self, f"max_{resource}")


@dataclass(frozen=True)
class UsageCounts:
    clients: int = 0
    invoices: int = 0
    pdfs: int = 0
    emails: int = 0

    def for_resource(self, resource: str) -> int:
        return getattr(self, resource)
