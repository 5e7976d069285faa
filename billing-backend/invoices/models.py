# billing-backend/invoices/models.py

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from billing.choices import (
    DocumentKind,
    DocumentStatus,
    Frequency,
    INVOICE_STORED_STATUSES,
    PaymentStatus,
    STORED_PAYMENT_STATUSES,
)
from billing.models import FinancialDocument, LineItem, money_field
from billing.services.status import display_payment_status, display_status
from common.models import TimeStampedModel


class Invoice(FinancialDocument):
    kind = DocumentKind.INVOICE
    number_field = "invoice_number"

    invoice_number = models.CharField(max_length=64)
    due_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=16, choices=INVOICE_STORED_STATUSES, default=DocumentStatus.DRAFT
    )
    payment_status = models.CharField(
        max_length=16, choices=STORED_PAYMENT_STATUSES, default=PaymentStatus.UNPAID
    )
    # Sum of linked payments; maintained by invoices.services.refresh_payment_state only.
    paid_amount = money_field()

    is_recurring = models.BooleanField(default=False)
    recurring_frequency = models.CharField(
        max_length=16, choices=Frequency.choices, blank=True, default=""
    )
    recurring_end_date = models.DateField(null=True, blank=True)
    recurring_last_date = models.DateField(
        null=True, blank=True, help_text="Cycle date of the last generated invoice."
    )
    template_invoice = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="generated_invoices",
        help_text="Recurring invoice this one was generated from.",
    )

    sent_at = models.DateTimeField(null=True, blank=True)
    last_viewed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "invoice_number"], name="uniq_invoice_number_per_user"
            ),
        ]
        indexes = [
            models.Index(fields=["user", "status"], name="invoice_user_status_idx"),
            models.Index(fields=["user", "payment_status"], name="invoice_user_payment_idx"),
            models.Index(fields=["user", "created_at"], name="invoice_user_created_idx"),
            models.Index(fields=["is_recurring"], name="invoice_recurring_idx"),
        ]

    def __str__(self):
        return f"{self.invoice_number} ({self.currency} {self.total_amount})"

    @property
    def balance_due(self) -> Decimal:
        return (self.total_amount or Decimal("0")) - (self.paid_amount or Decimal("0"))

    def display_status(self, today=None) -> str:
        return display_status(
            self.kind, self.status, self.due_date, today or timezone.localdate(), self.payment_status
        )

    def display_payment_status(self, today=None) -> str:
        return display_payment_status(self.payment_status, self.due_date, today or timezone.localdate())


class InvoiceItem(LineItem):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")

    class Meta(LineItem.Meta):
        pass


class Payment(TimeStampedModel):
    """
    Money received. A payment without an invoice is valid bookkeeping but
    never changes any invoice's payment status.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="payments"
    )
    invoice = models.ForeignKey(
        Invoice, null=True, blank=True, on_delete=models.SET_NULL, related_name="payments"
    )
    amount = money_field()
    payment_date = models.DateField(default=timezone.localdate)
    payment_method = models.CharField(max_length=32, blank=True, null=True)
    reference = models.CharField(max_length=128, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-payment_date", "-id"]
        indexes = [
            models.Index(fields=["user", "payment_date"], name="payment_user_date_idx"),
        ]

    def __str__(self):
        target = self.invoice.invoice_number if self.invoice_id else "unlinked"
        return f"Payment {self.amount} on {self.payment_date} ({target})"


class DebtCollection(TimeStampedModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="debt_collections"
    )
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="debt_collections")
    amount_collected = money_field()
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Collection {self.amount_collected} for {self.invoice_id}"
