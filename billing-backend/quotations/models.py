# billing-backend/quotations/models.py

from django.db import models
from django.utils import timezone

from billing.choices import DocumentKind, DocumentStatus, QUOTATION_STORED_STATUSES
from billing.models import FinancialDocument, LineItem
from billing.services.status import display_status


class Quotation(FinancialDocument):
    kind = DocumentKind.QUOTATION
    number_field = "quotation_number"

    quotation_number = models.CharField(max_length=64)
    valid_until = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=16, choices=QUOTATION_STORED_STATUSES, default=DocumentStatus.DRAFT
    )

    converted_invoice = models.ForeignKey(
        "invoices.Invoice",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="source_quotations",
    )
    sent_at = models.DateTimeField(null=True, blank=True)
    last_viewed_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "quotation_number"], name="uniq_quotation_number_per_user"
            ),
        ]
        indexes = [
            models.Index(fields=["user", "status"], name="quotation_user_status_idx"),
            models.Index(fields=["user", "created_at"], name="quotation_user_created_idx"),
        ]

    def __str__(self):
        return f"{self.quotation_number} ({self.currency} {self.total_amount})"

    def display_status(self, today=None) -> str:
        return display_status(self.kind, self.status, self.valid_until, today or timezone.localdate())


class QuotationItem(LineItem):
    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name="items")

    class Meta(LineItem.Meta):
        pass
