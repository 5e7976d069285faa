# pos/models.py
from django.db import models

from billing.choices import DEFAULT_PAYMENT_METHOD
from billing.models import FinancialDocument, LineItem, money_field


class POSSale(FinancialDocument):
    """
    A counter sale. When the cashier asks for an invoice, the generated
    invoice is linked through ``invoice``; such invoices are derived and
    never show up in analytics.
    """
    sale_number = models.CharField(max_length=64)
    amount_paid = money_field()
    change_amount = money_field()
    payment_method = models.CharField(max_length=32, default=DEFAULT_PAYMENT_METHOD)
    invoice = models.ForeignKey(
        "invoices.Invoice", null=True, blank=True, on_delete=models.SET_NULL, related_name="pos_sales"
    )

    number_field = "sale_number"

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["user", "sale_number"], name="uniq_pos_sale_number_per_user"),
        ]
        indexes = [
            models.Index(fields=["user", "created_at"], name="possale_user_created_idx"),
        ]

    def __str__(self):
        return f"{self.sale_number} ({self.total_amount} {self.currency})"


class POSSaleItem(LineItem):
    sale = models.ForeignKey(POSSale, on_delete=models.CASCADE, related_name="items")

    class Meta(LineItem.Meta):
        pass
