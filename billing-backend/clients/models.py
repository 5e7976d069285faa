# billing-backend/clients/models.py

from django.conf import settings
from django.db import models

from billing.choices import ClientType
from common.models import TimeStampedModel


class Client(TimeStampedModel):
    """
    Someone the user bills. Owned by a single user; invoices and quotations
    keep pointing at nothing (SET_NULL) if the client is deleted.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="clients",
    )
    name = models.CharField(max_length=160)
    company = models.CharField(max_length=160, blank=True, default="")
    client_type = models.CharField(
        max_length=16, choices=ClientType.choices, default=ClientType.INDIVIDUAL
    )

    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")
    tax_id = models.CharField(max_length=64, blank=True, default="")

    # Billing address
    address_line1 = models.CharField(max_length=255, blank=True, default="")
    address_line2 = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    state_province = models.CharField(max_length=100, blank=True, default="")
    postal_code = models.CharField(max_length=32, blank=True, default="")
    country = models.CharField(
        max_length=2, blank=True, default="", help_text="ISO 3166-1 alpha-2 code"
    )

    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["name", "id"]
        indexes = [
            models.Index(fields=["user", "name"], name="client_user_name_idx"),
            models.Index(fields=["user", "client_type"], name="client_user_type_idx"),
        ]

    def __str__(self) -> str:
        return self.display_name

    @property
    def display_name(self) -> str:
        if self.client_type == ClientType.BUSINESS and self.company:
            return self.company
        return self.name
