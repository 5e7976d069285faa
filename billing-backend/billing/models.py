# billing/models.py
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import IntegrityError, models, transaction
from django.utils import timezone

from billing.services.totals import LineIn, TotalsOut, calculate, line_amount, money, rounded_totals
from common.exceptions import DuplicateDocumentNumber
from common.models import TimeStampedModel


def money_field(**kwargs):
    kwargs.setdefault("default", Decimal("0"))
    return models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0"))], **kwargs
    )


class FinancialDocument(TimeStampedModel):
    """
    Fields and the recompute path shared by invoices and quotations.

    Stored totals are always the calculator's output; ``apply_totals`` is the
    only place they are written.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="%(class)ss"
    )
    client = models.ForeignKey(
        "clients.Client", null=True, blank=True, on_delete=models.SET_NULL, related_name="%(class)ss"
    )
    currency = models.CharField(max_length=3, default="USD")

    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    # what the caller asked for; discount_amount is what the calculator applied
    discount_fixed = money_field()
    discount_amount = money_field()
    tax_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    shipping_charge = money_field()

    subtotal = money_field()
    tax_amount = money_field()
    total_amount = money_field()

    issue_date = models.DateField(default=timezone.localdate)
    notes = models.TextField(blank=True, default="")
    terms = models.TextField(blank=True, default="")

    status_history = models.JSONField(default=list, blank=True)

    number_field = None  # e.g. "invoice_number"

    class Meta:
        abstract = True

    @property
    def number(self) -> str:
        return getattr(self, self.number_field)

    # Subclasses name their items relation "items".
    def line_inputs(self):
        return [item.as_line_in() for item in self.items.all().order_by("position", "id")]

    def set_fields(self, data) -> None:
        """Assign caller fields. A caller's ``discount_amount`` is the fixed discount."""
        for name, value in data.items():
            setattr(self, "discount_fixed" if name == "discount_amount" else name, value)

    def charge_inputs(self):
        """Calculator inputs in caller terms, for copying onto another document."""
        return {
            "discount_percentage": self.discount_percentage,
            "discount_amount": self.discount_fixed,
            "tax_percentage": self.tax_percentage,
            "shipping_charge": self.shipping_charge,
        }

    def calculate_totals(self, lines=None) -> TotalsOut:
        return calculate(
            self.line_inputs() if lines is None else lines,
            currency=self.currency,
            discount_percentage=self.discount_percentage,
            discount_amount=self.discount_fixed,
            tax_percentage=self.tax_percentage,
            shipping_charge=self.shipping_charge,
        )

    def apply_totals(self, totals: TotalsOut) -> None:
        totals = rounded_totals(totals)
        self.subtotal = totals.subtotal
        self.discount_amount = totals.discount_amount
        self.tax_amount = totals.tax_amount
        self.shipping_charge = totals.shipping_charge
        self.total_amount = totals.total

    def replace_items(self, lines) -> None:
        manager = self.items
        manager.all().delete()
        model, fk = manager.model, manager.field.name
        model.objects.bulk_create([
            model(
                **{fk: self},
                product_name=line.product_name,
                description=line.description,
                quantity=line.quantity,
                unit=line.unit,
                rate=line.rate,
                amount=money(line_amount(line.quantity, line.rate)),
                position=i,
            )
            for i, line in enumerate(lines)
        ])

    def save_numbered(self, **kwargs) -> None:
        """save(), turning a per-user number clash into DuplicateDocumentNumber."""
        try:
            with transaction.atomic():
                self.save(**kwargs)
        except IntegrityError:
            clash = type(self).objects.filter(
                user_id=self.user_id, **{self.number_field: self.number}
            ).exclude(pk=self.pk)
            if not clash.exists():
                raise
            raise DuplicateDocumentNumber(
                f"Number {self.number} is already in use. Pick a different number.",
                number=self.number,
            )

    def log_status_change(self, old: str, new: str, event: str, at=None) -> None:
        at = at or timezone.now()
        self.status_history = list(self.status_history or []) + [
            {"from": old, "to": new, "event": event, "at": at.isoformat()}
        ]


class LineItem(models.Model):
    product_name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    quantity = models.DecimalField(
        max_digits=12, decimal_places=3, validators=[MinValueValidator(Decimal("0"))]
    )
    unit = models.CharField(max_length=32, blank=True, default="")
    rate = money_field()
    amount = money_field()
    position = models.PositiveIntegerField(default=0)

    class Meta:
        abstract = True
        ordering = ["position", "id"]

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    def as_line_in(self) -> LineIn:
        return LineIn(
            product_name=self.product_name,
            quantity=self.quantity,
            rate=self.rate,
            description=self.description,
            unit=self.unit,
        )
