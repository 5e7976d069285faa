# billing-backend/invoices/serializers.py

from rest_framework import serializers

from billing.choices import Frequency, PaymentStatus
from billing.serializers import DocumentWriteSerializer
from common.serializers import StrictFieldsMixin

from .models import DebtCollection, Invoice, InvoiceItem, Payment


class InvoiceItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceItem
        fields = ["id", "product_name", "description", "quantity", "unit", "rate", "amount", "position"]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    items = InvoiceItemSerializer(many=True, read_only=True)
    client_name = serializers.CharField(source="client.display_name", read_only=True, default=None)
    display_status = serializers.SerializerMethodField()
    display_payment_status = serializers.SerializerMethodField()
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "client",
            "client_name",
            "currency",
            "issue_date",
            "due_date",
            "status",
            "display_status",
            "payment_status",
            "display_payment_status",
            "items",
            "discount_percentage",
            "discount_fixed",
            "discount_amount",
            "tax_percentage",
            "tax_amount",
            "shipping_charge",
            "subtotal",
            "total_amount",
            "paid_amount",
            "balance_due",
            "is_recurring",
            "recurring_frequency",
            "recurring_end_date",
            "recurring_last_date",
            "template_invoice",
            "sent_at",
            "last_viewed_at",
            "status_history",
            "notes",
            "terms",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_display_status(self, obj):
        return obj.display_status(self.context.get("today"))

    def get_display_payment_status(self, obj):
        return obj.display_payment_status(self.context.get("today"))


class InvoiceListSerializer(InvoiceSerializer):
    class Meta(InvoiceSerializer.Meta):
        fields = [
            "id",
            "invoice_number",
            "client",
            "client_name",
            "currency",
            "issue_date",
            "due_date",
            "status",
            "display_status",
            "payment_status",
            "display_payment_status",
            "total_amount",
            "paid_amount",
            "balance_due",
            "is_recurring",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceWriteSerializer(DocumentWriteSerializer):
    due_date = serializers.DateField(required=False, allow_null=True)
    is_recurring = serializers.BooleanField(required=False)
    recurring_frequency = serializers.ChoiceField(choices=Frequency.choices, required=False, allow_blank=True)
    recurring_end_date = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if attrs.get("is_recurring") and not attrs.get("recurring_frequency"):
            if self.instance is None or not self.instance.recurring_frequency:
                raise serializers.ValidationError(
                    {"recurring_frequency": "Pick how often this invoice repeats."}
                )
        return attrs


class OwnedInvoiceField(serializers.PrimaryKeyRelatedField):
    def get_queryset(self):
        request = self.context.get("request")
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return Invoice.objects.none()
        return Invoice.objects.filter(user=user)


class PaymentSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    invoice = OwnedInvoiceField(required=False, allow_null=True)
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            "id",
            "invoice",
            "invoice_number",
            "amount",
            "payment_date",
            "payment_method",
            "reference",
            "notes",
            "created_at",
        ]
        read_only_fields = ["created_at"]
        extra_kwargs = {
            # sign is checked by the service (InvalidAmount)
            "amount": {"min_value": None},
        }


class MarkPaidSerializer(StrictFieldsMixin, serializers.Serializer):
    payment_method = serializers.CharField(required=False, allow_blank=True, max_length=32)
    payment_date = serializers.DateField(required=False)


class PaymentStatusSerializer(StrictFieldsMixin, serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=PaymentStatus.choices)


class DebtCollectionSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    class Meta:
        model = DebtCollection
        fields = ["id", "invoice", "amount_collected", "notes", "created_at"]
        read_only_fields = ["invoice", "created_at"]
        extra_kwargs = {"amount_collected": {"min_value": None}}
