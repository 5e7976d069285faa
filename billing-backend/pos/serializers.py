# pos/serializers.py
from rest_framework import serializers

from billing.serializers import LineItemInputSerializer, OwnedClientField
from common.serializers import StrictFieldsMixin

from .models import POSSale, POSSaleItem


class POSSaleItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = POSSaleItem
        fields = ["id", "product_name", "description", "quantity", "unit", "rate", "amount", "position"]
        read_only_fields = fields


class POSSaleSerializer(serializers.ModelSerializer):
    items = POSSaleItemSerializer(many=True, read_only=True)
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True, default=None)

    class Meta:
        model = POSSale
        fields = [
            "id",
            "sale_number",
            "client",
            "currency",
            "issue_date",
            "items",
            "subtotal",
            "discount_percentage",
            "discount_fixed",
            "discount_amount",
            "tax_percentage",
            "tax_amount",
            "total_amount",
            "amount_paid",
            "change_amount",
            "payment_method",
            "invoice",
            "invoice_number",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class POSSaleCreateSerializer(StrictFieldsMixin, serializers.Serializer):
    client = OwnedClientField(required=False, allow_null=True)
    currency = serializers.CharField(max_length=3, required=False)
    discount_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    tax_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = LineItemInputSerializer(many=True, allow_empty=False)
    amount_paid = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    payment_method = serializers.CharField(max_length=32, required=False, allow_blank=True)
    generate_invoice = serializers.BooleanField(required=False, default=False)

    NON_SALE_FIELDS = ("items", "amount_paid", "payment_method", "generate_invoice")

    def validate_currency(self, value):
        value = (value or "").upper()
        if len(value) != 3 or not value.isalpha():
            raise serializers.ValidationError("Use a 3-letter ISO 4217 currency code.")
        return value

    def sale_data(self):
        return {k: v for k, v in self.validated_data.items() if k not in self.NON_SALE_FIELDS}

    def lines(self):
        child = self.fields["items"].child
        return [child.to_line(item) for item in self.validated_data["items"]]
