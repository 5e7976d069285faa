# billing-backend/quotations/serializers.py

from rest_framework import serializers

from billing.serializers import DocumentWriteSerializer
from common.serializers import StrictFieldsMixin

from .models import Quotation, QuotationItem


class QuotationItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuotationItem
        fields = ["id", "product_name", "description", "quantity", "unit", "rate", "amount", "position"]
        read_only_fields = fields


class QuotationSerializer(serializers.ModelSerializer):
    items = QuotationItemSerializer(many=True, read_only=True)
    client_name = serializers.CharField(source="client.display_name", read_only=True, default=None)
    display_status = serializers.SerializerMethodField()
    converted_invoice_number = serializers.CharField(
        source="converted_invoice.invoice_number", read_only=True, default=None
    )

    class Meta:
        model = Quotation
        fields = [
            "id",
            "quotation_number",
            "client",
            "client_name",
            "currency",
            "issue_date",
            "valid_until",
            "status",
            "display_status",
            "items",
            "discount_percentage",
            "discount_fixed",
            "discount_amount",
            "tax_percentage",
            "tax_amount",
            "shipping_charge",
            "subtotal",
            "total_amount",
            "converted_invoice",
            "converted_invoice_number",
            "sent_at",
            "last_viewed_at",
            "accepted_at",
            "status_history",
            "notes",
            "terms",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_display_status(self, obj):
        return obj.display_status(self.context.get("today"))


class QuotationWriteSerializer(DocumentWriteSerializer):
    valid_until = serializers.DateField(required=False, allow_null=True)


class ConvertSerializer(StrictFieldsMixin, serializers.Serializer):
    due_date = serializers.DateField(required=False, allow_null=True)
