# billing-backend/clients/serializers.py

from rest_framework import serializers

from common.serializers import StrictFieldsMixin

from .models import Client


class ClientSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Client
        fields = [
            "id",
            "name",
            "company",
            "display_name",
            "client_type",
            "email",
            "phone",
            "tax_id",
            "address_line1",
            "address_line2",
            "city",
            "state_province",
            "postal_code",
            "country",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def validate_country(self, value):
        return (value or "").upper()


class ClientListSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Client
        fields = ["id", "display_name", "name", "company", "client_type", "email", "phone"]
