from rest_framework import serializers

from billing.choices import NumberingStrategy, StatusEvent
from billing.services.totals import LineIn, to_amount
from clients.models import Client
from common.serializers import StrictFieldsMixin


class LineItemInputSerializer(StrictFieldsMixin, serializers.Serializer):
    product_name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    unit = serializers.CharField(required=False, allow_blank=True, max_length=32, default="")
    rate = serializers.DecimalField(max_digits=12, decimal_places=2)

    def to_line(self, data) -> LineIn:
        # sign checks raise InvalidAmount
        return LineIn(
            product_name=data["product_name"],
            quantity=to_amount(data["quantity"], "quantity"),
            rate=to_amount(data["rate"], "rate"),
            description=data.get("description", ""),
            unit=data.get("unit", ""),
        )


class ChargesSerializer(StrictFieldsMixin, serializers.Serializer):
    """Inputs of the calculator shared by every document write."""
    currency = serializers.CharField(max_length=3, required=False)
    discount_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    tax_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    shipping_charge = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    items = LineItemInputSerializer(many=True, required=False)

    def validate_currency(self, value):
        value = (value or "").upper()
        if len(value) != 3 or not value.isalpha():
            raise serializers.ValidationError("Use a 3-letter ISO 4217 currency code.")
        return value

    def validate(self, attrs):
        for name in ("discount_percentage", "discount_amount", "tax_percentage", "shipping_charge"):
            if name in attrs:
                attrs[name] = to_amount(attrs[name], name)
        return attrs

    def lines(self):
        """Validated items as calculator lines, or None when the payload had no items."""
        if "items" not in self.validated_data:
            return None
        child = self.fields["items"].child
        return [child.to_line(item) for item in self.validated_data["items"]]


class CalculateSerializer(ChargesSerializer):
    items = LineItemInputSerializer(many=True)
    currency = serializers.CharField(max_length=3)


class OwnedClientField(serializers.PrimaryKeyRelatedField):
    def get_queryset(self):
        request = self.context.get("request")
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return Client.objects.none()
        return Client.objects.filter(user=user)


class DocumentWriteSerializer(ChargesSerializer):
    """
    Create/edit payload for invoices and quotations. ``client`` only
    resolves against the requesting user's clients.
    """
    client = OwnedClientField(required=False, allow_null=True)
    issue_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    terms = serializers.CharField(required=False, allow_blank=True)
    numbering = serializers.ChoiceField(choices=NumberingStrategy.choices, required=False,
                                        default=NumberingStrategy.AUTO)
    number = serializers.CharField(max_length=64, required=False, allow_blank=True)

    NON_MODEL_FIELDS = ("items", "numbering", "number")

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if attrs.get("numbering") == NumberingStrategy.MANUAL and not (attrs.get("number") or "").strip():
            raise serializers.ValidationError({"number": "A number is required for manual numbering."})
        return attrs

    def model_data(self):
        return {k: v for k, v in self.validated_data.items() if k not in self.NON_MODEL_FIELDS}


class TransitionSerializer(StrictFieldsMixin, serializers.Serializer):
    event = serializers.ChoiceField(choices=StatusEvent.choices)


class SendEmailSerializer(StrictFieldsMixin, serializers.Serializer):
    to = serializers.EmailField(required=False)
    message = serializers.CharField(required=False, allow_blank=True, default="")
    attach_pdf = serializers.BooleanField(required=False, default=True)
