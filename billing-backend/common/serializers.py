from rest_framework import serializers


class StrictFieldsMixin:
    """
    Rejects payload keys the serializer does not declare instead of
    silently dropping them.
    """

    def to_internal_value(self, data):
        if hasattr(data, "keys"):
            allowed = set(self.fields.keys())
            unknown = sorted(k for k in data.keys() if k not in allowed)
            if unknown:
                raise serializers.ValidationError(
                    {key: ["Unknown field."] for key in unknown}
                )
        return super().to_internal_value(data)
