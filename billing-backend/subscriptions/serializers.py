from rest_framework import serializers
from .models import Plan, Subscription


class PlanSerializer(serializers.ModelSerializer):
    class Meta:
        model = Plan
        fields = [
            "id",
            "code",
            "name",
            "description",
            "max_clients",
            "max_invoices",
            "max_pdfs",
            "max_emails",
            "features",
        ]


class SubscriptionSerializer(serializers.ModelSerializer):
    plan_code = serializers.CharField(source="plan.code", read_only=True)
    plan_name = serializers.CharField(source="plan.name", read_only=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "plan_code",
            "plan_name",
            "status",
            "current_period_start",
            "current_period_end",
        ]


class LimitCheckSerializer(serializers.Serializer):
    resource = serializers.CharField()
    status = serializers.CharField()
    current = serializers.IntegerField()
    limit = serializers.SerializerMethodField()
    remaining = serializers.SerializerMethodField()
    unlimited = serializers.BooleanField()

    def get_limit(self, obj):
        return None if obj.unlimited else obj.limit

    def get_remaining(self, obj):
        # math.inf is not valid JSON
        return None if obj.unlimited else obj.remaining
