from rest_framework import generics, permissions
from rest_framework.response import Response

from .models import Plan
from .serializers import LimitCheckSerializer, PlanSerializer, SubscriptionSerializer
from .services import get_active_subscription, limits_overview, resolve_plan


class PlanListView(generics.ListAPIView):
    serializer_class = PlanSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []
    pagination_class = None

    def get_queryset(self):
        return Plan.objects.filter(is_active=True).order_by("max_clients", "code")


class UsageLimitsView(generics.GenericAPIView):
    """
    GET /api/v1/subscriptions/limits

    Where the current user stands against every metered resource.
    """
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = LimitCheckSerializer

    def get(self, request, *args, **kwargs):
        plan = resolve_plan(request.user)
        sub = get_active_subscription(request.user)
        checks = limits_overview(request.user)
        return Response({
            "plan": plan.code if plan else None,
            "subscription": SubscriptionSerializer(sub).data if sub else None,
            "limits": {name: self.get_serializer(check).data for name, check in checks.items()},
        })
