# pos/views.py
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.api_mixins import BillingErrorResponseMixin, OwnerScopedViewSetMixin

from .models import POSSale
from .serializers import POSSaleCreateSerializer, POSSaleSerializer
from .services import create_pos_sale


class POSSaleViewSet(
    BillingErrorResponseMixin,
    OwnerScopedViewSetMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """
    GET  /api/v1/pos/sales
    POST /api/v1/pos/sales
    Body: {"items": [...], "currency": "USD", "amount_paid": "20.00", "generate_invoice": true}
    """
    queryset = POSSale.objects.select_related("client", "invoice").prefetch_related("items")
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ["currency", "payment_method", "client"]
    search_fields = ["sale_number", "notes"]
    ordering = ["-created_at", "-id"]
    ordering_fields = ["created_at", "total_amount", "sale_number"]

    def get_serializer_class(self):
        if self.action == "create":
            return POSSaleCreateSerializer
        return POSSaleSerializer

    def create(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        sale = create_pos_sale(
            request.user,
            ser.sale_data(),
            ser.lines(),
            amount_paid=data.get("amount_paid"),
            payment_method=data.get("payment_method"),
            generate_invoice=data.get("generate_invoice", False),
        )
        out = POSSaleSerializer(sale, context=self.get_serializer_context())
        return Response(out.data, status=status.HTTP_201_CREATED)
