# billing-backend/clients/views.py

from django.db import transaction
from django.db.models import Q
from rest_framework import generics, permissions

from common.api_mixins import BillingErrorResponseMixin, OwnerScopedViewSetMixin
from subscriptions.services import enforce_limit

from .models import Client
from .serializers import ClientListSerializer, ClientSerializer


class ClientListCreateView(BillingErrorResponseMixin, OwnerScopedViewSetMixin, generics.ListCreateAPIView):
    """
    GET /api/v1/clients/?q=&client_type=
    POST /api/v1/clients/   (limit-gated: clients)
    """

    permission_classes = [permissions.IsAuthenticated]
    queryset = Client.objects.all()

    def get_serializer_class(self):
        if self.request.method == "GET":
            return ClientListSerializer
        return ClientSerializer

    def get_queryset(self):
        qs = super().get_queryset()

        q = self.request.query_params.get("q")
        if q:
            qs = qs.filter(
                Q(name__icontains=q)
                | Q(company__icontains=q)
                | Q(email__icontains=q)
                | Q(phone__icontains=q)
            )
        client_type = self.request.query_params.get("client_type")
        if client_type:
            qs = qs.filter(client_type=client_type)
        return qs.order_by("name", "id")

    def perform_create(self, serializer):
        with transaction.atomic():
            enforce_limit(self.request.user, "clients")
            super().perform_create(serializer)


class ClientDetailView(OwnerScopedViewSetMixin, generics.RetrieveUpdateDestroyAPIView):
    """
    GET/PATCH/DELETE /api/v1/clients/<id>
    """

    permission_classes = [permissions.IsAuthenticated]
    serializer_class = ClientSerializer
    queryset = Client.objects.all()
