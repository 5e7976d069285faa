# billing-backend/invoices/views.py

import logging

from django.db import transaction
from django.http import HttpResponse
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from billing.choices import DocumentKind
from billing.pdf import render_document_pdf
from billing.serializers import CalculateSerializer, SendEmailSerializer, TransitionSerializer
from billing.services.totals import calculate, serialize_totals
from common.api_mixins import BillingErrorResponseMixin, OwnerScopedViewSetMixin
from emails.models import EmailLog
from emails.services import send_document_email
from subscriptions.services import enforce_limit, record_usage

from .models import Invoice, Payment
from .serializers import (
    DebtCollectionSerializer,
    InvoiceListSerializer,
    InvoiceSerializer,
    InvoiceWriteSerializer,
    MarkPaidSerializer,
    PaymentSerializer,
    PaymentStatusSerializer,
)
from .services import (
    create_invoice,
    delete_payment,
    mark_invoice_paid,
    record_debt_collection,
    record_payment,
    set_payment_status,
    transition_invoice,
    update_invoice,
)

logger = logging.getLogger(__name__)


class InvoiceCalculateView(BillingErrorResponseMixin, APIView):
    """
    POST /api/v1/invoices/calculate
    Body: {"currency": "USD", "items": [{"product_name", "quantity", "rate"}], "discount_percentage", ...}

    Totals preview for an editing surface. Nothing is saved.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        ser = CalculateSerializer(data=request.data, context={"request": request})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        totals = calculate(
            ser.lines(),
            currency=data["currency"],
            discount_percentage=data.get("discount_percentage"),
            discount_amount=data.get("discount_amount"),
            tax_percentage=data.get("tax_percentage"),
            shipping_charge=data.get("shipping_charge"),
        )
        return Response(serialize_totals(totals))


class InvoiceViewSet(BillingErrorResponseMixin, OwnerScopedViewSetMixin, viewsets.ModelViewSet):
    queryset = Invoice.objects.select_related("client").prefetch_related("items")
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ["status", "payment_status", "currency", "client", "is_recurring"]
    search_fields = ["invoice_number", "client__name", "client__company", "client__email"]
    ordering = ["-created_at", "-id"]
    ordering_fields = ["created_at", "issue_date", "due_date", "total_amount", "invoice_number"]

    def get_serializer_class(self):
        if self.action == "list":
            return InvoiceListSerializer
        if self.action in ("create", "update", "partial_update"):
            return InvoiceWriteSerializer
        return InvoiceSerializer

    def _read(self, invoice, code=status.HTTP_200_OK):
        return Response(InvoiceSerializer(invoice, context=self.get_serializer_context()).data, status=code)

    def create(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invoice = create_invoice(
            request.user,
            ser.model_data(),
            ser.lines() or [],
            numbering=ser.validated_data.get("numbering"),
            invoice_number=ser.validated_data.get("number") or None,
        )
        return self._read(invoice, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        invoice = self.get_object()
        ser = self.get_serializer(invoice, data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        invoice = update_invoice(
            invoice,
            ser.model_data(),
            ser.lines(),
            invoice_number=ser.validated_data.get("number") or None,
        )
        return self._read(invoice)

    @action(detail=True, methods=["POST"])
    def transition(self, request, pk=None):
        """
        POST /api/v1/invoices/{id}/transition
        Body: {"event": "send" | "view"}
        """
        ser = TransitionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invoice = transition_invoice(self.get_object(), ser.validated_data["event"])
        return self._read(invoice)

    @action(detail=True, methods=["POST"], url_path="send-email")
    def send_email(self, request, pk=None):
        ser = SendEmailSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invoice = self.get_object()
        log = send_document_email(invoice, DocumentKind.INVOICE, **ser.validated_data)
        if log.status != EmailLog.STATUS_SENT:
            return Response(
                {"detail": "The email could not be sent. Try again later.", "log_id": log.id},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        invoice.refresh_from_db()
        return self._read(invoice)

    @action(detail=True, methods=["GET"])
    def pdf(self, request, pk=None):
        invoice = self.get_object()
        with transaction.atomic():
            enforce_limit(request.user, "pdfs")
            content = render_document_pdf(invoice, "Invoice")
            record_usage(request.user, "pdfs")
        response = HttpResponse(content, content_type="application/pdf")
        response["Content-Disposition"] = f'attachment; filename="{invoice.invoice_number}.pdf"'
        return response

    @action(detail=True, methods=["POST"], url_path="mark-paid")
    def mark_paid(self, request, pk=None):
        ser = MarkPaidSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invoice = self.get_object()
        mark_invoice_paid(invoice, **ser.validated_data)
        invoice.refresh_from_db()
        return self._read(invoice)

    @action(detail=True, methods=["POST"], url_path="payment-status")
    def payment_status(self, request, pk=None):
        ser = PaymentStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invoice = set_payment_status(self.get_object(), ser.validated_data["payment_status"])
        return self._read(invoice)

    @action(detail=True, methods=["GET"])
    def payments(self, request, pk=None):
        invoice = self.get_object()
        qs = invoice.payments.all().order_by("-payment_date", "-id")
        return Response(PaymentSerializer(qs, many=True, context=self.get_serializer_context()).data)

    @action(detail=True, methods=["POST"], url_path="debt-collections")
    def debt_collections(self, request, pk=None):
        ser = DebtCollectionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        entry = record_debt_collection(
            self.get_object(),
            ser.validated_data["amount_collected"],
            ser.validated_data.get("notes", ""),
        )
        return Response(DebtCollectionSerializer(entry).data, status=status.HTTP_201_CREATED)


class PaymentViewSet(
    BillingErrorResponseMixin,
    OwnerScopedViewSetMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Payments drive invoice payment status: creating one moves the invoice
    forward, deleting one is a reversal.
    """
    queryset = Payment.objects.select_related("invoice")
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ["invoice", "payment_method"]
    ordering = ["-payment_date", "-id"]
    ordering_fields = ["payment_date", "amount", "created_at"]

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = record_payment(
            self.request.user,
            data.get("invoice"),
            data["amount"],
            payment_date=data.get("payment_date"),
            payment_method=data.get("payment_method"),
            reference=data.get("reference", ""),
            notes=data.get("notes", ""),
        )

    def perform_destroy(self, instance):
        delete_payment(instance)
