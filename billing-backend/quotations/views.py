# billing-backend/quotations/views.py

from django.db import transaction
from django.http import HttpResponse
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from billing.choices import DocumentKind
from billing.pdf import render_document_pdf
from billing.serializers import SendEmailSerializer, TransitionSerializer
from common.api_mixins import BillingErrorResponseMixin, OwnerScopedViewSetMixin
from emails.models import EmailLog
from emails.services import send_document_email
from invoices.serializers import InvoiceSerializer
from subscriptions.services import enforce_limit, record_usage

from .models import Quotation
from .serializers import ConvertSerializer, QuotationSerializer, QuotationWriteSerializer
from .services import convert_to_invoice, create_quotation, transition_quotation, update_quotation


class QuotationViewSet(BillingErrorResponseMixin, OwnerScopedViewSetMixin, viewsets.ModelViewSet):
    queryset = Quotation.objects.select_related("client", "converted_invoice").prefetch_related("items")
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ["status", "currency", "client"]
    search_fields = ["quotation_number", "client__name", "client__company"]
    ordering = ["-created_at", "-id"]
    ordering_fields = ["created_at", "issue_date", "valid_until", "total_amount", "quotation_number"]

    def get_serializer_class(self):
        if self.action in ("create", "update", "partial_update"):
            return QuotationWriteSerializer
        return QuotationSerializer

    def _read(self, quotation, code=status.HTTP_200_OK):
        return Response(QuotationSerializer(quotation, context=self.get_serializer_context()).data, status=code)

    def create(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        quotation = create_quotation(
            request.user,
            ser.model_data(),
            ser.lines() or [],
            numbering=ser.validated_data.get("numbering"),
            quotation_number=ser.validated_data.get("number") or None,
        )
        return self._read(quotation, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        quotation = self.get_object()
        ser = self.get_serializer(quotation, data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        quotation = update_quotation(
            quotation,
            ser.model_data(),
            ser.lines(),
            quotation_number=ser.validated_data.get("number") or None,
        )
        return self._read(quotation)

    @action(detail=True, methods=["POST"])
    def transition(self, request, pk=None):
        """
        POST /api/v1/quotations/{id}/transition
        Body: {"event": "send" | "view" | "accept" | "reject"}
        """
        ser = TransitionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        quotation = transition_quotation(self.get_object(), ser.validated_data["event"])
        return self._read(quotation)

    @action(detail=True, methods=["POST"])
    def convert(self, request, pk=None):
        """POST /api/v1/quotations/{id}/convert -> the new invoice"""
        ser = ConvertSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invoice = convert_to_invoice(self.get_object(), due_date=ser.validated_data.get("due_date"))
        return Response(
            InvoiceSerializer(invoice, context=self.get_serializer_context()).data,
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["POST"], url_path="send-email")
    def send_email(self, request, pk=None):
        ser = SendEmailSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        quotation = self.get_object()
        log = send_document_email(quotation, DocumentKind.QUOTATION, **ser.validated_data)
        if log.status != EmailLog.STATUS_SENT:
            return Response(
                {"detail": "The email could not be sent. Try again later.", "log_id": log.id},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        quotation.refresh_from_db()
        return self._read(quotation)

    @action(detail=True, methods=["GET"])
    def pdf(self, request, pk=None):
        quotation = self.get_object()
        with transaction.atomic():
            enforce_limit(request.user, "pdfs")
            content = render_document_pdf(quotation, "Quotation")
            record_usage(request.user, "pdfs")
        response = HttpResponse(content, content_type="application/pdf")
        response["Content-Disposition"] = f'attachment; filename="{quotation.quotation_number}.pdf"'
        return response
