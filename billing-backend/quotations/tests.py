from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIRequestFactory, force_authenticate

from billing.choices import DocumentStatus, PaymentStatus, StatusEvent
from billing.services.totals import LineIn
from clients.models import Client
from common.exceptions import InvalidTransition, LimitExceeded
from invoices.models import Invoice
from quotations.models import Quotation
from quotations.services import (
    convert_to_invoice,
    create_quotation,
    transition_quotation,
    update_quotation,
)
from quotations.views import QuotationViewSet
from subscriptions.models import Plan, Subscription

User = get_user_model()


def line(rate, qty="1", name="Consulting"):
    return LineIn(product_name=name, quantity=Decimal(qty), rate=Decimal(rate))


class QuotationServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="quoter", password="x")
        self.client_obj = Client.objects.create(user=self.user, name="Ada", company="Acme")
        self.quotation = create_quotation(
            self.user,
            {"client": self.client_obj, "currency": "gbp", "discount_amount": Decimal("15"),
             "valid_until": date(2024, 2, 1), "notes": "Phase one"},
            [line("200.00"), line("12.50", "2", name="Hosting")],
            today=date(2024, 1, 2),
        )

    def test_numbers_and_totals(self):
        self.assertEqual(self.quotation.quotation_number, "QUO-0001")
        self.assertEqual(self.quotation.currency, "GBP")
        self.assertEqual(self.quotation.subtotal, Decimal("225.00"))
        self.assertEqual(self.quotation.total_amount, Decimal("210.00"))
        self.assertEqual(self.quotation.status, DocumentStatus.DRAFT)

    def test_accept_then_convert(self):
        transition_quotation(self.quotation, StatusEvent.SEND)
        accepted = transition_quotation(self.quotation, StatusEvent.ACCEPT)
        self.assertEqual(accepted.status, DocumentStatus.ACCEPTED)
        self.assertIsNotNone(accepted.accepted_at)

        invoice = convert_to_invoice(self.quotation, today=date(2024, 1, 20), due_date=date(2024, 2, 20))

        self.assertEqual(invoice.client, self.client_obj)
        self.assertEqual(invoice.currency, "GBP")
        self.assertEqual(invoice.total_amount, Decimal("210.00"))
        self.assertEqual(invoice.notes, "Phase one")
        self.assertEqual(invoice.issue_date, date(2024, 1, 20))
        self.assertEqual(invoice.due_date, date(2024, 2, 20))
        self.assertEqual(invoice.status, DocumentStatus.DRAFT)
        self.assertEqual(invoice.payment_status, PaymentStatus.UNPAID)
        self.assertEqual(invoice.items.count(), 2)

        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.status, DocumentStatus.CONVERTED)
        self.assertEqual(self.quotation.converted_invoice, invoice)
        self.assertEqual([h["to"] for h in self.quotation.status_history], ["sent", "accepted", "converted"])

    def test_only_accepted_quotations_convert(self):
        with self.assertRaises(InvalidTransition):
            convert_to_invoice(self.quotation)
        self.assertFalse(Invoice.objects.exists())

    def test_convert_event_is_not_a_plain_transition(self):
        transition_quotation(self.quotation, StatusEvent.ACCEPT)
        with self.assertRaises(InvalidTransition):
            transition_quotation(self.quotation, StatusEvent.CONVERT)

    def test_converted_quotation_cannot_convert_again(self):
        transition_quotation(self.quotation, StatusEvent.ACCEPT)
        convert_to_invoice(self.quotation)
        with self.assertRaises(InvalidTransition):
            convert_to_invoice(self.quotation)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_conversion_respects_invoice_limit(self):
        plan = Plan.objects.create(code="TEST_NO_INVOICES", name="None", max_clients=-1,
                                   max_invoices=0, max_pdfs=-1, max_emails=-1)
        Subscription.objects.create(user=self.user, plan=plan)
        transition_quotation(self.quotation, StatusEvent.ACCEPT)
        with self.assertRaises(LimitExceeded):
            convert_to_invoice(self.quotation)
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.status, DocumentStatus.ACCEPTED)

    def test_rejected_is_final(self):
        transition_quotation(self.quotation, StatusEvent.REJECT)
        for event in (StatusEvent.SEND, StatusEvent.ACCEPT, StatusEvent.VIEW):
            with self.assertRaises(InvalidTransition):
                transition_quotation(self.quotation, event)

    def test_closed_quotations_are_read_only(self):
        update_quotation(self.quotation, {"notes": "Revised"})
        transition_quotation(self.quotation, StatusEvent.ACCEPT)
        with self.assertRaises(InvalidTransition):
            update_quotation(self.quotation, {"notes": "Too late"})
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.notes, "Revised")

    def test_expired_display(self):
        transition_quotation(self.quotation, StatusEvent.SEND)
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.display_status(date(2024, 2, 2)), DocumentStatus.OVERDUE)
        self.assertEqual(self.quotation.display_status(date(2024, 2, 1)), DocumentStatus.SENT)


class QuotationAPITests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(username="quote-api", password="x")
        self.quotation = create_quotation(self.user, {}, [line("99.00")])

    def call(self, actions, method, data=None, **kwargs):
        request = getattr(self.factory, method)("/api/v1/quotations", data, format="json")
        force_authenticate(request, user=self.user)
        return QuotationViewSet.as_view(actions)(request, **kwargs)

    def test_create(self):
        response = self.call({"post": "create"}, "post", {
            "items": [{"product_name": "Audit", "quantity": "1", "rate": "500"}],
            "valid_until": "2030-01-01",
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["quotation_number"], "QUO-0002")
        self.assertEqual(response.data["total_amount"], "500.00")

    def test_transition_and_convert(self):
        accepted = self.call({"post": "transition"}, "post", {"event": "accept"}, pk=self.quotation.pk)
        self.assertEqual(accepted.data["status"], "accepted")

        converted = self.call({"post": "convert"}, "post", {}, pk=self.quotation.pk)
        self.assertEqual(converted.status_code, status.HTTP_201_CREATED)
        self.assertEqual(converted.data["invoice_number"], "INV-0001")
        self.assertEqual(converted.data["total_amount"], "99.00")

        detail = self.call({"get": "retrieve"}, "get", pk=self.quotation.pk)
        self.assertEqual(detail.data["status"], "converted")
        self.assertEqual(detail.data["converted_invoice_number"], "INV-0001")

    def test_convert_draft_is_a_conflict(self):
        response = self.call({"post": "convert"}, "post", {}, pk=self.quotation.pk)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "invalid_transition")

    def test_edit_after_accept_is_a_conflict(self):
        transition_quotation(self.quotation, StatusEvent.ACCEPT)
        response = self.call({"patch": "partial_update"}, "patch", {"notes": "x"}, pk=self.quotation.pk)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_edit_items(self):
        response = self.call({"patch": "partial_update"}, "patch", {
            "items": [{"product_name": "Audit", "quantity": "2", "rate": "10"}],
        }, pk=self.quotation.pk)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_amount"], "20.00")
        self.assertEqual(Quotation.objects.get(pk=self.quotation.pk).items.count(), 1)

    def test_pdf(self):
        response = self.call({"get": "pdf"}, "get", pk=self.quotation.pk)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("QUO-0001.pdf", response["Content-Disposition"])
