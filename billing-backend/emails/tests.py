from decimal import Decimal
from smtplib import SMTPException
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIRequestFactory, force_authenticate

from billing.choices import DocumentKind, DocumentStatus, StatusEvent
from billing.services.totals import LineIn
from clients.models import Client
from common.exceptions import InvalidTransition, LimitExceeded
from emails.models import EmailLog, EmailTemplate
from emails.services import send_document_email
from invoices.services import create_invoice, transition_invoice
from invoices.views import InvoiceViewSet
from quotations.services import create_quotation, transition_quotation
from subscriptions.models import Plan, Subscription, UsageRecord

User = get_user_model()


def line(rate, qty="1"):
    return LineIn(product_name="Consulting", quantity=Decimal(qty), rate=Decimal(rate))


class SendDocumentEmailTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="sender", password="x", first_name="Sam", last_name="Lee")
        self.client_obj = Client.objects.create(user=self.user, name="Ada", email="ada@example.com")
        self.invoice = create_invoice(self.user, {"client": self.client_obj}, [line("120.00")])

    def emails_used(self):
        return UsageRecord.objects.filter(user=self.user, resource="emails").count()

    def test_send_invoice(self):
        log = send_document_email(self.invoice, DocumentKind.INVOICE, message="Thanks for your business")

        self.assertEqual(log.status, EmailLog.STATUS_SENT)
        self.assertIsNotNone(log.sent_at)
        self.assertEqual(len(mail.outbox), 1)
        sent = mail.outbox[0]
        self.assertEqual(sent.to, ["ada@example.com"])
        self.assertEqual(sent.subject, "Invoice INV-0001 from Sam Lee")
        self.assertIn("USD 120.00", sent.body)
        self.assertIn("Thanks for your business", sent.body)
        self.assertEqual(sent.attachments[0][0], "INV-0001.pdf")

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, DocumentStatus.SENT)
        self.assertEqual(self.emails_used(), 1)

    def test_explicit_recipient_without_attachment(self):
        send_document_email(self.invoice, DocumentKind.INVOICE, to="billing@acme.test", attach_pdf=False)
        self.assertEqual(mail.outbox[0].to, ["billing@acme.test"])
        self.assertEqual(mail.outbox[0].attachments, [])

    def test_resending_a_viewed_invoice_keeps_it_viewed(self):
        transition_invoice(self.invoice, StatusEvent.SEND)
        transition_invoice(self.invoice, StatusEvent.VIEW)
        send_document_email(self.invoice, DocumentKind.INVOICE)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, DocumentStatus.VIEWED)

    def test_recipient_is_required(self):
        invoice = create_invoice(self.user, {}, [line("10.00")])
        with self.assertRaises(ValueError):
            send_document_email(invoice, DocumentKind.INVOICE)
        self.assertFalse(EmailLog.objects.exists())

    def test_closed_quotation_is_rejected_before_sending(self):
        quotation = create_quotation(self.user, {"client": self.client_obj}, [line("50.00")])
        transition_quotation(quotation, StatusEvent.ACCEPT)
        quotation.refresh_from_db()
        with self.assertRaises(InvalidTransition):
            send_document_email(quotation, DocumentKind.QUOTATION)
        self.assertEqual(mail.outbox, [])
        self.assertFalse(EmailLog.objects.exists())

    def test_send_quotation(self):
        quotation = create_quotation(self.user, {"client": self.client_obj}, [line("50.00")])
        log = send_document_email(quotation, DocumentKind.QUOTATION)
        self.assertEqual(log.document_kind, DocumentKind.QUOTATION)
        self.assertEqual(mail.outbox[0].subject, "Quotation QUO-0001 from Sam Lee")
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, DocumentStatus.SENT)

    def test_failed_send_is_logged_and_not_counted(self):
        with mock.patch("emails.services.EmailMultiAlternatives.send", side_effect=SMTPException("down")):
            with self.assertLogs("emails.services", level="ERROR"):
                log = send_document_email(self.invoice, DocumentKind.INVOICE)

        self.assertEqual(log.status, EmailLog.STATUS_FAILED)
        self.assertIn("down", log.error_message)
        self.assertEqual(self.emails_used(), 0)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, DocumentStatus.DRAFT)

    def test_missing_template(self):
        EmailTemplate.objects.filter(name="invoice_email").update(is_active=False)
        with self.assertLogs("emails.services", level="ERROR"):
            log = send_document_email(self.invoice, DocumentKind.INVOICE)
        self.assertEqual(log.status, EmailLog.STATUS_FAILED)
        self.assertTrue(log.subject.startswith("[MISSING TEMPLATE]"))
        self.assertEqual(mail.outbox, [])

    def test_email_limit(self):
        plan = Plan.objects.create(code="TEST_ONE_EMAIL", name="One email", max_clients=-1,
                                   max_invoices=-1, max_pdfs=-1, max_emails=1)
        Subscription.objects.create(user=self.user, plan=plan)
        send_document_email(self.invoice, DocumentKind.INVOICE)
        with self.assertRaises(LimitExceeded):
            send_document_email(self.invoice, DocumentKind.INVOICE)
        self.assertEqual(len(mail.outbox), 1)


class SendEmailActionTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(username="api-sender", password="x")
        self.invoice = create_invoice(self.user, {}, [line("10.00")])

    def post(self, data):
        request = self.factory.post("/x", data, format="json")
        force_authenticate(request, user=self.user)
        return InvoiceViewSet.as_view({"post": "send_email"})(request, pk=self.invoice.pk)

    def test_sends_and_returns_the_invoice(self):
        response = self.post({"to": "client@example.com"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "sent")
        self.assertIsNotNone(response.data["sent_at"])

    def test_delivery_failure_is_a_502(self):
        with mock.patch("emails.services.EmailMultiAlternatives.send", side_effect=SMTPException("down")):
            with self.assertLogs("emails.services", level="ERROR"):
                response = self.post({"to": "client@example.com"})
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(EmailLog.objects.get(pk=response.data["log_id"]).status, EmailLog.STATUS_FAILED)

    def test_bad_address(self):
        response = self.post({"to": "not-an-address"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
