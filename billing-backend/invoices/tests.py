from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIRequestFactory, force_authenticate

from billing.choices import DocumentStatus, NumberingStrategy, PaymentStatus, StatusEvent
from billing.services.totals import LineIn
from common.exceptions import DuplicateDocumentNumber, InvalidAmount, InvalidTransition, LimitExceeded
from invoices.models import Invoice, Payment
from invoices.recurring import generate_due_invoices
from invoices.services import (
    create_invoice,
    mark_invoice_paid,
    record_payment,
    set_payment_status,
    transition_invoice,
    update_invoice,
)
from invoices.views import InvoiceCalculateView, InvoiceViewSet, PaymentViewSet
from subscriptions.models import Plan, Subscription, UsageRecord

User = get_user_model()


def line(rate, qty="1", name="Consulting"):
    return LineIn(product_name=name, quantity=Decimal(qty), rate=Decimal(rate))


def subscribe(user, code, **limits):
    values = {"max_clients": -1, "max_invoices": -1, "max_pdfs": -1, "max_emails": -1}
    values.update(limits)
    plan = Plan.objects.create(code=code, name=code.title(), **values)
    return Subscription.objects.create(user=user, plan=plan)


class InvoiceServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="x")

    def test_create_stores_calculator_totals(self):
        invoice = create_invoice(
            self.user,
            {"currency": "usd", "discount_percentage": Decimal("10"), "tax_percentage": Decimal("10"),
             "shipping_charge": Decimal("5")},
            [line("50.00", "2"), line("25.00", name="Setup")],
        )
        self.assertEqual(invoice.currency, "USD")
        self.assertEqual(invoice.subtotal, Decimal("125.00"))
        self.assertEqual(invoice.discount_amount, Decimal("12.50"))
        self.assertEqual(invoice.tax_amount, Decimal("11.25"))
        self.assertEqual(invoice.total_amount, Decimal("128.75"))
        self.assertEqual(invoice.items.count(), 2)
        self.assertEqual(invoice.status, DocumentStatus.DRAFT)
        self.assertEqual(invoice.payment_status, PaymentStatus.UNPAID)

    def test_default_due_date_and_numbers(self):
        first = create_invoice(self.user, {}, [line("10.00")])
        second = create_invoice(self.user, {}, [line("10.00")])
        self.assertEqual(first.invoice_number, "INV-0001")
        self.assertEqual(second.invoice_number, "INV-0002")
        self.assertEqual(first.due_date, first.issue_date + timedelta(days=30))

    def test_date_numbering(self):
        invoice = create_invoice(self.user, {}, [line("10.00")], numbering=NumberingStrategy.DATE,
                                 today=date(2024, 1, 31))
        self.assertEqual(invoice.invoice_number, "INV-20240131-001")

    def test_manual_number_does_not_move_the_auto_sequence(self):
        create_invoice(self.user, {}, [line("10.00")])
        create_invoice(self.user, {}, [line("10.00")], invoice_number="INV-20240131")
        invoice = create_invoice(self.user, {}, [line("10.00")])
        self.assertEqual(invoice.invoice_number, "INV-0002")

    def test_duplicate_manual_number(self):
        create_invoice(self.user, {}, [line("10.00")], invoice_number="ACME-7")
        with self.assertRaises(DuplicateDocumentNumber):
            create_invoice(self.user, {}, [line("10.00")], invoice_number="ACME-7")
        other = User.objects.create_user(username="other", password="x")
        create_invoice(other, {}, [line("10.00")], invoice_number="ACME-7")

    def test_unknown_field_is_rejected(self):
        with self.assertRaises(ValueError):
            create_invoice(self.user, {"total_amount": Decimal("1")}, [line("10.00")])

    def test_invoice_limit(self):
        subscribe(self.user, "TEST_ONE_INVOICE", max_invoices=1)
        create_invoice(self.user, {}, [line("10.00")])
        with self.assertRaises(LimitExceeded):
            create_invoice(self.user, {}, [line("10.00")])
        self.assertEqual(Invoice.objects.filter(user=self.user).count(), 1)

    def test_edit_recomputes_and_may_lower_payment_status(self):
        invoice = create_invoice(self.user, {}, [line("100.00")])
        record_payment(self.user, invoice, "100.00")
        invoice.refresh_from_db()
        self.assertEqual(invoice.payment_status, PaymentStatus.PAID)

        invoice = update_invoice(invoice, {"shipping_charge": Decimal("20")})
        self.assertEqual(invoice.total_amount, Decimal("120.00"))
        self.assertEqual(invoice.paid_amount, Decimal("100.00"))
        self.assertEqual(invoice.payment_status, PaymentStatus.PARTIALLY_PAID)

    def test_clearing_percentage_does_not_leave_a_fixed_discount(self):
        invoice = create_invoice(self.user, {"discount_percentage": Decimal("10")}, [line("200.00")])
        self.assertEqual(invoice.discount_amount, Decimal("20.00"))
        self.assertEqual(invoice.discount_fixed, Decimal("0.00"))

        invoice = update_invoice(invoice, {"discount_percentage": Decimal("0")})
        self.assertEqual(invoice.discount_amount, Decimal("0.00"))
        self.assertEqual(invoice.total_amount, Decimal("200.00"))

    def test_fixed_discount_survives_a_percentage_round_trip(self):
        invoice = create_invoice(self.user, {"discount_amount": Decimal("15")}, [line("200.00")])
        invoice = update_invoice(invoice, {"discount_percentage": Decimal("50")})
        self.assertEqual(invoice.discount_amount, Decimal("100.00"))
        invoice = update_invoice(invoice, {"discount_percentage": Decimal("0")})
        self.assertEqual(invoice.discount_amount, Decimal("15.00"))
        self.assertEqual(invoice.total_amount, Decimal("185.00"))

    def test_stored_total_is_the_sum_of_stored_components(self):
        invoice = create_invoice(
            self.user,
            {"discount_percentage": Decimal("33.33"), "tax_percentage": Decimal("10")},
            [line("10.00")],
        )
        invoice.refresh_from_db()
        self.assertEqual(invoice.discount_amount, Decimal("3.33"))
        self.assertEqual(invoice.tax_amount, Decimal("0.67"))
        self.assertEqual(
            invoice.total_amount,
            invoice.subtotal - invoice.discount_amount + invoice.tax_amount + invoice.shipping_charge,
        )
        self.assertEqual(invoice.total_amount, Decimal("7.34"))

    def test_edit_replaces_items(self):
        invoice = create_invoice(self.user, {}, [line("100.00"), line("5.00")])
        invoice = update_invoice(invoice, {}, [line("30.00", "3")])
        self.assertEqual(invoice.items.count(), 1)
        self.assertEqual(invoice.total_amount, Decimal("90.00"))


class InvoiceStatusTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="x")
        self.invoice = create_invoice(self.user, {}, [line("100.00")])

    def test_send_then_view(self):
        sent = transition_invoice(self.invoice, StatusEvent.SEND)
        self.assertEqual(sent.status, DocumentStatus.SENT)
        self.assertIsNotNone(sent.sent_at)
        viewed = transition_invoice(sent, StatusEvent.VIEW)
        self.assertEqual(viewed.status, DocumentStatus.VIEWED)
        self.assertEqual([h["event"] for h in viewed.status_history], ["send", "view"])

    def test_resend_keeps_viewed(self):
        transition_invoice(self.invoice, StatusEvent.SEND)
        transition_invoice(self.invoice, StatusEvent.VIEW)
        self.assertEqual(transition_invoice(self.invoice, StatusEvent.SEND).status, DocumentStatus.VIEWED)

    def test_draft_cannot_be_viewed(self):
        with self.assertLogs("invoices.services", level="WARNING"):
            with self.assertRaises(InvalidTransition):
                transition_invoice(self.invoice, StatusEvent.VIEW)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, DocumentStatus.DRAFT)

    def test_invoices_cannot_be_accepted(self):
        with self.assertRaises(InvalidTransition):
            transition_invoice(self.invoice, StatusEvent.ACCEPT)

    def test_overdue_is_only_displayed(self):
        transition_invoice(self.invoice, StatusEvent.SEND)
        Invoice.objects.filter(pk=self.invoice.pk).update(due_date=date(2024, 1, 10))
        self.invoice.refresh_from_db()

        self.assertEqual(self.invoice.status, DocumentStatus.SENT)
        self.assertEqual(self.invoice.display_status(date(2024, 1, 11)), DocumentStatus.OVERDUE)
        self.assertEqual(self.invoice.display_status(date(2024, 1, 10)), DocumentStatus.SENT)
        self.assertEqual(self.invoice.display_payment_status(date(2024, 1, 11)), PaymentStatus.OVERDUE)

    def test_paid_invoice_is_never_overdue(self):
        transition_invoice(self.invoice, StatusEvent.SEND)
        record_payment(self.user, self.invoice, "100.00")
        Invoice.objects.filter(pk=self.invoice.pk).update(due_date=date(2024, 1, 10))
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.display_status(date(2024, 2, 1)), DocumentStatus.SENT)
        self.assertEqual(self.invoice.display_payment_status(date(2024, 2, 1)), PaymentStatus.PAID)


class PaymentStateTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="payer", password="x")
        self.invoice = create_invoice(self.user, {}, [line("100.00")])

    def state(self):
        self.invoice.refresh_from_db()
        return self.invoice.payment_status, self.invoice.paid_amount

    def test_payments_move_status_forward(self):
        record_payment(self.user, self.invoice, "40.00")
        self.assertEqual(self.state(), (PaymentStatus.PARTIALLY_PAID, Decimal("40.00")))
        record_payment(self.user, self.invoice, "60.00")
        self.assertEqual(self.state(), (PaymentStatus.PAID, Decimal("100.00")))

    def test_overpayment_is_paid(self):
        record_payment(self.user, self.invoice, "150.00")
        self.assertEqual(self.state(), (PaymentStatus.PAID, Decimal("150.00")))

    def test_deleting_a_payment_is_a_reversal(self):
        record_payment(self.user, self.invoice, "40.00")
        last = record_payment(self.user, self.invoice, "60.00")
        last.delete()
        self.assertEqual(self.state(), (PaymentStatus.PARTIALLY_PAID, Decimal("40.00")))

    def test_editing_a_payment_down(self):
        payment = record_payment(self.user, self.invoice, "100.00")
        payment.amount = Decimal("0.01")
        payment.save()
        self.assertEqual(self.state(), (PaymentStatus.PARTIALLY_PAID, Decimal("0.01")))

    def test_moving_a_payment_to_another_invoice(self):
        other = create_invoice(self.user, {}, [line("50.00")])
        payment = record_payment(self.user, self.invoice, "50.00")
        payment.invoice = other
        payment.save()
        self.assertEqual(self.state(), (PaymentStatus.UNPAID, Decimal("0")))
        other.refresh_from_db()
        self.assertEqual(other.payment_status, PaymentStatus.PAID)

    def test_unlinked_payment_changes_nothing(self):
        record_payment(self.user, None, "100.00")
        self.assertEqual(self.state(), (PaymentStatus.UNPAID, Decimal("0")))

    def test_non_positive_amounts_are_rejected(self):
        for amount in ("0", "-5", "NaN"):
            with self.assertRaises(InvalidAmount):
                record_payment(self.user, self.invoice, amount)
        self.assertFalse(Payment.objects.exists())

    def test_mark_paid_records_the_balance(self):
        record_payment(self.user, self.invoice, "30.00")
        payment = mark_invoice_paid(self.invoice, payment_method="bank_transfer")
        self.assertEqual(payment.amount, Decimal("70.00"))
        self.assertEqual(self.state(), (PaymentStatus.PAID, Decimal("100.00")))
        with self.assertRaises(InvalidTransition):
            mark_invoice_paid(self.invoice)

    def test_manual_payment_status_must_match_payments(self):
        with self.assertRaises(InvalidTransition):
            set_payment_status(self.invoice, PaymentStatus.PAID)
        with self.assertRaises(InvalidTransition):
            set_payment_status(self.invoice, PaymentStatus.OVERDUE)
        self.assertEqual(set_payment_status(self.invoice, PaymentStatus.UNPAID).payment_status,
                         PaymentStatus.UNPAID)


class RecurringGenerationTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="recurring", password="x")
        self.template = create_invoice(
            self.user,
            {"issue_date": date(2024, 1, 31), "is_recurring": True, "recurring_frequency": "monthly",
             "tax_percentage": Decimal("10")},
            [line("100.00")],
            today=date(2024, 1, 31),
        )

    def test_missed_cycles_are_caught_up(self):
        result = generate_due_invoices(today=date(2024, 4, 5))

        issued = [inv.issue_date for inv in result.created]
        self.assertEqual(issued, [date(2024, 2, 29), date(2024, 3, 31)])
        first = result.created[0]
        self.assertEqual(first.due_date, date(2024, 3, 31))
        self.assertEqual(first.total_amount, Decimal("110.00"))
        self.assertEqual(first.status, DocumentStatus.DRAFT)
        self.assertEqual(first.template_invoice, self.template)
        self.assertEqual(first.items.count(), 1)

        self.template.refresh_from_db()
        self.assertEqual(self.template.recurring_last_date, date(2024, 3, 31))
        self.assertTrue(self.template.is_recurring)

        # nothing new until the next cycle
        self.assertEqual(generate_due_invoices(today=date(2024, 4, 29)).created, [])

    def test_series_ends_after_end_date(self):
        Invoice.objects.filter(pk=self.template.pk).update(recurring_end_date=date(2024, 3, 15))
        result = generate_due_invoices(today=date(2024, 6, 1))

        self.assertEqual([inv.issue_date for inv in result.created], [date(2024, 2, 29)])
        self.assertEqual(result.ended, [self.template])
        self.template.refresh_from_db()
        self.assertFalse(self.template.is_recurring)

    def test_dry_run_creates_nothing(self):
        with self.assertLogs("invoices.recurring", level="INFO"):
            generate_due_invoices(today=date(2024, 4, 5), dry_run=True)
        self.assertEqual(Invoice.objects.count(), 1)
        self.template.refresh_from_db()
        self.assertIsNone(self.template.recurring_last_date)

    def test_blocked_by_invoice_limit(self):
        subscribe(self.user, "TEST_ONE_INVOICE", max_invoices=1)
        with self.assertLogs("invoices.recurring", level="WARNING"):
            result = generate_due_invoices(today=date(2024, 4, 5))
        self.assertEqual(result.created, [])
        self.assertEqual(result.blocked, [self.template])
        self.template.refresh_from_db()
        self.assertIsNone(self.template.recurring_last_date)

    def test_management_command(self):
        out = StringIO()
        call_command("generate_recurring_invoices", "--date", "2024-03-01", stdout=out)
        self.assertIn("Generated 1 invoice(s)", out.getvalue())
        self.assertEqual(Invoice.objects.filter(template_invoice=self.template).count(), 1)

    def test_management_command_rejects_bad_input(self):
        with self.assertRaises(CommandError):
            call_command("generate_recurring_invoices", "--date", "March")
        with self.assertRaises(CommandError):
            call_command("generate_recurring_invoices", "--user", "nobody")


class InvoiceAPITests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(username="api-owner", password="x")
        self.other = User.objects.create_user(username="api-other", password="x")

    def call(self, actions, method, path, data=None, user=None, **kwargs):
        request = getattr(self.factory, method)(path, data, format="json")
        force_authenticate(request, user=user or self.user)
        return InvoiceViewSet.as_view(actions)(request, **kwargs)

    def test_calculate_preview(self):
        request = self.factory.post("/api/v1/invoices/calculate", {
            "currency": "usd",
            "items": [
                {"product_name": "Design", "quantity": "2", "rate": "50"},
                {"product_name": "Setup", "quantity": "1", "rate": "25"},
            ],
            "discount_percentage": "10",
            "tax_percentage": "10",
            "shipping_charge": "5",
        }, format="json")
        force_authenticate(request, user=self.user)
        response = InvoiceCalculateView.as_view()(request)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["currency"], "USD")
        self.assertEqual(response.data["subtotal"], "125.00")
        self.assertEqual(response.data["total"], "128.75")
        self.assertEqual([ln["amount"] for ln in response.data["lines"]], ["100.00", "25.00"])
        self.assertFalse(Invoice.objects.exists())

    def test_calculate_rejects_negative_rate(self):
        request = self.factory.post("/api/v1/invoices/calculate", {
            "currency": "USD",
            "items": [{"product_name": "Refund", "quantity": "1", "rate": "-10"}],
        }, format="json")
        force_authenticate(request, user=self.user)
        response = InvoiceCalculateView.as_view()(request)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_amount")

    def test_create_and_retrieve(self):
        response = self.call({"post": "create"}, "post", "/api/v1/invoices", {
            "currency": "EUR",
            "items": [{"product_name": "Design", "quantity": "3", "rate": "20.50"}],
            "tax_percentage": "20",
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["total_amount"], "73.80")
        self.assertEqual(response.data["display_status"], "draft")
        self.assertEqual(len(response.data["items"]), 1)

        pk = response.data["id"]
        detail = self.call({"get": "retrieve"}, "get", f"/api/v1/invoices/{pk}", pk=pk)
        self.assertEqual(detail.data["invoice_number"], "INV-0001")

    def test_totals_cannot_be_written(self):
        response = self.call({"post": "create"}, "post", "/api/v1/invoices", {
            "items": [{"product_name": "Design", "quantity": "1", "rate": "10"}],
            "total_amount": "1.00",
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("total_amount", response.data)

    def test_manual_numbering_needs_a_number(self):
        response = self.call({"post": "create"}, "post", "/api/v1/invoices", {
            "items": [{"product_name": "Design", "quantity": "1", "rate": "10"}],
            "numbering": "manual",
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_limit_is_a_403(self):
        subscribe(self.user, "TEST_ONE_INVOICE", max_invoices=1)
        create_invoice(self.user, {}, [line("10.00")])
        response = self.call({"post": "create"}, "post", "/api/v1/invoices", {
            "items": [{"product_name": "Design", "quantity": "1", "rate": "10"}],
        })
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "limit_exceeded")

    def test_other_users_invoice_is_hidden(self):
        invoice = create_invoice(self.other, {}, [line("10.00")])
        response = self.call({"get": "retrieve"}, "get", f"/api/v1/invoices/{invoice.pk}",
                             pk=invoice.pk)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_filters_by_payment_status(self):
        paid = create_invoice(self.user, {}, [line("10.00")])
        create_invoice(self.user, {}, [line("20.00")])
        record_payment(self.user, paid, "10.00")
        response = self.call({"get": "list"}, "get", "/api/v1/invoices?payment_status=paid")
        self.assertEqual([row["id"] for row in response.data["results"]], [paid.pk])

    def test_transition_conflict(self):
        invoice = create_invoice(self.user, {}, [line("10.00")])
        response = self.call({"post": "transition"}, "post", "/x", {"event": "view"}, pk=invoice.pk)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "invalid_transition")

    def test_mark_paid(self):
        invoice = create_invoice(self.user, {}, [line("80.00")])
        response = self.call({"post": "mark_paid"}, "post", "/x", {"payment_method": "card"}, pk=invoice.pk)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["payment_status"], "paid")
        self.assertEqual(response.data["balance_due"], "0.00")
        self.assertEqual(Payment.objects.get().payment_method, "card")

    def test_payment_status_must_agree(self):
        invoice = create_invoice(self.user, {}, [line("80.00")])
        response = self.call({"post": "payment_status"}, "post", "/x", {"payment_status": "paid"},
                             pk=invoice.pk)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_pdf_is_metered(self):
        subscribe(self.user, "TEST_ONE_PDF", max_pdfs=1)
        invoice = create_invoice(self.user, {}, [line("80.00")])

        response = self.call({"get": "pdf"}, "get", "/x", pk=invoice.pk)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertTrue(response.content.startswith(b"%PDF"))
        self.assertEqual(UsageRecord.objects.filter(user=self.user, resource="pdfs").count(), 1)

        blocked = self.call({"get": "pdf"}, "get", "/x", pk=invoice.pk)
        self.assertEqual(blocked.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(UsageRecord.objects.filter(user=self.user, resource="pdfs").count(), 1)

    def test_debt_collection(self):
        invoice = create_invoice(self.user, {}, [line("80.00")])
        response = self.call({"post": "debt_collections"}, "post", "/x", {"amount_collected": "25.00"},
                             pk=invoice.pk)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(invoice.debt_collections.get().amount_collected, Decimal("25.00"))


class PaymentAPITests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(username="pay-owner", password="x")
        self.other = User.objects.create_user(username="pay-other", password="x")
        self.invoice = create_invoice(self.user, {}, [line("100.00")])

    def post(self, data):
        request = self.factory.post("/api/v1/payments", data, format="json")
        force_authenticate(request, user=self.user)
        return PaymentViewSet.as_view({"post": "create"})(request)

    def test_create_payment_updates_invoice(self):
        response = self.post({"invoice": self.invoice.pk, "amount": "25.00",
                              "payment_date": timezone.localdate().isoformat()})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["invoice_number"], "INV-0001")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.payment_status, PaymentStatus.PARTIALLY_PAID)

    def test_negative_amount(self):
        response = self.post({"invoice": self.invoice.pk, "amount": "-1.00"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_amount")

    def test_cannot_pay_someone_elses_invoice(self):
        foreign = create_invoice(self.other, {}, [line("10.00")])
        response = self.post({"invoice": foreign.pk, "amount": "10.00"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("invoice", response.data)

    def test_delete_reverses(self):
        payment = record_payment(self.user, self.invoice, "100.00")
        request = self.factory.delete(f"/api/v1/payments/{payment.pk}")
        force_authenticate(request, user=self.user)
        response = PaymentViewSet.as_view({"delete": "destroy"})(request, pk=payment.pk)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.payment_status, PaymentStatus.UNPAID)
