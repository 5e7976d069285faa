"""
POS sale tests: totals and change, underpayment, and the invoice a sale
can generate (linked to the sale and paid in full).
"""
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIRequestFactory, force_authenticate

from billing.choices import PaymentStatus
from billing.services.totals import LineIn
from common.exceptions import InvalidAmount, LimitExceeded
from invoices.models import Invoice, Payment
from pos.models import POSSale
from pos.services import create_pos_sale
from pos.views import POSSaleViewSet
from subscriptions.models import Plan, Subscription

User = get_user_model()


def line(rate, qty="1", name="Coffee"):
    return LineIn(product_name=name, quantity=Decimal(qty), rate=Decimal(rate))


class POSSaleServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="cashier", password="x")

    def test_sale_totals_and_change(self):
        sale = create_pos_sale(
            self.user,
            {"currency": "usd", "tax_percentage": Decimal("8")},
            [line("3.50", "2"), line("2.00", name="Muffin")],
            amount_paid="20",
        )
        self.assertEqual(sale.sale_number, "POS-0001")
        self.assertEqual(sale.currency, "USD")
        self.assertEqual(sale.subtotal, Decimal("9.00"))
        self.assertEqual(sale.tax_amount, Decimal("0.72"))
        self.assertEqual(sale.total_amount, Decimal("9.72"))
        self.assertEqual(sale.change_amount, Decimal("10.28"))
        self.assertEqual(sale.payment_method, "cash")
        self.assertIsNone(sale.invoice_id)
        self.assertEqual(sale.items.count(), 2)

    def test_exact_payment_by_default(self):
        sale = create_pos_sale(self.user, {}, [line("4.00")], payment_method="card")
        self.assertEqual(sale.amount_paid, Decimal("4.00"))
        self.assertEqual(sale.change_amount, Decimal("0.00"))
        self.assertEqual(sale.payment_method, "card")

    def test_underpayment_is_rejected(self):
        with self.assertRaises(InvalidAmount):
            create_pos_sale(self.user, {}, [line("4.00")], amount_paid="3.99")
        self.assertFalse(POSSale.objects.exists())

    def test_empty_sale_is_rejected(self):
        with self.assertRaises(ValueError):
            create_pos_sale(self.user, {}, [])

    def test_generated_invoice_is_linked_and_paid(self):
        sale = create_pos_sale(
            self.user, {"currency": "EUR"}, [line("12.00")],
            payment_method="card", generate_invoice=True, today=date(2024, 5, 4),
        )

        invoice = Invoice.objects.get(pk=sale.invoice_id)
        self.assertEqual(invoice.total_amount, Decimal("12.00"))
        self.assertEqual(invoice.currency, "EUR")
        self.assertEqual(invoice.notes, "POS Sale POS-0001")
        self.assertEqual(invoice.due_date, date(2024, 5, 4))
        self.assertEqual(invoice.payment_status, PaymentStatus.PAID)
        self.assertEqual(list(invoice.pos_sales.all()), [sale])

        payment = Payment.objects.get(invoice=invoice)
        self.assertEqual(payment.amount, Decimal("12.00"))
        self.assertEqual(payment.payment_method, "card")
        self.assertEqual(payment.payment_date, date(2024, 5, 4))

    def test_generated_invoice_counts_toward_the_limit(self):
        plan = Plan.objects.create(code="TEST_NO_INVOICES", name="None", max_clients=-1,
                                   max_invoices=0, max_pdfs=-1, max_emails=-1)
        Subscription.objects.create(user=self.user, plan=plan)
        with self.assertRaises(LimitExceeded):
            create_pos_sale(self.user, {}, [line("1.00")], generate_invoice=True)
        self.assertFalse(POSSale.objects.exists())
        # a plain sale is not metered
        create_pos_sale(self.user, {}, [line("1.00")])

    @override_settings(POS_SALE_NUMBER_PREFIX="TILL1")
    def test_number_prefix(self):
        create_pos_sale(self.user, {}, [line("1.00")])
        sale = create_pos_sale(self.user, {}, [line("1.00")])
        self.assertEqual(sale.sale_number, "TILL1-0002")


class POSSaleAPITests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(username="till", password="x")

    def post(self, data):
        request = self.factory.post("/api/v1/pos/sales", data, format="json")
        force_authenticate(request, user=self.user)
        return POSSaleViewSet.as_view({"post": "create"})(request)

    def test_create_with_invoice(self):
        response = self.post({
            "items": [{"product_name": "Tea", "quantity": "2", "rate": "2.25"}],
            "amount_paid": "5.00",
            "generate_invoice": True,
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["total_amount"], "4.50")
        self.assertEqual(response.data["change_amount"], "0.50")
        self.assertEqual(response.data["invoice_number"], "INV-0001")

    def test_items_are_required(self):
        response = self.post({"items": []})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("items", response.data)

    def test_underpayment_is_a_400(self):
        response = self.post({
            "items": [{"product_name": "Tea", "quantity": "1", "rate": "2.25"}],
            "amount_paid": "2.00",
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_amount")

    def test_list_is_scoped(self):
        other = User.objects.create_user(username="other-till", password="x")
        create_pos_sale(other, {}, [line("1.00")])
        mine = create_pos_sale(self.user, {}, [line("1.00")])
        request = self.factory.get("/api/v1/pos/sales")
        force_authenticate(request, user=self.user)
        response = POSSaleViewSet.as_view({"get": "list"})(request)
        self.assertEqual([row["id"] for row in response.data["results"]], [mine.pk])
