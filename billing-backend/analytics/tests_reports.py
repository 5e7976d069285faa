"""
Report endpoint tests: scoping, validation, caching, rate limiting and
the POS/currency exclusions as seen through the API.
"""
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIRequestFactory, force_authenticate

from analytics.api_reports import AggregateReportView, DashboardReportView, QuotationReportView
from analytics.reports.base import get_cache_key, parse_date_range
from billing.services.totals import LineIn
from clients.models import Client
from invoices.models import Invoice
from invoices.services import create_invoice, record_payment
from pos.services import create_pos_sale
from quotations.services import create_quotation, transition_quotation

User = get_user_model()


def line(rate, qty="1", name="Consulting"):
    return LineIn(product_name=name, quantity=Decimal(qty), rate=Decimal(rate))


class ReportsTestBase(TestCase):
    def setUp(self):
        cache.clear()
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(username="reports-owner", password="test-pass")
        self.other = User.objects.create_user(username="someone-else", password="test-pass")
        self.today = timezone.localdate()

    def get(self, view_cls, params=None, user=None):
        request = self.factory.get("/api/v1/analytics/report", params or {})
        force_authenticate(request, user=user or self.user)
        return view_cls.as_view()(request)

    def invoice(self, rate, currency="USD", user=None, **data):
        return create_invoice(user or self.user, {"currency": currency, **data}, [line(rate)])


class ReportHelperTests(TestCase):
    def test_parse_date_range(self):
        df, dt_, err = parse_date_range("2024-01-01", "2024-01-31")
        self.assertIsNone(err)
        self.assertEqual((df.isoformat(), dt_.isoformat()), ("2024-01-01", "2024-01-31"))

    def test_parse_date_range_accepts_neither(self):
        self.assertEqual(parse_date_range(None, None), (None, None, None))

    def test_parse_date_range_errors(self):
        self.assertIsNotNone(parse_date_range("2024-01-01", None)[2])
        self.assertIsNotNone(parse_date_range("2024-02-01", "2024-01-01")[2])
        self.assertIsNotNone(parse_date_range("yesterday", "2024-01-01")[2])
        self.assertIsNotNone(parse_date_range("2020-01-01", "2024-01-01")[2])

    def test_cache_key_changes_with_every_param(self):
        base = get_cache_key("aggregate", 1, {"currency": "USD", "bucket_by": "month"})
        self.assertNotEqual(base, get_cache_key("aggregate", 1, {"currency": "EUR", "bucket_by": "month"}))
        self.assertNotEqual(base, get_cache_key("aggregate", 2, {"currency": "USD", "bucket_by": "month"}))
        self.assertEqual(base, get_cache_key("aggregate", 1, {"bucket_by": "month", "currency": "USD"}))


class AggregateReportViewTests(ReportsTestBase):
    def test_pos_invoices_and_other_currencies_are_excluded(self):
        self.invoice("100.00")
        self.invoice("40.00")
        self.invoice("999.00", currency="EUR")
        sale = create_pos_sale(self.user, {"currency": "USD"}, [line("500.00")], generate_invoice=True)
        self.assertIsNotNone(sale.invoice_id)

        response = self.get(AggregateReportView, {"currency": "USD", "bucket_by": "status"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["totals"]["invoice_count"], 2)
        self.assertEqual(response.data["totals"]["invoiced"], "140.00")
        self.assertEqual(response.data["totals"]["received"], "0.00")
        self.assertEqual(response.data["excluded_derived"], 1)

    def test_only_own_invoices_are_counted(self):
        self.invoice("100.00")
        self.invoice("70.00", user=self.other)
        response = self.get(AggregateReportView, {"bucket_by": "status"})
        self.assertEqual(response.data["totals"]["invoiced"], "100.00")

    def test_month_buckets_are_zero_filled(self):
        inv = self.invoice("100.00")
        Invoice.objects.filter(pk=inv.pk).update(created_at=timezone.now() - timedelta(days=70))
        date_from = (self.today - timedelta(days=90)).isoformat()
        response = self.get(AggregateReportView, {"date_from": date_from, "date_to": self.today.isoformat()})

        keys = [b["key"] for b in response.data["buckets"]]
        self.assertGreaterEqual(len(keys), 3)
        self.assertEqual(keys, sorted(keys))
        self.assertEqual(sum(b["invoice_count"] for b in response.data["buckets"]), 1)
        self.assertIn("0.00", [b["invoiced"] for b in response.data["buckets"]])

    def test_method_buckets(self):
        inv = self.invoice("100.00")
        record_payment(self.user, inv, "60.00", payment_method="card")
        record_payment(self.user, inv, "10.00")
        response = self.get(AggregateReportView, {"bucket_by": "method"})
        buckets = {b["key"]: b["received"] for b in response.data["buckets"]}
        self.assertEqual(buckets, {"card": "60.00", "cash": "10.00"})

    def test_client_type_filter(self):
        business = Client.objects.create(user=self.user, name="Ada", company="Acme", client_type="business")
        person = Client.objects.create(user=self.user, name="Bo", client_type="individual")
        self.invoice("100.00", client=business)
        self.invoice("30.00", client=person)
        response = self.get(AggregateReportView, {"bucket_by": "client", "client_type": "business"})
        self.assertEqual(response.data["totals"]["invoiced"], "100.00")
        self.assertEqual([b["key"] for b in response.data["buckets"]], [business.pk])

    def test_validation_errors(self):
        cases = [
            {"bucket_by": "week"},
            {"currency": "DOLLARS"},
            {"date_from": "2024-01-01"},
            {"date_from": "2024-02-01", "date_to": "2024-01-01"},
            {"status": "archived"},
            {"payment_status": "refunded"},
            {"client_type": "robot"},
        ]
        for params in cases:
            response = self.get(AggregateReportView, params)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, params)
            self.assertIn("error", response.data)

    def test_requires_authentication(self):
        request = self.factory.get("/api/v1/analytics/aggregate")
        response = AggregateReportView.as_view()(request)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_results_are_cached_until_an_input_changes(self):
        self.invoice("100.00")
        first = self.get(AggregateReportView, {"bucket_by": "status"})
        self.assertEqual(first.data["totals"]["invoiced"], "100.00")

        with mock.patch("analytics.api_reports.aggregate") as engine:
            cached = self.get(AggregateReportView, {"bucket_by": "status"})
            engine.assert_not_called()
        self.assertEqual(cached.data, first.data)

        self.invoice("50.00")
        fresh = self.get(AggregateReportView, {"bucket_by": "status"})
        self.assertEqual(fresh.data["totals"]["invoiced"], "150.00")

    def test_client_edits_refresh_cached_results(self):
        client = Client.objects.create(user=self.user, name="Ada", client_type="individual")
        self.invoice("100.00", client=client)
        before = self.get(AggregateReportView, {"bucket_by": "status", "client_type": "business"})
        self.assertEqual(before.data["totals"]["invoice_count"], 0)

        client.client_type = "business"
        client.company = "Acme"
        client.save()

        after = self.get(AggregateReportView, {"bucket_by": "status", "client_type": "business"})
        self.assertEqual(after.data["totals"]["invoice_count"], 1)

    @override_settings(REPORT_RATE_LIMIT_PER_MINUTE=2)
    def test_rate_limited(self):
        self.assertEqual(self.get(AggregateReportView).status_code, status.HTTP_200_OK)
        self.assertEqual(self.get(AggregateReportView).status_code, status.HTTP_200_OK)
        response = self.get(AggregateReportView)
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertIn("Retry-After", response)

    def test_unexpected_error_is_a_generic_500(self):
        with mock.patch("analytics.api_reports.aggregate", side_effect=RuntimeError("boom")):
            with self.assertLogs("analytics.api_reports", level="ERROR"):
                response = self.get(AggregateReportView)
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertNotIn("boom", str(response.data))


class DashboardReportViewTests(ReportsTestBase):
    def test_dashboard_defaults_to_this_month(self):
        inv = self.invoice("200.00")
        record_payment(self.user, inv, "50.00")
        Client.objects.create(user=self.user, name="Ada")

        response = self.get(DashboardReportView)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["period"]["date_from"], self.today.replace(day=1).isoformat())
        self.assertEqual(response.data["period"]["date_to"], self.today.isoformat())
        metrics = response.data["metrics"]
        self.assertEqual(metrics["total_invoiced"]["current"], "200.00")
        self.assertEqual(metrics["revenue_received"]["current"], "50.00")
        self.assertEqual(metrics["outstanding"]["current"], "150.00")
        self.assertEqual(response.data["clients_count"], 1)

    def test_dashboard_excludes_pos_invoices(self):
        create_pos_sale(self.user, {"currency": "USD"}, [line("80.00")], generate_invoice=True)
        response = self.get(DashboardReportView)
        self.assertEqual(response.data["metrics"]["total_invoiced"]["current"], "0.00")
        self.assertEqual(response.data["metrics"]["revenue_received"]["current"], "0.00")

    def test_change_against_empty_previous_window_is_zero(self):
        self.invoice("200.00")
        response = self.get(DashboardReportView)
        self.assertEqual(response.data["metrics"]["total_invoiced"]["change_percent"], "0.00")

    def test_deleting_a_client_refreshes_the_dashboard(self):
        client = Client.objects.create(user=self.user, name="Ada")
        self.assertEqual(self.get(DashboardReportView).data["clients_count"], 1)
        client.delete()
        self.assertEqual(self.get(DashboardReportView).data["clients_count"], 0)


class QuotationReportViewTests(ReportsTestBase):
    def quotation(self, rate, currency="USD", user=None):
        return create_quotation(user or self.user, {"currency": currency}, [line(rate)])

    def test_totals_and_conversion_rate(self):
        won = self.quotation("300.00")
        self.quotation("100.00")
        self.quotation("50.00", currency="EUR")
        self.quotation("70.00", user=self.other)
        transition_quotation(won, "accept")

        response = self.get(QuotationReportView, {"bucket_by": "status"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        totals = response.data["totals"]
        self.assertEqual(totals["quotation_count"], 2)
        self.assertEqual(totals["total_value"], "400.00")
        self.assertEqual(totals["average_value"], "200.00")
        self.assertEqual(totals["conversion_rate"], "50.00")
        buckets = {b["key"]: b["count"] for b in response.data["buckets"]}
        self.assertEqual(buckets["accepted"], 1)
        self.assertEqual(buckets["draft"], 1)
        self.assertEqual(buckets["converted"], 0)

    def test_new_quotation_refreshes_cached_results(self):
        self.quotation("10.00")
        first = self.get(QuotationReportView)
        self.assertEqual(first.data["totals"]["quotation_count"], 1)
        self.quotation("20.00")
        second = self.get(QuotationReportView)
        self.assertEqual(second.data["totals"]["quotation_count"], 2)

    def test_validation_errors(self):
        for params in ({"bucket_by": "method"}, {"status": "paid"}, {"date_to": "2024-01-01"}):
            response = self.get(QuotationReportView, params)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, params)
