from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from analytics.reports.aggregation import (
    AggregationFilters,
    aggregate,
    aggregate_quotations,
    bucket_map,
    month_keys,
    percent_change,
    previous_period,
    serialize_quotation_result,
    serialize_result,
)
from analytics.reports.dashboard import compute_dashboard
from billing.records import DebtCollectionRecord, DocumentRecord, PaymentRecord, POSSaleRecord
from common.exceptions import CurrencyMismatch


def doc(id, total, created, currency="USD", status="sent", payment_status="unpaid", paid="0",
        due=None, client_id=None, client_type=None):
    return DocumentRecord(
        id=id,
        currency=currency,
        created_at=created,
        total_amount=Decimal(total),
        status=status,
        payment_status=payment_status,
        paid_amount=Decimal(paid),
        due_date=due,
        client_id=client_id,
        client_type=client_type,
    )


def pay(id, amount, paid_on, invoice_id, method="card"):
    return PaymentRecord(id=id, amount=Decimal(amount), payment_date=paid_on,
                         payment_method=method, invoice_id=invoice_id)


class HelperTests(SimpleTestCase):
    def test_month_keys_span_years(self):
        self.assertEqual(
            month_keys(date(2023, 11, 15), date(2024, 2, 1)),
            ["2023-11", "2023-12", "2024-01", "2024-02"],
        )

    def test_month_keys_empty_when_reversed(self):
        self.assertEqual(month_keys(date(2024, 3, 1), date(2024, 2, 1)), [])

    def test_previous_period_has_same_length(self):
        self.assertEqual(
            previous_period(date(2024, 3, 1), date(2024, 3, 31)),
            (date(2024, 1, 30), date(2024, 2, 29)),
        )
        self.assertEqual(previous_period(date(2024, 3, 5), date(2024, 3, 5)), (date(2024, 3, 4), date(2024, 3, 4)))

    def test_percent_change(self):
        self.assertEqual(percent_change(Decimal("150"), Decimal("100")), Decimal("50.00"))
        self.assertEqual(percent_change(Decimal("50"), Decimal("200")), Decimal("-75.00"))
        self.assertEqual(percent_change(Decimal("1"), Decimal("3")), Decimal("-66.67"))

    def test_percent_change_zero_denominator_is_zero(self):
        self.assertEqual(percent_change(Decimal("120"), Decimal("0")), Decimal("0.00"))
        self.assertEqual(percent_change(Decimal("0"), Decimal("0")), Decimal("0.00"))


class PreprocessingTests(SimpleTestCase):
    def test_pos_derived_invoice_is_excluded_and_months_zero_filled(self):
        docs = [
            doc(1, "100.00", date(2024, 1, 10)),
            doc(2, "250.00", date(2024, 3, 5)),
            doc(3, "999.00", date(2024, 1, 20)),
        ]
        sales = [POSSaleRecord(id=10, invoice_id=3), POSSaleRecord(id=11, invoice_id=None)]
        filters = AggregationFilters(date_from=date(2024, 1, 1), date_to=date(2024, 3, 31))

        result = aggregate(docs, [], sales, "USD", filters, "month")

        self.assertEqual([b.key for b in result.buckets], ["2024-01", "2024-02", "2024-03"])
        buckets = bucket_map(result)
        self.assertEqual(buckets["2024-01"].invoiced, Decimal("100.00"))
        self.assertEqual(buckets["2024-01"].invoice_count, 1)
        self.assertEqual(buckets["2024-02"].invoiced, Decimal("0"))
        self.assertEqual(buckets["2024-02"].invoice_count, 0)
        self.assertEqual(buckets["2024-03"].invoiced, Decimal("250.00"))
        self.assertEqual(result.invoice_count, 2)
        self.assertEqual(result.invoiced_total, Decimal("350.00"))
        self.assertEqual(result.excluded_derived, 1)

    def test_payments_of_derived_invoice_are_excluded(self):
        docs = [doc(1, "100", date(2024, 1, 10)), doc(2, "40", date(2024, 1, 11))]
        payments = [pay(1, "100", date(2024, 1, 12), 1), pay(2, "40", date(2024, 1, 12), 2)]
        result = aggregate(docs, payments, [POSSaleRecord(id=1, invoice_id=2)], "USD")
        self.assertEqual(result.received_total, Decimal("100"))

    def test_other_currencies_never_contribute(self):
        docs = [
            doc(1, "100", date(2024, 1, 10), currency="USD"),
            doc(2, "500", date(2024, 1, 10), currency="EUR"),
            doc(3, "7", date(2024, 1, 10), currency="usd"),
        ]
        payments = [pay(1, "100", date(2024, 1, 15), 1), pay(2, "500", date(2024, 1, 15), 2)]

        for bucket_by in ("month", "status", "payment_status", "method", "client"):
            result = aggregate(docs, payments, [], "USD", bucket_by=bucket_by)
            self.assertEqual(result.invoiced_total, Decimal("107"), bucket_by)
            self.assertEqual(result.received_total, Decimal("100"), bucket_by)
            invoiced = sum((b.invoiced for b in result.buckets), Decimal("0"))
            received = sum((b.received for b in result.buckets), Decimal("0"))
            self.assertIn(invoiced, (Decimal("107"), Decimal("0")), bucket_by)
            self.assertIn(received, (Decimal("100"), Decimal("0")), bucket_by)

    def test_unlinked_payments_are_excluded(self):
        docs = [doc(1, "100", date(2024, 1, 10))]
        payments = [pay(1, "30", date(2024, 1, 15), None), pay(2, "20", date(2024, 1, 15), 1)]
        result = aggregate(docs, payments, [], "USD", bucket_by="method")
        self.assertEqual(result.received_total, Decimal("20"))

    def test_filters_are_a_conjunction(self):
        docs = [
            doc(1, "100", date(2024, 1, 10), status="sent", client_type="business"),
            doc(2, "200", date(2024, 1, 10), status="draft", client_type="business"),
            doc(3, "300", date(2024, 1, 10), status="sent", client_type="individual"),
            doc(4, "400", date(2023, 12, 10), status="sent", client_type="business"),
        ]
        filters = AggregationFilters(
            date_from=date(2024, 1, 1), date_to=date(2024, 1, 31), client_type="business", status="sent"
        )
        result = aggregate(docs, [], [], "USD", filters, "status")
        self.assertEqual(result.invoice_count, 1)
        self.assertEqual(result.invoiced_total, Decimal("100"))

    def test_payment_status_filter(self):
        docs = [
            doc(1, "100", date(2024, 1, 10), payment_status="paid", paid="100"),
            doc(2, "100", date(2024, 1, 10), payment_status="unpaid"),
        ]
        result = aggregate(docs, [], [], "USD", AggregationFilters(payment_status="paid"), "payment_status")
        self.assertEqual([b.key for b in result.buckets], ["paid"])

    def test_overdue_filter_uses_the_given_today(self):
        docs = [
            doc(1, "100", date(2024, 1, 1), due=date(2024, 1, 31)),
            doc(2, "100", date(2024, 1, 1), due=date(2024, 3, 31)),
            doc(3, "100", date(2024, 1, 1), due=date(2024, 1, 31), payment_status="paid", paid="100"),
        ]
        filters = AggregationFilters(payment_status="overdue", today=date(2024, 2, 15))
        result = aggregate(docs, [], [], "USD", filters, "status")
        self.assertEqual(result.invoice_count, 1)

        filters = AggregationFilters(status="overdue", today=date(2024, 2, 15))
        self.assertEqual(aggregate(docs, [], [], "USD", filters, "status").invoice_count, 1)

    def test_reversed_date_range_is_rejected(self):
        with self.assertRaises(ValueError):
            AggregationFilters(date_from=date(2024, 2, 1), date_to=date(2024, 1, 1))

    def test_currency_is_required(self):
        with self.assertRaises(ValueError):
            aggregate([], [], [], "")

    def test_unknown_bucket_is_rejected(self):
        with self.assertRaises(ValueError):
            aggregate([], [], [], "USD", bucket_by="week")


class BucketTests(SimpleTestCase):
    def test_month_buckets_use_payment_date_for_revenue(self):
        docs = [doc(1, "100", date(2024, 1, 10))]
        payments = [pay(1, "60", date(2024, 2, 3), 1), pay(2, "40", date(2024, 3, 9), 1)]
        result = aggregate(docs, payments, [], "USD")

        self.assertEqual([b.key for b in result.buckets], ["2024-01", "2024-02", "2024-03"])
        buckets = bucket_map(result)
        self.assertEqual(buckets["2024-01"].invoiced, Decimal("100"))
        self.assertEqual(buckets["2024-01"].received, Decimal("0"))
        self.assertEqual(buckets["2024-02"].received, Decimal("60"))
        self.assertEqual(buckets["2024-03"].received, Decimal("40"))
        self.assertEqual(buckets["2024-03"].payment_count, 1)

    def test_payment_date_range_is_matched_on_payment_date(self):
        docs = [doc(1, "100", date(2024, 1, 10))]
        payments = [pay(1, "60", date(2024, 2, 3), 1)]
        filters = AggregationFilters(date_from=date(2024, 2, 1), date_to=date(2024, 2, 29))
        result = aggregate(docs, payments, [], "USD", filters)
        self.assertEqual(result.invoice_count, 0)
        self.assertEqual(result.received_total, Decimal("60"))

    def test_no_range_and_no_data_has_no_months(self):
        self.assertEqual(aggregate([], [], [], "USD").buckets, [])

    def test_missing_method_falls_back_to_cash(self):
        docs = [doc(1, "100", date(2024, 1, 10))]
        payments = [
            pay(1, "10", date(2024, 1, 11), 1, method=None),
            pay(2, "15", date(2024, 1, 11), 1, method=""),
            pay(3, "20", date(2024, 1, 11), 1, method="cash"),
            pay(4, "5", date(2024, 1, 11), 1, method="card"),
        ]
        buckets = bucket_map(aggregate(docs, payments, [], "USD", bucket_by="method"))
        self.assertEqual(set(buckets), {"cash", "card"})
        self.assertEqual(buckets["cash"].received, Decimal("45"))
        self.assertEqual(buckets["cash"].payment_count, 3)

    def test_status_and_client_buckets_use_raw_values(self):
        docs = [
            doc(1, "100", date(2024, 1, 10), status="draft", client_id=7),
            doc(2, "50", date(2024, 1, 10), status="sent", client_id=7),
            doc(3, "25", date(2024, 1, 10), status="sent"),
        ]
        by_status = bucket_map(aggregate(docs, [], [], "USD", bucket_by="status"))
        self.assertEqual(by_status["sent"].invoiced, Decimal("75"))
        self.assertEqual(by_status["draft"].invoice_count, 1)

        by_client = bucket_map(aggregate(docs, [], [], "USD", bucket_by="client"))
        self.assertEqual(by_client[7].invoiced, Decimal("150"))
        self.assertEqual(by_client[None].invoiced, Decimal("25"))

    def test_outstanding_counts_balance_of_open_invoices(self):
        docs = [
            doc(1, "100", date(2024, 1, 10), payment_status="partially_paid", paid="30"),
            doc(2, "80", date(2024, 1, 10), payment_status="unpaid"),
            doc(3, "50", date(2024, 1, 10), payment_status="paid", paid="50"),
        ]
        self.assertEqual(aggregate(docs, [], [], "USD").outstanding_total, Decimal("150"))

    def test_payment_in_another_currency_is_a_mismatch(self):
        docs = [doc(1, "100", date(2024, 1, 10))]
        same = PaymentRecord(id=1, amount=Decimal("40"), payment_date=date(2024, 1, 12),
                             invoice_id=1, currency="usd")
        self.assertEqual(aggregate(docs, [same], [], "USD").received_total, Decimal("40"))

        foreign = PaymentRecord(id=2, amount=Decimal("40"), payment_date=date(2024, 1, 12),
                                invoice_id=1, currency="EUR")
        with self.assertRaises(CurrencyMismatch):
            aggregate(docs, [foreign], [], "USD")

    def test_debt_collection_in_another_currency_is_a_mismatch(self):
        docs = [doc(1, "100", date(2024, 1, 10))]
        debts = [DebtCollectionRecord(id=1, invoice_id=1, amount_collected=Decimal("5"),
                                      created_at=date(2024, 1, 20), currency="GBP")]
        with self.assertRaises(CurrencyMismatch):
            compute_dashboard(docs, [], [], debts, "USD", date(2024, 1, 1), date(2024, 1, 31))

    def test_serialized_amounts_are_rounded_strings(self):
        docs = [doc(1, "10.005", date(2024, 1, 10))]
        data = serialize_result(aggregate(docs, [], [], "usd"))
        self.assertEqual(data["currency"], "USD")
        self.assertEqual(data["totals"]["invoiced"], "10.01")
        self.assertEqual(data["buckets"][0]["key"], "2024-01")
        self.assertEqual(data["buckets"][0]["invoiced"], "10.01")


class DashboardTests(SimpleTestCase):
    def test_current_against_previous_window(self):
        docs = [
            doc(1, "200", date(2024, 3, 5), payment_status="partially_paid", paid="50"),
            doc(2, "100", date(2024, 2, 20), payment_status="unpaid"),
            doc(3, "900", date(2024, 3, 6), currency="EUR"),
            doc(4, "700", date(2024, 3, 7)),
        ]
        payments = [pay(1, "50", date(2024, 3, 10), 1), pay(2, "25", date(2024, 2, 25), 2)]
        debts = [DebtCollectionRecord(id=1, invoice_id=2, amount_collected=Decimal("10"), created_at=date(2024, 3, 2))]
        sales = [POSSaleRecord(id=1, invoice_id=4)]

        data = compute_dashboard(docs, payments, sales, debts, "USD", date(2024, 3, 1), date(2024, 3, 31))

        self.assertEqual(data["previous_period"], {"date_from": "2024-01-30", "date_to": "2024-02-29"})
        metrics = data["metrics"]
        self.assertEqual(metrics["total_invoiced"], {"current": "200.00", "previous": "100.00", "change_percent": "100.00"})
        self.assertEqual(metrics["revenue_received"], {"current": "50.00", "previous": "25.00", "change_percent": "100.00"})
        self.assertEqual(metrics["outstanding"]["current"], "150.00")
        self.assertEqual(metrics["outstanding"]["previous"], "100.00")
        self.assertEqual(metrics["debt_collected"], {"current": "10.00", "previous": "0.00", "change_percent": "0.00"})
        self.assertEqual(data["invoice_count"], 1)
        self.assertEqual([m["key"] for m in data["monthly"]], ["2024-03"])

    def test_empty_inputs_report_zero_change(self):
        data = compute_dashboard([], [], [], [], "USD", date(2024, 3, 1), date(2024, 3, 31))
        for metric in data["metrics"].values():
            self.assertEqual(metric["change_percent"], "0.00")


class QuotationAggregationTests(SimpleTestCase):
    def setUp(self):
        self.quotes = [
            doc(1, "100", date(2024, 1, 10), status="draft", payment_status=""),
            doc(2, "300", date(2024, 1, 20), status="accepted", payment_status="", client_id=4),
            doc(3, "200", date(2024, 3, 5), status="converted", payment_status="", client_id=4),
            doc(4, "50", date(2024, 3, 6), status="rejected", payment_status=""),
            doc(5, "999", date(2024, 3, 7), currency="EUR", status="accepted", payment_status=""),
        ]

    def test_totals_and_conversion_rate(self):
        result = aggregate_quotations(self.quotes, "usd")
        self.assertEqual(result.quotation_count, 4)
        self.assertEqual(result.won_count, 2)
        self.assertEqual(result.total_value, Decimal("650"))
        self.assertEqual(result.average_value, Decimal("162.5"))
        self.assertEqual(result.conversion_rate, Decimal("50"))

    def test_status_buckets_include_empty_statuses(self):
        buckets = bucket_map(aggregate_quotations(self.quotes, "USD", bucket_by="status"))
        self.assertEqual(
            list(buckets), ["draft", "sent", "viewed", "accepted", "rejected", "converted"]
        )
        self.assertEqual(buckets["sent"].count, 0)
        self.assertEqual(buckets["accepted"].value, Decimal("300"))

    def test_month_buckets_are_zero_filled(self):
        buckets = aggregate_quotations(self.quotes, "USD").buckets
        self.assertEqual([b.key for b in buckets], ["2024-01", "2024-02", "2024-03"])
        self.assertEqual([b.count for b in buckets], [2, 0, 2])
        self.assertEqual(buckets[0].value, Decimal("400"))

    def test_filters_and_date_range(self):
        filters = AggregationFilters(date_from=date(2024, 3, 1), date_to=date(2024, 3, 31))
        result = aggregate_quotations(self.quotes, "USD", filters, bucket_by="client")
        self.assertEqual(result.quotation_count, 2)
        self.assertEqual(bucket_map(result)[4].value, Decimal("200"))

    def test_expired_quotations_match_the_overdue_filter(self):
        quotes = [
            doc(1, "10", date(2024, 1, 1), status="sent", payment_status="", due=date(2024, 1, 31)),
            doc(2, "20", date(2024, 1, 1), status="sent", payment_status="", due=date(2024, 3, 31)),
            doc(3, "30", date(2024, 1, 1), status="accepted", payment_status="", due=date(2024, 1, 31)),
        ]
        filters = AggregationFilters(status="overdue", today=date(2024, 2, 15))
        result = aggregate_quotations(quotes, "USD", filters, bucket_by="status")
        self.assertEqual(result.quotation_count, 1)
        self.assertEqual(result.total_value, Decimal("10"))

    def test_no_quotations_is_a_zero_rate(self):
        data = serialize_quotation_result(aggregate_quotations([], "USD"))
        self.assertEqual(data["totals"]["conversion_rate"], "0.00")
        self.assertEqual(data["totals"]["average_value"], "0.00")
        self.assertEqual(data["buckets"], [])

    def test_unknown_bucket(self):
        with self.assertRaises(ValueError):
            aggregate_quotations(self.quotes, "USD", bucket_by="method")
