"""
Tests for the line-item calculator: exact subtotals, both discount paths,
amount validation and serialization rounding.
"""
from decimal import Decimal

from django.test import SimpleTestCase

from billing.services.totals import (
    LineIn,
    calculate,
    line_amount,
    money,
    rounded_totals,
    serialize_totals,
    to_amount,
)
from common.exceptions import InvalidAmount


def _line(qty, rate, name="Item"):
    return LineIn(product_name=name, quantity=Decimal(qty), rate=Decimal(rate))


class CalculatorTests(SimpleTestCase):
    def test_subtotal_is_exact_sum_of_line_amounts(self):
        items = [_line("3", "0.10"), _line("1.5", "19.99"), _line("2", "0.01")]
        out = calculate(items, currency="USD")
        self.assertEqual(out.subtotal, Decimal("0.30") + Decimal("29.985") + Decimal("0.02"))
        self.assertEqual([ln.amount for ln in out.lines], [Decimal("0.30"), Decimal("29.985"), Decimal("0.02")])

    def test_percentage_discount_then_tax_then_shipping(self):
        out = calculate(
            [_line("2", "50")],
            currency="usd",
            discount_percentage="10",
            tax_percentage="20",
            shipping_charge="5",
        )
        self.assertEqual(out.subtotal, Decimal("100"))
        self.assertEqual(out.discount_amount, Decimal("10"))
        self.assertEqual(out.tax_amount, Decimal("18"))
        self.assertEqual(out.total, Decimal("113"))
        self.assertEqual(out.currency, "USD")

    def test_percentage_wins_over_fixed_amount(self):
        out = calculate([_line("1", "200")], currency="USD", discount_percentage="5", discount_amount="50")
        self.assertEqual(out.discount_amount, Decimal("10"))
        self.assertEqual(out.total, Decimal("190"))

    def test_fixed_discount_used_when_percentage_is_zero(self):
        out = calculate([_line("1", "200")], currency="USD", discount_percentage="0", discount_amount="50",
                        tax_percentage="10")
        self.assertEqual(out.discount_amount, Decimal("50"))
        self.assertEqual(out.tax_amount, Decimal("15"))
        self.assertEqual(out.total, Decimal("165"))

    def test_total_identity_holds(self):
        for pct, fixed in (("12.5", "0"), ("0", "7.77")):
            out = calculate(
                [_line("3", "33.33"), _line("0.25", "8")],
                currency="EUR",
                discount_percentage=pct,
                discount_amount=fixed,
                tax_percentage="17.5",
                shipping_charge="4.20",
            )
            self.assertEqual(out.total, out.subtotal - out.discount_amount + out.tax_amount + out.shipping_charge)

    def test_calculate_is_idempotent(self):
        items = [_line("7", "1.15"), _line("1", "99.99")]
        a = calculate(items, currency="USD", discount_percentage="3", tax_percentage="8.25")
        b = calculate(items, currency="USD", discount_percentage="3", tax_percentage="8.25")
        self.assertEqual(a, b)

    def test_empty_document_totals_to_shipping(self):
        out = calculate([], currency="USD", shipping_charge="12")
        self.assertEqual(out.subtotal, Decimal("0"))
        self.assertEqual(out.total, Decimal("12"))

    def test_discount_is_not_clamped(self):
        out = calculate([_line("1", "10")], currency="USD", discount_amount="25")
        self.assertEqual(out.total, Decimal("-15"))

    def test_negative_and_non_finite_amounts_rejected(self):
        with self.assertRaises(InvalidAmount):
            calculate([_line("-1", "10")], currency="USD")
        with self.assertRaises(InvalidAmount):
            calculate([_line("1", "10")], currency="USD", tax_percentage="NaN")
        with self.assertRaises(InvalidAmount):
            calculate([_line("1", "10")], currency="USD", shipping_charge=float("inf"))
        with self.assertRaises(InvalidAmount):
            calculate([_line("1", "10")], currency="USD", discount_amount="-0.01")
        with self.assertRaises(InvalidAmount):
            line_amount("abc", "1")

    def test_to_amount_rejects_missing_required_value(self):
        with self.assertRaises(InvalidAmount):
            to_amount(None, "rate")
        self.assertEqual(to_amount(None, "shipping_charge", default=Decimal("0")), Decimal("0"))

    def test_currency_required(self):
        with self.assertRaises(ValueError):
            calculate([_line("1", "1")], currency="")


class LineInTests(SimpleTestCase):
    def test_from_mapping_rejects_unknown_and_missing_fields(self):
        with self.assertRaises(ValueError):
            LineIn.from_mapping({"product_name": "A", "quantity": 1, "rate": 2, "colour": "red"})
        with self.assertRaises(ValueError):
            LineIn.from_mapping({"product_name": "A", "quantity": 1})

    def test_from_mapping_validates_amounts(self):
        with self.assertRaises(InvalidAmount):
            LineIn.from_mapping({"product_name": "A", "quantity": -2, "rate": 2})
        line = LineIn.from_mapping({"product_name": "A", "quantity": "2", "rate": "2.50", "unit": "h"})
        self.assertEqual(line.quantity, Decimal("2"))
        self.assertEqual(line.unit, "h")


class SerializeTotalsTests(SimpleTestCase):
    def test_rounds_half_up_only_on_output(self):
        out = calculate([_line("1", "0.125")], currency="USD")
        self.assertEqual(out.subtotal, Decimal("0.125"))
        data = serialize_totals(out)
        self.assertEqual(data["subtotal"], "0.13")
        self.assertEqual(data["total"], "0.13")
        self.assertEqual(data["lines"][0]["amount"], "0.13")
        self.assertEqual(money(Decimal("2.675")), Decimal("2.68"))

    def test_total_adds_up_from_rounded_components(self):
        # unrounded: 10 - 3.333 + 0.6667 = 7.3337
        out = calculate([_line("1", "10")], currency="USD",
                        discount_percentage="33.33", tax_percentage="10")
        data = serialize_totals(out)
        self.assertEqual(data["discount_amount"], "3.33")
        self.assertEqual(data["tax_amount"], "0.67")
        self.assertEqual(data["total"], "7.34")
        self.assertEqual(rounded_totals(out).total, Decimal("7.34"))
