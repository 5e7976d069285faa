from datetime import date

from django.test import SimpleTestCase

from billing.services.numbering import next_document_number, parse_sequence
from billing.services.recurring import iter_occurrences, next_occurrence, occurrence


class RecurringResolverTests(SimpleTestCase):
    def test_month_end_anchor_is_kept(self):
        anchor = date(2024, 1, 31)
        seen = []
        current = anchor
        for _ in range(3):
            current = next_occurrence("monthly", anchor, after=current)
            seen.append(current)
        self.assertEqual(seen, [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)])

    def test_default_after_is_anchor(self):
        self.assertEqual(next_occurrence("weekly", date(2024, 1, 1)), date(2024, 1, 8))
        self.assertEqual(next_occurrence("quarterly", date(2024, 1, 15)), date(2024, 4, 15))
        self.assertEqual(next_occurrence("yearly", date(2024, 2, 29)), date(2025, 2, 28))

    def test_after_between_cycles(self):
        self.assertEqual(
            next_occurrence("monthly", date(2024, 1, 31), after=date(2024, 3, 1)),
            date(2024, 3, 31),
        )
        self.assertEqual(
            next_occurrence("weekly", date(2024, 1, 1), after=date(2024, 3, 4)),
            date(2024, 3, 11),
        )

    def test_after_before_anchor_returns_first_cycle(self):
        self.assertEqual(
            next_occurrence("monthly", date(2024, 6, 30), after=date(2024, 1, 1)),
            date(2024, 7, 30),
        )

    def test_series_end(self):
        anchor = date(2024, 1, 15)
        self.assertEqual(next_occurrence("monthly", anchor, end_date=date(2024, 2, 15)), date(2024, 2, 15))
        self.assertIsNone(next_occurrence("monthly", anchor, end_date=date(2024, 2, 14)))
        self.assertIsNone(
            next_occurrence("monthly", anchor, end_date=date(2024, 3, 31), after=date(2024, 3, 15))
        )

    def test_unknown_frequency(self):
        with self.assertRaises(ValueError):
            next_occurrence("daily", date(2024, 1, 1))

    def test_iter_occurrences(self):
        dates = list(iter_occurrences("quarterly", date(2023, 11, 30), end_date=date(2024, 9, 1)))
        self.assertEqual(dates, [date(2024, 2, 29), date(2024, 5, 30), date(2024, 8, 30)])
        self.assertEqual(occurrence("yearly", date(2024, 2, 29), 4), date(2028, 2, 29))
        with self.assertRaises(ValueError):
            next(iter_occurrences("weekly", date(2024, 1, 1)))


class DocumentNumberTests(SimpleTestCase):
    def test_auto_increment(self):
        self.assertEqual(next_document_number("INV"), "INV-0001")
        self.assertEqual(next_document_number("INV", "auto", "INV-0041"), "INV-0042")
        self.assertEqual(next_document_number("QUO", "auto", "INV-0041"), "QUO-0001")

    def test_date_strategy(self):
        today = date(2024, 1, 31)
        self.assertEqual(next_document_number("INV", "date", None, today), "INV-20240131-001")
        self.assertEqual(
            next_document_number("INV", "date", "INV-20240130-007", today), "INV-20240131-008"
        )
        with self.assertRaises(ValueError):
            next_document_number("INV", "date")

    def test_manual_strategy(self):
        self.assertEqual(next_document_number("INV", "manual", manual_number=" A-17 "), "A-17")
        with self.assertRaises(ValueError):
            next_document_number("INV", "manual", manual_number="  ")

    def test_parse_sequence(self):
        self.assertEqual(parse_sequence("INV-0007", "INV"), 7)
        self.assertIsNone(parse_sequence("custom", "INV"))
        self.assertIsNone(parse_sequence(None, "INV"))
        self.assertEqual(parse_sequence("INV-20240131-003", "INV"), 3)

    def test_manual_numbers_sharing_the_prefix_are_not_sequences(self):
        for number in ("INV-20240131", "INV-7A", "INV-2024-01", "INV-", "INVOICE-0003"):
            self.assertIsNone(parse_sequence(number, "INV"), number)
        self.assertEqual(next_document_number("INV", "auto", "INV-20240131"), "INV-0001")
