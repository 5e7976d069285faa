from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from billing.choices import DocumentKind, DocumentStatus, PaymentStatus, StatusEvent
from billing.services.status import (
    allowed_events,
    derive_payment_status,
    display_payment_status,
    display_status,
    ensure_editable,
    next_payment_status,
    transition,
    validate_payment_status_request,
)
from common.exceptions import InvalidAmount, InvalidTransition

INV = DocumentKind.INVOICE
QUO = DocumentKind.QUOTATION


class DocumentTransitionTests(SimpleTestCase):
    def test_send_then_view(self):
        status = transition(INV, DocumentStatus.DRAFT, StatusEvent.SEND)
        self.assertEqual(status, DocumentStatus.SENT)
        self.assertEqual(transition(INV, status, StatusEvent.VIEW), DocumentStatus.VIEWED)

    def test_resend_and_review_keep_status(self):
        self.assertEqual(transition(INV, "sent", "send"), "sent")
        self.assertEqual(transition(INV, "viewed", "send"), "viewed")
        self.assertEqual(transition(INV, "viewed", "view"), "viewed")

    def test_view_before_send_is_invalid(self):
        with self.assertRaises(InvalidTransition):
            transition(INV, "draft", "view")

    def test_invoice_cannot_be_accepted(self):
        with self.assertRaises(InvalidTransition):
            transition(INV, "sent", "accept")

    def test_overdue_is_never_a_stored_source_state(self):
        with self.assertRaises(InvalidTransition):
            transition(INV, "overdue", "send")

    def test_unknown_event_is_invalid(self):
        with self.assertRaises(InvalidTransition):
            transition(INV, "draft", "archive")

    def test_quotation_accept_is_terminal_except_convert(self):
        status = transition(QUO, "sent", "accept")
        self.assertEqual(status, DocumentStatus.ACCEPTED)
        for event in ("send", "view", "reject", "accept"):
            with self.assertRaises(InvalidTransition):
                transition(QUO, status, event)
        self.assertEqual(transition(QUO, status, "convert"), DocumentStatus.CONVERTED)
        self.assertEqual(allowed_events(QUO, "accepted"), ["convert"])

    def test_rejected_and_converted_quotations_are_final(self):
        for status in ("rejected", "converted"):
            self.assertEqual(allowed_events(QUO, status), [])
            with self.assertRaises(InvalidTransition):
                ensure_editable(QUO, status)

    def test_draft_quotation_is_editable(self):
        ensure_editable(QUO, "draft")
        ensure_editable(INV, "sent")


class PaymentStatusTests(SimpleTestCase):
    def test_derived_from_paid_amount(self):
        self.assertEqual(derive_payment_status("0", "100"), PaymentStatus.UNPAID)
        self.assertEqual(derive_payment_status("0.01", "100"), PaymentStatus.PARTIALLY_PAID)
        self.assertEqual(derive_payment_status("100", "100"), PaymentStatus.PAID)
        self.assertEqual(derive_payment_status("150", "100"), PaymentStatus.PAID)

    def test_zero_total_with_no_payment_is_unpaid(self):
        self.assertEqual(derive_payment_status(Decimal("0"), Decimal("0")), PaymentStatus.UNPAID)

    def test_negative_paid_amount_rejected(self):
        with self.assertRaises(InvalidAmount):
            derive_payment_status("-1", "10")

    def test_payments_only_move_forward(self):
        status = PaymentStatus.UNPAID
        for paid in ("10", "40", "100"):
            status = next_payment_status(status, paid, "100")
        self.assertEqual(status, PaymentStatus.PAID)
        with self.assertRaises(InvalidTransition):
            next_payment_status(status, "40", "100")

    def test_reversal_may_move_backwards(self):
        self.assertEqual(
            next_payment_status(PaymentStatus.PAID, "40", "100", reversal=True),
            PaymentStatus.PARTIALLY_PAID,
        )

    def test_manual_request_must_match_payments(self):
        self.assertEqual(validate_payment_status_request("paid", "100", "100"), "paid")
        with self.assertRaises(InvalidTransition):
            validate_payment_status_request("paid", "10", "100")
        with self.assertRaises(InvalidTransition):
            validate_payment_status_request("overdue", "0", "100")


class OverlayTests(SimpleTestCase):
    today = date(2024, 5, 10)

    def test_payment_overdue_overlay(self):
        self.assertEqual(display_payment_status("unpaid", date(2024, 5, 9), self.today), "overdue")
        self.assertEqual(display_payment_status("partially_paid", date(2024, 5, 9), self.today), "overdue")
        self.assertEqual(display_payment_status("paid", date(2024, 5, 9), self.today), "paid")
        self.assertEqual(display_payment_status("unpaid", date(2024, 5, 10), self.today), "unpaid")
        self.assertEqual(display_payment_status("unpaid", None, self.today), "unpaid")

    def test_status_overdue_overlay(self):
        past = date(2024, 5, 1)
        self.assertEqual(display_status(INV, "sent", past, self.today, "unpaid"), "overdue")
        self.assertEqual(display_status(INV, "viewed", past, self.today, "partially_paid"), "overdue")
        self.assertEqual(display_status(INV, "sent", past, self.today, "paid"), "sent")
        self.assertEqual(display_status(INV, "draft", past, self.today, "unpaid"), "draft")
        self.assertEqual(display_status(QUO, "sent", past, self.today), "overdue")
        self.assertEqual(display_status(QUO, "accepted", past, self.today), "accepted")
