import math
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIRequestFactory, force_authenticate

from billing.records import PlanLimits, UsageCounts
from clients.models import Client
from common.exceptions import LimitExceeded
from subscriptions.limits import STATUS_AT, STATUS_NEAR, STATUS_OK, evaluate
from subscriptions.models import Plan, Subscription, UsageRecord
from subscriptions.services import (
    FALLBACK_LIMITS,
    enforce_limit,
    record_usage,
    resolve_plan,
    resolve_plan_limits,
    usage_counts,
)
from subscriptions.views import PlanListView, UsageLimitsView

User = get_user_model()

TEN = PlanLimits(max_clients=10, max_invoices=10, max_pdfs=10, max_emails=10)


class LimitMeterTests(SimpleTestCase):
    def test_boundaries_against_a_limit_of_ten(self):
        expected = {0: STATUS_OK, 7: STATUS_OK, 8: STATUS_NEAR, 9: STATUS_NEAR, 10: STATUS_AT, 12: STATUS_AT}
        for current, want in expected.items():
            check = evaluate("invoices", UsageCounts(invoices=current), TEN)
            self.assertEqual(check.status, want, current)

    def test_remaining(self):
        self.assertEqual(evaluate("pdfs", UsageCounts(pdfs=8), TEN).remaining, 2)
        self.assertEqual(evaluate("pdfs", UsageCounts(pdfs=12), TEN).remaining, 0)

    def test_unlimited(self):
        limits = PlanLimits(max_clients=-1, max_invoices=-1, max_pdfs=-1, max_emails=-1)
        check = evaluate("emails", UsageCounts(emails=10_000), limits)
        self.assertEqual(check.status, STATUS_OK)
        self.assertEqual(check.remaining, math.inf)
        self.assertTrue(check.allowed)
        self.assertTrue(check.unlimited)

    def test_zero_limit_is_always_at(self):
        limits = PlanLimits(max_clients=0, max_invoices=0, max_pdfs=0, max_emails=0)
        self.assertEqual(evaluate("clients", UsageCounts(), limits).status, STATUS_AT)

    def test_unknown_resource(self):
        with self.assertRaises(ValueError):
            evaluate("widgets", UsageCounts(), TEN)


class PlanResolutionTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="meter", password="x")
        self.plan = Plan.objects.create(
            code="TEST_TINY", name="Tiny", max_clients=2, max_invoices=3, max_pdfs=1, max_emails=1
        )

    def test_default_plan_is_seeded_free(self):
        plan = resolve_plan(self.user)
        self.assertEqual(plan.code, "FREE")
        self.assertEqual(resolve_plan_limits(self.user), PlanLimits(8, 8, 8, 8))

    def test_live_subscription_wins(self):
        Subscription.objects.create(user=self.user, plan=self.plan, status=Subscription.STATUS_TRIALING)
        self.assertEqual(resolve_plan(self.user), self.plan)

    def test_canceled_subscription_is_ignored(self):
        Subscription.objects.create(user=self.user, plan=self.plan, status=Subscription.STATUS_CANCELED)
        self.assertEqual(resolve_plan(self.user).code, "FREE")

    @override_settings(BILLING_DEFAULT_PLAN_CODE="NO_SUCH_PLAN")
    def test_fallback_limits_without_any_plan(self):
        self.assertIsNone(resolve_plan(self.user))
        self.assertEqual(resolve_plan_limits(self.user), FALLBACK_LIMITS)


class UsageAndEnforcementTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="metered", password="x")
        self.other = User.objects.create_user(username="other", password="x")
        plan = Plan.objects.create(
            code="TEST_TINY", name="Tiny", max_clients=2, max_invoices=3, max_pdfs=1, max_emails=-1
        )
        Subscription.objects.create(user=self.user, plan=plan)

    def test_usage_counts_are_scoped_to_user_and_month(self):
        Client.objects.create(user=self.user, name="A")
        Client.objects.create(user=self.other, name="B")
        record_usage(self.user, "pdfs")
        old = record_usage(self.user, "pdfs")
        UsageRecord.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=40))

        counts = usage_counts(self.user)
        self.assertEqual(counts.clients, 1)
        self.assertEqual(counts.pdfs, 1)
        self.assertEqual(counts.emails, 0)

    def test_enforce_limit_blocks_at_the_limit(self):
        Client.objects.create(user=self.user, name="A")
        self.assertEqual(enforce_limit(self.user, "clients").status, STATUS_OK)
        Client.objects.create(user=self.user, name="B")
        with self.assertLogs("subscriptions.services", level="WARNING"):
            with self.assertRaises(LimitExceeded) as ctx:
                enforce_limit(self.user, "clients")
        self.assertEqual(ctx.exception.code, "limit_exceeded")
        self.assertEqual(ctx.exception.status_code, 403)

    def test_unlimited_resource_never_blocks(self):
        for _ in range(5):
            record_usage(self.user, "emails")
        self.assertTrue(enforce_limit(self.user, "emails").allowed)

    def test_clients_and_invoices_are_not_usage_records(self):
        with self.assertRaises(ValueError):
            record_usage(self.user, "clients")


class SubscriptionViewTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(username="viewer", password="x")

    def test_plans_are_public(self):
        request = self.factory.get("/api/v1/subscriptions/plans")
        response = PlanListView.as_view()(request)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        codes = [p["code"] for p in response.data]
        self.assertTrue({"FREE", "STANDARD", "PREMIUM"} <= set(codes))

    def test_limits_overview(self):
        Client.objects.create(user=self.user, name="A")
        request = self.factory.get("/api/v1/subscriptions/limits")
        force_authenticate(request, user=self.user)
        response = UsageLimitsView.as_view()(request)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["plan"], "FREE")
        self.assertIsNone(response.data["subscription"])
        clients = response.data["limits"]["clients"]
        self.assertEqual((clients["current"], clients["limit"], clients["remaining"]), (1, 8, 7))
        self.assertEqual(set(response.data["limits"]), {"clients", "invoices", "pdfs", "emails"})

    def test_unlimited_plan_reports_no_numbers(self):
        Subscription.objects.create(user=self.user, plan=Plan.objects.get(code="PREMIUM"))
        request = self.factory.get("/api/v1/subscriptions/limits")
        force_authenticate(request, user=self.user)
        response = UsageLimitsView.as_view()(request)

        emails = response.data["limits"]["emails"]
        self.assertEqual(response.data["plan"], "PREMIUM")
        self.assertIsNone(emails["limit"])
        self.assertIsNone(emails["remaining"])
        self.assertTrue(emails["unlimited"])
