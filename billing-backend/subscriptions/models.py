from django.conf import settings
from django.db import models
from django.utils import timezone

from billing.records import PlanLimits


class Plan(models.Model):
    code = models.CharField(max_length=50, unique=True)  # e.g. FREE, STANDARD
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    # -1 means unlimited
    max_clients = models.IntegerField(default=8)
    max_invoices = models.IntegerField(default=8)
    max_pdfs = models.IntegerField(default=8)
    max_emails = models.IntegerField(default=8)

    features = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]

    def __str__(self):
        return self.code

    def limits(self) -> PlanLimits:
        return PlanLimits(
            max_clients=self.max_clients,
            max_invoices=self.max_invoices,
            max_pdfs=self.max_pdfs,
            max_emails=self.max_emails,
        )


class Subscription(models.Model):
    STATUS_TRIALING = "trialing"
    STATUS_ACTIVE = "active"
    STATUS_CANCELED = "canceled"
    STATUS_PAST_DUE = "past_due"

    STATUS_CHOICES = [
        (STATUS_TRIALING, "Trialing"),
        (STATUS_ACTIVE, "Active"),
        (STATUS_CANCELED, "Canceled"),
        (STATUS_PAST_DUE, "Past due"),
    ]
    LIVE_STATUSES = (STATUS_TRIALING, STATUS_ACTIVE)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="subscriptions")
    plan = models.ForeignKey(Plan, on_delete=models.PROTECT, related_name="subscriptions")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    current_period_start = models.DateTimeField(default=timezone.now)
    current_period_end = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "status"], name="subscription_user_status_idx"),
        ]

    def __str__(self):
        return f"{self.user_id}-{self.plan.code}-{self.status}"


class UsageRecord(models.Model):
    """One row per metered action that has no table of its own (PDF exports, emails)."""

    RESOURCE_PDFS = "pdfs"
    RESOURCE_EMAILS = "emails"
    RESOURCE_CHOICES = [
        (RESOURCE_PDFS, "PDF exports"),
        (RESOURCE_EMAILS, "Emails sent"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="usage_records")
    resource = models.CharField(max_length=16, choices=RESOURCE_CHOICES)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "resource", "created_at"], name="usage_user_resource_idx"),
        ]

    def __str__(self):
        return f"{self.user_id}:{self.resource}@{self.created_at:%Y-%m-%d}"
