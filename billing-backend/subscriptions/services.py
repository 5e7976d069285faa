import logging
from datetime import date, datetime, time
from typing import Dict, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from billing.records import PlanLimits, UsageCounts
from common.exceptions import LimitExceeded

from .limits import RESOURCES, LimitCheck, evaluate
from .models import Plan, Subscription, UsageRecord

logger = logging.getLogger(__name__)

# Used when a user has no live subscription and the default plan row is missing.
FALLBACK_LIMITS = PlanLimits(max_clients=8, max_invoices=8, max_pdfs=8, max_emails=8)

_RESOURCE_LABELS = {
    "clients": "clients",
    "invoices": "invoices this month",
    "pdfs": "PDF exports this month",
    "emails": "emails this month",
}


def get_active_subscription(user) -> Optional[Subscription]:
    return (
        Subscription.objects.select_related("plan")
        .filter(user=user, status__in=Subscription.LIVE_STATUSES)
        .order_by("-created_at", "-id")
        .first()
    )


def resolve_plan(user) -> Optional[Plan]:
    sub = get_active_subscription(user)
    if sub:
        return sub.plan
    code = getattr(settings, "BILLING_DEFAULT_PLAN_CODE", "FREE")
    return Plan.objects.filter(code=code, is_active=True).first()


def resolve_plan_limits(user) -> PlanLimits:
    plan = resolve_plan(user)
    return plan.limits() if plan else FALLBACK_LIMITS


def month_start(today: Optional[date] = None) -> datetime:
    today = today or timezone.localdate()
    start = datetime.combine(today.replace(day=1), time.min)
    return timezone.make_aware(start) if settings.USE_TZ else start


def usage_counts(user, today: Optional[date] = None) -> UsageCounts:
    """
    Live counts, read from the database every call:
      clients  -> all of the user's clients
      invoices -> invoices created this calendar month
      pdfs / emails -> usage records this calendar month
    """
    from clients.models import Client
    from invoices.models import Invoice

    since = month_start(today)
    metered = UsageRecord.objects.filter(user=user, created_at__gte=since)
    return UsageCounts(
        clients=Client.objects.filter(user=user).count(),
        invoices=Invoice.objects.filter(user=user, created_at__gte=since).count(),
        pdfs=metered.filter(resource=UsageRecord.RESOURCE_PDFS).count(),
        emails=metered.filter(resource=UsageRecord.RESOURCE_EMAILS).count(),
    )


def check_limit(user, resource: str) -> LimitCheck:
    """Advisory check for UIs; ``enforce_limit`` is the authoritative one."""
    return evaluate(resource, usage_counts(user), resolve_plan_limits(user))


def limits_overview(user) -> Dict[str, LimitCheck]:
    usage = usage_counts(user)
    limits = resolve_plan_limits(user)
    return {resource: evaluate(resource, usage, limits) for resource in RESOURCES}


def enforce_limit(user, resource: str) -> LimitCheck:
    """
    Write-boundary guard, called inside the transaction that creates the row.

    Locks the user's row so two concurrent creations for the same user are
    counted one after the other, then recounts from the database.
    """
    with transaction.atomic():
        get_user_model().objects.select_for_update().filter(pk=user.pk).first()
        check = evaluate(resource, usage_counts(user), resolve_plan_limits(user))
        if not check.allowed:
            logger.warning(
                "Plan limit reached user=%s resource=%s current=%s limit=%s",
                user.pk, resource, check.current, check.limit,
            )
            raise LimitExceeded(
                f"You have reached your plan limit of {check.limit} {_RESOURCE_LABELS[resource]}. "
                "Upgrade your plan to continue.",
                resource=resource,
                limit=check.limit,
            )
        return check


def record_usage(user, resource: str) -> UsageRecord:
    if resource not in (UsageRecord.RESOURCE_PDFS, UsageRecord.RESOURCE_EMAILS):
        raise ValueError(f"Usage for {resource} is counted from its own table")
    return UsageRecord.objects.create(user=user, resource=resource)
