# analytics/signals.py
"""
Cached reports are keyed on a per-user data version; any write to an input
of the aggregation bumps it so the next request recomputes.
"""
from django.core.cache import cache
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from clients.models import Client
from invoices.models import DebtCollection, Invoice, Payment
from pos.models import POSSale
from quotations.models import Quotation

VERSION_KEY = "report_version:user:{}"


def report_version(user_id) -> int:
    return cache.get(VERSION_KEY.format(user_id), 0)


def bump_report_version(user_id) -> None:
    key = VERSION_KEY.format(user_id)
    try:
        cache.incr(key)
    except ValueError:
        # key missing or expired
        cache.set(key, 1, timeout=None)


@receiver(post_save, sender=Invoice)
@receiver(post_delete, sender=Invoice)
@receiver(post_save, sender=Payment)
@receiver(post_delete, sender=Payment)
@receiver(post_save, sender=POSSale)
@receiver(post_delete, sender=POSSale)
@receiver(post_save, sender=DebtCollection)
@receiver(post_delete, sender=DebtCollection)
@receiver(post_save, sender=Quotation)
@receiver(post_delete, sender=Quotation)
@receiver(post_save, sender=Client)
@receiver(post_delete, sender=Client)
def _report_inputs_changed(sender, instance, **kwargs):
    if instance.user_id:
        bump_report_version(instance.user_id)
