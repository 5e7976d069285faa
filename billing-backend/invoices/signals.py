from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from .models import Payment
from .services import refresh_payment_state


@receiver(pre_save, sender=Payment)
def _payment_snapshot(sender, instance: Payment, **kwargs):
    if not instance.pk:
        instance._prev_snapshot = None
        return
    prev = Payment.objects.filter(pk=instance.pk).values("invoice_id", "amount").first()
    instance._prev_snapshot = prev


@receiver(post_save, sender=Payment)
def _payment_saved(sender, instance: Payment, created: bool, **kwargs):
    snap = getattr(instance, "_prev_snapshot", None)
    if created or not snap:
        if instance.invoice_id:
            refresh_payment_state(instance.invoice_id)
        return

    # edited payment: amount lowered or moved to another invoice counts as a reversal
    if snap["invoice_id"] and snap["invoice_id"] != instance.invoice_id:
        refresh_payment_state(snap["invoice_id"], reversal=True)
    if instance.invoice_id:
        refresh_payment_state(instance.invoice_id, reversal=True)


@receiver(post_delete, sender=Payment)
def _payment_deleted(sender, instance: Payment, **kwargs):
    if instance.invoice_id:
        refresh_payment_state(instance.invoice_id, reversal=True)
