from django.apps import AppConfig
from django.db.models.signals import post_migrate

DEFAULT_PLANS = [
    {
        "code": "FREE",
        "name": "Free",
        "description": "Get started with the basics",
        "max_clients": 8,
        "max_invoices": 8,
        "max_pdfs": 8,
        "max_emails": 8,
        "features": {"recurring": False, "analytics": "basic"},
    },
    {
        "code": "STANDARD",
        "name": "Standard",
        "description": "For growing businesses",
        "max_clients": 50,
        "max_invoices": 100,
        "max_pdfs": 100,
        "max_emails": 100,
        "features": {"recurring": True, "analytics": "full"},
    },
    {
        "code": "PREMIUM",
        "name": "Premium",
        "description": "Unlimited everything",
        "max_clients": -1,
        "max_invoices": -1,
        "max_pdfs": -1,
        "max_emails": -1,
        "features": {"recurring": True, "analytics": "full", "support": "priority"},
    },
]


class SubscriptionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "subscriptions"
    verbose_name = "Subscriptions"

    def ready(self):
        def seed_default_plans(sender, **kwargs):
            from subscriptions.models import Plan

            for plan in DEFAULT_PLANS:
                data = dict(plan)
                code = data.pop("code")
                Plan.objects.update_or_create(code=code, defaults={**data, "is_active": True})

        post_migrate.connect(seed_default_plans, sender=self)
