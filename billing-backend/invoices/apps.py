from django.apps import AppConfig


class InvoicesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "invoices"
    verbose_name = "Invoices"

    def ready(self):
        # Payment insert/delete keeps invoice payment state in sync
        from . import signals  # noqa: F401
