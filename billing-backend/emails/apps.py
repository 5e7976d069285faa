from django.apps import AppConfig
from django.db.models.signals import post_migrate

DEFAULT_TEMPLATES = [
    {
        "name": "invoice_email",
        "subject": "Invoice {{ number }} from {{ sender_name }}",
        "html_body": (
            "<p>Hello {{ client_name|default:'there' }},</p>"
            "{% if message %}<p>{{ message }}</p>{% endif %}"
            "<p>Please find invoice <strong>{{ number }}</strong> for "
            "{{ currency }} {{ total }} attached."
            "{% if due_date %} Payment is due by {{ due_date }}.{% endif %}</p>"
            "<p>Thank you,<br>{{ sender_name }}</p>"
        ),
    },
    {
        "name": "quotation_email",
        "subject": "Quotation {{ number }} from {{ sender_name }}",
        "html_body": (
            "<p>Hello {{ client_name|default:'there' }},</p>"
            "{% if message %}<p>{{ message }}</p>{% endif %}"
            "<p>Please find quotation <strong>{{ number }}</strong> for "
            "{{ currency }} {{ total }} attached."
            "{% if valid_until %} This quotation is valid until {{ valid_until }}.{% endif %}</p>"
            "<p>Kind regards,<br>{{ sender_name }}</p>"
        ),
    },
]


class EmailsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "emails"
    verbose_name = "Emails"

    def ready(self):
        def seed_default_templates(sender, **kwargs):
            from emails.models import EmailTemplate

            for tpl in DEFAULT_TEMPLATES:
                EmailTemplate.objects.get_or_create(
                    name=tpl["name"],
                    locale="en",
                    version=1,
                    defaults={"subject": tpl["subject"], "html_body": tpl["html_body"], "is_active": True},
                )

        post_migrate.connect(seed_default_templates, sender=self)
