from django.conf import settings
from django.db import models
from django.utils import timezone


class EmailTemplate(models.Model):
    """
    Logical email templates (e.g. 'invoice_email', 'quotation_email').
    Each can have multiple locale versions; the highest active version wins.
    """
    name = models.CharField(max_length=100)  # e.g. invoice_email
    subject = models.CharField(max_length=200)
    html_body = models.TextField()
    locale = models.CharField(max_length=8, default="en")
    version = models.IntegerField(default=1)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "-version"]
        unique_together = [("name", "locale", "version")]

    def __str__(self):
        return f"{self.name} (v{self.version}, {self.locale})"


class EmailLog(models.Model):
    """
    Stores every attempt to send a document email.
    """
    STATUS_QUEUED = "queued"
    STATUS_SENT = "sent"
    STATUS_FAILED = "failed"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="email_logs"
    )
    to_address = models.EmailField()
    subject = models.CharField(max_length=200)
    template = models.ForeignKey(EmailTemplate, null=True, blank=True, on_delete=models.SET_NULL)
    document_kind = models.CharField(max_length=16, blank=True)  # invoice / quotation
    document_id = models.PositiveBigIntegerField(null=True, blank=True)
    payload = models.JSONField(default=dict, blank=True)  # rendered context, etc.
    status = models.CharField(
        max_length=20,
        choices=[
            (STATUS_QUEUED, "Queued"),
            (STATUS_SENT, "Sent"),
            (STATUS_FAILED, "Failed"),
        ],
        default=STATUS_QUEUED,
    )
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["to_address"], name="emaillog_to_idx"),
            models.Index(fields=["status"], name="emaillog_status_idx"),
            models.Index(fields=["document_kind", "document_id"], name="emaillog_document_idx"),
        ]

    def __str__(self):
        return f"{self.to_address} [{self.subject}] ({self.status})"
